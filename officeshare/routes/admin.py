import os
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from officeshare.core.database import get_db
from officeshare.core.security import get_current_admin
from officeshare.models.share_link import ShareLink
from officeshare.models.user import User
from officeshare.schemas.admin import FileTypeStat, FileTypeStatsResponse, PlatformStats
from officeshare.schemas.user import UserListResponse, UserResponse, UserRoleUpdate

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(get_current_admin)],
)


async def _count(db: AsyncSession, stmt) -> int:
    return (await db.execute(stmt)).scalar_one() or 0


@router.get("/stats", response_model=PlatformStats)
async def platform_stats(db: AsyncSession = Depends(get_db)):
    week_ago = datetime.utcnow() - timedelta(days=7)
    totals = (await db.execute(
        select(
            func.count(ShareLink.id),
            func.coalesce(func.sum(ShareLink.file_size), 0),
            func.coalesce(func.sum(ShareLink.views), 0),
        )
    )).one()

    return PlatformStats(
        total_users=await _count(db, select(func.count()).select_from(User)),
        total_files=totals[0],
        total_storage=totals[1],
        total_downloads=totals[2],
        recent_users=await _count(db, select(func.count()).select_from(User).where(User.created_at >= week_ago)),
        recent_files=await _count(db, select(func.count()).select_from(ShareLink).where(ShareLink.created_at >= week_ago)),
        admin_count=await _count(db, select(func.count()).select_from(User).where(User.role == "admin")),
    )


@router.get("/file-stats", response_model=FileTypeStatsResponse)
async def file_type_stats(db: AsyncSession = Depends(get_db)):
    rows = (await db.execute(select(ShareLink.file_name, ShareLink.file_size))).all()

    by_type: dict[str, list[int]] = {}
    total_size = 0
    for file_name, file_size in rows:
        ext = os.path.splitext(file_name or "")[1].lower().lstrip(".") or "unknown"
        stats = by_type.setdefault(ext, [0, 0])
        stats[0] += 1
        stats[1] += file_size or 0
        total_size += file_size or 0

    total_files = len(rows)
    file_stats = [
        FileTypeStat(
            type=ext,
            count=count,
            total_size=size,
            percentage=round(count / total_files * 100) if total_files else 0,
            size_percentage=round(size / total_size * 100) if total_size else 0,
        )
        for ext, (count, size) in by_type.items()
    ]
    file_stats.sort(key=lambda s: s.count, reverse=True)
    return FileTypeStatsResponse(file_type_stats=file_stats, total_files=total_files, total_size=total_size)


@router.get("/users", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str | None = Query(None),
    role: str | None = Query(None, description="'admin', 'user' or empty for all"),
    db: AsyncSession = Depends(get_db),
):
    conditions = []
    if search:
        conditions.append(User.email.ilike(f"%{search}%"))
    if role in ("admin", "user"):
        conditions.append(User.role == role)

    total = await _count(db, select(func.count()).select_from(User).where(*conditions))
    rows = (await db.execute(
        select(User)
        .where(*conditions)
        .order_by(User.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )).scalars().all()
    return UserListResponse(
        users=[UserResponse.model_validate(u) for u in rows],
        total=total,
        page=page,
        limit=limit,
    )


@router.patch("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    body: UserRoleUpdate,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    user = (await db.execute(select(User).where(User.id == user_id))).scalars().first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.id == current_admin.id and body.role == "user":
        raise HTTPException(status_code=400, detail="You cannot remove your own admin role")

    if body.role is not None:
        user.role = body.role
    if body.is_active is not None:
        user.is_active = body.is_active
    await db.commit()
    await db.refresh(user)
    return user
