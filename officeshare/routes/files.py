from __future__ import annotations

import logging
import os
import posixpath
import re
import secrets
import tempfile
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, Request, UploadFile
from sqlalchemy import and_, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from officeshare.core.config import settings
from officeshare.core.database import get_db
from officeshare.core.errors import ApiError, ErrorCode
from officeshare.core.security import get_current_user
from officeshare.models.share_link import ShareLink
from officeshare.models.user import User
from officeshare.schemas.share_link import ShareLinkInfo, ShareLinkListResponse, UploadResponse
from officeshare.services.content import content_type_for
from officeshare.services.organizations import OrganizationError, OrganizationErrorReason, get_membership
from officeshare.services.storage import ObjectStore, StorageUnavailable, get_object_store
from officeshare.utils.urls import build_share_url

logger = logging.getLogger("office-share")

router = APIRouter(prefix="/files", tags=["Files"])

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_file_name(name: str) -> str:
    base = posixpath.basename((name or "").replace("\\", "/")).strip()
    cleaned = _UNSAFE_CHARS.sub("_", base).strip("._")
    return cleaned or "file.bin"


def _check_extension(file_name: str) -> None:
    ext = os.path.splitext(file_name)[1].lower()
    if ext not in settings.ALLOWED_EXTENSIONS:
        raise HTTPException(status_code=400, detail=f"File type '{ext or 'none'}' is not allowed")


@router.post("/upload", response_model=UploadResponse, status_code=201)
async def upload_file(
    request: Request,
    file: UploadFile,
    expires_in_hours: int = Query(settings.DEFAULT_EXPIRES_HOURS, ge=1, le=settings.MAX_EXPIRES_HOURS),
    max_views: int = Query(settings.DEFAULT_MAX_VIEWS, ge=1, le=settings.MAX_MAX_VIEWS),
    share_with_organization: bool = Query(False, description="Restrict the link to your organization"),
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    current_user: User = Depends(get_current_user),
):
    file_name = file.filename or "file.bin"
    _check_extension(file_name)

    organization_id = None
    if share_with_organization:
        membership = await get_membership(db, current_user.id)
        if membership is None:
            raise OrganizationError(OrganizationErrorReason.NOT_IN_ORG)
        organization_id = membership.organization_id

    with tempfile.NamedTemporaryFile(delete=False) as tmp:
        size = 0
        while True:
            chunk = await file.read(1024 * 1024)
            if not chunk:
                break
            size += len(chunk)
            if size > settings.MAX_FILE_SIZE:
                tmp.close()
                os.remove(tmp.name)
                raise HTTPException(status_code=413, detail="File is too large")
            tmp.write(chunk)
        temp_path = tmp.name

    link_id = secrets.token_urlsafe(24)
    object_path = f"{current_user.id}/{link_id}/{safe_file_name(file_name)}"

    try:
        await store.put(object_path, temp_path, content_type=content_type_for(file_name))
    except StorageUnavailable as e:
        logger.error("Upload to storage failed for %s: %s", object_path, e)
        raise ApiError(503, "Storage is temporarily unavailable", ErrorCode.STORE_ERROR)
    finally:
        try:
            os.remove(temp_path)
        except OSError:
            logger.warning("Could not remove temp file %s", temp_path)

    now = datetime.utcnow()
    link = ShareLink(
        link_id=link_id,
        owner_id=current_user.id,
        organization_id=organization_id,
        object_path=object_path,
        file_name=file_name,
        file_size=size,
        created_at=now,
        expires_at=now + timedelta(hours=expires_in_hours),
        max_views=max_views,
        views=0,
    )
    db.add(link)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Saving link for %s failed, removing object: %s", object_path, e)
        try:
            await store.delete(object_path)
        except StorageUnavailable:
            logger.exception("Could not remove orphaned object %s", object_path)
        raise ApiError(503, "Could not save the shared file", ErrorCode.STORE_ERROR)
    await db.refresh(link)

    logger.info("User %s shared %s as %s (org=%s)", current_user.id, file_name, link_id, organization_id)
    return UploadResponse(
        **ShareLinkInfo.model_validate(link).model_dump(),
        share_url=build_share_url(request, link_id),
    )


@router.get("", response_model=ShareLinkListResponse)
async def list_files(
    search: str | None = Query(None, description="Search by file name"),
    file_type: str | None = Query(None, description="Filter by extension (e.g., 'pdf')"),
    sort_by: str = Query("created_at"),
    order: str = Query("desc"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    conditions = [ShareLink.owner_id == current_user.id]
    if search and search.strip():
        conditions.append(ShareLink.file_name.ilike(f"%{search.strip()}%"))
    if file_type:
        ext = file_type.lower().lstrip(".")
        conditions.append(ShareLink.file_name.ilike(f"%.{ext}"))
    where_clause = and_(*conditions)

    total = (await db.execute(select(func.count()).select_from(ShareLink).where(where_clause))).scalar_one()

    allowed = {
        "created_at": ShareLink.created_at,
        "file_name": ShareLink.file_name,
        "file_size": ShareLink.file_size,
        "expires_at": ShareLink.expires_at,
        "views": ShareLink.views,
    }
    col = allowed.get(sort_by, ShareLink.created_at)
    query = (
        select(ShareLink)
        .where(where_clause)
        .order_by(col.asc() if order.lower() == "asc" else col.desc())
        .offset(skip)
        .limit(limit)
    )

    rows = (await db.execute(query)).scalars().all()
    files = [ShareLinkInfo.model_validate(r) for r in rows]
    return ShareLinkListResponse(files=files, total=total, skip=skip, limit=limit)


@router.delete("/{link_id}")
async def delete_file(
    link_id: str,
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    current_user: User = Depends(get_current_user),
):
    res = await db.execute(select(ShareLink).where(ShareLink.link_id == link_id))
    link = res.scalars().first()
    if not link:
        raise ApiError(404, "File not found", ErrorCode.NOT_FOUND)
    if str(link.owner_id) != str(current_user.id) and not current_user.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden")

    try:
        await store.delete(link.object_path)
    except StorageUnavailable as e:
        logger.error("Storage delete failed for %s: %s", link.object_path, e)
        raise ApiError(503, "Storage is temporarily unavailable", ErrorCode.STORE_ERROR)

    await db.execute(delete(ShareLink).where(ShareLink.id == link.id))
    await db.commit()
    logger.info("User %s deleted link %s", current_user.id, link_id)
    return {"status": "ok", "link_id": link_id}
