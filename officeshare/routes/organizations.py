import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from officeshare.core.database import get_db
from officeshare.core.errors import ApiError, ErrorCode
from officeshare.core.security import get_current_user
from officeshare.models.user import User
from officeshare.schemas.organization import (
    MemberInfo,
    MemberListResponse,
    NoticeCreate,
    NoticeInfo,
    NoticeListResponse,
    OrganizationAction,
    OrganizationInfo,
    OrganizationResponse,
)
from officeshare.schemas.share_link import ShareLinkInfo, ShareLinkListResponse
from officeshare.services import organizations as org_service
from officeshare.services.organizations import OrganizationError, OrganizationErrorReason

logger = logging.getLogger("office-share")

router = APIRouter(prefix="/organizations", tags=["Organizations"])

_STATUS = {
    OrganizationErrorReason.ALREADY_IN_ORG: 409,
    OrganizationErrorReason.ORG_FULL: 409,
    OrganizationErrorReason.INVALID_CODE: 400,
    OrganizationErrorReason.NOT_IN_ORG: 400,
    OrganizationErrorReason.NOT_ORG_ADMIN: 403,
}


async def organization_error_handler(request: Request, exc: OrganizationError):
    logger.info("Organization error: %s %s -> %s", request.method, request.url.path, exc.reason.value)
    return JSONResponse(
        status_code=_STATUS.get(exc.reason, 400),
        content={"message": exc.message, "error": exc.reason.value},
    )


def _org_info(org, role=None) -> OrganizationInfo:
    info = OrganizationInfo.model_validate(org)
    info.user_role = role
    return info


async def _current_organization_id(db: AsyncSession, user: User) -> str:
    membership = await org_service.get_membership(db, user.id)
    if membership is None:
        raise ApiError(403, "You are not a member of an organization", ErrorCode.ORGANIZATION_ACCESS_DENIED)
    return membership.organization_id


@router.get("", response_model=OrganizationResponse)
async def get_organization(db: AsyncSession = Depends(get_db), current_user: User = Depends(get_current_user)):
    found = await org_service.get_user_organization(db, current_user.id)
    if found is None:
        return OrganizationResponse(organization=None)
    org, role = found
    return OrganizationResponse(organization=_org_info(org, role))


@router.post("", response_model=OrganizationResponse)
async def organization_action(
    body: OrganizationAction,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if body.action == "create":
        if not body.name or not body.max_members:
            raise HTTPException(status_code=400, detail="Name and max members are required")
        org = await org_service.create_organization(
            db, body.name, body.description or "", body.max_members, current_user.id
        )
        return OrganizationResponse(organization=_org_info(org, "admin"))

    if not body.secret_key:
        raise HTTPException(status_code=400, detail="Secret key is required")
    org = await org_service.join_organization(db, body.secret_key, current_user.id)
    return OrganizationResponse(organization=_org_info(org, "member"))


@router.delete("")
async def leave_organization(db: AsyncSession = Depends(get_db), current_user: User = Depends(get_current_user)):
    await org_service.leave_organization(db, current_user.id)
    return {"success": True}


@router.get("/members", response_model=MemberListResponse)
async def list_members(db: AsyncSession = Depends(get_db), current_user: User = Depends(get_current_user)):
    organization_id = await _current_organization_id(db, current_user)
    members = await org_service.list_members(db, organization_id)
    return MemberListResponse(members=[
        MemberInfo(
            id=m.id,
            organization_id=m.organization_id,
            user_id=m.user_id,
            email=m.user.email if m.user else None,
            role=m.role,
            joined_at=m.joined_at,
        )
        for m in members
    ])


@router.get("/notices", response_model=NoticeListResponse)
async def list_notices(db: AsyncSession = Depends(get_db), current_user: User = Depends(get_current_user)):
    organization_id = await _current_organization_id(db, current_user)
    notices = await org_service.list_notices(db, organization_id)
    return NoticeListResponse(notices=[_notice_info(n) for n in notices])


@router.post("/notices", response_model=NoticeInfo, status_code=201)
async def create_notice(
    body: NoticeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    notice = await org_service.create_notice(db, current_user.id, body.title, body.content)
    return _notice_info(notice)


@router.get("/files", response_model=ShareLinkListResponse)
async def list_organization_files(db: AsyncSession = Depends(get_db), current_user: User = Depends(get_current_user)):
    organization_id = await _current_organization_id(db, current_user)
    links = await org_service.list_organization_links(db, organization_id)
    files = [ShareLinkInfo.model_validate(link) for link in links]
    return ShareLinkListResponse(files=files, total=len(files), skip=0, limit=len(files))


def _notice_info(notice) -> NoticeInfo:
    return NoticeInfo(
        id=notice.id,
        organization_id=notice.organization_id,
        title=notice.title,
        content=notice.content,
        created_by=notice.created_by,
        author_email=notice.author.email if notice.author else None,
        created_at=notice.created_at,
    )
