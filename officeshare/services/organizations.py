"""Organizations, memberships and the membership gate used by link access.

A user belongs to at most one organization. Joining is checked in this order:
the code must name an organization, the user must not be in any organization
yet, and the organization must have a free seat.
"""
from __future__ import annotations

import enum
import logging
import secrets
import string
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from officeshare.core.config import settings
from officeshare.models.organization import ROLE_ADMIN, ROLE_MEMBER, Membership, Notice, Organization
from officeshare.models.share_link import ShareLink

logger = logging.getLogger("office-share")

SECRET_ALPHABET = string.ascii_uppercase + string.digits
SECRET_KEY_ATTEMPTS = 10


class OrganizationErrorReason(str, enum.Enum):
    ALREADY_IN_ORG = "ALREADY_IN_ORG"
    ORG_FULL = "ORG_FULL"
    INVALID_CODE = "INVALID_CODE"
    NOT_IN_ORG = "NOT_IN_ORG"
    NOT_ORG_ADMIN = "NOT_ORG_ADMIN"


_MESSAGES = {
    OrganizationErrorReason.ALREADY_IN_ORG: "You are already a member of an organization",
    OrganizationErrorReason.ORG_FULL: "Organization member limit reached",
    OrganizationErrorReason.INVALID_CODE: "Invalid organization code",
    OrganizationErrorReason.NOT_IN_ORG: "You are not a member of an organization",
    OrganizationErrorReason.NOT_ORG_ADMIN: "Only organization admins can do this",
}


class OrganizationError(Exception):
    def __init__(self, reason: OrganizationErrorReason, message: Optional[str] = None):
        self.reason = reason
        self.message = message or _MESSAGES[reason]
        super().__init__(self.message)


def generate_secret_key(length: int = settings.ORG_SECRET_LENGTH) -> str:
    return "".join(secrets.choice(SECRET_ALPHABET) for _ in range(length))


async def is_member(db: AsyncSession, user_id: Optional[str], organization_id: Optional[str]) -> bool:
    if not user_id or not organization_id:
        return False
    res = await db.execute(
        select(Membership.id).where(
            Membership.user_id == user_id,
            Membership.organization_id == organization_id,
        )
    )
    return res.first() is not None


def is_link_owner(user_id: Optional[str], link: ShareLink) -> bool:
    return bool(user_id) and str(link.owner_id) == str(user_id)


async def is_owner_or_member(db: AsyncSession, user_id: Optional[str], link: ShareLink) -> bool:
    """Organization gate for link access; the owner never needs a membership."""
    if not user_id:
        return False
    if is_link_owner(user_id, link):
        return True
    if not link.organization_id:
        return False
    return await is_member(db, user_id, link.organization_id)


async def get_membership(db: AsyncSession, user_id: str) -> Optional[Membership]:
    res = await db.execute(select(Membership).where(Membership.user_id == user_id))
    return res.scalars().first()


async def get_user_organization(db: AsyncSession, user_id: str):
    """Return ``(organization, role)`` for the user, or ``None``."""
    res = await db.execute(
        select(Organization, Membership.role)
        .join(Membership, Membership.organization_id == Organization.id)
        .where(Membership.user_id == user_id)
    )
    row = res.first()
    if row is None:
        return None
    return row[0], row[1]


async def count_members(db: AsyncSession, organization_id: str) -> int:
    res = await db.execute(
        select(func.count()).select_from(Membership).where(Membership.organization_id == organization_id)
    )
    return res.scalar_one()


async def _unused_secret_key(db: AsyncSession) -> str:
    for _ in range(SECRET_KEY_ATTEMPTS):
        candidate = generate_secret_key()
        res = await db.execute(select(Organization.id).where(Organization.secret_key == candidate))
        if res.first() is None:
            return candidate
    raise RuntimeError("Could not generate a unique organization code")


async def create_organization(
    db: AsyncSession,
    name: str,
    description: str,
    max_members: int,
    creator_id: str,
) -> Organization:
    if await get_membership(db, creator_id) is not None:
        raise OrganizationError(OrganizationErrorReason.ALREADY_IN_ORG)

    org = Organization(
        name=name,
        description=description or "",
        secret_key=await _unused_secret_key(db),
        max_members=max_members,
        created_by=creator_id,
    )
    db.add(org)
    await db.flush()
    db.add(Membership(organization_id=org.id, user_id=creator_id, role=ROLE_ADMIN))
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        # lost a race against another join or create for the same user
        raise OrganizationError(OrganizationErrorReason.ALREADY_IN_ORG) from e
    await db.refresh(org)
    logger.info("Organization %s created by %s", org.id, creator_id)
    return org


async def join_organization(db: AsyncSession, secret_key: str, user_id: str) -> Organization:
    code = (secret_key or "").strip().upper()
    res = await db.execute(select(Organization).where(Organization.secret_key == code))
    org = res.scalars().first()
    if org is None:
        raise OrganizationError(OrganizationErrorReason.INVALID_CODE)

    if await get_membership(db, user_id) is not None:
        raise OrganizationError(OrganizationErrorReason.ALREADY_IN_ORG)

    # count then insert: concurrent joins by different users may overshoot the cap
    if await count_members(db, org.id) >= org.max_members:
        raise OrganizationError(OrganizationErrorReason.ORG_FULL)

    db.add(Membership(organization_id=org.id, user_id=user_id, role=ROLE_MEMBER))
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise OrganizationError(OrganizationErrorReason.ALREADY_IN_ORG) from e
    logger.info("User %s joined organization %s", user_id, org.id)
    return org


async def leave_organization(db: AsyncSession, user_id: str) -> bool:
    """Remove the caller's membership. Returns whether a row was removed."""
    res = await db.execute(delete(Membership).where(Membership.user_id == user_id))
    await db.commit()
    removed = (res.rowcount or 0) > 0
    if removed:
        logger.info("User %s left their organization", user_id)
    return removed


async def list_members(db: AsyncSession, organization_id: str) -> List[Membership]:
    res = await db.execute(
        select(Membership)
        .where(Membership.organization_id == organization_id)
        .order_by(Membership.joined_at.asc())
    )
    return list(res.scalars().unique().all())


async def list_notices(db: AsyncSession, organization_id: str) -> List[Notice]:
    res = await db.execute(
        select(Notice)
        .where(Notice.organization_id == organization_id)
        .order_by(Notice.created_at.desc())
    )
    return list(res.scalars().unique().all())


async def create_notice(db: AsyncSession, user_id: str, title: str, content: str) -> Notice:
    membership = await get_membership(db, user_id)
    if membership is None:
        raise OrganizationError(OrganizationErrorReason.NOT_IN_ORG)
    if membership.role != ROLE_ADMIN:
        raise OrganizationError(
            OrganizationErrorReason.NOT_ORG_ADMIN, "Only organization admins can create notices"
        )
    notice = Notice(
        organization_id=membership.organization_id,
        title=title,
        content=content,
        created_by=user_id,
    )
    db.add(notice)
    await db.commit()
    res = await db.execute(
        select(Notice).where(Notice.id == notice.id).execution_options(populate_existing=True)
    )
    return res.scalars().first()


async def list_organization_links(db: AsyncSession, organization_id: str) -> List[ShareLink]:
    res = await db.execute(
        select(ShareLink)
        .where(ShareLink.organization_id == organization_id)
        .order_by(ShareLink.created_at.desc())
    )
    return list(res.scalars().all())
