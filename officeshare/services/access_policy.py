"""Decides whether a share link may be resolved by a given requester.

Checks run in a fixed order and the first failing one wins:

1. the link must exist;
2. owner-only surfaces (previews, the owner's dashboard) require the owner;
3. organization links require a signed-in owner or member of the organization;
4. the link must be neither past ``expires_at`` nor out of views.

Expiry is checked last on purpose so a requester who may not see an
organization file cannot learn whether it has expired. File details are
only attached to ``ALLOW`` and ``EXPIRED`` results.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from officeshare.core.errors import ApiError, ErrorCode
from officeshare.core.security import Identity
from officeshare.models.share_link import ShareLink
from officeshare.services.content import content_type_for
from officeshare.services.organizations import is_link_owner, is_owner_or_member

logger = logging.getLogger("office-share")


class Intent(str, enum.Enum):
    PREVIEW = "PREVIEW"
    DOWNLOAD = "DOWNLOAD"
    METADATA = "METADATA"


class Decision(str, enum.Enum):
    ALLOW = "ALLOW"
    NOT_FOUND = "NOT_FOUND"
    EXPIRED = "EXPIRED"
    ORG_AUTH_REQUIRED = "ORG_AUTH_REQUIRED"
    ORG_ACCESS_DENIED = "ORG_ACCESS_DENIED"
    OWNER_ONLY_DENIED = "OWNER_ONLY_DENIED"
    STORE_ERROR = "STORE_ERROR"


@dataclass(frozen=True)
class LinkMetadata:
    file_name: str
    file_size: int
    content_type: str
    expires_at: datetime
    max_views: int
    views: int
    is_expired: bool
    is_organization_file: bool
    is_owner: bool


@dataclass(frozen=True)
class LinkResolution:
    decision: Decision
    link: Optional[ShareLink] = None
    metadata: Optional[LinkMetadata] = None

    @property
    def allowed(self) -> bool:
        return self.decision is Decision.ALLOW


def is_link_expired(link: ShareLink, now: datetime) -> bool:
    return now > link.expires_at or link.views >= link.max_views


def _is_owner(link: ShareLink, requester: Optional[Identity]) -> bool:
    return requester is not None and is_link_owner(requester.user_id, link)


def _requires_owner(intent: Intent, from_owner_surface: bool) -> bool:
    return intent is Intent.PREVIEW or from_owner_surface


def describe(link: ShareLink, requester: Optional[Identity], now: datetime) -> LinkMetadata:
    return LinkMetadata(
        file_name=link.file_name,
        file_size=link.file_size,
        content_type=content_type_for(link.file_name),
        expires_at=link.expires_at,
        max_views=link.max_views,
        views=link.views,
        is_expired=is_link_expired(link, now),
        is_organization_file=link.organization_id is not None,
        is_owner=_is_owner(link, requester),
    )


def evaluate_access(
    link: Optional[ShareLink],
    requester: Optional[Identity],
    now: datetime,
    intent: Intent,
    requester_is_member: bool = False,
    from_owner_surface: bool = False,
) -> LinkResolution:
    """Pure decision over an already loaded record and membership flag."""
    if link is None:
        return LinkResolution(Decision.NOT_FOUND)

    is_owner = _is_owner(link, requester)

    if _requires_owner(intent, from_owner_surface) and not is_owner:
        return LinkResolution(Decision.OWNER_ONLY_DENIED)

    if link.organization_id is not None:
        if requester is None:
            return LinkResolution(Decision.ORG_AUTH_REQUIRED)
        if not is_owner and not requester_is_member:
            return LinkResolution(Decision.ORG_ACCESS_DENIED)

    metadata = describe(link, requester, now)
    if metadata.is_expired:
        return LinkResolution(Decision.EXPIRED, link, metadata)
    return LinkResolution(Decision.ALLOW, link, metadata)


async def resolve_link(
    db: AsyncSession,
    link_id: str,
    requester: Optional[Identity],
    now: datetime,
    intent: Intent,
    from_owner_surface: bool = False,
) -> LinkResolution:
    try:
        res = await db.execute(select(ShareLink).where(ShareLink.link_id == link_id))
        link = res.scalars().first()

        member = False
        if (
            link is not None
            and link.organization_id is not None
            and requester is not None
            and not _requires_owner(intent, from_owner_surface)
        ):
            member = await is_owner_or_member(db, requester.user_id, link)
    except SQLAlchemyError as e:
        logger.error("Link lookup failed for %s: %s", link_id, e)
        return LinkResolution(Decision.STORE_ERROR)

    resolution = evaluate_access(
        link,
        requester,
        now,
        intent,
        requester_is_member=member,
        from_owner_surface=from_owner_surface,
    )
    if resolution.decision not in (Decision.ALLOW, Decision.EXPIRED):
        logger.info(
            "Link %s denied: %s (intent=%s user=%s)",
            link_id, resolution.decision.value, intent.value, requester.user_id if requester else None,
        )
    return resolution


def resolution_error(resolution: LinkResolution) -> ApiError:
    """Map a non-``ALLOW`` resolution to the error returned to the caller."""
    decision = resolution.decision
    if decision is Decision.NOT_FOUND:
        return ApiError(404, "Link not found", ErrorCode.NOT_FOUND)
    if decision is Decision.EXPIRED:
        return ApiError(410, "Link expired or maximum views reached", ErrorCode.LINK_EXPIRED)
    if decision is Decision.ORG_AUTH_REQUIRED:
        return ApiError(401, "Sign in to access this organization file", ErrorCode.AUTHENTICATION_REQUIRED)
    if decision is Decision.ORG_ACCESS_DENIED:
        return ApiError(403, "You are not a member of the organization that owns this file",
                        ErrorCode.ORGANIZATION_ACCESS_DENIED)
    if decision is Decision.OWNER_ONLY_DENIED:
        return ApiError(403, "Unauthorized to preview this file")
    if decision is Decision.STORE_ERROR:
        return ApiError(503, "Link store is temporarily unavailable", ErrorCode.STORE_ERROR)
    raise ValueError(f"{decision} is not an error")
