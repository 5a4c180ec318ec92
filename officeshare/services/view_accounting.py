"""View-count accounting for share links.

The counter is advanced by a single guarded ``UPDATE ... WHERE views <
max_views``, so the store decides which of several concurrent requests get
the remaining views. Nothing else in the code base writes ``views``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from officeshare.models.share_link import ShareLink

logger = logging.getLogger("office-share")


@dataclass(frozen=True)
class ViewConsumption:
    accepted: bool
    new_views: Optional[int]


async def try_consume_view(db: AsyncSession, link_id: str) -> ViewConsumption:
    stmt = (
        update(ShareLink)
        .where(ShareLink.link_id == link_id, ShareLink.views < ShareLink.max_views)
        .values(views=ShareLink.views + 1)
        .returning(ShareLink.views)
        .execution_options(synchronize_session=False)
    )
    try:
        res = await db.execute(stmt)
        new_views = res.scalar_one_or_none()
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    if new_views is not None:
        logger.info("View consumed link=%s views=%s", link_id, new_views)
        return ViewConsumption(accepted=True, new_views=new_views)

    res = await db.execute(select(ShareLink.views).where(ShareLink.link_id == link_id))
    current = res.scalar_one_or_none()
    logger.info("View rejected link=%s views=%s", link_id, current)
    return ViewConsumption(accepted=False, new_views=current)
