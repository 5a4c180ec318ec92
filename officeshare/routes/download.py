from __future__ import annotations

import html
import logging
import math
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, StreamingResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from officeshare.core.database import get_db
from officeshare.core.errors import ApiError, ErrorCode
from officeshare.core.security import Identity, get_optional_identity
from officeshare.monitoring.setup import report_bytes_streamed, report_resolution, report_view_consumption
from officeshare.schemas.share_link import LinkMetadataResponse
from officeshare.services.access_policy import Decision, Intent, resolution_error, resolve_link
from officeshare.services.content import NO_STORE_HEADERS, ContentMissing, content_type_for, fetch_and_stream
from officeshare.services.storage import ObjectStore, StorageUnavailable, get_object_store
from officeshare.services.view_accounting import try_consume_view
from officeshare.utils.urls import build_external_url

logger = logging.getLogger("office-share")

router = APIRouter(tags=["Share"])


def _human_size(n: int) -> str:
    if n is None:
        return "unknown"
    units = ["B", "KB", "MB", "GB", "TB"]
    if n == 0:
        return "0 B"
    p = min(int(math.log(n, 1024)), len(units) - 1)
    return f"{n / (1024 ** p):.2f} {units[p]}"


async def _counted(body, link_id: str):
    sent = 0
    try:
        async for chunk in body:
            sent += len(chunk)
            yield chunk
    finally:
        report_bytes_streamed(sent)
        logger.info("Streamed link=%s bytes=%s", link_id, sent)


@router.get("/links/validate")
async def validate_link(
    link_id: str = Query(..., alias="linkId", min_length=1),
    source: Optional[str] = Query(None, description="'dashboard' when asked from the owner's file list"),
    db: AsyncSession = Depends(get_db),
    requester: Optional[Identity] = Depends(get_optional_identity),
):
    """Link details for the share page, without consuming a view."""
    resolution = await resolve_link(
        db,
        link_id,
        requester,
        datetime.utcnow(),
        Intent.METADATA,
        from_owner_surface=(source == "dashboard"),
    )
    report_resolution(Intent.METADATA, resolution.decision)
    if resolution.decision not in (Decision.ALLOW, Decision.EXPIRED):
        raise resolution_error(resolution)

    body = LinkMetadataResponse.model_validate(resolution.metadata).model_dump(by_alias=True, mode="json")
    return JSONResponse(body, headers={"Cache-Control": "no-store"})


@router.get("/links/download")
async def download_link(
    link_id: str = Query(..., alias="linkId", min_length=1),
    preview: bool = Query(False, description="Owner preview; does not consume a view"),
    filename: Optional[str] = Query(None, description="Override the download file name"),
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    requester: Optional[Identity] = Depends(get_optional_identity),
):
    intent = Intent.PREVIEW if preview else Intent.DOWNLOAD
    resolution = await resolve_link(db, link_id, requester, datetime.utcnow(), intent)
    report_resolution(intent, resolution.decision)
    if not resolution.allowed:
        raise resolution_error(resolution)

    link = resolution.link
    try:
        # fails before a view is charged if the object is already gone
        content = await fetch_and_stream(
            store,
            link.object_path,
            file_name=filename or link.file_name,
            inline=preview,
            content_type=content_type_for(link.file_name),
        )
    except ContentMissing:
        raise ApiError(404, "File not found in storage", ErrorCode.CONTENT_MISSING)
    except StorageUnavailable as e:
        logger.error("Storage unavailable for link %s: %s", link_id, e)
        raise ApiError(503, "Storage is temporarily unavailable", ErrorCode.STORE_ERROR)

    if intent is Intent.DOWNLOAD:
        try:
            consumption = await try_consume_view(db, link_id)
        except SQLAlchemyError as e:
            await content.aclose()
            logger.error("View accounting failed for %s: %s", link_id, e)
            raise ApiError(503, "Link store is temporarily unavailable", ErrorCode.STORE_ERROR)
        report_view_consumption(consumption.accepted)
        if not consumption.accepted:
            await content.aclose()
            raise ApiError(410, "Link expired or maximum views reached", ErrorCode.LINK_EXPIRED)

    return StreamingResponse(
        _counted(content.body, link_id),
        media_type=content.content_type,
        headers=content.response_headers(),
    )


@router.get("/share/{link_id}", response_class=HTMLResponse)
async def share_landing(
    link_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    requester: Optional[Identity] = Depends(get_optional_identity),
):
    """Public landing page for a share link.

    Shows the file details and a download button; opening the page does not
    consume a view.
    """
    resolution = await resolve_link(db, link_id, requester, datetime.utcnow(), Intent.METADATA)
    report_resolution(Intent.METADATA, resolution.decision)

    if resolution.decision is Decision.ALLOW:
        meta = resolution.metadata
        direct_url = build_external_url(request, f"/links/download?linkId={link_id}")
        title = html.escape(meta.file_name)
        details = (
            f"<p class=\"meta\">Size: {_human_size(meta.file_size)} · "
            f"downloads: {meta.views}/{meta.max_views} · expires: {meta.expires_at.isoformat()}</p>"
            f"<a class=\"btn\" href=\"{html.escape(direct_url)}\">Download</a>"
        )
        status_code = 200
    else:
        error = resolution_error(resolution)
        title = html.escape(error.message)
        details = "<p class=\"meta\">Ask the sender for a new link.</p>"
        if resolution.decision is Decision.ORG_AUTH_REQUIRED:
            details = "<p class=\"meta\">This file is shared with an organization. Sign in to continue.</p>"
        status_code = error.status_code

    page = f"""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <meta name="robots" content="noindex">
  <title>{title}</title>
  <style>
    body {{ margin:0; background:#0b0d10; color:#e7edf3; font-family: ui-sans-serif, system-ui, sans-serif; }}
    .wrap {{ max-width:720px; margin:0 auto; padding:40px 20px; }}
    .card {{ background:#151a20; border-radius:20px; padding:28px; }}
    h1 {{ font-size:22px; margin:0 0 12px; }}
    .meta {{ color:#9fb0c3; font-size:14px; }}
    .btn {{ text-decoration:none; display:inline-block; margin-top:16px; padding:12px 18px; border-radius:12px; background:#006aff; color:white; font-weight:600; }}
  </style>
</head>
<body>
  <div class="wrap"><div class="card"><h1>{title}</h1>{details}</div></div>
</body>
</html>"""
    return HTMLResponse(page, status_code=status_code, headers=dict(NO_STORE_HEADERS))
