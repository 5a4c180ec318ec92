from __future__ import annotations

import logging
import posixpath
import urllib.parse
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional

from starlette.concurrency import run_in_threadpool

from officeshare.services.storage import ObjectNotFound, ObjectStore

logger = logging.getLogger("office-share")

CHUNK_SIZE = 1024 * 1024
DEFAULT_CONTENT_TYPE = "application/octet-stream"

MIME_TYPES: Dict[str, str] = {
    # images
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "bmp": "image/bmp",
    "ico": "image/x-icon",
    "tiff": "image/tiff",
    "tif": "image/tiff",
    # documents
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "rtf": "application/rtf",
    # text
    "txt": "text/plain",
    "csv": "text/csv",
    "html": "text/html",
    "htm": "text/html",
    "css": "text/css",
    "js": "text/javascript",
    "json": "application/json",
    "xml": "application/xml",
    "md": "text/markdown",
    # source code
    "java": "text/x-java-source",
    "py": "text/x-python",
    "c": "text/x-c",
    "cpp": "text/x-c++",
    "h": "text/x-c",
    "cs": "text/x-csharp",
    "php": "application/x-php",
    "rb": "application/x-ruby",
    "go": "application/x-go",
    "swift": "text/x-swift",
    # audio
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "m4a": "audio/mp4",
    "flac": "audio/flac",
    "aac": "audio/aac",
    # video
    "mp4": "video/mp4",
    "webm": "video/webm",
    "avi": "video/x-msvideo",
    "mov": "video/quicktime",
    "wmv": "video/x-ms-wmv",
    "mkv": "video/x-matroska",
    "flv": "video/x-flv",
    # archives
    "zip": "application/zip",
    "rar": "application/x-rar-compressed",
    "7z": "application/x-7z-compressed",
    "tar": "application/x-tar",
    "gz": "application/gzip",
    # other
    "exe": DEFAULT_CONTENT_TYPE,
    "dll": DEFAULT_CONTENT_TYPE,
    "apk": "application/vnd.android.package-archive",
    "ipa": DEFAULT_CONTENT_TYPE,
}

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "X-Content-Type-Options": "nosniff",
}


class ContentMissing(Exception):
    """The link record exists but its backing object does not."""


def content_type_for(file_name: str) -> str:
    if not file_name or "." not in file_name:
        return DEFAULT_CONTENT_TYPE
    extension = file_name.rsplit(".", 1)[-1].lower()
    return MIME_TYPES.get(extension, DEFAULT_CONTENT_TYPE)


def content_disposition(file_name: str, inline: bool = False) -> str:
    quoted = urllib.parse.quote(file_name, safe="")
    kind = "inline" if inline else "attachment"
    return f"{kind}; filename=\"{quoted}\"; filename*=UTF-8''{quoted}"


@dataclass
class ContentStream:
    object_path: str
    file_name: str
    content_type: str
    content_length: int
    body: AsyncIterator[bytes]
    inline: bool = False
    headers: Dict[str, str] = field(default_factory=dict)
    handle: Any = None

    def response_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Disposition": content_disposition(self.file_name, inline=self.inline),
            "Content-Length": str(self.content_length),
        }
        headers.update(NO_STORE_HEADERS)
        headers.update(self.headers)
        return headers

    async def aclose(self) -> None:
        """Release the object without sending it."""
        await self.body.aclose()
        if self.handle is not None:
            await _release(self.handle)


async def _release(obj) -> None:
    await run_in_threadpool(obj.close)
    release = getattr(obj, "release_conn", None)
    if release is not None:
        await run_in_threadpool(release)


async def _aiter_object(obj, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
    try:
        while True:
            chunk = await run_in_threadpool(obj.read, chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        await _release(obj)


async def fetch_and_stream(
    store: ObjectStore,
    object_path: str,
    file_name: Optional[str] = None,
    inline: bool = False,
    content_type: Optional[str] = None,
) -> ContentStream:
    """Open ``object_path`` for streaming.

    ``file_name`` only names the download; ``content_type`` defaults to the
    type of that name when the caller does not pass the stored one.

    Raises :class:`ContentMissing` when the object is gone and lets
    ``StorageUnavailable`` through when the store itself fails.
    """
    name = file_name or posixpath.basename(object_path) or "download.bin"
    try:
        info = await store.stat(object_path)
        obj = await store.open(object_path)
    except ObjectNotFound as e:
        logger.error("Object missing from storage: %s", object_path)
        raise ContentMissing(object_path) from e

    return ContentStream(
        object_path=object_path,
        file_name=name,
        content_type=content_type or content_type_for(name),
        content_length=info.size,
        body=_aiter_object(obj),
        inline=inline,
        handle=obj,
    )
