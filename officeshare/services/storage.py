"""Object store used for shared file contents.

All MinIO calls are blocking, so each one runs in the threadpool.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from minio import Minio
from minio.error import S3Error
from starlette.concurrency import run_in_threadpool

from officeshare.core.config import settings
from officeshare.core.minio_client import minio_client

logger = logging.getLogger("office-share")

_MISSING_CODES = {"NoSuchKey", "NoSuchObject", "NoSuchBucket", "ResourceNotFound"}


class StorageUnavailable(Exception):
    """The object store could not be reached or refused the request."""


class ObjectNotFound(Exception):
    """No object is stored under the requested path."""


@dataclass
class ObjectInfo:
    path: str
    size: int
    content_type: Optional[str] = None


class ObjectStore:
    def __init__(self, client: Minio, bucket: str):
        self.client = client
        self.bucket = bucket

    async def put(self, path: str, file_path: str, content_type: str = "application/octet-stream") -> None:
        try:
            await run_in_threadpool(self.client.fput_object, self.bucket, path, file_path, content_type=content_type)
        except S3Error as e:
            raise StorageUnavailable(f"put {path}: {e.code}") from e
        except Exception as e:
            raise StorageUnavailable(f"put {path}: {e}") from e

    async def stat(self, path: str) -> ObjectInfo:
        try:
            stat = await run_in_threadpool(self.client.stat_object, self.bucket, path)
        except S3Error as e:
            if e.code in _MISSING_CODES:
                raise ObjectNotFound(path) from e
            raise StorageUnavailable(f"stat {path}: {e.code}") from e
        except Exception as e:
            raise StorageUnavailable(f"stat {path}: {e}") from e
        return ObjectInfo(path=path, size=getattr(stat, "size", 0) or 0, content_type=getattr(stat, "content_type", None))

    async def open(self, path: str):
        """Return a readable response object; the caller must close it."""
        try:
            return await run_in_threadpool(self.client.get_object, self.bucket, path)
        except S3Error as e:
            if e.code in _MISSING_CODES:
                raise ObjectNotFound(path) from e
            raise StorageUnavailable(f"get {path}: {e.code}") from e
        except Exception as e:
            raise StorageUnavailable(f"get {path}: {e}") from e

    async def delete(self, path: str) -> None:
        try:
            await run_in_threadpool(self.client.remove_object, self.bucket, path)
        except S3Error as e:
            raise StorageUnavailable(f"delete {path}: {e.code}") from e
        except Exception as e:
            raise StorageUnavailable(f"delete {path}: {e}") from e

    async def ping(self) -> None:
        await run_in_threadpool(self.client.bucket_exists, self.bucket)


object_store = ObjectStore(minio_client, settings.MINIO_BUCKET)


def get_object_store() -> ObjectStore:
    return object_store
