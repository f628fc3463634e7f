"""Object storage for post media.

Uploads go to an S3-compatible bucket (Cloudflare R2) through boto3 when
credentials are configured, otherwise to a local directory that is served
statically. boto3 is blocking, so calls run in the default executor.
"""

import asyncio
import os
import uuid
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from bholo.core.logging import get_logger
from bholo.core.settings import Settings, get_settings

logger = get_logger(__name__)


class StorageError(Exception):
    """Raised when a blob could not be stored."""


class MediaStorage:
    """Accepts a blob at a path and returns a durable public URL."""

    def __init__(self, settings: Optional[Settings] = None, client=None):
        settings = settings or get_settings()
        self.bucket = settings.storage_bucket
        self.public_url = settings.storage_public_url.rstrip('/')
        self.local_dir = Path(settings.storage_local_dir)
        self.local_base_url = settings.storage_local_base_url.rstrip('/')
        self.client = client

        if self.client is None and all([
            settings.storage_endpoint,
            settings.storage_access_key_id,
            settings.storage_secret_access_key,
        ]):
            self.client = boto3.client(
                's3',
                endpoint_url=settings.storage_endpoint,
                aws_access_key_id=settings.storage_access_key_id,
                aws_secret_access_key=settings.storage_secret_access_key,
            )
            logger.info(f"Object storage using bucket '{self.bucket}' at {settings.storage_endpoint}")
        elif self.client is None:
            logger.warning(f"Object storage not configured, saving media under {self.local_dir}")

    @staticmethod
    def build_key(prefix: str, owner_id: str, filename: str) -> str:
        """Unique object key such as ``posts/<uid>/<hex>.jpg``."""
        extension = os.path.splitext(filename)[1].lower()
        return f"{prefix}/{owner_id}/{uuid.uuid4().hex}{extension}"

    async def upload(self, key: str, data: bytes, content_type: str = 'application/octet-stream') -> str:
        """
        Store ``data`` under ``key``.

        Returns:
            Public URL of the stored object

        Raises:
            StorageError: if the write failed
        """
        loop = asyncio.get_running_loop()
        if self.client is None:
            return await loop.run_in_executor(None, self._write_local, key, data)
        return await loop.run_in_executor(None, self._put_object, key, data, content_type)

    def _put_object(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to upload {key}: {e}") from e

        logger.debug(f"Uploaded {len(data)} bytes to {self.bucket}/{key}")
        return f"{self.public_url}/{key}" if self.public_url else f"{self.bucket}/{key}"

    def _write_local(self, key: str, data: bytes) -> str:
        path = self.local_dir / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Failed to save {key} locally: {e}") from e

        logger.debug(f"Saved {len(data)} bytes at {path}")
        return f"{self.local_base_url}/{key}"
