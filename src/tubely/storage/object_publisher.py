"""Object storage publishing and presigned read URLs."""

from __future__ import annotations

import asyncio
import base64
import logging
import secrets
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO
from urllib.parse import urlsplit

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..config import StorageSettings
from ..ingest.ingest_errors import PresignError, PublishError, UploadCancelledError

TOKEN_BYTES = 32


def generate_token() -> str:
    """Return 32 random bytes as unpadded URL-safe base64 (43 characters)."""
    return base64.urlsafe_b64encode(secrets.token_bytes(TOKEN_BYTES)).rstrip(b"=").decode("ascii")


def build_key(extension: str, prefix: str | None = None) -> str:
    """Compose ``[<prefix>/]<token>.<ext>`` for a fresh upload."""
    name = f"{generate_token()}.{extension.lstrip('.')}"
    if prefix:
        return f"{prefix}/{name}"
    return name


def build_s3_client(settings: StorageSettings) -> Any:
    return boto3.client(
        "s3",
        region_name=settings.region,
        endpoint_url=settings.endpoint_url,
    )


class _CancellableReader:
    """File wrapper that aborts a transfer once ``cancelled`` is set."""

    def __init__(self, handle: BinaryIO, cancelled: threading.Event) -> None:
        self._handle = handle
        self._cancelled = cancelled

    def read(self, size: int = -1) -> bytes:
        if self._cancelled.is_set():
            raise UploadCancelledError("upload cancelled")
        return self._handle.read(size)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._handle, name)


@dataclass(slots=True)
class ObjectPublisher:
    """Upload finished artifacts to a bucket and hand out read URLs."""

    client: Any
    settings: StorageSettings
    log: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def public_url(self, key: str) -> str:
        """Virtual-hosted URL of ``key``."""
        return f"https://{self.settings.bucket}.s3.{self.settings.region}.amazonaws.com/{key}"

    def key_from_url(self, url: str) -> str | None:
        """Return the key of a URL produced by :meth:`public_url`, else ``None``."""
        parts = urlsplit(url)
        expected_host = f"{self.settings.bucket}.s3.{self.settings.region}.amazonaws.com"
        if parts.scheme != "https" or parts.netloc != expected_host:
            return None
        key = parts.path.lstrip("/")
        return key or None

    def publish(
        self,
        path: Path,
        key: str,
        content_type: str,
        *,
        cancelled: threading.Event | None = None,
    ) -> None:
        """Single blocking ``PutObject`` of the file at ``path``."""
        cancelled = cancelled or threading.Event()
        self.log.info(
            "storage.publish.start",
            extra={"bucket": self.settings.bucket, "key": key, "content_type": content_type},
        )
        try:
            with path.open("rb") as handle:
                self.client.put_object(
                    Bucket=self.settings.bucket,
                    Key=key,
                    Body=_CancellableReader(handle, cancelled),
                    ContentType=content_type,
                )
        except UploadCancelledError:
            self.log.warning("storage.publish.cancelled", extra={"key": key})
            raise
        except (BotoCoreError, ClientError, OSError) as exc:
            self.log.error(
                "storage.publish.failed",
                extra={"bucket": self.settings.bucket, "key": key, "error": str(exc)},
            )
            raise PublishError(f"failed to upload object '{key}': {exc}") from exc
        self.log.info("storage.publish.done", extra={"bucket": self.settings.bucket, "key": key})

    async def publish_async(self, path: Path, key: str, content_type: str) -> None:
        """Run :meth:`publish` in a worker thread, aborting it on cancellation."""
        cancelled = threading.Event()
        try:
            await asyncio.to_thread(self.publish, path, key, content_type, cancelled=cancelled)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    def issue_presigned_url(self, key: str, ttl_seconds: int | None = None) -> str:
        """Return a time-limited GET URL for ``key`` without touching its bytes."""
        expires_in = ttl_seconds or self.settings.presign_ttl_seconds
        try:
            return self.client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.settings.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            self.log.error("storage.presign.failed", extra={"key": key, "error": str(exc)})
            raise PresignError(f"failed to presign object '{key}': {exc}") from exc
