"""Upload validation utilities."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from email.message import Message

from .ingest_errors import PayloadTooLargeError, UnsupportedMediaError
from .ingest_models import UploadProfile

logger = logging.getLogger(__name__)


def parse_media_type(raw: str | None) -> str:
    """Return the bare ``type/subtype`` of a Content-Type header value."""
    if not raw:
        return ""
    header = Message()
    header["content-type"] = raw
    parsed = header.get_content_type()
    # Message falls back to text/plain for values it cannot parse.
    if parsed == "text/plain" and not raw.strip().lower().startswith("text/plain"):
        return ""
    return parsed


@dataclass(slots=True)
class UploadValidator:
    """Check declared content type and size against an upload profile."""

    profile: UploadProfile

    def resolve_media_type(self, declared: str | None) -> tuple[str, str]:
        """Return ``(content_type, extension)`` for an allowed declaration."""
        media_type = parse_media_type(declared)
        extension = self.profile.content_types.get(media_type)
        if extension is None:
            logger.warning(
                "ingest.upload.unsupported_media",
                extra={"profile": self.profile.name, "content_type": declared},
            )
            raise UnsupportedMediaError(f"unsupported content type: {declared!r}")
        return media_type, extension

    def check_declared_size(self, declared_size: int | None) -> None:
        """Refuse bodies that announce more bytes than the ceiling."""
        if declared_size is not None and declared_size > self.profile.max_bytes:
            logger.warning(
                "ingest.upload.payload_too_large",
                extra={
                    "profile": self.profile.name,
                    "size_bytes": declared_size,
                    "limit_bytes": self.profile.max_bytes,
                },
            )
            raise PayloadTooLargeError(
                f"declared size {declared_size} exceeds limit {self.profile.max_bytes}"
            )
