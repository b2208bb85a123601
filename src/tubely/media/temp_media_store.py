"""Temporary media storage for upload sessions."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Protocol

from ..config import TempPaths
from ..ingest.ingest_errors import PayloadTooLargeError, UploadReadError
from ..ingest.ingest_models import UploadSession

CHUNK_SIZE = 1 * 1024 * 1024  # 1 MiB
PROCESSING_SUFFIX = ".processing"


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


@dataclass(slots=True)
class TempMediaStore:
    """Manages lifecycle of per-session temporary files."""

    paths: TempPaths
    chunk_size: int = CHUNK_SIZE
    log: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def session_dir(self, session_id: str) -> Path:
        return self.paths.root / session_id

    def ensure_structure(self, session_id: str) -> Path:
        directory = self.session_dir(session_id)
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    async def persist_upload(
        self,
        session: UploadSession,
        source: AsyncReadable,
        *,
        max_bytes: int,
    ) -> Path:
        """Copy ``source`` to a session file, never reading past ``max_bytes``.

        The target is registered on the session before the first byte is
        written so a partial file is still removed by :meth:`cleanup`.
        """
        directory = self.ensure_structure(session.session_id)
        target = directory / f"{session.profile.temp_prefix}.{session.extension}"
        session.artifacts.append(target)

        size = 0
        try:
            with target.open("wb") as sink:
                while True:
                    budget = min(self.chunk_size, max_bytes - size + 1)
                    try:
                        chunk = await source.read(budget)
                    except PayloadTooLargeError:
                        raise
                    except Exception as exc:
                        raise UploadReadError(f"failed to read upload: {exc}") from exc
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > max_bytes:
                        self.log.warning(
                            "media.temp.payload_too_large",
                            extra={
                                "session_id": session.session_id,
                                "size_bytes": size,
                                "limit_bytes": max_bytes,
                            },
                        )
                        raise PayloadTooLargeError(
                            f"upload exceeds limit of {max_bytes} bytes"
                        )
                    sink.write(chunk)
        except OSError as exc:
            self.log.error(
                "media.temp.write_failed",
                extra={"session_id": session.session_id, "path": str(target)},
                exc_info=exc,
            )
            raise UploadReadError(f"failed to write temporary file: {exc}") from exc

        if session.declared_size is not None and size != session.declared_size:
            self.log.warning(
                "media.temp.truncated",
                extra={
                    "session_id": session.session_id,
                    "size_bytes": size,
                    "declared_bytes": session.declared_size,
                },
            )
            raise UploadReadError(
                f"upload truncated: received {size} of {session.declared_size} bytes"
            )

        self.log.info(
            "media.temp.persisted",
            extra={"session_id": session.session_id, "path": str(target), "size_bytes": size},
        )
        return target

    def reserve_processing_path(self, session: UploadSession, source: Path) -> Path:
        """Register the sibling path a remux writes to."""
        target = source.with_name(source.name + PROCESSING_SUFFIX)
        session.artifacts.append(target)
        return target

    def cleanup(self, session: UploadSession) -> None:
        """Remove every artifact of the session and its directory."""
        for path in session.artifacts:
            self._remove_single_path(path)
        session.artifacts.clear()
        directory = self.session_dir(session.session_id)
        if directory.exists():
            shutil.rmtree(directory, ignore_errors=True)
        self.log.info("media.temp.cleaned", extra={"session_id": session.session_id})

    def cleanup_expired(self, reference_time: datetime | None = None, *, dry_run: bool = False) -> int:
        """Purge session directories older than the TTL (fallback for cron)."""
        now = reference_time or datetime.utcnow()
        cutoff = now - timedelta(seconds=self.paths.ttl_seconds)
        if not self.paths.root.exists():
            return 0
        removed = 0
        for entry in self.paths.root.iterdir():
            if not entry.is_dir():
                continue
            modified = datetime.utcfromtimestamp(entry.stat().st_mtime)
            if modified > cutoff:
                continue
            removed += 1
            if dry_run:
                continue
            shutil.rmtree(entry, ignore_errors=True)
            self.log.info(
                "media.temp.cleanup.removed",
                extra={"path": str(entry), "modified_at": modified.isoformat()},
            )
        return removed

    def _remove_single_path(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            self.log.warning(
                "media.temp.remove_failed", extra={"path": str(path), "error": str(exc)}
            )
