"""Domain service orchestrating the upload-to-publish pipeline."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field, replace
from pathlib import Path
from uuid import UUID

from ..exceptions import NotFoundError, RepositoryError
from ..media.aspect import classify_descriptor
from ..media.media_tooling import MediaToolkit
from ..media.temp_media_store import AsyncReadable, TempMediaStore
from ..repositories.video_repository import VideoRepository
from ..storage.object_publisher import ObjectPublisher, build_key
from ..videos.video_models import VideoRecord
from .ingest_errors import (
    IngestError,
    InvalidIdentifierError,
    PersistenceError,
    PipelineTimeoutError,
    RecordNotFoundError,
    UnauthorizedError,
    UploadInProgressError,
)
from .ingest_models import PipelineStage, UploadProfile, UploadSession
from .validation import UploadValidator

logger = logging.getLogger(__name__)


def parse_video_id(raw: str) -> UUID:
    try:
        return UUID(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidIdentifierError(f"invalid video id: {raw!r}") from exc


@dataclass(slots=True)
class IngestService:
    """Coordinates buffer, probe, classify, remux, publish and record steps.

    One call to :meth:`upload` is one session. Stages run strictly in order,
    every failure is terminal, and session artifacts are removed on every
    exit path including cancellation and timeout.
    """

    videos: VideoRepository
    temp_store: TempMediaStore
    toolkit: MediaToolkit
    publisher: ObjectPublisher
    video_profile: UploadProfile
    thumbnail_profile: UploadProfile
    pipeline_timeout_seconds: float
    log: logging.Logger = field(default_factory=lambda: logger)
    _record_locks: dict[UUID, asyncio.Lock] = field(default_factory=dict)

    def record_lock(self, video_id: UUID) -> asyncio.Lock:
        lock = self._record_locks.get(video_id)
        if lock is None:
            lock = asyncio.Lock()
            self._record_locks[video_id] = lock
        return lock

    def authorize(self, video_id: UUID, user_id: UUID) -> VideoRecord:
        """Load the target record and check the caller owns it."""
        try:
            record = self.videos.get_video(video_id)
        except NotFoundError as exc:
            raise RecordNotFoundError(f"video '{video_id}' not found") from exc
        except RepositoryError as exc:
            raise PersistenceError(f"failed to load video '{video_id}': {exc}") from exc
        if record.user_id != user_id:
            self.log.warning(
                "ingest.unauthorized",
                extra={"video_id": str(video_id), "user_id": str(user_id)},
            )
            raise UnauthorizedError("caller does not own this video")
        return record

    async def upload_video(
        self,
        raw_video_id: str,
        user_id: UUID,
        source: AsyncReadable,
        *,
        content_type: str | None,
        declared_size: int | None = None,
    ) -> VideoRecord:
        return await self.upload(
            self.video_profile,
            raw_video_id,
            user_id,
            source,
            content_type=content_type,
            declared_size=declared_size,
        )

    async def upload_thumbnail(
        self,
        raw_video_id: str,
        user_id: UUID,
        source: AsyncReadable,
        *,
        content_type: str | None,
        declared_size: int | None = None,
    ) -> VideoRecord:
        return await self.upload(
            self.thumbnail_profile,
            raw_video_id,
            user_id,
            source,
            content_type=content_type,
            declared_size=declared_size,
        )

    async def upload(
        self,
        profile: UploadProfile,
        raw_video_id: str,
        user_id: UUID,
        source: AsyncReadable,
        *,
        content_type: str | None,
        declared_size: int | None = None,
    ) -> VideoRecord:
        """Validate the request, then run one session under the record lock."""
        video_id = parse_video_id(raw_video_id)
        validator = UploadValidator(profile)
        media_type, extension = validator.resolve_media_type(content_type)
        validator.check_declared_size(declared_size)

        lock = self.record_lock(video_id)
        if lock.locked():
            self.log.warning(
                "ingest.record_busy", extra={"video_id": str(video_id), "profile": profile.name}
            )
            raise UploadInProgressError(f"an upload for video '{video_id}' is in progress")

        async with lock:
            try:
                record = self.authorize(video_id, user_id)
                session = UploadSession(
                    session_id=uuid.uuid4().hex,
                    video_id=video_id,
                    user_id=user_id,
                    profile=profile,
                    content_type=media_type,
                    extension=extension,
                    declared_size=declared_size,
                )
                self.log.info(
                    "ingest.session.opened",
                    extra={
                        "session_id": session.session_id,
                        "video_id": str(video_id),
                        "user_id": str(user_id),
                        "profile": profile.name,
                        "content_type": media_type,
                    },
                )
                try:
                    return await asyncio.wait_for(
                        self._run(session, record, source),
                        timeout=self.pipeline_timeout_seconds,
                    )
                except TimeoutError as exc:
                    self.log.error(
                        "ingest.session.timeout",
                        extra={
                            "session_id": session.session_id,
                            "stage": session.stage.value,
                            "timeout_seconds": self.pipeline_timeout_seconds,
                        },
                    )
                    raise PipelineTimeoutError(
                        f"pipeline exceeded {self.pipeline_timeout_seconds}s",
                        stage=session.stage,
                    ) from exc
            finally:
                self._release_lock_entry(video_id, lock)

    async def _run(
        self, session: UploadSession, record: VideoRecord, source: AsyncReadable
    ) -> VideoRecord:
        profile = session.profile
        try:
            self._enter(session, PipelineStage.RECEIVING)
            publish_path: Path = await self.temp_store.persist_upload(
                session, source, max_bytes=profile.max_bytes
            )

            prefix: str | None = None
            if profile.transform:
                raw_path = publish_path
                self._enter(session, PipelineStage.PROBING)
                descriptor = await self.toolkit.probe(raw_path)

                self._enter(session, PipelineStage.CLASSIFYING)
                aspect = classify_descriptor(descriptor)
                session.aspect = aspect.value
                prefix = aspect.value

                self._enter(session, PipelineStage.REMUXING)
                target = self.temp_store.reserve_processing_path(session, raw_path)
                publish_path = await self.toolkit.remux(raw_path, target)

            self._enter(session, PipelineStage.PUBLISHING)
            key = build_key(session.extension, prefix)
            session.storage_key = key
            await self.publisher.publish_async(publish_path, key, session.content_type)
            published_url = self.publisher.public_url(key)
            session.published_url = published_url

            self._enter(session, PipelineStage.RECORDING)
            updated = self._record(session, record, published_url)

            self._enter(session, PipelineStage.DONE)
            return updated
        except IngestError as exc:
            if exc.stage is None:
                exc.stage = session.stage
            self.log.warning(
                "ingest.session.failed",
                extra={
                    "session_id": session.session_id,
                    "stage": exc.stage.value,
                    "reason": exc.failure_reason.value,
                    "error": exc.message,
                },
            )
            raise
        except asyncio.CancelledError:
            self.log.warning(
                "ingest.session.cancelled",
                extra={"session_id": session.session_id, "stage": session.stage.value},
            )
            raise
        finally:
            self.temp_store.cleanup(session)

    def _record(
        self, session: UploadSession, record: VideoRecord, published_url: str
    ) -> VideoRecord:
        changed = replace(record, **{session.profile.record_field.value: published_url})
        try:
            return self.videos.update_video(changed)
        except RepositoryError as exc:
            # The object already exists in storage; it is reported, not deleted.
            self.log.error(
                "ingest.record.orphaned_object",
                extra={
                    "session_id": session.session_id,
                    "video_id": str(session.video_id),
                    "key": session.storage_key,
                    "error": str(exc),
                },
            )
            raise PersistenceError(
                f"object '{session.storage_key}' was published but the record "
                f"could not be updated: {exc}"
            ) from exc

    def _enter(self, session: UploadSession, stage: PipelineStage) -> None:
        session.stage = stage
        self.log.info(
            "ingest.pipeline.stage",
            extra={"session_id": session.session_id, "stage": stage.value},
        )

    def _release_lock_entry(self, video_id: UUID, lock: asyncio.Lock) -> None:
        # Callers are refused rather than queued, so nobody waits on an idle lock.
        if self._record_locks.get(video_id) is lock:
            self._record_locks.pop(video_id, None)
