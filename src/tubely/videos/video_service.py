"""Read access to video records with presigned URL issuance."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from uuid import UUID

from ..exceptions import NotFoundError, RepositoryError
from ..ingest.ingest_errors import PersistenceError, RecordNotFoundError, UnauthorizedError
from ..repositories.video_repository import VideoRepository
from ..storage.object_publisher import ObjectPublisher
from .video_models import VideoRecord

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class VideoService:
    """Serve owner-scoped records; sign stored URLs for private buckets."""

    videos: VideoRepository
    publisher: ObjectPublisher
    public_read: bool
    presign_ttl_seconds: int
    log: logging.Logger = field(default_factory=lambda: logger)

    def get_video(self, video_id: UUID, user_id: UUID) -> VideoRecord:
        try:
            record = self.videos.get_video(video_id)
        except NotFoundError as exc:
            raise RecordNotFoundError(f"video '{video_id}' not found") from exc
        except RepositoryError as exc:
            raise PersistenceError(f"failed to load video '{video_id}': {exc}") from exc
        if record.user_id != user_id:
            raise UnauthorizedError("caller does not own this video")
        return self.present(record)

    def list_videos(self, user_id: UUID) -> list[VideoRecord]:
        try:
            records = self.videos.list_for_user(user_id)
        except RepositoryError as exc:
            raise PersistenceError(f"failed to list videos: {exc}") from exc
        return [self.present(record) for record in records]

    def present(self, record: VideoRecord) -> VideoRecord:
        """Return ``record`` with read URLs usable by the caller.

        The stored value is never rewritten; signing happens per read.
        """
        if self.public_read:
            return record
        return replace(
            record,
            video_url=self._sign(record.video_url),
            thumbnail_url=self._sign(record.thumbnail_url),
        )

    def _sign(self, url: str | None) -> str | None:
        if not url:
            return url
        key = self.publisher.key_from_url(url)
        if key is None:
            self.log.warning("videos.presign.foreign_url", extra={"url": url})
            return url
        return self.publisher.issue_presigned_url(key, self.presign_ttl_seconds)
