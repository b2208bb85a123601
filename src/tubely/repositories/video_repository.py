"""Persistence layer for video records."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..db.db_models import VideoModel
from ..exceptions import StaleRecordError, ensure_found, handle_sqlalchemy_errors
from ..videos.video_models import VideoRecord


class VideoRepository:
    """Read and update owner-scoped video records."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def create_video(
        self,
        *,
        user_id: UUID,
        title: str,
        description: str = "",
        video_id: UUID | None = None,
    ) -> VideoRecord:
        now = datetime.utcnow()
        model = VideoModel(
            id=str(video_id or uuid4()),
            user_id=str(user_id),
            title=title,
            description=description,
            created_at=now,
            updated_at=now,
            version=1,
        )
        with handle_sqlalchemy_errors(entity="video"), self._session_factory() as session:
            session.add(model)
            session.commit()
            return self._to_domain(model)

    def get_video(self, video_id: UUID) -> VideoRecord:
        """Return the record or raise :class:`NotFoundError`."""
        with handle_sqlalchemy_errors(entity="video"), self._session_factory() as session:
            model = session.get(VideoModel, str(video_id))
            ensure_found(model, entity="video", identifier=str(video_id))
            return self._to_domain(model)

    def list_for_user(self, user_id: UUID) -> list[VideoRecord]:
        with handle_sqlalchemy_errors(entity="video"), self._session_factory() as session:
            rows = session.scalars(
                select(VideoModel)
                .where(VideoModel.user_id == str(user_id))
                .order_by(VideoModel.created_at.desc())
            ).all()
            return [self._to_domain(row) for row in rows]

    def update_video(self, record: VideoRecord) -> VideoRecord:
        """Persist mutable fields, guarded by the version the record was read at.

        Raises :class:`StaleRecordError` when another writer updated the row
        after ``record`` was loaded.
        """
        updated_at = datetime.utcnow()
        with handle_sqlalchemy_errors(entity="video"), self._session_factory() as session:
            result = session.execute(
                update(VideoModel)
                .where(
                    VideoModel.id == str(record.id),
                    VideoModel.version == record.version,
                )
                .values(
                    title=record.title,
                    description=record.description,
                    thumbnail_url=record.thumbnail_url,
                    video_url=record.video_url,
                    updated_at=updated_at,
                    version=record.version + 1,
                )
            )
            if result.rowcount != 1:
                session.rollback()
                raise StaleRecordError(
                    f"video '{record.id}' changed since version {record.version}"
                )
            session.commit()
            model = session.get(VideoModel, str(record.id), populate_existing=True)
            ensure_found(model, entity="video", identifier=str(record.id))
            return self._to_domain(model)

    @staticmethod
    def _to_domain(model: VideoModel) -> VideoRecord:
        return VideoRecord(
            id=UUID(model.id),
            user_id=UUID(model.user_id),
            title=model.title,
            description=model.description,
            created_at=model.created_at,
            updated_at=model.updated_at,
            thumbnail_url=model.thumbnail_url,
            video_url=model.video_url,
            version=model.version,
        )
