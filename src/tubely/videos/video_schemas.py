"""Pydantic response models for video records."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .video_models import VideoRecord


class VideoResponse(BaseModel):
    """Video record as returned to its owner."""

    model_config = ConfigDict(extra="forbid")

    id: UUID
    user_id: UUID
    title: str
    description: str
    thumbnail_url: str | None = Field(None, description="Published thumbnail URL")
    video_url: str | None = Field(None, description="Published video URL")
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: VideoRecord) -> "VideoResponse":
        return cls(
            id=record.id,
            user_id=record.user_id,
            title=record.title,
            description=record.description,
            thumbnail_url=record.thumbnail_url,
            video_url=record.video_url,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
