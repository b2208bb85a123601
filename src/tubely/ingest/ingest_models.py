"""Data structures for the upload pipeline."""

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Mapping
from uuid import UUID


class PipelineStage(StrEnum):
    """Forward-only stages of one upload session."""

    RECEIVING = "receiving"
    PROBING = "probing"
    CLASSIFYING = "classifying"
    REMUXING = "remuxing"
    PUBLISHING = "publishing"
    RECORDING = "recording"
    DONE = "done"


class FailureReason(StrEnum):
    """Stable error kinds reported to API callers."""

    INVALID_IDENTIFIER = "invalid_identifier"
    INVALID_REQUEST = "invalid_request"
    UNAUTHORIZED = "unauthorized"
    RECORD_NOT_FOUND = "record_not_found"
    UNSUPPORTED_MEDIA_TYPE = "unsupported_media_type"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    UPLOAD_READ_FAILED = "upload_read_failed"
    PROBE_FAILED = "probe_failed"
    REMUX_FAILED = "remux_failed"
    PUBLISH_FAILED = "publish_failed"
    PRESIGN_FAILED = "presign_failed"
    PERSISTENCE_FAILED = "persistence_failed"
    UPLOAD_IN_PROGRESS = "upload_in_progress"
    CANCELLED = "cancelled"
    PIPELINE_TIMEOUT = "pipeline_timeout"
    INTERNAL_ERROR = "internal_error"


class RecordField(StrEnum):
    """Record attribute receiving the published URL."""

    VIDEO_URL = "video_url"
    THUMBNAIL_URL = "thumbnail_url"


@dataclass(slots=True, frozen=True)
class UploadProfile:
    """Per-media-kind knobs of the shared upload pipeline.

    ``transform`` enables the probe, classify and remux stages; without it
    the buffered file is published as received.
    """

    name: str
    form_field: str
    content_types: Mapping[str, str]
    max_bytes: int
    record_field: RecordField
    transform: bool
    temp_prefix: str


@dataclass(slots=True)
class UploadSession:
    """Request-scoped state owned by the orchestrator; never persisted."""

    session_id: str
    video_id: UUID
    user_id: UUID
    profile: UploadProfile
    content_type: str
    extension: str
    declared_size: int | None = None
    stage: PipelineStage = PipelineStage.RECEIVING
    artifacts: list[Path] = field(default_factory=list)
    aspect: str | None = None
    storage_key: str | None = None
    published_url: str | None = None
