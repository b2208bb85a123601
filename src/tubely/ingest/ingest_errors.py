"""Domain-specific exceptions for the upload pipeline."""

from __future__ import annotations

from .ingest_models import FailureReason, PipelineStage


class IngestError(Exception):
    """Base class for upload pipeline errors.

    Every subclass pins a stable :class:`FailureReason`; the orchestrator
    stamps ``stage`` when the error escapes a pipeline stage.
    """

    failure_reason: FailureReason = FailureReason.INTERNAL_ERROR

    def __init__(self, message: str = "", *, stage: PipelineStage | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage


class InvalidIdentifierError(IngestError):
    """Raised when the path identifier is not a UUID."""

    failure_reason = FailureReason.INVALID_IDENTIFIER


class UnauthorizedError(IngestError):
    """Raised when the caller does not own the target record."""

    failure_reason = FailureReason.UNAUTHORIZED


class RecordNotFoundError(IngestError):
    """Raised when the target record does not exist."""

    failure_reason = FailureReason.RECORD_NOT_FOUND


class UnsupportedMediaError(IngestError):
    """Raised when Content-Type is not allowed."""

    failure_reason = FailureReason.UNSUPPORTED_MEDIA_TYPE


class PayloadTooLargeError(IngestError):
    """Raised when uploaded file exceeds configured limits."""

    failure_reason = FailureReason.PAYLOAD_TOO_LARGE


class UploadReadError(IngestError):
    """Raised when the upload is truncated or cannot be written to disk."""

    failure_reason = FailureReason.UPLOAD_READ_FAILED


class ProbeError(IngestError):
    """Raised when the analysis tool fails or yields no usable stream."""

    failure_reason = FailureReason.PROBE_FAILED


class RemuxError(IngestError):
    """Raised when the fast-start remux exits non-zero."""

    failure_reason = FailureReason.REMUX_FAILED


class PublishError(IngestError):
    """Raised when the object store rejects the upload."""

    failure_reason = FailureReason.PUBLISH_FAILED


class PresignError(IngestError):
    """Raised when a presigned read URL cannot be produced."""

    failure_reason = FailureReason.PRESIGN_FAILED


class PersistenceError(IngestError):
    """Raised when the record update fails after a successful publish."""

    failure_reason = FailureReason.PERSISTENCE_FAILED


class UploadInProgressError(IngestError):
    """Raised when another upload for the same record is running."""

    failure_reason = FailureReason.UPLOAD_IN_PROGRESS


class UploadCancelledError(IngestError):
    """Raised inside worker threads when the session was cancelled."""

    failure_reason = FailureReason.CANCELLED


class PipelineTimeoutError(IngestError):
    """Raised when the whole pipeline overran its deadline."""

    failure_reason = FailureReason.PIPELINE_TIMEOUT
