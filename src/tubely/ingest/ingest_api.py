"""HTTP routes for video and thumbnail uploads."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from starlette.datastructures import FormData, UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import Message, Receive

from ..auth.auth_dependencies import require_user
from ..videos.video_models import VideoRecord
from ..videos.video_schemas import VideoResponse
from .ingest_errors import IngestError, PayloadTooLargeError, PresignError
from .ingest_models import FailureReason, UploadProfile
from .ingest_service import IngestService

router = APIRouter(prefix="/api", tags=["ingest"])
logger = logging.getLogger(__name__)

# Room for multipart boundaries and part headers on top of the file ceiling.
MULTIPART_OVERHEAD_BYTES = 64 * 1024
DISCONNECT_POLL_SECONDS = 0.5
HTTP_413_CONTENT_TOO_LARGE = 413
HTTP_422_UNPROCESSABLE_CONTENT = 422
HTTP_499_CLIENT_CLOSED_REQUEST = 499

STATUS_BY_REASON: dict[FailureReason, int] = {
    FailureReason.INVALID_IDENTIFIER: status.HTTP_400_BAD_REQUEST,
    FailureReason.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    FailureReason.UPLOAD_READ_FAILED: status.HTTP_400_BAD_REQUEST,
    FailureReason.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    FailureReason.RECORD_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    FailureReason.UPLOAD_IN_PROGRESS: status.HTTP_409_CONFLICT,
    FailureReason.PAYLOAD_TOO_LARGE: HTTP_413_CONTENT_TOO_LARGE,
    FailureReason.UNSUPPORTED_MEDIA_TYPE: status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    FailureReason.PROBE_FAILED: HTTP_422_UNPROCESSABLE_CONTENT,
    FailureReason.REMUX_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    FailureReason.PERSISTENCE_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    FailureReason.PUBLISH_FAILED: status.HTTP_502_BAD_GATEWAY,
    FailureReason.PRESIGN_FAILED: status.HTTP_502_BAD_GATEWAY,
    FailureReason.PIPELINE_TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    FailureReason.CANCELLED: HTTP_499_CLIENT_CLOSED_REQUEST,
}


def get_ingest_service(request: Request) -> IngestService:
    """Fetch ingest service from application state."""
    try:
        return request.app.state.ingest_service  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("IngestService is not configured") from exc


def error_detail(exc: IngestError) -> dict[str, Any]:
    return {
        "status": "error",
        "failure_reason": exc.failure_reason.value,
        "stage": exc.stage.value if exc.stage else None,
        "message": exc.message,
    }


def to_http_exception(exc: IngestError) -> HTTPException:
    code = STATUS_BY_REASON.get(exc.failure_reason, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(status_code=code, detail=error_detail(exc))


def check_content_length(request: Request, profile: UploadProfile) -> None:
    """Reject bodies that announce more than the ceiling before reading them."""
    raw = request.headers.get("content-length")
    if not raw:
        return
    try:
        declared = int(raw)
    except ValueError:
        return  # streaming enforcement still applies
    if declared > profile.max_bytes + MULTIPART_OVERHEAD_BYTES:
        logger.warning(
            "ingest.request.too_large",
            extra={"profile": profile.name, "content_length": declared},
        )
        raise to_http_exception(
            PayloadTooLargeError(
                f"request body of {declared} bytes exceeds limit of {profile.max_bytes} bytes"
            )
        )


class BoundedReceive:
    """ASGI ``receive`` wrapper that stops the body once it passes ``limit`` bytes."""

    def __init__(self, receive: Receive, limit: int, profile: UploadProfile) -> None:
        self._receive = receive
        self._limit = limit
        self._profile = profile
        self.received = 0

    async def __call__(self) -> Message:
        message = await self._receive()
        if message["type"] == "http.request":
            self.received += len(message.get("body", b""))
            if self.received > self._limit:
                logger.warning(
                    "ingest.request.too_large",
                    extra={"profile": self._profile.name, "received_bytes": self.received},
                )
                raise PayloadTooLargeError(
                    f"request body exceeds limit of {self._profile.max_bytes} bytes"
                )
        return message


def bounded_request(request: Request, profile: UploadProfile) -> Request:
    """Copy of ``request`` whose body reads fail past the profile ceiling."""
    limit = profile.max_bytes + MULTIPART_OVERHEAD_BYTES
    return Request(request.scope, receive=BoundedReceive(request.receive, limit, profile))


async def run_until_disconnect(
    request: Request, operation: Awaitable[VideoRecord]
) -> VideoRecord:
    """Await ``operation``, cancelling it if the client goes away."""
    task = asyncio.ensure_future(operation)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.warning("ingest.client_disconnected", extra={"path": request.url.path})
                task.cancel()
                await asyncio.wait({task})
                raise HTTPException(
                    status_code=HTTP_499_CLIENT_CLOSED_REQUEST,
                    detail={
                        "status": "error",
                        "failure_reason": FailureReason.CANCELLED.value,
                    },
                )
    finally:
        if not task.done():
            task.cancel()


def present_record(request: Request, record: VideoRecord) -> VideoRecord:
    """Sign URLs for private buckets; the upload itself already succeeded."""
    try:
        return request.app.state.video_service.present(record)
    except PresignError as exc:
        logger.warning(
            "ingest.response.presign_failed",
            extra={"video_id": str(record.id), "error": exc.message},
        )
        return record


async def _run_upload(
    request: Request,
    form: FormData,
    video_id: str,
    user_id: UUID,
    profile: UploadProfile,
    upload_call: Callable[..., Awaitable[VideoRecord]],
) -> VideoRecord:
    upload = form.get(profile.form_field)
    if not isinstance(upload, UploadFile):
        logger.warning(
            "ingest.invalid_request_missing_file",
            extra={"video_id": video_id, "form_field": profile.form_field},
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "status": "error",
                "failure_reason": FailureReason.INVALID_REQUEST.value,
                "message": f"form field '{profile.form_field}' is required",
            },
        )

    logger.info(
        "ingest.request",
        extra={
            "video_id": video_id,
            "user_id": str(user_id),
            "profile": profile.name,
            "content_type": upload.content_type,
            "size_bytes": upload.size,
        },
    )
    return await run_until_disconnect(
        request,
        upload_call(
            video_id,
            user_id,
            upload,
            content_type=upload.content_type,
            declared_size=upload.size,
        ),
    )


async def _handle_upload(
    request: Request,
    video_id: str,
    user_id: UUID,
    profile: UploadProfile,
    upload_call: Callable[..., Awaitable[VideoRecord]],
) -> VideoResponse:
    check_content_length(request, profile)

    try:
        async with bounded_request(request, profile).form() as form:
            record = await _run_upload(request, form, video_id, user_id, profile, upload_call)
    except IngestError as exc:
        raise to_http_exception(exc) from exc
    except StarletteHTTPException:
        raise
    except Exception as exc:  # pragma: no cover - defensive
        logger.exception("ingest.unexpected_error", extra={"video_id": video_id})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "status": "error",
                "failure_reason": FailureReason.INTERNAL_ERROR.value,
            },
        ) from exc

    return VideoResponse.from_record(present_record(request, record))


@router.post("/video_upload/{video_id}", response_model=VideoResponse)
async def upload_video(
    video_id: str,
    request: Request,
    user_id: UUID = Depends(require_user),
    service: IngestService = Depends(get_ingest_service),
) -> VideoResponse:
    """Buffer, probe, remux and publish a video, then record its URL."""
    return await _handle_upload(
        request, video_id, user_id, service.video_profile, service.upload_video
    )


@router.post("/thumbnail_upload/{video_id}", response_model=VideoResponse)
async def upload_thumbnail(
    video_id: str,
    request: Request,
    user_id: UUID = Depends(require_user),
    service: IngestService = Depends(get_ingest_service),
) -> VideoResponse:
    """Publish a still image as the video's thumbnail."""
    return await _handle_upload(
        request, video_id, user_id, service.thumbnail_profile, service.upload_thumbnail
    )
