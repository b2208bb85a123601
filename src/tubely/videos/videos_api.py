"""HTTP routes for reading video records."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Request

from ..auth.auth_dependencies import require_user
from ..ingest.ingest_api import to_http_exception
from ..ingest.ingest_errors import IngestError
from ..ingest.ingest_service import parse_video_id
from .video_schemas import VideoResponse
from .video_service import VideoService

router = APIRouter(prefix="/api/videos", tags=["videos"])


def get_video_service(request: Request) -> VideoService:
    try:
        return request.app.state.video_service  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("VideoService is not configured") from exc


@router.get("", response_model=list[VideoResponse])
def list_videos(
    user_id: UUID = Depends(require_user),
    service: VideoService = Depends(get_video_service),
) -> list[VideoResponse]:
    try:
        records = service.list_videos(user_id)
    except IngestError as exc:
        raise to_http_exception(exc) from exc
    return [VideoResponse.from_record(record) for record in records]


@router.get("/{video_id}", response_model=VideoResponse)
def get_video(
    video_id: str,
    user_id: UUID = Depends(require_user),
    service: VideoService = Depends(get_video_service),
) -> VideoResponse:
    try:
        record = service.get_video(parse_video_id(video_id), user_id)
    except IngestError as exc:
        raise to_http_exception(exc) from exc
    return VideoResponse.from_record(record)
