"""Dependency wiring helpers."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from .auth.auth_service import AuthService
from .config import AppConfig
from .ingest.ingest_api import router as ingest_router
from .ingest.ingest_models import RecordField, UploadProfile
from .ingest.ingest_service import IngestService
from .media.media_tooling import FFmpegToolkit, MediaToolkit
from .media.temp_media_store import TempMediaStore
from .repositories.video_repository import VideoRepository
from .storage.object_publisher import ObjectPublisher, build_s3_client
from .videos.video_service import VideoService
from .videos.videos_api import router as videos_router


def build_profiles(config: AppConfig) -> tuple[UploadProfile, UploadProfile]:
    limits = config.ingest_limits
    video = UploadProfile(
        name="video",
        form_field="video",
        content_types=limits.video_content_types,
        max_bytes=limits.video_max_bytes,
        record_field=RecordField.VIDEO_URL,
        transform=True,
        temp_prefix="tubely-upload",
    )
    thumbnail = UploadProfile(
        name="thumbnail",
        form_field="thumbnail",
        content_types=limits.thumbnail_content_types,
        max_bytes=limits.thumbnail_max_bytes,
        record_field=RecordField.THUMBNAIL_URL,
        transform=False,
        temp_prefix="tubely-thumbnail",
    )
    return video, thumbnail


def include_routers(
    app: FastAPI,
    config: AppConfig,
    *,
    s3_client: Any | None = None,
    toolkit: MediaToolkit | None = None,
) -> None:
    """Mount module routers and attach services."""
    video_repo = VideoRepository(config.session_factory)
    temp_store = TempMediaStore(
        paths=config.temp_paths,
        chunk_size=config.ingest_limits.chunk_size_bytes,
    )
    publisher = ObjectPublisher(
        client=s3_client if s3_client is not None else build_s3_client(config.storage),
        settings=config.storage,
    )
    video_profile, thumbnail_profile = build_profiles(config)

    ingest_service = IngestService(
        videos=video_repo,
        temp_store=temp_store,
        toolkit=toolkit or FFmpegToolkit(config.tooling),
        publisher=publisher,
        video_profile=video_profile,
        thumbnail_profile=thumbnail_profile,
        pipeline_timeout_seconds=config.pipeline_timeout_seconds,
    )
    video_service = VideoService(
        videos=video_repo,
        publisher=publisher,
        public_read=config.storage.public_read,
        presign_ttl_seconds=config.storage.presign_ttl_seconds,
    )
    auth_service = AuthService(signing_key=config.jwt_signing_key)

    app.state.config = config
    app.state.video_repo = video_repo
    app.state.temp_store = temp_store
    app.state.publisher = publisher
    app.state.ingest_service = ingest_service
    app.state.video_service = video_service
    app.state.auth_service = auth_service

    app.include_router(ingest_router)
    app.include_router(videos_router)
