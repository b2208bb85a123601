"""Application configuration builder."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .db.db_init import init_db

VIDEO_CONTENT_TYPES: Mapping[str, str] = {"video/mp4": "mp4"}
THUMBNAIL_CONTENT_TYPES: Mapping[str, str] = {"image/jpeg": "jpg", "image/png": "png"}


@dataclass(slots=True)
class IngestLimits:
    video_max_bytes: int
    thumbnail_max_bytes: int
    chunk_size_bytes: int
    video_content_types: Mapping[str, str]
    thumbnail_content_types: Mapping[str, str]


@dataclass(slots=True)
class TempPaths:
    root: Path
    ttl_seconds: int


@dataclass(slots=True)
class StorageSettings:
    bucket: str
    region: str
    public_read: bool = True
    presign_ttl_seconds: int = 300
    endpoint_url: str | None = None


@dataclass(slots=True)
class ToolingSettings:
    ffprobe_binary: str = "ffprobe"
    ffmpeg_binary: str = "ffmpeg"


@dataclass(slots=True)
class AppConfig:
    temp_paths: TempPaths
    ingest_limits: IngestLimits
    storage: StorageSettings
    tooling: ToolingSettings
    database_url: str
    engine: Engine
    session_factory: sessionmaker[Session]
    pipeline_timeout_seconds: int
    jwt_signing_key: str


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def load_temp_paths() -> TempPaths:
    """Resolve the temp root on its own; the janitor script needs nothing else."""
    temp_root = Path(os.getenv("TEMP_ROOT", Path(tempfile.gettempdir()) / "tubely"))
    temp_root.mkdir(parents=True, exist_ok=True)
    return TempPaths(
        root=temp_root,
        ttl_seconds=int(os.getenv("TEMP_TTL_SECONDS", 3600)),
    )


def load_config() -> AppConfig:
    """Load configuration from environment (SQLite by default)."""
    temp_paths = load_temp_paths()

    ingest_limits = IngestLimits(
        video_max_bytes=int(os.getenv("VIDEO_MAX_UPLOAD_BYTES", 1 << 30)),
        thumbnail_max_bytes=int(os.getenv("THUMBNAIL_MAX_UPLOAD_BYTES", 10 << 20)),
        chunk_size_bytes=int(os.getenv("INGEST_CHUNK_SIZE_BYTES", 1 * 1024 * 1024)),
        video_content_types=VIDEO_CONTENT_TYPES,
        thumbnail_content_types=THUMBNAIL_CONTENT_TYPES,
    )

    bucket = os.getenv("S3_BUCKET", "")
    if not bucket:
        raise RuntimeError("S3_BUCKET is not configured")
    storage = StorageSettings(
        bucket=bucket,
        region=os.getenv("S3_REGION", "us-east-1"),
        public_read=_env_flag("S3_PUBLIC_READ", True),
        presign_ttl_seconds=int(os.getenv("S3_PRESIGN_TTL_SECONDS", 300)),
        endpoint_url=os.getenv("S3_ENDPOINT_URL") or None,
    )
    tooling = ToolingSettings(
        ffprobe_binary=os.getenv("FFPROBE_BINARY", "ffprobe"),
        ffmpeg_binary=os.getenv("FFMPEG_BINARY", "ffmpeg"),
    )

    jwt_signing_key = os.getenv("JWT_SIGNING_KEY", "")
    if not jwt_signing_key:
        raise RuntimeError("JWT_SIGNING_KEY is not configured")

    database_url = os.getenv("DATABASE_URL", "sqlite:///tubely.db")
    engine = create_engine(database_url, future=True)
    session_factory: sessionmaker[Session] = sessionmaker(bind=engine, expire_on_commit=False)
    init_db(engine)

    return AppConfig(
        temp_paths=temp_paths,
        ingest_limits=ingest_limits,
        storage=storage,
        tooling=tooling,
        database_url=database_url,
        engine=engine,
        session_factory=session_factory,
        pipeline_timeout_seconds=int(os.getenv("PIPELINE_TIMEOUT_SECONDS", 600)),
        jwt_signing_key=jwt_signing_key,
    )
