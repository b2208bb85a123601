import os
import time
from pathlib import Path
from uuid import uuid4

import pytest

from src.tubely.config import THUMBNAIL_CONTENT_TYPES, TempPaths
from src.tubely.ingest.ingest_errors import PayloadTooLargeError, UploadReadError
from src.tubely.ingest.ingest_models import RecordField, UploadProfile, UploadSession
from src.tubely.media.temp_media_store import TempMediaStore
from tests.helpers.pipeline import ChunkedSource


def build_store(tmp_path: Path, chunk_size: int = 16) -> TempMediaStore:
    root = tmp_path / "temp"
    root.mkdir()
    return TempMediaStore(paths=TempPaths(root=root, ttl_seconds=60), chunk_size=chunk_size)


def make_session(declared_size: int | None = None) -> UploadSession:
    profile = UploadProfile(
        name="thumbnail",
        form_field="thumbnail",
        content_types=THUMBNAIL_CONTENT_TYPES,
        max_bytes=100,
        record_field=RecordField.THUMBNAIL_URL,
        transform=False,
        temp_prefix="tubely-upload",
    )
    return UploadSession(
        session_id=uuid4().hex,
        video_id=uuid4(),
        user_id=uuid4(),
        profile=profile,
        content_type="image/png",
        extension="png",
        declared_size=declared_size,
    )


@pytest.mark.asyncio
async def test_persist_upload_copies_stream(tmp_path) -> None:
    store = build_store(tmp_path)
    session = make_session(declared_size=50)
    data = bytes(range(50))

    path = await store.persist_upload(session, ChunkedSource(data), max_bytes=100)

    assert path.read_bytes() == data
    assert path.name == "tubely-upload.png"
    assert path.parent == store.session_dir(session.session_id)
    assert session.artifacts == [path]


@pytest.mark.asyncio
async def test_oversize_stream_is_rejected_without_reading_it_all(tmp_path) -> None:
    store = build_store(tmp_path, chunk_size=4096)
    session = make_session()
    source = ChunkedSource(endless=True)

    with pytest.raises(PayloadTooLargeError):
        await store.persist_upload(session, source, max_bytes=1000)

    assert source.bytes_read <= 1001


@pytest.mark.asyncio
async def test_exact_limit_is_accepted(tmp_path) -> None:
    store = build_store(tmp_path, chunk_size=7)
    session = make_session()

    path = await store.persist_upload(session, ChunkedSource(b"x" * 100), max_bytes=100)

    assert path.stat().st_size == 100


@pytest.mark.asyncio
async def test_truncated_stream_is_a_read_failure(tmp_path) -> None:
    store = build_store(tmp_path)
    session = make_session(declared_size=80)

    with pytest.raises(UploadReadError):
        await store.persist_upload(session, ChunkedSource(b"x" * 40), max_bytes=100)


@pytest.mark.asyncio
async def test_broken_source_is_a_read_failure(tmp_path) -> None:
    store = build_store(tmp_path)
    session = make_session()

    with pytest.raises(UploadReadError):
        await store.persist_upload(
            session, ChunkedSource(b"x" * 90, fail_after=32), max_bytes=100
        )
    # partial file is still tracked for cleanup
    assert len(session.artifacts) == 1


@pytest.mark.asyncio
async def test_cleanup_removes_all_artifacts(tmp_path) -> None:
    store = build_store(tmp_path)
    session = make_session()
    raw = await store.persist_upload(session, ChunkedSource(b"abc"), max_bytes=100)
    processed = store.reserve_processing_path(session, raw)
    processed.write_bytes(b"partial")

    assert processed.name == "tubely-upload.png.processing"

    store.cleanup(session)

    assert not raw.exists()
    assert not processed.exists()
    assert list(store.paths.root.iterdir()) == []


def test_sessions_use_distinct_directories(tmp_path) -> None:
    store = build_store(tmp_path)
    first, second = make_session(), make_session()

    assert store.ensure_structure(first.session_id) != store.ensure_structure(second.session_id)


def test_cleanup_expired_purges_only_stale_directories(tmp_path) -> None:
    store = build_store(tmp_path)
    stale = store.ensure_structure("stale")
    (stale / "tubely-upload.mp4").write_bytes(b"x")
    fresh = store.ensure_structure("fresh")
    old = time.time() - 2 * 3600
    os.utime(stale, (old, old))

    assert store.cleanup_expired(dry_run=True) == 1
    assert stale.exists()

    assert store.cleanup_expired() == 1
    assert not stale.exists()
    assert fresh.exists()
