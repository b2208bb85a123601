import asyncio
import json
from pathlib import Path

import pytest

from src.tubely.config import ToolingSettings
from src.tubely.ingest.ingest_errors import ProbeError, RemuxError
from src.tubely.media import media_tooling
from src.tubely.media.media_models import MediaDescriptor
from src.tubely.media.media_tooling import FFmpegToolkit, parse_probe_output


class FakeProcess:
    def __init__(self, *, returncode: int = 0, stdout: bytes = b"", stderr: bytes = b"", hang: bool = False) -> None:
        self._final_returncode = returncode
        self.returncode: int | None = None
        self._stdout = stdout
        self._stderr = stderr
        self._hang = hang
        self._finished = asyncio.Event()
        self.pid = 4242
        self.killed = False

    async def communicate(self) -> tuple[bytes, bytes]:
        if self._hang:
            await self._finished.wait()
        self.returncode = self._final_returncode
        return self._stdout, self._stderr

    def kill(self) -> None:
        self.killed = True
        self._final_returncode = -9
        self._finished.set()

    async def wait(self) -> int:
        await self._finished.wait()
        self.returncode = self._final_returncode
        return self.returncode


def install_process(monkeypatch, process: FakeProcess) -> list[tuple[str, ...]]:
    calls: list[tuple[str, ...]] = []

    async def fake_exec(*args, **kwargs):
        calls.append(args)
        return process

    monkeypatch.setattr(media_tooling.asyncio, "create_subprocess_exec", fake_exec)
    return calls


def probe_json(*streams: dict) -> bytes:
    return json.dumps({"streams": list(streams)}).encode()


def test_parse_probe_output_returns_first_video_stream() -> None:
    raw = probe_json(
        {"index": 0, "codec_type": "audio"},
        {"index": 1, "codec_type": "video", "width": 1920, "height": 1080},
        {"index": 2, "codec_type": "video", "width": 640, "height": 480},
    )
    assert parse_probe_output(raw) == MediaDescriptor(1920, 1080)


def test_parse_probe_output_accepts_streams_without_codec_type() -> None:
    raw = probe_json({"index": 0, "width": 1080, "height": 1920})
    assert parse_probe_output(raw) == MediaDescriptor(1080, 1920)


@pytest.mark.parametrize(
    "raw",
    [
        b"not json",
        b"[]",
        probe_json(),
        probe_json({"codec_type": "audio"}),
        probe_json({"codec_type": "video", "width": 1920}),
        probe_json({"codec_type": "video", "width": 1920, "height": 0}),
        probe_json({"codec_type": "video", "width": "1920", "height": "1080"}),
    ],
)
def test_parse_probe_output_rejects_unusable_output(raw) -> None:
    with pytest.raises(ProbeError):
        parse_probe_output(raw)


def test_commands_request_json_streams_and_stream_copy(tmp_path) -> None:
    toolkit = FFmpegToolkit(ToolingSettings(ffprobe_binary="/opt/ffprobe", ffmpeg_binary="/opt/ffmpeg"))
    source = tmp_path / "in.mp4"
    target = tmp_path / "in.mp4.processing"

    probe = toolkit.probe_command(source)
    remux = toolkit.remux_command(source, target)

    assert probe[0] == "/opt/ffprobe"
    assert probe[-1] == str(source)
    assert ["-print_format", "json"] == probe[probe.index("-print_format"):probe.index("-print_format") + 2]
    assert "-show_streams" in probe
    assert remux[0] == "/opt/ffmpeg"
    assert remux[remux.index("-c") + 1] == "copy"
    assert remux[remux.index("-movflags") + 1] == "faststart"
    assert remux[remux.index("-i") + 1] == str(source)
    assert remux[-1] == str(target)


@pytest.mark.asyncio
async def test_probe_runs_tool_and_parses_stdout(monkeypatch, tmp_path) -> None:
    process = FakeProcess(stdout=probe_json({"codec_type": "video", "width": 1280, "height": 720}))
    calls = install_process(monkeypatch, process)
    toolkit = FFmpegToolkit(ToolingSettings())

    descriptor = await toolkit.probe(tmp_path / "clip.mp4")

    assert descriptor == MediaDescriptor(1280, 720)
    assert calls[0][0] == "ffprobe"


@pytest.mark.asyncio
async def test_probe_non_zero_exit_carries_stderr(monkeypatch, tmp_path) -> None:
    install_process(monkeypatch, FakeProcess(returncode=1, stderr=b"moov atom not found"))
    toolkit = FFmpegToolkit(ToolingSettings())

    with pytest.raises(ProbeError) as excinfo:
        await toolkit.probe(tmp_path / "clip.mp4")

    assert "moov atom not found" in str(excinfo.value)


@pytest.mark.asyncio
async def test_probe_missing_binary_is_probe_error(monkeypatch, tmp_path) -> None:
    async def missing(*args, **kwargs):
        raise FileNotFoundError(2, "No such file or directory", args[0])

    monkeypatch.setattr(media_tooling.asyncio, "create_subprocess_exec", missing)
    toolkit = FFmpegToolkit(ToolingSettings(ffprobe_binary="no-such-ffprobe"))

    with pytest.raises(ProbeError):
        await toolkit.probe(tmp_path / "clip.mp4")


@pytest.mark.asyncio
async def test_remux_returns_target_on_success(monkeypatch, tmp_path) -> None:
    install_process(monkeypatch, FakeProcess())
    toolkit = FFmpegToolkit(ToolingSettings())
    target = tmp_path / "clip.mp4.processing"

    assert await toolkit.remux(tmp_path / "clip.mp4", target) == target


@pytest.mark.asyncio
async def test_remux_non_zero_exit_is_remux_error(monkeypatch, tmp_path) -> None:
    install_process(monkeypatch, FakeProcess(returncode=187, stderr=b"Invalid data found"))
    toolkit = FFmpegToolkit(ToolingSettings())

    with pytest.raises(RemuxError) as excinfo:
        await toolkit.remux(tmp_path / "clip.mp4", tmp_path / "clip.mp4.processing")

    assert "187" in str(excinfo.value)
    assert "Invalid data found" in str(excinfo.value)


@pytest.mark.asyncio
async def test_cancelled_tool_is_killed(monkeypatch, tmp_path) -> None:
    process = FakeProcess(hang=True)
    install_process(monkeypatch, process)
    toolkit = FFmpegToolkit(ToolingSettings())

    task = asyncio.create_task(toolkit.remux(tmp_path / "a.mp4", tmp_path / "a.mp4.processing"))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert process.killed is True
    assert process.returncode == -9
