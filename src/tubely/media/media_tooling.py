"""External media tooling: stream probing and fast-start remuxing."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, Sequence

from ..config import ToolingSettings
from ..ingest.ingest_errors import ProbeError, RemuxError
from .media_models import MediaDescriptor

DIAGNOSTIC_LIMIT = 2000


class MediaToolkit(Protocol):
    """Capability used by the pipeline; production binds it to ffmpeg."""

    async def probe(self, path: Path) -> MediaDescriptor: ...

    async def remux(self, source: Path, target: Path) -> Path: ...


@dataclass(slots=True)
class ToolResult:
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def diagnostic(self) -> str:
        text = self.stderr.decode("utf-8", errors="replace").strip()
        if not text:
            text = self.stdout.decode("utf-8", errors="replace").strip()
        return text[-DIAGNOSTIC_LIMIT:]


async def run_tool(args: Sequence[str], *, log: logging.Logger) -> ToolResult:
    """Run a subprocess to completion; kill it if the caller is cancelled."""
    log.info("media.tool.start", extra={"command": list(args)})
    process = await asyncio.create_subprocess_exec(
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await process.communicate()
    except asyncio.CancelledError:
        if process.returncode is None:
            process.kill()
            await asyncio.shield(process.wait())
        log.warning("media.tool.cancelled", extra={"tool": args[0], "pid": process.pid})
        raise
    result = ToolResult(returncode=process.returncode or 0, stdout=stdout, stderr=stderr)
    log.info("media.tool.exit", extra={"tool": args[0], "returncode": result.returncode})
    return result


def parse_probe_output(raw: bytes | str) -> MediaDescriptor:
    """Extract the first video stream dimensions from ffprobe JSON."""
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise ProbeError(f"unparseable probe output: {exc}") from exc
    if not isinstance(payload, dict):
        raise ProbeError("probe output is not an object")

    streams = payload.get("streams")
    if not isinstance(streams, list) or not streams:
        raise ProbeError("no visual stream found")

    stream = _first_visual_stream(streams)
    if stream is None:
        raise ProbeError("no visual stream found")
    width, height = stream.get("width"), stream.get("height")
    if not isinstance(width, int) or not isinstance(height, int) or isinstance(width, bool):
        raise ProbeError("stream dimensions missing from probe output")
    try:
        return MediaDescriptor(width=width, height=height)
    except ValueError as exc:
        raise ProbeError(str(exc)) from exc


def _first_visual_stream(streams: list[Any]) -> dict[str, Any] | None:
    candidates = [stream for stream in streams if isinstance(stream, dict)]
    for stream in candidates:
        if stream.get("codec_type") == "video":
            return stream
    # Streams without codec_type still qualify when they carry dimensions.
    for stream in candidates:
        if "codec_type" not in stream and "width" in stream and "height" in stream:
            return stream
    return None


@dataclass(slots=True)
class FFmpegToolkit:
    """Bind :class:`MediaToolkit` to the ffprobe/ffmpeg command line tools."""

    settings: ToolingSettings
    log: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def probe_command(self, path: Path) -> list[str]:
        return [
            self.settings.ffprobe_binary,
            "-v",
            "error",
            "-print_format",
            "json",
            "-show_streams",
            str(path),
        ]

    def remux_command(self, source: Path, target: Path) -> list[str]:
        return [
            self.settings.ffmpeg_binary,
            "-nostdin",
            "-v",
            "error",
            "-i",
            str(source),
            "-c",
            "copy",
            "-movflags",
            "faststart",
            "-f",
            "mp4",
            str(target),
        ]

    async def probe(self, path: Path) -> MediaDescriptor:
        try:
            result = await run_tool(self.probe_command(path), log=self.log)
        except OSError as exc:
            raise ProbeError(f"failed to start ffprobe: {exc}") from exc
        if result.returncode != 0:
            raise ProbeError(
                f"ffprobe exited with status {result.returncode}: {result.diagnostic}"
            )
        descriptor = parse_probe_output(result.stdout)
        self.log.info(
            "media.probe.done",
            extra={"path": str(path), "width": descriptor.width, "height": descriptor.height},
        )
        return descriptor

    async def remux(self, source: Path, target: Path) -> Path:
        try:
            result = await run_tool(self.remux_command(source, target), log=self.log)
        except OSError as exc:
            raise RemuxError(f"failed to start ffmpeg: {exc}") from exc
        if result.returncode != 0:
            raise RemuxError(
                f"ffmpeg exited with status {result.returncode}: {result.diagnostic}"
            )
        self.log.info("media.remux.done", extra={"source": str(source), "target": str(target)})
        return target
