"""Deterministic stand-ins for the ffprobe/ffmpeg toolkit."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path

from src.tubely.ingest.ingest_errors import ProbeError, RemuxError
from src.tubely.media.media_models import MediaDescriptor


@dataclass(slots=True)
class FakeMediaToolkit:
    """Records calls; fails or hangs on request."""

    descriptor: MediaDescriptor = field(default_factory=lambda: MediaDescriptor(1920, 1080))
    probe_error: str | None = None
    remux_error: str | None = None
    hang_on: str | None = None
    probed: list[Path] = field(default_factory=list)
    remuxed: list[tuple[Path, Path]] = field(default_factory=list)
    started: asyncio.Event = field(default_factory=asyncio.Event)

    async def probe(self, path: Path) -> MediaDescriptor:
        self.probed.append(path)
        assert path.exists(), "probe must run on a fully written file"
        if self.hang_on == "probe":
            await self._hang()
        if self.probe_error:
            raise ProbeError(self.probe_error)
        return self.descriptor

    async def remux(self, source: Path, target: Path) -> Path:
        self.remuxed.append((source, target))
        # A real ffmpeg leaves a partial output behind when it dies midway.
        target.write_bytes(b"partial")
        if self.hang_on == "remux":
            await self._hang()
        if self.remux_error:
            raise RemuxError(self.remux_error)
        target.write_bytes(b"faststart:" + source.read_bytes())
        return target

    async def _hang(self) -> None:
        self.started.set()
        await asyncio.Event().wait()
