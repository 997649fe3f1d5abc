"""
Async FFmpeg runner bound to one temporary work directory.

Usage:
    async with FfmpegEngine(ffmpeg_path) as engine:
        await engine.run(["-i", engine.path("in.png"), ...], step="clip 1")

Leaving the block removes the work directory, whether the render
succeeded, failed or was cancelled.
"""

import asyncio
import logging
import os
import shutil
import tempfile

from viralads.exceptions import RenderFailedError
from viralads.utils.media_info import get_media_duration

logger = logging.getLogger(__name__)

STDERR_TAIL_LINES = 12


class FfmpegEngine:
    """One render session: a work dir plus ffmpeg/ffprobe invocations inside it."""

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        base_dir: str | None = None,
        prefix: str = "viralads_render_",
    ):
        self.ffmpeg_path = ffmpeg_path
        self.base_dir = base_dir
        self.prefix = prefix
        self.work_dir = ""
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> "FfmpegEngine":
        if self._lock.locked():
            raise RuntimeError("FfmpegEngine session already active")
        await self._lock.acquire()
        if self.base_dir:
            os.makedirs(self.base_dir, exist_ok=True)
        self.work_dir = tempfile.mkdtemp(prefix=self.prefix, dir=self.base_dir)
        logger.info(f"[LOCAL RENDER] Work dir: {self.work_dir}")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            self.cleanup()
        finally:
            self._lock.release()

    def path(self, name: str) -> str:
        if not self.work_dir:
            raise RuntimeError("FfmpegEngine used outside of a session")
        return os.path.join(self.work_dir, name)

    def cleanup(self) -> None:
        if self.work_dir and os.path.exists(self.work_dir):
            shutil.rmtree(self.work_dir, ignore_errors=True)
        self.work_dir = ""

    def _sanitize(self, stderr: bytes) -> str:
        """Last lines of ffmpeg stderr with work-dir paths removed."""
        text = stderr.decode("utf-8", errors="replace")
        if self.work_dir:
            text = text.replace(self.work_dir + os.sep, "").replace(self.work_dir, "")
        lines = [line for line in text.strip().splitlines() if line.strip()]
        return "\n".join(lines[-STDERR_TAIL_LINES:])

    async def run(self, args: list[str], step: str) -> None:
        """Run ffmpeg with args; raise RenderFailedError(step) on a non-zero exit."""
        cmd = [self.ffmpeg_path, "-y", "-hide_banner", "-loglevel", "error", *args]
        logger.debug(f"[LOCAL RENDER] {step}: {' '.join(cmd)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=self.work_dir or None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise RenderFailedError("ffmpeg executable not found", step=step)

        try:
            _, stderr = await proc.communicate()
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            logger.info(f"[LOCAL RENDER] {step}: ffmpeg killed on cancel")
            raise

        if proc.returncode != 0:
            detail = self._sanitize(stderr)
            logger.error(f"[LOCAL RENDER] {step} failed (exit {proc.returncode}): {detail}")
            raise RenderFailedError(f"ffmpeg exited with {proc.returncode}: {detail}", step=step)

    async def probe_duration(self, file_path: str, step: str = "probe") -> float:
        try:
            return await asyncio.to_thread(get_media_duration, file_path)
        except RuntimeError:
            raise RenderFailedError("Could not read media duration", step=step)
