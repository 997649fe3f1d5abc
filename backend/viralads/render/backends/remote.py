"""
Remote declarative renderer.

Translates a VideoCompilationOptions into an edit description for a
hosted rendering API (Shotstack-compatible), submits it, and polls the
job until it reaches a terminal state:

    queued -> fetching -> rendering -> saving -> done | failed

Mixing and title rendering happen on the service; this module only
describes them.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

import httpx

from viralads.exceptions import RenderFailedError, RenderTimeoutError
from viralads.render.backends.base import RenderBackend, RenderJob, RenderOutput, RenderStatus
from viralads.render.captions import build_title_clips
from viralads.render.dimensions import get_output_dimensions, to_even_dimensions
from viralads.render.types import VideoCompilationOptions

logger = logging.getLogger(__name__)

# Edit API names for our transition / motion tags
_TRANSITIONS = {"fade": "fade", "zoom": "zoom", "slide": "slideLeft"}
_MOTION_EFFECTS = {
    "zoom-in": "zoomIn",
    "zoom-out": "zoomOut",
    "pan-left": "slideLeft",
    "pan-right": "slideRight",
}


class RemoteRenderer(RenderBackend):
    """Render backend backed by a hosted edit API."""

    name = "remote"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.shotstack.io/v1",
        *,
        client: httpx.AsyncClient | None = None,
        poll_interval_s: float = 2.0,
        poll_backoff: float = 1.0,
        max_poll_interval_s: float = 10.0,
        max_wait_s: float = 600.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_url = base_url.rstrip("/")
        self.poll_interval_s = poll_interval_s
        self.poll_backoff = max(poll_backoff, 1.0)
        self.max_poll_interval_s = max(max_poll_interval_s, poll_interval_s)
        self.max_wait_s = max_wait_s
        self._sleep = sleep
        self._clock = clock
        self._headers = {"x-api-key": api_key, "Content-Type": "application/json"}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=30.0)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ========================================================================
    # Edit description
    # ========================================================================

    def build_edit(self, options: VideoCompilationOptions) -> dict[str, Any]:
        """Build the edit JSON: caption track on top, then visuals, then audio."""
        width, height = self.output_dimensions(options)
        starts = options.clip_starts()
        total = self.expected_duration(options)
        # The last visual holds until a longer voiceover ends
        hold = total - options.total_clip_duration

        visual_clips = []
        last = len(options.clips) - 1
        for index, (clip, start) in enumerate(zip(options.clips, starts)):
            entry: dict[str, Any] = {
                "asset": {"type": clip.type, "src": clip.url},
                "start": start,
                "length": clip.duration + hold if index == last else clip.duration,
                "fit": "contain",
                "scale": 1.0,
            }
            if clip.transition:
                name = _TRANSITIONS.get(clip.transition, clip.transition)
                entry["transition"] = {"in": name, "out": name}
            if clip.motion in _MOTION_EFFECTS:
                entry["effect"] = _MOTION_EFFECTS[clip.motion]
            visual_clips.append(entry)

        # Tracks layer top-down: the first track is drawn over the rest
        tracks: list[dict[str, Any]] = []
        if options.captions:
            tracks.append({"clips": build_title_clips(options.captions, options.caption_style)})
        tracks.append({"clips": visual_clips})

        if options.voiceover_url:
            tracks.append(
                {
                    "clips": [
                        {
                            "asset": {"type": "audio", "src": options.voiceover_url, "volume": 1.0},
                            "start": 0,
                            "length": "auto",
                        }
                    ]
                }
            )
        if options.music_url:
            tracks.append(
                {
                    "clips": [
                        {
                            "asset": {"type": "audio", "src": options.music_url, "volume": options.music_volume},
                            "start": 0,
                            "length": total,
                        }
                    ]
                }
            )

        return {
            "timeline": {"tracks": tracks},
            "output": {
                "format": options.format,
                "size": {"width": width, "height": height},
            },
        }

    # ========================================================================
    # Job lifecycle
    # ========================================================================

    @staticmethod
    def _parse_job(payload: dict[str, Any], fallback_id: str | None = None) -> RenderJob:
        body = payload.get("response") or {}
        raw_status = body.get("status", RenderStatus.QUEUED.value)
        try:
            status = RenderStatus(raw_status)
        except ValueError:
            raise RenderFailedError(f"Unknown render status '{raw_status}'", step="poll")
        return RenderJob(
            id=body.get("id") or fallback_id or "",
            status=status,
            url=body.get("url"),
            error=body.get("error"),
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json().get("message") or response.reason_phrase
        except ValueError:
            return response.reason_phrase

    async def submit_edit(self, edit: dict[str, Any]) -> RenderJob:
        if not self._headers["x-api-key"]:
            raise RenderFailedError("Render service API key is not configured", step="submit")
        try:
            response = await self._client.post(f"{self.base_url}/render", json=edit, headers=self._headers)
        except httpx.HTTPError as e:
            logger.error(f"[REMOTE RENDER] Submit request failed: {e}")
            raise RenderFailedError(f"Render service unreachable: {e.__class__.__name__}", step="submit")

        if response.status_code >= 400:
            message = self._error_message(response)
            logger.error(f"[REMOTE RENDER] Submit rejected ({response.status_code}): {message}")
            raise RenderFailedError(f"Render service error: {message}", step="submit")

        job = self._parse_job(response.json())
        if not job.id:
            raise RenderFailedError("Render service returned no job id", step="submit")
        logger.info(f"[REMOTE RENDER] Submitted job {job.id} ({job.status.value})")
        return job

    async def submit(self, options: VideoCompilationOptions) -> RenderJob:
        options.validate()
        return await self.submit_edit(self.build_edit(options))

    async def get_status(self, job_id: str) -> RenderJob:
        try:
            response = await self._client.get(f"{self.base_url}/render/{job_id}", headers=self._headers)
        except httpx.HTTPError as e:
            raise RenderFailedError(f"Failed to poll render status: {e.__class__.__name__}", step="poll")
        if response.status_code >= 400:
            raise RenderFailedError(
                f"Failed to poll render status: {self._error_message(response)}", step="poll"
            )
        return self._parse_job(response.json(), fallback_id=job_id)

    async def cancel(self, job_id: str) -> None:
        """Best-effort cancellation; failures are logged, never raised."""
        try:
            response = await self._client.delete(f"{self.base_url}/render/{job_id}", headers=self._headers)
            logger.info(f"[REMOTE RENDER] Cancel requested for {job_id}: HTTP {response.status_code}")
        except httpx.HTTPError as e:
            logger.warning(f"[REMOTE RENDER] Cancel request for {job_id} failed: {e}")

    async def poll(self, job: RenderJob) -> RenderJob:
        """Wait until the job is terminal.

        Raises:
            RenderFailedError: The service reported failure
            RenderTimeoutError: max_wait_s elapsed first
        """
        started = self._clock()
        interval = self.poll_interval_s
        try:
            while not job.status.is_terminal:
                if self._clock() - started >= self.max_wait_s:
                    logger.warning(f"[REMOTE RENDER] Job {job.id} timed out after {self.max_wait_s}s")
                    await self.cancel(job.id)
                    raise RenderTimeoutError(self.max_wait_s, job.id)
                await self._sleep(interval)
                job = await self.get_status(job.id)
                logger.debug(f"[REMOTE RENDER] Job {job.id}: {job.status.value}")
                interval = min(interval * self.poll_backoff, self.max_poll_interval_s)
        except asyncio.CancelledError:
            logger.info(f"[REMOTE RENDER] Polling cancelled for job {job.id}")
            await self.cancel(job.id)
            raise

        if job.status is RenderStatus.FAILED:
            raise RenderFailedError(f"Video compilation failed: {job.error or 'unknown error'}", step="render")
        if not job.url:
            raise RenderFailedError("No video URL returned from render service", step="render")
        return job

    async def compile(self, options: VideoCompilationOptions) -> RenderOutput:
        job = await self.submit(options)
        job = await self.poll(job)
        width, height = self.output_dimensions(options)
        logger.info(f"[REMOTE RENDER] Job {job.id} done: {job.url}")
        return RenderOutput(
            format=options.format,
            width=width,
            height=height,
            duration=self.expected_duration(options),
            url=job.url,
            backend=self.name,
        )

    async def animate_image(
        self,
        image_url: str,
        duration: float,
        motion: str = "zoom-in",
        resolution: str = "1080p",
        aspect_ratio: str = "landscape",
    ) -> RenderOutput:
        """Render one image as a clip with a motion effect."""
        if duration <= 0:
            raise ValueError("duration must be positive")
        width, height = to_even_dimensions(*get_output_dimensions(resolution, aspect_ratio))
        clip: dict[str, Any] = {
            "asset": {"type": "image", "src": image_url},
            "start": 0,
            "length": duration,
            "fit": "contain",
        }
        if motion in _MOTION_EFFECTS:
            clip["effect"] = _MOTION_EFFECTS[motion]
        edit = {
            "timeline": {"tracks": [{"clips": [clip]}]},
            "output": {"format": "mp4", "size": {"width": width, "height": height}},
        }
        job = await self.poll(await self.submit_edit(edit))
        return RenderOutput(
            format="mp4", width=width, height=height, duration=duration, url=job.url, backend=self.name
        )
