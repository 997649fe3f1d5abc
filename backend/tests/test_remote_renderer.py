"""
Tests for the remote (edit API) renderer.

The HTTP side is served by httpx.MockTransport; polling uses a fake
clock whose time only moves when the renderer sleeps.

Test cases:
1. Edit JSON: track order, clip timing, audio tracks, output size
2. Submit / poll lifecycle and backoff
3. Failure, timeout and cancellation
"""

import asyncio
import json

import httpx
import pytest

from viralads.exceptions import CompilationValidationError, RenderFailedError, RenderTimeoutError
from viralads.render.backends.remote import RemoteRenderer
from viralads.render.types import Caption, CaptionStyle, VideoClip, VideoCompilationOptions

BASE_URL = "https://render.test/v1"


class FakeClock:
    """Monotonic clock that advances only through sleep()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeRenderService:
    """Scripted edit API: each GET returns the next status in the list."""

    def __init__(self, statuses, url="https://cdn.render.test/out.mp4", error=None, submit_status=201):
        self.statuses = list(statuses)
        self.url = url
        self.error = error
        self.submit_status = submit_status
        self.requests: list[httpx.Request] = []
        self.edits: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST":
            self.edits.append(json.loads(request.content))
            if self.submit_status >= 400:
                return httpx.Response(self.submit_status, json={"success": False, "message": "Bad API key"})
            return httpx.Response(
                self.submit_status,
                json={"success": True, "response": {"message": "Created", "id": "job-1"}},
            )
        if request.method == "DELETE":
            return httpx.Response(200, json={"success": True})

        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        body = {"id": "job-1", "status": status}
        if status == "done":
            body["url"] = self.url
        if status == "failed":
            body["error"] = self.error
        return httpx.Response(200, json={"success": True, "response": body})

    @property
    def methods(self) -> list[str]:
        return [r.method for r in self.requests]


def _renderer(service, clock=None, api_key="test-key", **kwargs):
    clock = clock or FakeClock()
    client = httpx.AsyncClient(transport=httpx.MockTransport(service))
    return RemoteRenderer(api_key, BASE_URL, client=client, sleep=clock.sleep, clock=clock, **kwargs)


def _options(**overrides):
    values = {
        "clips": [
            VideoClip(type="image", url="https://cdn.test/1.png", duration=5.0, transition="fade", motion="zoom-in"),
            VideoClip(type="video", url="https://cdn.test/2.mp4", duration=5.0, transition="slide"),
        ],
        "resolution": "1080p",
        "aspect_ratio": "portrait",
    }
    values.update(overrides)
    return VideoCompilationOptions(**values)


# =============================================================================
# Edit description
# =============================================================================


class TestBuildEdit:
    def test_visual_track_only(self):
        edit = RemoteRenderer("key", BASE_URL).build_edit(_options())

        tracks = edit["timeline"]["tracks"]
        assert len(tracks) == 1
        clips = tracks[0]["clips"]
        assert [c["start"] for c in clips] == [0.0, 5.0]
        assert [c["length"] for c in clips] == [5.0, 5.0]
        assert clips[0]["asset"] == {"type": "image", "src": "https://cdn.test/1.png"}
        assert clips[0]["fit"] == "contain"
        assert clips[0]["transition"] == {"in": "fade", "out": "fade"}
        assert clips[0]["effect"] == "zoomIn"
        assert clips[1]["transition"] == {"in": "slideLeft", "out": "slideLeft"}
        assert "effect" not in clips[1]

    def test_output_size_follows_aspect_ratio(self):
        edit = RemoteRenderer("key", BASE_URL).build_edit(_options())
        assert edit["output"] == {"format": "mp4", "size": {"width": 608, "height": 1080}}

    def test_odd_preset_width_rounded_to_even(self):
        from viralads.render.backends.local import LocalRenderer

        options = _options(resolution="720p")

        edit = RemoteRenderer("key", BASE_URL).build_edit(options)

        assert edit["output"]["size"] == {"width": 406, "height": 720}
        assert LocalRenderer.output_dimensions(options) == (406, 720)

    def test_longer_voiceover_holds_last_clip(self):
        options = _options(
            voiceover_url="https://cdn.test/vo.mp3",
            voiceover_duration=14.0,
            music_url="https://cdn.test/music.mp3",
        )

        tracks = RemoteRenderer("key", BASE_URL).build_edit(options)["timeline"]["tracks"]

        visuals = tracks[0]["clips"]
        assert [c["start"] for c in visuals] == [0.0, 5.0]
        assert [c["length"] for c in visuals] == [5.0, 9.0]
        assert tracks[2]["clips"][0]["length"] == 14.0

    def test_shorter_voiceover_keeps_clip_lengths(self):
        options = _options(voiceover_url="https://cdn.test/vo.mp3", voiceover_duration=4.0)

        visuals = RemoteRenderer("key", BASE_URL).build_edit(options)["timeline"]["tracks"][0]["clips"]

        assert [c["length"] for c in visuals] == [5.0, 5.0]

    def test_full_track_order(self):
        options = _options(
            voiceover_url="https://cdn.test/vo.mp3",
            music_url="https://cdn.test/music.mp3",
            music_volume=0.25,
            captions=[Caption("Hello", 0.0, 5.0)],
            caption_style=CaptionStyle(position="top"),
        )

        tracks = RemoteRenderer("key", BASE_URL).build_edit(options)["timeline"]["tracks"]

        assert len(tracks) == 4
        assert tracks[0]["clips"][0]["asset"]["type"] == "title"
        assert tracks[0]["clips"][0]["asset"]["position"] == "top"
        assert tracks[1]["clips"][0]["asset"]["type"] == "image"

        voiceover = tracks[2]["clips"][0]
        assert voiceover["asset"] == {"type": "audio", "src": "https://cdn.test/vo.mp3", "volume": 1.0}
        assert voiceover["length"] == "auto"

        music = tracks[3]["clips"][0]
        assert music["asset"]["volume"] == 0.25
        assert music["start"] == 0
        assert music["length"] == 10.0


# =============================================================================
# Lifecycle
# =============================================================================


class TestRenderLifecycle:
    @pytest.mark.asyncio
    async def test_compile_polls_until_done(self):
        service = FakeRenderService(["queued", "fetching", "rendering", "saving", "done"])
        clock = FakeClock()
        renderer = _renderer(service, clock, poll_interval_s=2.0)

        output = await renderer.compile(_options())

        assert output.url == "https://cdn.render.test/out.mp4"
        assert output.data is None
        assert (output.width, output.height) == (608, 1080)
        assert output.duration == 10.0
        assert output.backend == "remote"
        assert clock.sleeps == [2.0] * 5
        assert service.methods[0] == "POST"
        assert service.requests[0].url == f"{BASE_URL}/render"
        assert service.requests[0].headers["x-api-key"] == "test-key"
        assert service.requests[1].url == f"{BASE_URL}/render/job-1"
        assert "DELETE" not in service.methods

    @pytest.mark.asyncio
    async def test_submitted_edit_matches_build_edit(self):
        service = FakeRenderService(["done"])
        renderer = _renderer(service)
        options = _options()

        await renderer.compile(options)

        assert service.edits == [renderer.build_edit(options)]

    @pytest.mark.asyncio
    async def test_reported_duration_follows_longer_voiceover(self):
        service = FakeRenderService(["done"])
        renderer = _renderer(service)

        output = await renderer.compile(
            _options(
                clips=[VideoClip(type="image", url="https://cdn.test/1.png", duration=2.0)],
                voiceover_url="https://cdn.test/vo.mp3",
                voiceover_duration=6.5,
            )
        )

        assert output.duration == 6.5
        visual = service.edits[0]["timeline"]["tracks"][0]["clips"][-1]
        assert visual["start"] + visual["length"] == 6.5

    @pytest.mark.asyncio
    async def test_poll_backoff(self):
        service = FakeRenderService(["rendering"] * 5 + ["done"])
        clock = FakeClock()
        renderer = _renderer(service, clock, poll_interval_s=1.0, poll_backoff=2.0, max_poll_interval_s=5.0)

        await renderer.compile(_options())

        assert clock.sleeps == [1.0, 2.0, 4.0, 5.0, 5.0, 5.0]

    @pytest.mark.asyncio
    async def test_invalid_options_never_submitted(self):
        service = FakeRenderService(["done"])
        renderer = _renderer(service)

        with pytest.raises(CompilationValidationError):
            await renderer.compile(_options(clips=[]))

        assert service.requests == []


# =============================================================================
# Failures
# =============================================================================


class TestRenderFailures:
    @pytest.mark.asyncio
    async def test_failed_status(self):
        service = FakeRenderService(["rendering", "failed"], error="Asset could not be fetched")
        renderer = _renderer(service)

        with pytest.raises(RenderFailedError) as exc_info:
            await renderer.compile(_options())

        assert "Asset could not be fetched" in exc_info.value.message
        assert exc_info.value.step == "render"

    @pytest.mark.asyncio
    async def test_timeout_cancels_job(self):
        service = FakeRenderService(["rendering"])
        clock = FakeClock()
        renderer = _renderer(service, clock, poll_interval_s=2.0, max_wait_s=10.0)

        with pytest.raises(RenderTimeoutError) as exc_info:
            await renderer.compile(_options())

        assert exc_info.value.job_id == "job-1"
        assert exc_info.value.status_code == 504
        assert clock.now == 10.0
        assert service.methods[-1] == "DELETE"
        assert service.requests[-1].url == f"{BASE_URL}/render/job-1"

    @pytest.mark.asyncio
    async def test_cancellation_cancels_job(self):
        service = FakeRenderService(["rendering"])

        async def cancelled_sleep(seconds):
            raise asyncio.CancelledError()

        client = httpx.AsyncClient(transport=httpx.MockTransport(service))
        renderer = RemoteRenderer("key", BASE_URL, client=client, sleep=cancelled_sleep)

        with pytest.raises(asyncio.CancelledError):
            await renderer.compile(_options())

        assert service.methods == ["POST", "DELETE"]

    @pytest.mark.asyncio
    async def test_submit_rejected(self):
        service = FakeRenderService(["done"], submit_status=401)
        renderer = _renderer(service)

        with pytest.raises(RenderFailedError) as exc_info:
            await renderer.compile(_options())

        assert exc_info.value.step == "submit"
        assert "Bad API key" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        service = FakeRenderService(["done"])
        renderer = _renderer(service, api_key="")

        with pytest.raises(RenderFailedError) as exc_info:
            await renderer.compile(_options())

        assert exc_info.value.step == "submit"
        assert service.requests == []

    @pytest.mark.asyncio
    async def test_unknown_status(self):
        service = FakeRenderService(["exploded"])
        renderer = _renderer(service)

        with pytest.raises(RenderFailedError) as exc_info:
            await renderer.compile(_options())

        assert exc_info.value.step == "poll"

    @pytest.mark.asyncio
    async def test_done_without_url(self):
        service = FakeRenderService(["done"], url=None)
        renderer = _renderer(service)

        with pytest.raises(RenderFailedError, match="No video URL"):
            await renderer.compile(_options())


class TestAnimateImage:
    @pytest.mark.asyncio
    async def test_single_clip_edit(self):
        service = FakeRenderService(["done"])
        renderer = _renderer(service)

        output = await renderer.animate_image("https://cdn.test/1.png", 4.0, motion="zoom-out")

        clip = service.edits[0]["timeline"]["tracks"][0]["clips"][0]
        assert clip["length"] == 4.0
        assert clip["effect"] == "zoomOut"
        assert service.edits[0]["output"]["size"] == {"width": 1920, "height": 1080}
        assert output.url == "https://cdn.render.test/out.mp4"
        assert output.duration == 4.0
