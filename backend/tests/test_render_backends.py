"""
Tests for backend selection and the shared backend contract.
"""

import pytest

from viralads.config import Settings
from viralads.render.backends import LocalRenderer, RemoteRenderer, RenderStatus, create_render_backend
from viralads.render.backends.base import RenderBackend, RenderOutput
from viralads.render.types import VideoClip, VideoCompilationOptions


def _options(*durations: float, **kwargs) -> VideoCompilationOptions:
    return VideoCompilationOptions(clips=[VideoClip(type="image", url="x.png", duration=d) for d in durations], **kwargs)


class TestCreateRenderBackend:
    def test_local_by_default(self):
        backend = create_render_backend(Settings(render_backend="local", render_fps=30))

        assert isinstance(backend, LocalRenderer)
        assert backend.fps == 30

    @pytest.mark.asyncio
    async def test_remote(self):
        backend = create_render_backend(
            Settings(render_backend="remote", shotstack_api_key="k", render_max_wait_s=120, render_poll_backoff=1.5)
        )

        assert isinstance(backend, RemoteRenderer)
        assert backend.max_wait_s == 120
        assert backend.poll_backoff == 1.5
        await backend.aclose()


class TestBackendContract:
    def test_expected_duration_clips_only(self):
        assert RenderBackend.expected_duration(_options(2.0, 3.0)) == 5.0

    def test_expected_duration_longer_voiceover(self):
        options = _options(2.0, 3.0, voiceover_url="vo.mp3")
        assert RenderBackend.expected_duration(options, voiceover_duration=8.0) == 8.0

    def test_expected_duration_shorter_voiceover(self):
        options = _options(2.0, 3.0, voiceover_url="vo.mp3")
        assert RenderBackend.expected_duration(options, voiceover_duration=4.0) == 5.0

    def test_expected_duration_from_hint(self):
        options = _options(2.0, 3.0, voiceover_url="vo.mp3", voiceover_duration=7.0)
        assert RenderBackend.expected_duration(options) == 7.0

    def test_measured_duration_beats_hint(self):
        options = _options(2.0, 3.0, voiceover_url="vo.mp3", voiceover_duration=7.0)
        assert RenderBackend.expected_duration(options, voiceover_duration=6.0) == 6.0

    def test_hint_ignored_without_voiceover(self):
        assert RenderBackend.expected_duration(_options(2.0, 3.0, voiceover_duration=7.0)) == 5.0

    def test_terminal_statuses(self):
        assert RenderStatus.DONE.is_terminal
        assert RenderStatus.FAILED.is_terminal
        assert not RenderStatus.RENDERING.is_terminal

    def test_output_needs_url_or_data(self):
        with pytest.raises(ValueError):
            RenderOutput(format="mp4", width=1, height=1, duration=1.0)

    def test_content_type(self):
        assert RenderOutput(format="mov", width=1, height=1, duration=1.0, data=b"x").content_type == "video/quicktime"
        assert RenderOutput(format="mp4", width=1, height=1, duration=1.0, data=b"x").content_type == "video/mp4"


class TestOptionsValidation:
    def test_negative_clip_duration(self):
        from viralads.exceptions import CompilationValidationError

        with pytest.raises(CompilationValidationError) as exc_info:
            _options(2.0, -1.0).validate()

        assert exc_info.value.location.field == "clips[1].duration"
        assert exc_info.value.status_code == 422

    def test_unknown_clip_type(self):
        from viralads.exceptions import CompilationValidationError

        options = VideoCompilationOptions(clips=[VideoClip(type="gif", url="x.gif", duration=1.0)])
        with pytest.raises(CompilationValidationError, match="unknown type"):
            options.validate()

    def test_non_positive_voiceover_duration(self):
        from viralads.exceptions import CompilationValidationError

        with pytest.raises(CompilationValidationError) as exc_info:
            _options(2.0, voiceover_url="vo.mp3", voiceover_duration=0.0).validate()

        assert exc_info.value.location.field == "voiceover_duration"

    def test_caption_before_zero(self):
        from viralads.exceptions import CompilationValidationError
        from viralads.render.types import Caption

        options = _options(2.0)
        options.captions = [Caption("Early", -0.5, 1.0)]
        with pytest.raises(CompilationValidationError):
            options.validate()
