from viralads.config import Settings, get_settings
from viralads.render.backends.base import RenderBackend, RenderJob, RenderOutput, RenderStatus
from viralads.render.backends.local import LocalRenderer
from viralads.render.backends.remote import RemoteRenderer


def create_render_backend(settings: Settings | None = None) -> RenderBackend:
    """Build the render backend selected by settings.render_backend."""
    settings = settings or get_settings()
    if settings.render_backend == "remote":
        return RemoteRenderer(
            settings.shotstack_api_key,
            settings.shotstack_base_url,
            poll_interval_s=settings.render_poll_interval_s,
            poll_backoff=settings.render_poll_backoff,
            max_poll_interval_s=settings.render_poll_max_interval_s,
            max_wait_s=settings.render_max_wait_s,
        )
    return LocalRenderer(
        ffmpeg_path=settings.ffmpeg_path,
        fps=settings.render_fps,
        crf=settings.render_crf,
        preset=settings.render_preset,
        work_dir=settings.render_work_dir,
        fetch_timeout_s=settings.render_fetch_timeout_s,
    )


__all__ = [
    "LocalRenderer",
    "RemoteRenderer",
    "RenderBackend",
    "RenderJob",
    "RenderOutput",
    "RenderStatus",
    "create_render_backend",
]
