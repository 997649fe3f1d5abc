"""
Local media-pipeline compiler.

Pipeline stages:
1. Fetch every source (clips, voiceover, music) into the session work dir
2. Materialize each clip as an H.264 segment at the output size
   (images looped, scaled and padded, with optional motion)
3. Concatenate the segments in scene order (concat demuxer, -c copy)
4. Mix voiceover and music into one audio stem
5. Final encode: burn captions, pad video/audio to the timeline length

Nothing survives the session: the work dir is removed on success,
failure and cancellation alike.
"""

import asyncio
import io
import logging
import os
from typing import Any, Awaitable, Sequence
from urllib.parse import unquote, urlparse

import httpx
from PIL import Image, UnidentifiedImageError

from viralads.config import get_settings
from viralads.exceptions import RenderFailedError
from viralads.render.audio_mixer import AudioMixer
from viralads.render.backends.base import RenderBackend, RenderOutput
from viralads.render.captions import build_srt, clamp_captions, subtitles_force_style
from viralads.render.dimensions import get_output_dimensions, to_even_dimensions
from viralads.render.ffmpeg_engine import FfmpegEngine
from viralads.render.types import VideoClip, VideoCompilationOptions
from viralads.utils.media_info import MediaInfo, get_media_info

logger = logging.getLogger(__name__)

# Zoom bounds for image motion; the factor moves monotonically between them
ZOOM_MIN = 1.0
ZOOM_MAX = 1.5
ZOOM_STEP = 0.0015  # per frame

# Pan motion works on an oversized frame and slides a crop window across it
PAN_OVERSCAN = 1.2

FADE_SECONDS = 0.5

# Every encoded segment carries the same SPS so the concat can stream-copy them.
# Level 5.2 covers the largest preset (4k) at 60fps.
H264_PROFILE = "high"
H264_LEVEL = "5.2"
H264_PROBED_PROFILE = "High"
H264_PROBED_LEVEL = 52

_PIL_EXTENSIONS = {"JPEG": ".jpg", "PNG": ".png", "WEBP": ".webp", "GIF": ".gif", "BMP": ".bmp"}


async def gather_or_cancel(aws: Sequence[Awaitable[Any]]) -> list[Any]:
    """asyncio.gather that cancels the remaining tasks as soon as one fails."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def _sniff_image(data: bytes) -> str:
    """Return a file extension for image bytes; raise ValueError if undecodable."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            image_format = image.format or ""
            image.verify()
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"not a readable image: {e.__class__.__name__}")
    return _PIL_EXTENSIONS.get(image_format, ".png")


def _url_extension(url: str, default: str) -> str:
    _, ext = os.path.splitext(urlparse(url).path)
    return ext.lower() if ext and len(ext) <= 5 else default


class LocalRenderer(RenderBackend):
    """Compiles timelines with a local ffmpeg binary."""

    name = "local"

    def __init__(
        self,
        *,
        ffmpeg_path: str | None = None,
        fps: int | None = None,
        crf: int | None = None,
        preset: str | None = None,
        work_dir: str | None = None,
        fetch_timeout_s: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        mixer: AudioMixer | None = None,
    ):
        settings = get_settings()
        self.ffmpeg_path = ffmpeg_path or settings.ffmpeg_path
        self.fps = fps or settings.render_fps
        self.crf = crf if crf is not None else settings.render_crf
        self.preset = preset or settings.render_preset
        self.work_dir = work_dir or settings.render_work_dir
        self.fetch_timeout_s = fetch_timeout_s or settings.render_fetch_timeout_s
        self.audio_codec = settings.render_audio_codec
        self.audio_bitrate = settings.render_audio_bitrate
        self.mixer = mixer or AudioMixer()
        self._http_client = http_client

    def _new_engine(self) -> FfmpegEngine:
        return FfmpegEngine(self.ffmpeg_path, base_dir=self.work_dir)

    # ========================================================================
    # Fetch
    # ========================================================================

    async def _read_source(self, client: httpx.AsyncClient, url: str, step: str) -> bytes:
        parsed = urlparse(url)
        if parsed.scheme in ("http", "https"):
            try:
                response = await client.get(url)
            except httpx.HTTPError as e:
                raise RenderFailedError(f"Download failed: {e.__class__.__name__}", step=step)
            if response.status_code >= 400:
                raise RenderFailedError(f"Download failed with HTTP {response.status_code}", step=step)
            return response.content

        local_path = unquote(parsed.path) if parsed.scheme == "file" else url
        if parsed.scheme not in ("", "file") or not os.path.isfile(local_path):
            raise RenderFailedError("Source is not a reachable URL or file", step=step)

        def _read() -> bytes:
            with open(local_path, "rb") as f:
                return f.read()

        return await asyncio.to_thread(_read)

    async def fetch(
        self,
        engine: FfmpegEngine,
        client: httpx.AsyncClient,
        url: str,
        name: str,
        *,
        is_image: bool = False,
        default_ext: str = ".mp4",
        step: str,
    ) -> str:
        """Copy one source into the work dir and return its local path."""
        data = await self._read_source(client, url, step)
        if not data:
            raise RenderFailedError("Source is empty", step=step)

        if is_image:
            try:
                ext = await asyncio.to_thread(_sniff_image, data)
            except ValueError as e:
                raise RenderFailedError(str(e), step=step)
        else:
            ext = _url_extension(url, default_ext)

        path = engine.path(f"{name}{ext}")

        def _write() -> None:
            with open(path, "wb") as f:
                f.write(data)

        await asyncio.to_thread(_write)
        logger.debug(f"[LOCAL RENDER] Fetched {name}{ext} ({len(data)} bytes)")
        return path

    # ========================================================================
    # Clip materialization
    # ========================================================================

    def _fit_filter(self, width: int, height: int) -> str:
        """Scale into the frame without cropping, pad the rest with black."""
        return (
            f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
            f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2:color=black,setsar=1"
        )

    def motion_filter(self, motion: str | None, duration: float, width: int, height: int) -> list[str]:
        """Filters (after fit) for an image motion effect."""
        if motion == "zoom-in":
            zoom = f"min({ZOOM_MIN}+{ZOOM_STEP}*on,{ZOOM_MAX})"
        elif motion == "zoom-out":
            zoom = f"max({ZOOM_MAX}-{ZOOM_STEP}*on,{ZOOM_MIN})"
        elif motion in ("pan-left", "pan-right"):
            wide_w, wide_h = to_even_dimensions(round(width * PAN_OVERSCAN), round(height * PAN_OVERSCAN))
            progress = f"min(t/{duration},1)"
            if motion == "pan-left":
                progress = f"(1-{progress})"
            return [
                f"scale={wide_w}:{wide_h}",
                f"crop={width}:{height}:x='(iw-ow)*{progress}':y='(ih-oh)/2'",
            ]
        else:
            return []
        return [
            f"zoompan=z='{zoom}':x='iw/2-(iw/zoom/2)':y='ih/2-(ih/zoom/2)'"
            f":d=1:s={width}x{height}:fps={self.fps}"
        ]

    @staticmethod
    def fade_filter(transition: str | None, duration: float) -> list[str]:
        if transition != "fade":
            return []
        fade = min(FADE_SECONDS, duration / 4)
        return [f"fade=t=in:st=0:d={fade}", f"fade=t=out:st={duration - fade:.3f}:d={fade}"]

    def _timescale_args(self) -> list[str]:
        return ["-video_track_timescale", str(self.fps * 512)]

    def _encode_args(self) -> list[str]:
        return [
            "-c:v", "libx264",
            "-profile:v", H264_PROFILE,
            "-level:v", H264_LEVEL,
            "-preset", self.preset,
            "-crf", str(self.crf),
            "-pix_fmt", "yuv420p",
            "-r", str(self.fps),
            *self._timescale_args(),
        ]

    def build_image_clip_command(
        self, source: str, output: str, clip: VideoClip, width: int, height: int
    ) -> list[str]:
        filters = [
            self._fit_filter(width, height),
            *self.motion_filter(clip.motion, clip.duration, width, height),
            *self.fade_filter(clip.transition, clip.duration),
        ]
        return [
            "-loop", "1",
            "-framerate", str(self.fps),
            "-t", str(clip.duration),
            "-i", source,
            "-vf", ",".join(filters),
            *self._encode_args(),
            "-t", str(clip.duration),
            "-an",
            output,
        ]

    def build_video_clip_command(
        self,
        source: str,
        output: str,
        clip: VideoClip,
        width: int,
        height: int,
        *,
        copy: bool,
        source_duration: float | None = None,
    ) -> list[str]:
        if copy:
            return [
                "-i", source,
                "-t", str(clip.duration),
                "-map", "0:v:0",
                "-c", "copy",
                *self._timescale_args(),
                "-an",
                output,
            ]

        filters = [self._fit_filter(width, height), f"fps={self.fps}"]
        if source_duration is not None and source_duration < clip.duration:
            filters.append(f"tpad=stop_mode=clone:stop_duration={clip.duration - source_duration:.3f}")
        filters.extend(self.fade_filter(clip.transition, clip.duration))
        return [
            "-i", source,
            "-vf", ",".join(filters),
            *self._encode_args(),
            "-t", str(clip.duration),
            "-an",
            output,
        ]

    def _can_copy(self, info: MediaInfo, clip: VideoClip, width: int, height: int) -> bool:
        """A video clip can be trimmed losslessly if it already matches the segment format.

        Profile and level must match the encoder settings too: the concat
        stream-copies every segment, so their SPS have to agree.
        """
        return (
            info.video_codec == "h264"
            and info.video_profile == H264_PROBED_PROFILE
            and info.video_level == H264_PROBED_LEVEL
            and info.pixel_format == "yuv420p"
            and (info.width, info.height) == (width, height)
            and info.fps is not None
            and abs(info.fps - self.fps) < 0.01
            and info.duration is not None
            and info.duration >= clip.duration
            and clip.transition != "fade"
        )

    async def materialize_clip(
        self,
        engine: FfmpegEngine,
        client: httpx.AsyncClient,
        index: int,
        clip: VideoClip,
        width: int,
        height: int,
    ) -> str:
        step = f"clip {index + 1}"
        source = await self.fetch(
            engine, client, clip.url, f"source_{index:03d}", is_image=clip.type == "image", step=f"fetch {step}"
        )
        output = engine.path(f"clip_{index:03d}.mp4")

        if clip.type == "image":
            await engine.run(self.build_image_clip_command(source, output, clip, width, height), step=step)
            return output

        try:
            info = await asyncio.to_thread(get_media_info, source)
        except RuntimeError:
            raise RenderFailedError("Could not read video clip", step=step)
        if self._can_copy(info, clip, width, height):
            await engine.run(self.build_video_clip_command(source, output, clip, width, height, copy=True), step=step)
        else:
            await engine.run(
                self.build_video_clip_command(
                    source, output, clip, width, height, copy=False, source_duration=info.duration
                ),
                step=step,
            )
        return output

    # ========================================================================
    # Concat and final encode
    # ========================================================================

    @staticmethod
    def build_concat_list(clip_paths: Sequence[str]) -> str:
        lines = []
        for path in clip_paths:
            escaped = os.path.basename(path).replace("'", "'\\''")
            lines.append(f"file '{escaped}'")
        return "\n".join(lines) + "\n"

    async def concatenate(self, engine: FfmpegEngine, clip_paths: Sequence[str]) -> str:
        list_path = engine.path("concat_list.txt")
        content = self.build_concat_list(clip_paths)

        def _write() -> None:
            with open(list_path, "w") as f:
                f.write(content)

        await asyncio.to_thread(_write)
        output = engine.path("concat.mp4")
        await engine.run(
            ["-f", "concat", "-safe", "0", "-i", os.path.basename(list_path), "-c", "copy", output],
            step="concat",
        )
        return output

    def build_final_command(
        self,
        video_path: str,
        audio_path: str | None,
        output_path: str,
        *,
        target_duration: float,
        video_duration: float,
        subtitles_file: str | None = None,
        force_style: str | None = None,
    ) -> list[str]:
        filters: list[str] = []
        if subtitles_file:
            subtitle_filter = f"subtitles=filename={subtitles_file}"
            if force_style:
                subtitle_filter += f":force_style='{force_style}'"
            filters.append(subtitle_filter)
        if target_duration > video_duration:
            filters.append(f"tpad=stop_mode=clone:stop_duration={target_duration - video_duration:.3f}")

        cmd = ["-i", video_path]
        if audio_path:
            cmd.extend(["-i", audio_path])
        if filters:
            cmd.extend(["-vf", ",".join(filters)])
        cmd.extend(["-map", "0:v:0"])
        if audio_path:
            cmd.extend(["-map", "1:a:0", "-af", "apad", "-c:a", self.audio_codec, "-b:a", self.audio_bitrate])
        else:
            cmd.append("-an")
        cmd.extend(self._encode_args())
        cmd.extend(["-t", f"{target_duration:.3f}", "-movflags", "+faststart", output_path])
        return cmd

    # ========================================================================
    # Entry points
    # ========================================================================

    def _client(self) -> httpx.AsyncClient:
        return self._http_client or httpx.AsyncClient(timeout=self.fetch_timeout_s, follow_redirects=True)

    async def compile(self, options: VideoCompilationOptions) -> RenderOutput:
        options.validate()
        width, height = self.output_dimensions(options)
        client = self._client()
        logger.info(
            f"[LOCAL RENDER] Compiling {len(options.clips)} clips at {width}x{height} "
            f"({options.resolution} {options.aspect_ratio}, {options.format})"
        )

        try:
            async with self._new_engine() as engine:
                clip_jobs = [
                    self.materialize_clip(engine, client, i, clip, width, height)
                    for i, clip in enumerate(options.clips)
                ]
                audio_jobs = [
                    self.fetch(engine, client, url, name, default_ext=".mp3", step=f"fetch {name}")
                    for name, url in (("voiceover", options.voiceover_url), ("music", options.music_url))
                    if url
                ]
                results = await gather_or_cancel([*clip_jobs, *audio_jobs])
                clip_paths = results[: len(clip_jobs)]
                audio_paths = iter(results[len(clip_jobs):])
                voiceover_path = next(audio_paths) if options.voiceover_url else None
                music_path = next(audio_paths) if options.music_url else None

                video_path = await self.concatenate(engine, clip_paths)
                video_duration = await engine.probe_duration(video_path, step="concat")

                voiceover_duration = None
                if voiceover_path:
                    voiceover_duration = await engine.probe_duration(voiceover_path, step="fetch voiceover")
                target_duration = self.expected_duration(options, voiceover_duration)

                audio_path = await self.mixer.mix(engine, voiceover_path, music_path, options.music_volume)

                subtitles_file = None
                force_style = None
                captions = clamp_captions(options.captions, target_duration)
                if captions:
                    subtitles_file = "subtitles.srt"
                    srt = build_srt(captions)

                    def _write_srt() -> None:
                        with open(engine.path(subtitles_file), "w", encoding="utf-8") as f:
                            f.write(srt)

                    await asyncio.to_thread(_write_srt)
                    force_style = subtitles_force_style(options.caption_style)

                output_path = engine.path(f"final.{options.format}")
                await engine.run(
                    self.build_final_command(
                        video_path,
                        audio_path,
                        output_path,
                        target_duration=target_duration,
                        video_duration=video_duration,
                        subtitles_file=subtitles_file,
                        force_style=force_style,
                    ),
                    step="final encode",
                )
                duration = await engine.probe_duration(output_path, step="final encode")
                data = await asyncio.to_thread(_read_file, output_path)
        finally:
            if self._http_client is None:
                await client.aclose()

        logger.info(f"[LOCAL RENDER] Done: {duration:.2f}s, {len(data)} bytes")
        return RenderOutput(
            format=options.format,
            width=width,
            height=height,
            duration=duration,
            data=data,
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
        """Render one image with a motion effect; same filters as compile."""
        if duration <= 0:
            raise ValueError("duration must be positive")
        width, height = to_even_dimensions(*get_output_dimensions(resolution, aspect_ratio))
        clip = VideoClip(type="image", url=image_url, duration=duration, motion=motion)
        client = self._client()
        try:
            async with self._new_engine() as engine:
                output = await self.materialize_clip(engine, client, 0, clip, width, height)
                data = await asyncio.to_thread(_read_file, output)
        finally:
            if self._http_client is None:
                await client.aclose()

        logger.info(f"[LOCAL RENDER] Animated image ({motion}, {duration}s)")
        return RenderOutput(format="mp4", width=width, height=height, duration=duration, data=data, backend=self.name)


def _read_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()
