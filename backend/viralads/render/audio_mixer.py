"""
Audio mixing module using FFmpeg.

This module handles:
- Voiceover at full volume
- Background music attenuated by music_volume
- The mix duration policy: when both are present the mix stops with the
  voiceover (amix duration=first); music never extends it
"""

import logging
from dataclasses import dataclass

from viralads.config import get_settings
from viralads.render.ffmpeg_engine import FfmpegEngine

logger = logging.getLogger(__name__)


@dataclass
class AudioStemData:
    """One audio input for mixing."""

    track_type: str  # voiceover, music
    file_path: str
    volume: float = 1.0


class AudioMixer:
    """
    FFmpeg-based voiceover/music mixer.

    Produces a single audio stem in the work dir, or nothing when the
    timeline has no audio at all.
    """

    def __init__(
        self,
        sample_rate: int | None = None,
        bitrate: str | None = None,
        codec: str | None = None,
    ):
        settings = get_settings()
        self.sample_rate = sample_rate or settings.render_audio_sample_rate
        self.bitrate = bitrate or settings.render_audio_bitrate
        self.codec = codec or settings.render_audio_codec

    @staticmethod
    def stems(
        voiceover_path: str | None,
        music_path: str | None,
        music_volume: float,
    ) -> list[AudioStemData]:
        """Voiceover first: amix duration=first follows input order."""
        stems: list[AudioStemData] = []
        if voiceover_path:
            stems.append(AudioStemData("voiceover", voiceover_path, 1.0))
        if music_path:
            stems.append(AudioStemData("music", music_path, music_volume))
        return stems

    @staticmethod
    def build_filter(stems: list[AudioStemData]) -> str:
        """filter_complex producing [aout] from the given stems."""
        if not stems:
            raise ValueError("No audio stems to mix")

        parts = [f"[{i}:a]volume={stem.volume}[{stem.track_type}]" for i, stem in enumerate(stems)]
        if len(stems) == 1:
            parts[0] = parts[0].replace(f"[{stems[0].track_type}]", "[aout]")
            return ";".join(parts)

        mix_inputs = "".join(f"[{stem.track_type}]" for stem in stems)
        parts.append(f"{mix_inputs}amix=inputs={len(stems)}:duration=first:dropout_transition=0:normalize=0[aout]")
        return ";".join(parts)

    def build_mix_command(self, stems: list[AudioStemData], output_path: str) -> list[str]:
        inputs: list[str] = []
        for stem in stems:
            inputs.extend(["-i", stem.file_path])
        return [
            *inputs,
            "-filter_complex",
            self.build_filter(stems),
            "-map",
            "[aout]",
            "-c:a",
            self.codec,
            "-b:a",
            self.bitrate,
            "-ar",
            str(self.sample_rate),
            output_path,
        ]

    async def mix(
        self,
        engine: FfmpegEngine,
        voiceover_path: str | None,
        music_path: str | None,
        music_volume: float,
    ) -> str | None:
        """Write the mixed stem into the engine's work dir; None if there is no audio."""
        stems = self.stems(voiceover_path, music_path, music_volume)
        if not stems:
            logger.info("[LOCAL RENDER] No audio sources, output is video-only")
            return None

        output_path = engine.path("audio_mix.m4a")
        logger.info(f"[LOCAL RENDER] Mixing {len(stems)} audio stem(s): {[s.track_type for s in stems]}")
        await engine.run(self.build_mix_command(stems, output_path), step="audio mix")
        return output_path
