"""Resolution and aspect-ratio presets."""

import math

# Landscape base dimensions for each resolution preset
RESOLUTIONS: dict[str, tuple[int, int]] = {
    "480p": (854, 480),
    "720p": (1280, 720),
    "1080p": (1920, 1080),
    "4k": (3840, 2160),
}

ASPECT_RATIOS: dict[str, tuple[int, int]] = {
    "portrait": (9, 16),
    "landscape": (16, 9),
    "square": (1, 1),
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def get_output_dimensions(resolution: str = "1080p", aspect_ratio: str = "landscape") -> tuple[int, int]:
    """Return (width, height) for a resolution preset and aspect ratio.

    Landscape uses the preset as-is. Portrait keeps the preset height and
    derives a 9:16 width; square uses the shorter side for both.
    """
    if resolution not in RESOLUTIONS:
        raise ValueError(f"Unknown resolution: {resolution}")
    width, height = RESOLUTIONS[resolution]

    if aspect_ratio == "landscape":
        return width, height
    if aspect_ratio == "portrait":
        return _round_half_up(height * 9 / 16), height
    if aspect_ratio == "square":
        size = min(width, height)
        return size, size
    raise ValueError(f"Unknown aspect ratio: {aspect_ratio}")


def to_even_dimensions(width: int, height: int) -> tuple[int, int]:
    """Round odd sides up to the next even number (yuv420p needs even sizes)."""
    return width + width % 2, height + height % 2
