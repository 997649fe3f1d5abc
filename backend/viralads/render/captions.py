"""
Caption cue generation and rendering.

Cues are derived from scene script text and per-scene timing, then
rendered into whatever the active backend consumes:
- an SRT document burned in through the FFmpeg subtitles filter
- title-clip descriptors for the remote edit API

Overlapping cues are passed through untouched; callers own that policy.
"""

import re
from typing import Any, Sequence

from viralads.render.types import Caption, CaptionStyle

DEFAULT_FONT = "montserrat"
DEFAULT_TEXT_COLOR = "#ffffff"
DEFAULT_BACKGROUND = "rgba(0,0,0,0.5)"
DEFAULT_FONT_SIZE = 24

# Distance kept between the caption block and the frame edge, on top of the font size
CAPTION_EDGE_PADDING = 20

# ASS numpad alignment (bottom/middle/top, horizontally centred)
_ASS_ALIGNMENT = {"bottom": 2, "center": 5, "top": 8}

_RGBA_RE = re.compile(r"rgba?\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*(?:,\s*([\d.]+)\s*)?\)")

# Anything else would be parsed by the filtergraph (quotes, separators, escapes)
_FONT_NAME_UNSAFE_RE = re.compile(r"[^A-Za-z0-9 _-]")


def build_caption_cues(texts: Sequence[str | None], durations: Sequence[float]) -> list[Caption]:
    """Lay one cue per scene back to back on the timeline.

    Scenes without text still advance the clock but produce no cue.
    """
    if len(texts) != len(durations):
        raise ValueError("texts and durations must have the same length")

    cues: list[Caption] = []
    current = 0.0
    for text, duration in zip(texts, durations):
        if text and text.strip():
            cues.append(Caption(text=text.strip(), start=current, duration=duration))
        current += duration
    return cues


def clamp_captions(captions: Sequence[Caption], total_duration: float) -> list[Caption]:
    """Trim cues so none runs past the end of the timeline."""
    clamped: list[Caption] = []
    for caption in captions:
        if caption.start >= total_duration:
            continue
        duration = min(caption.duration, total_duration - caption.start)
        clamped.append(Caption(text=caption.text, start=caption.start, duration=duration))
    return clamped


# ============================================================================
# SRT (local compiler)
# ============================================================================


def format_srt_time(seconds: float) -> str:
    """Format seconds as an SRT timestamp (HH:MM:SS,mmm)."""
    total_ms = int(round(seconds * 1000))
    hours, remainder = divmod(total_ms, 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    secs, millis = divmod(remainder, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def build_srt(captions: Sequence[Caption]) -> str:
    """Render cues as a numbered SRT document, cues spanning [start, start + duration)."""
    blocks = []
    for index, caption in enumerate(captions, start=1):
        start = format_srt_time(caption.start)
        end = format_srt_time(caption.start + caption.duration)
        blocks.append(f"{index}\n{start} --> {end}\n{caption.text}\n")
    return "\n".join(blocks)


def color_to_ass(color: str | None, default: str = "&H00FFFFFF") -> str:
    """Convert #RRGGBB, #RRGGBBAA or rgba() to an ASS &HAABBGGRR colour.

    ASS alpha is inverted: 00 is opaque, FF is fully transparent.
    """
    if not color:
        return default

    match = _RGBA_RE.fullmatch(color.strip())
    if match:
        r, g, b = (int(match.group(i)) for i in (1, 2, 3))
        opacity = float(match.group(4)) if match.group(4) is not None else 1.0
        alpha = 255 - round(max(0.0, min(opacity, 1.0)) * 255)
        return f"&H{alpha:02X}{b:02X}{g:02X}{r:02X}"

    hex_value = color.strip().lstrip("#")
    if len(hex_value) == 3:
        hex_value = "".join(ch * 2 for ch in hex_value)
    if len(hex_value) in (6, 8) and all(ch in "0123456789abcdefABCDEF" for ch in hex_value):
        r, g, b = hex_value[0:2], hex_value[2:4], hex_value[4:6]
        alpha = 0
        if len(hex_value) == 8:
            alpha = 255 - int(hex_value[6:8], 16)
        return f"&H{alpha:02X}{b}{g}{r}".upper()

    return default


def caption_margin(position: str, font_size: int) -> tuple[int, int]:
    """Return (ASS alignment, vertical margin in pixels) for a caption position."""
    alignment = _ASS_ALIGNMENT.get(position, _ASS_ALIGNMENT["bottom"])
    if position == "center":
        return alignment, 0
    return alignment, font_size + CAPTION_EDGE_PADDING


def safe_font_name(font: str | None) -> str | None:
    """Strip a font name down to characters the filtergraph treats literally."""
    if not font:
        return None
    cleaned = _FONT_NAME_UNSAFE_RE.sub("", font).strip()
    return cleaned or None


def subtitles_force_style(style: CaptionStyle, default_font_size: int = DEFAULT_FONT_SIZE) -> str:
    """Build the force_style argument for the FFmpeg subtitles filter.

    The result is embedded in a single-quoted filter option, so every
    free-text value must be reduced by safe_font_name first.
    """
    font_size = int(style.font_size or default_font_size)
    alignment, margin_v = caption_margin(style.position, font_size)
    parts = []
    font = safe_font_name(style.font)
    if font:
        parts.append(f"FontName={font}")
    parts.extend(
        [
            f"FontSize={font_size}",
            f"PrimaryColour={color_to_ass(style.color or DEFAULT_TEXT_COLOR)}",
            f"BackColour={color_to_ass(style.background_color or DEFAULT_BACKGROUND, default='&H80000000')}",
            "BorderStyle=3",  # opaque box behind the text
            f"Alignment={alignment}",
            f"MarginV={margin_v}",
        ]
    )
    return ",".join(parts)


# ============================================================================
# Title clips (remote renderer)
# ============================================================================


def title_size(font_size: int | None) -> str:
    """Map a pixel font size onto the edit API's named title sizes."""
    if font_size is None:
        return "medium"
    if font_size <= 12:
        return "xx-small"
    if font_size <= 16:
        return "x-small"
    if font_size <= 20:
        return "small"
    if font_size <= 28:
        return "medium"
    if font_size <= 36:
        return "large"
    if font_size <= 48:
        return "x-large"
    return "xx-large"


def build_title_clips(captions: Sequence[Caption], style: CaptionStyle) -> list[dict[str, Any]]:
    """One title-clip descriptor per cue, same timing as the cue."""
    return [
        {
            "asset": {
                "type": "title",
                "text": caption.text,
                "style": style.font or DEFAULT_FONT,
                "size": title_size(style.font_size),
                "color": style.color or DEFAULT_TEXT_COLOR,
                "background": style.background_color or DEFAULT_BACKGROUND,
                "position": style.position,
            },
            "start": caption.start,
            "length": caption.duration,
        }
        for caption in captions
    ]
