"""
Video requirements for the ad platforms a compiled video can target.

Used to pick compile options for a platform and to check a finished
video against the platform's limits.
"""

from typing import Literal, TypedDict

VideoPlatform = Literal[
    "shopify", "etsy", "tiktok", "youtube", "instagram", "facebook", "amazon", "pinterest"
]


class LengthSpec(TypedDict):
    min: float  # seconds
    max: float
    recommended: list[float]


class AspectRatioSpec(TypedDict):
    ratio: str  # "9:16", "16:9", "1:1", "4:5", "4:3", "1.91:1"
    preferred: bool


class PlatformSpec(TypedDict, total=False):
    name: str
    lengths: LengthSpec
    formats: list[str]
    aspect_ratios: list[AspectRatioSpec]
    file_size_max: int  # bytes
    min_resolution: tuple[int, int]
    recommended_resolution: tuple[int, int]
    audio_required: bool
    codec: str


_MB = 1024 * 1024
_GB = 1024 * _MB

PLATFORM_SPECS: dict[str, PlatformSpec] = {
    "shopify": {
        "name": "Shopify",
        "lengths": {"min": 1, "max": 60, "recommended": [15, 30, 60]},
        "formats": ["mp4", "mov"],
        "aspect_ratios": [
            {"ratio": "16:9", "preferred": True},
            {"ratio": "9:16", "preferred": False},
            {"ratio": "1:1", "preferred": False},
        ],
        "file_size_max": 1 * _GB,
        "min_resolution": (854, 480),
        "recommended_resolution": (4096, 2160),
        "codec": "h264",
    },
    "etsy": {
        "name": "Etsy",
        "lengths": {"min": 5, "max": 15, "recommended": [5, 10, 15]},
        "formats": ["mp4", "mov", "flv"],
        "aspect_ratios": [
            {"ratio": "4:3", "preferred": False},
            {"ratio": "9:16", "preferred": True},
        ],
        "file_size_max": 100 * _MB,
        "min_resolution": (1000, 750),
        "recommended_resolution": (1080, 1920),
    },
    "tiktok": {
        "name": "TikTok",
        "lengths": {"min": 5, "max": 60, "recommended": [9, 15]},
        "formats": ["mp4", "mov", "mpeg", "3gp"],
        "aspect_ratios": [
            {"ratio": "9:16", "preferred": True},
            {"ratio": "1:1", "preferred": False},
            {"ratio": "16:9", "preferred": False},
        ],
        "file_size_max": 500 * _MB,
        "min_resolution": (540, 960),
        "recommended_resolution": (1080, 1920),
        "audio_required": True,
        "codec": "h264",
    },
    "youtube": {
        "name": "YouTube",
        "lengths": {"min": 6, "max": 600, "recommended": [6, 15, 20]},
        "formats": ["mp4", "mov", "avi", "flv", "webm", "mpeg"],
        "aspect_ratios": [
            {"ratio": "16:9", "preferred": True},
            {"ratio": "9:16", "preferred": False},
            {"ratio": "1:1", "preferred": False},
            {"ratio": "4:3", "preferred": False},
            {"ratio": "4:5", "preferred": False},
        ],
        "file_size_max": 256 * _GB,
        "min_resolution": (854, 480),
        "recommended_resolution": (1920, 1080),
        "codec": "h264",
    },
    "instagram": {
        "name": "Instagram",
        "lengths": {"min": 1, "max": 60, "recommended": [1, 15]},
        "formats": ["mp4", "mov"],
        "aspect_ratios": [
            {"ratio": "4:5", "preferred": True},
            {"ratio": "9:16", "preferred": True},
            {"ratio": "1:1", "preferred": False},
            {"ratio": "1.91:1", "preferred": False},
        ],
        "file_size_max": 4 * _GB,
        "min_resolution": (600, 600),
        "recommended_resolution": (1080, 1920),
        "codec": "h264",
    },
    "facebook": {
        "name": "Facebook",
        "lengths": {"min": 1, "max": 14460, "recommended": [5, 15, 30, 120]},
        "formats": ["mp4", "mov", "gif"],
        "aspect_ratios": [
            {"ratio": "1:1", "preferred": True},
            {"ratio": "4:5", "preferred": True},
        ],
        "file_size_max": 4 * _GB,
        "min_resolution": (120, 120),
        "recommended_resolution": (1440, 1440),
        "codec": "h264",
    },
    "amazon": {
        "name": "Amazon",
        "lengths": {"min": 1, "max": 180, "recommended": [15]},
        "formats": ["mp4", "mov"],
        "aspect_ratios": [{"ratio": "16:9", "preferred": True}],
        "file_size_max": 500 * _MB,
        "min_resolution": (854, 480),
        "recommended_resolution": (1920, 1080),
        "codec": "h264",
    },
    "pinterest": {
        "name": "Pinterest",
        "lengths": {"min": 4, "max": 900, "recommended": [6, 15]},
        "formats": ["mp4", "mov", "m4v"],
        "aspect_ratios": [
            {"ratio": "9:16", "preferred": True},
            {"ratio": "1:1", "preferred": False},
        ],
        "file_size_max": 2 * _GB,
        "min_resolution": (600, 600),
        "recommended_resolution": (1080, 1920),
    },
}

SUPPORTED_PLATFORMS: tuple[str, ...] = tuple(PLATFORM_SPECS)


def get_platform_spec(platform: str) -> PlatformSpec:
    if platform not in PLATFORM_SPECS:
        raise ValueError(f"Unknown platform: {platform}")
    return PLATFORM_SPECS[platform]


def preferred_aspect_ratio(spec: PlatformSpec) -> str:
    ratios = spec["aspect_ratios"]
    return next((r["ratio"] for r in ratios if r["preferred"]), ratios[0]["ratio"])


def options_for_platform(platform: str) -> tuple[str, str, str]:
    """Map a platform onto (resolution, aspect_ratio, format) compile options.

    9:16 becomes portrait, 16:9 and 1.91:1 landscape, anything else
    square. The resolution preset comes from the height of the
    recommended size; mp4 is preferred whenever the platform takes it.
    """
    spec = get_platform_spec(platform)

    ratio = preferred_aspect_ratio(spec)
    if ratio == "9:16":
        aspect_ratio = "portrait"
    elif ratio in ("16:9", "1.91:1"):
        aspect_ratio = "landscape"
    else:
        aspect_ratio = "square"

    _, height = spec["recommended_resolution"]
    if height >= 2160:
        resolution = "4k"
    elif height >= 1080:
        resolution = "1080p"
    elif height >= 720:
        resolution = "720p"
    else:
        resolution = "480p"

    output_format = "mp4" if "mp4" in spec["formats"] else "mov"
    return resolution, aspect_ratio, output_format


def validate_video_for_platform(
    platform: str,
    *,
    duration: float | None = None,
    size: int | None = None,
    width: int | None = None,
    height: int | None = None,
    format: str | None = None,
) -> tuple[bool, list[str]]:
    """Check a rendered video against a platform's limits; returns (valid, errors)."""
    spec = get_platform_spec(platform)
    errors: list[str] = []

    if duration is not None:
        lengths = spec["lengths"]
        if duration < lengths["min"]:
            errors.append(f"Video duration ({duration:g}s) is below minimum ({lengths['min']:g}s)")
        if duration > lengths["max"]:
            errors.append(f"Video duration ({duration:g}s) exceeds maximum ({lengths['max']:g}s)")

    if size is not None and size > spec["file_size_max"]:
        errors.append(
            f"File size ({size / _MB:.2f}MB) exceeds maximum ({spec['file_size_max'] / _MB:.2f}MB)"
        )

    if width is not None and height is not None and "min_resolution" in spec:
        min_w, min_h = spec["min_resolution"]
        if width < min_w or height < min_h:
            errors.append(f"Resolution ({width}x{height}) is below minimum ({min_w}x{min_h})")

    if format is not None:
        normalized = format.lower().lstrip(".")
        if normalized not in spec["formats"]:
            errors.append(
                f"Format ({format}) is not supported. Supported formats: {', '.join(spec['formats'])}"
            )

    return not errors, errors
