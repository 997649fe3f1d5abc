"""
Pytest fixtures for Viral Ads Now backend tests.

Most tests run against an in-memory ProjectStore and fake storage/render
backends, so no database or network is needed.

CI/CD Note:
Tests that need real ffmpeg/ffprobe binaries are marked with requires_ffmpeg
and skipped when the binaries are not on PATH.
"""

import shutil
import subprocess
import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Sequence

import pytest
from PIL import Image

from viralads.exceptions import StorageError
from viralads.models import MediaAsset, Project, Scene
from viralads.render.backends.base import RenderBackend, RenderOutput
from viralads.render.types import VideoCompilationOptions
from viralads.services.project_store import ProjectStore

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def pytest_configure(config):
    """Register custom markers for CI/CD test filtering."""
    config.addinivalue_line(
        "markers",
        "requires_ffmpeg: mark test as requiring ffmpeg and ffprobe binaries (skipped when missing)"
    )


def _ffmpeg_available() -> bool:
    return shutil.which("ffmpeg") is not None and shutil.which("ffprobe") is not None


# Skip decorator for tests that shell out to ffmpeg
requires_ffmpeg = pytest.mark.skipif(
    not _ffmpeg_available(),
    reason="ffmpeg/ffprobe not available"
)


# =============================================================================
# Model builders
# =============================================================================


def make_project(**overrides: Any) -> Project:
    values = {
        "id": uuid.uuid4(),
        "organization_id": uuid.uuid4(),
        "name": "Test Ad",
        "current_step": "compile",
        "settings": None,
        "created_at": BASE_TIME,
    }
    values.update(overrides)
    return Project(**values)


def make_scene(project: Project, scene_number: int, **overrides: Any) -> Scene:
    values = {
        "id": uuid.uuid4(),
        "project_id": project.id,
        "scene_number": scene_number,
        "script_text": f"Scene {scene_number} line",
        "visual_description": f"Scene {scene_number} visual",
        "scene_metadata": None,
        "created_at": BASE_TIME,
    }
    values.update(overrides)
    return Scene(**values)


def make_asset(
    project: Project,
    asset_type: str,
    url: str,
    *,
    scene: Scene | None = None,
    created_offset_s: float = 0,
    metadata: dict[str, Any] | None = None,
) -> MediaAsset:
    return MediaAsset(
        id=uuid.uuid4(),
        project_id=project.id,
        scene_id=scene.id if scene else None,
        type=asset_type,
        url=url,
        asset_metadata=metadata,
        created_at=BASE_TIME + timedelta(seconds=created_offset_s),
    )


# =============================================================================
# Fakes
# =============================================================================


class InMemoryProjectStore(ProjectStore):
    """ProjectStore backed by dicts, with the same ordering guarantees as SQL."""

    def __init__(self) -> None:
        self.projects: dict[uuid.UUID, Project] = {}
        self.scenes: list[Scene] = []
        self.assets: list[MediaAsset] = []
        self.step_updates: list[tuple[uuid.UUID, str]] = []
        self._clock = BASE_TIME + timedelta(hours=1)

    def add_project(self, project: Project) -> Project:
        self.projects[project.id] = project
        return project

    def add_scene(self, scene: Scene) -> Scene:
        self.scenes.append(scene)
        return scene

    def add_asset(self, asset: MediaAsset) -> MediaAsset:
        self.assets.append(asset)
        return asset

    async def get_project(self, project_id: uuid.UUID) -> Project | None:
        return self.projects.get(project_id)

    async def get_scenes_by_project(self, project_id: uuid.UUID) -> list[Scene]:
        return sorted((s for s in self.scenes if s.project_id == project_id), key=lambda s: s.scene_number)

    async def get_media_assets_by_project(
        self, project_id: uuid.UUID, types: Sequence[str] | None = None
    ) -> list[MediaAsset]:
        assets = [a for a in self.assets if a.project_id == project_id and (not types or a.type in types)]
        return sorted(assets, key=lambda a: (a.created_at, str(a.id)))

    async def find_asset_by_hash(
        self, project_id: uuid.UUID, asset_type: str, content_hash: str
    ) -> MediaAsset | None:
        matches = [
            a
            for a in await self.get_media_assets_by_project(project_id, [asset_type])
            if (a.asset_metadata or {}).get("contentHash") == content_hash
        ]
        return matches[-1] if matches else None

    async def create_media_asset(
        self,
        project_id: uuid.UUID,
        asset_type: str,
        url: str,
        *,
        storage_key: str | None = None,
        scene_id: uuid.UUID | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> MediaAsset:
        self._clock += timedelta(seconds=1)
        asset = MediaAsset(
            id=uuid.uuid4(),
            project_id=project_id,
            scene_id=scene_id,
            type=asset_type,
            url=url,
            storage_key=storage_key,
            asset_metadata=metadata,
            created_at=self._clock,
        )
        self.assets.append(asset)
        return asset

    async def update_project_step(self, project_id: uuid.UUID, step: str) -> None:
        self.projects[project_id].current_step = step
        self.step_updates.append((project_id, step))


class FakeStorage:
    """Records uploads instead of writing them anywhere."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.uploads: dict[str, tuple[bytes, str]] = {}

    def get_public_url(self, storage_key: str) -> str:
        return f"https://storage.test/{storage_key}"

    async def upload_bytes(self, storage_key: str, data: bytes, content_type: str) -> str:
        if self.fail:
            raise StorageError("Failed to upload the file to object storage")
        self.uploads[storage_key] = (data, content_type)
        return self.get_public_url(storage_key)


class FakeRenderBackend(RenderBackend):
    """Returns fixed bytes and remembers what it was asked to render."""

    name = "fake"

    def __init__(self, voiceover_duration: float | None = None, data: bytes = b"rendered-video") -> None:
        self.voiceover_duration = voiceover_duration
        self.data = data
        self.compiled: list[VideoCompilationOptions] = []
        self.animated: list[tuple[str, float, str]] = []

    async def compile(self, options: VideoCompilationOptions) -> RenderOutput:
        options.validate()
        self.compiled.append(options)
        width, height = self.output_dimensions(options)
        voiceover = self.voiceover_duration if options.voiceover_url else None
        return RenderOutput(
            format=options.format,
            width=width,
            height=height,
            duration=self.expected_duration(options, voiceover),
            data=self.data,
            backend=self.name,
        )

    async def animate_image(self, image_url, duration, motion="zoom-in", resolution="1080p", aspect_ratio="landscape"):
        self.animated.append((image_url, duration, motion))
        return RenderOutput(format="mp4", width=1920, height=1080, duration=duration, data=self.data, backend=self.name)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def temp_output_dir():
    """Temporary directory for test outputs."""
    with tempfile.TemporaryDirectory(prefix="viralads_test_") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store() -> InMemoryProjectStore:
    return InMemoryProjectStore()


@pytest.fixture
def project(store: InMemoryProjectStore) -> Project:
    return store.add_project(make_project())


@pytest.fixture
def three_scene_project(store: InMemoryProjectStore, project: Project) -> Project:
    """3 scenes, one image each, one 8s voiceover, no music."""
    for number in (1, 2, 3):
        scene = store.add_scene(make_scene(project, number))
        store.add_asset(make_asset(project, "image", f"https://cdn.test/scene{number}.png", scene=scene))
    store.add_asset(make_asset(project, "voiceover", "https://cdn.test/voiceover.mp3", metadata={"duration": 8.0}))
    return project


@pytest.fixture
def fake_storage() -> FakeStorage:
    return FakeStorage()


# =============================================================================
# Media generators (real files for ffmpeg tests)
# =============================================================================


@pytest.fixture
def make_image(temp_output_dir: Path):
    """Write a solid-colour image of the given size and return its path."""
    def _make(name: str, size: tuple[int, int] = (640, 480), color: str = "red") -> Path:
        path = temp_output_dir / name
        Image.new("RGB", size, color).save(path)
        return path
    return _make


@pytest.fixture
def make_tone(temp_output_dir: Path):
    """Write a sine tone of the given length with ffmpeg and return its path."""
    def _make(name: str, seconds: float, frequency: int = 440) -> Path:
        path = temp_output_dir / name
        subprocess.run(
            [
                "ffmpeg", "-y",
                "-f", "lavfi",
                "-i", f"sine=frequency={frequency}:duration={seconds}",
                "-ar", "44100",
                "-ac", "2",
                str(path),
            ],
            capture_output=True,
            check=True,
        )
        return path
    return _make
