"""Loads a project and selects the assets a compile will use."""

import logging
import uuid
from dataclasses import dataclass, field

from viralads.exceptions import NoImagesError, NoScenesError, ProjectNotFoundError
from viralads.models.media_asset import MediaAsset
from viralads.models.project import Project
from viralads.models.scene import Scene
from viralads.render.timeline import latest_asset
from viralads.services.project_store import ProjectStore

logger = logging.getLogger(__name__)

VISUAL_TYPES = ("image", "video_clip")


@dataclass
class CompilationInputs:
    project: Project
    scenes: list[Scene]
    visual_assets: list[MediaAsset] = field(default_factory=list)
    voiceover: MediaAsset | None = None
    music: MediaAsset | None = None

    @property
    def voiceover_url(self) -> str | None:
        return self.voiceover.url if self.voiceover else None

    @property
    def music_url(self) -> str | None:
        return self.music.url if self.music else None


async def resolve_compilation_inputs(store: ProjectStore, project_id: uuid.UUID) -> CompilationInputs:
    """
    Gather everything the timeline needs for a project.

    Per-scene visual choice happens in the timeline builder; this only
    checks that the project has scenes and at least one visual, and picks
    the latest voiceover and music.

    Raises:
        ProjectNotFoundError: Unknown project
        NoScenesError: Project has no scenes yet
        NoImagesError: Project has no image or video clip assets yet
    """
    project = await store.get_project(project_id)
    if project is None:
        raise ProjectNotFoundError(str(project_id))

    scenes = await store.get_scenes_by_project(project_id)
    if not scenes:
        raise NoScenesError()

    assets = await store.get_media_assets_by_project(project_id)
    visual_assets = [a for a in assets if a.type in VISUAL_TYPES]
    if not visual_assets:
        raise NoImagesError()

    voiceover = latest_asset(a for a in assets if a.type == "voiceover")
    music = latest_asset(a for a in assets if a.type == "music")

    logger.info(
        f"[RESOLVE] Project {project_id}: {len(scenes)} scenes, {len(visual_assets)} visuals, "
        f"voiceover={voiceover is not None}, music={music is not None}"
    )
    return CompilationInputs(
        project=project,
        scenes=scenes,
        visual_assets=visual_assets,
        voiceover=voiceover,
        music=music,
    )
