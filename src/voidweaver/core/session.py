"""
Session persistence.

Each CLI invocation is a separate process, so the modules, settings and both
histories are saved to a JSON file between commands.
"""

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from voidweaver.core.config import Config
from voidweaver.core.history import (
    IMAGE_HISTORY_CAPACITY,
    REFINEMENT_HISTORY_CAPACITY,
    HistoryRing,
)
from voidweaver.core.models import EngineType, GeneratedImage
from voidweaver.core.schemas import ModulePayload, to_modules
from voidweaver.core.state import AppState, GenerationSettings
from voidweaver.core.store import ModuleStore
from voidweaver.logging_config import get_logger
from voidweaver.utils.exceptions import ConfigurationError

logger = get_logger(__name__)

SESSION_VERSION = 1


class SettingsSnapshot(BaseModel):
    engine: EngineType = EngineType.NOVELAI
    resolution: str = "832x1216"
    steps: int = 28
    scale: float = 6.0
    img2img: bool = False
    strength: float = 0.7
    deep_thinking: bool = False


class ImageSnapshot(BaseModel):
    image_data: str
    thinking_log: list[str] = Field(default_factory=list)
    sketch_image: str | None = None
    prompt: str | None = None
    timestamp: float = 0.0


class SessionSnapshot(BaseModel):
    version: int = SESSION_VERSION
    settings: SettingsSnapshot = Field(default_factory=SettingsSnapshot)
    modules: list[ModulePayload] = Field(default_factory=list)
    raw_prompt: str = ""
    source_image: str | None = None
    images: list[ImageSnapshot] = Field(default_factory=list)
    image_index: int = -1
    refinements: list[str] = Field(default_factory=list)
    refinement_index: int = -1


def snapshot_state(state: AppState) -> SessionSnapshot:
    s = state.settings
    return SessionSnapshot(
        settings=SettingsSnapshot(
            engine=s.engine,
            resolution=s.resolution,
            steps=s.steps,
            scale=s.scale,
            img2img=s.img2img,
            strength=s.strength,
            deep_thinking=s.deep_thinking,
        ),
        modules=[ModulePayload.from_module(m) for m in state.store.modules],
        raw_prompt=state.raw_prompt,
        source_image=state.source_image,
        images=[
            ImageSnapshot(
                image_data=img.image_data,
                thinking_log=list(img.thinking_log),
                sketch_image=img.sketch_image,
                prompt=img.prompt,
                timestamp=img.timestamp,
            )
            for img in state.images
        ],
        image_index=state.images.index,
        refinements=list(state.refinements),
        refinement_index=state.refinements.index,
    )


def restore_state(snapshot: SessionSnapshot) -> AppState:
    s = snapshot.settings
    images = [
        GeneratedImage(
            image_data=img.image_data,
            thinking_log=tuple(img.thinking_log),
            sketch_image=img.sketch_image,
            prompt=img.prompt,
            timestamp=img.timestamp,
        )
        for img in snapshot.images
    ]
    return AppState(
        settings=GenerationSettings(
            engine=s.engine,
            resolution=s.resolution,
            steps=s.steps,
            scale=s.scale,
            img2img=s.img2img,
            strength=s.strength,
            deep_thinking=s.deep_thinking,
        ),
        store=ModuleStore(to_modules(snapshot.modules)),
        images=HistoryRing(IMAGE_HISTORY_CAPACITY, images, snapshot.image_index),
        refinements=HistoryRing(
            REFINEMENT_HISTORY_CAPACITY, snapshot.refinements, snapshot.refinement_index
        ),
        raw_prompt=snapshot.raw_prompt,
        source_image=snapshot.source_image,
    )


def save_session(state: AppState, path: Path) -> None:
    """Write the state to path as JSON, creating parent directories."""
    snapshot = snapshot_state(state)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(snapshot.model_dump_json(indent=2), encoding="utf-8")
    logger.debug("Saved session path=%s images=%d", path, len(snapshot.images))


def load_session(path: Path, config: Config | None = None) -> AppState:
    """
    Load a session saved by save_session.

    A missing file yields a fresh state with settings from config.

    Raises:
        ConfigurationError: If the file cannot be read or is not a valid session
    """
    if not path.exists():
        logger.debug("No session at %s; starting fresh", path)
        return AppState(settings=GenerationSettings.from_config(config))
    try:
        snapshot = SessionSnapshot.model_validate_json(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"Failed to read session file {path}: {e}") from e
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"Invalid session file {path}: {e.error_count()} validation error(s)"
        ) from e
    if snapshot.version != SESSION_VERSION:
        raise ConfigurationError(
            f"Unsupported session version {snapshot.version} in {path}."
        )
    return restore_state(snapshot)
