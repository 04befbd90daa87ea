"""
Data model for the prompt editor.

Tags, modules and history entries are immutable values. Every edit produces
a new object, so consumers can detect change by identity.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum

MIN_WEIGHT = 0.5
MAX_WEIGHT = 5.0
DEFAULT_WEIGHT = 1.0
WEIGHT_STEP = 0.5

# Weights closer than this to DEFAULT_WEIGHT are emitted without annotation
WEIGHT_EPSILON = 0.01


class ModuleName(str, Enum):
    """The eight prompt dimensions, in canonical order."""

    STYLE = "style"
    SUBJECT = "subject"
    POSE = "pose"
    COSTUME = "costume"
    BACKGROUND = "background"
    COMPOSITION = "composition"
    ATMOSPHERE = "atmosphere"
    EXTRA = "extra"

    @classmethod
    def parse(cls, raw: "ModuleName | str | None") -> "ModuleName | None":
        """
        Normalize an externally supplied module name.

        Names from the analysis and refinement services are matched
        case-insensitively after stripping whitespace. Unknown names
        return None rather than raising.
        """
        if raw is None:
            return None
        if isinstance(raw, ModuleName):
            return raw
        key = str(raw).strip().lower()
        for member in cls:
            if member.value == key:
                return member
        return None


class EngineType(str, Enum):
    """Image generation engines understood by the backend."""

    NOVELAI = "novelai"
    GOOGLE_IMAGEN = "google-imagen"

    @classmethod
    def parse(cls, raw: "EngineType | str") -> "EngineType | None":
        if isinstance(raw, EngineType):
            return raw
        key = str(raw).strip().lower().replace("_", "-")
        for member in cls:
            if member.value == key:
                return member
        return None


def new_tag_id() -> str:
    """Mint a unique tag id."""
    return uuid.uuid4().hex


def clamp_weight(weight: float) -> float:
    """Clamp a weight into [MIN_WEIGHT, MAX_WEIGHT]."""
    return max(MIN_WEIGHT, min(MAX_WEIGHT, weight))


def is_default_weight(weight: float) -> bool:
    """True when the weight is close enough to 1.0 to render without annotation."""
    return abs(weight - DEFAULT_WEIGHT) <= WEIGHT_EPSILON


@dataclass(frozen=True)
class Tag:
    """A single weighted text fragment belonging to a module."""

    id: str
    text: str
    weight: float = DEFAULT_WEIGHT
    hidden: bool = False  # omitted from the editor view, still sent for generation


@dataclass(frozen=True)
class Module:
    """One prompt dimension and its ordered tags."""

    name: ModuleName
    display_name: str
    locked: bool = False  # locked modules are never changed by refinement
    tags: tuple[Tag, ...] = ()

    def visible_tags(self) -> tuple[Tag, ...]:
        return tuple(tag for tag in self.tags if not tag.hidden)

    def hidden_tags(self) -> tuple[Tag, ...]:
        return tuple(tag for tag in self.tags if tag.hidden)


@dataclass(frozen=True)
class GeneratedImage:
    """A generated image kept in history. Never mutated after creation."""

    image_data: str  # base64, no data URL prefix
    thinking_log: tuple[str, ...] = ()
    sketch_image: str | None = None
    prompt: str | None = None
    timestamp: float = field(default_factory=time.time)
