"""
Wire schemas for the backend services.

The backend speaks camelCase JSON. These pydantic models validate requests
before they are sent and responses before they reach the module store, and
convert between payloads and the immutable core models.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from voidweaver.core.catalog import get_display_name
from voidweaver.core.models import (
    DEFAULT_WEIGHT,
    EngineType,
    GeneratedImage,
    Module,
    ModuleName,
    Tag,
    new_tag_id,
)
from voidweaver.logging_config import get_logger

logger = get_logger(__name__)

RESOLUTION_PATTERN = r"^\d+x\d+$"
MAX_STRENGTH = 0.99


class WireModel(BaseModel):
    """Base for camelCase payloads; accepts field names or aliases on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class TagPayload(WireModel):
    id: str | None = None
    text: str = ""
    weight: float = DEFAULT_WEIGHT
    hidden: bool = False

    @field_validator("weight", mode="before")
    @classmethod
    def _default_weight(cls, value: Any) -> Any:
        return DEFAULT_WEIGHT if value is None else value

    def to_tag(self) -> Tag | None:
        """Convert to a Tag. Blank tags return None; a missing id is minted."""
        text = self.text.strip()
        if not text:
            return None
        return Tag(id=self.id or new_tag_id(), text=text, weight=self.weight, hidden=self.hidden)

    @classmethod
    def from_tag(cls, tag: Tag) -> "TagPayload":
        return cls(id=tag.id, text=tag.text, weight=tag.weight, hidden=tag.hidden)


class ModulePayload(WireModel):
    name: str
    display_name: str | None = None
    locked: bool = False
    tags: list[TagPayload] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def _null_tags(cls, value: Any) -> Any:
        return [] if value is None else value

    def to_module(self) -> Module | None:
        """
        Convert to a Module with a normalized name.

        Returns None (and logs) for names outside the eight known modules.
        """
        name = ModuleName.parse(self.name)
        if name is None:
            logger.warning("Unknown module name in response: %r", self.name)
            return None
        tags = tuple(t for t in (p.to_tag() for p in self.tags) if t is not None)
        return Module(
            name=name,
            display_name=self.display_name or get_display_name(name),
            locked=self.locked,
            tags=tags,
        )

    @classmethod
    def from_module(cls, module: Module) -> "ModulePayload":
        return cls(
            name=module.name.value,
            display_name=module.display_name,
            locked=module.locked,
            tags=[TagPayload.from_tag(t) for t in module.tags],
        )


def to_modules(payloads: list[ModulePayload]) -> list[Module]:
    """Convert payloads, skipping modules with unknown names."""
    return [m for m in (p.to_module() for p in payloads) if m is not None]


class AnalyzeRequest(WireModel):
    image_data: str = Field(..., min_length=1)
    gemini_api_key: str = Field(..., min_length=1, repr=False)


class AnalyzeResponse(WireModel):
    modules: list[ModulePayload] = Field(default_factory=list)
    raw_prompt: str = ""

    @field_validator("raw_prompt", mode="before")
    @classmethod
    def _null_prompt(cls, value: Any) -> Any:
        return "" if value is None else value


class GenerateRequest(WireModel):
    prompt: str = Field(..., min_length=1)
    engine: EngineType = EngineType.NOVELAI
    novelai_api_key: str | None = Field(default=None, repr=False)
    google_credentials: str | None = Field(default=None, repr=False)
    resolution: str = Field(..., pattern=RESOLUTION_PATTERN)
    steps: int = Field(..., ge=1, le=50)
    scale: float = Field(..., ge=1, le=20)
    image: str | None = None
    strength: float | None = Field(default=None, ge=0, le=MAX_STRENGTH)
    deep_thinking: bool | None = None


class GenerateResponse(WireModel):
    image_data: str = Field(..., min_length=1)
    sketch_image: str | None = None
    thinking_log: list[str] | None = None

    def to_generated_image(self, prompt: str | None = None) -> GeneratedImage:
        return GeneratedImage(
            image_data=self.image_data,
            thinking_log=tuple(self.thinking_log or ()),
            sketch_image=self.sketch_image,
            prompt=prompt,
        )


class RefineRequest(WireModel):
    modules: list[ModulePayload]
    instruction: str = Field(..., min_length=1)
    gemini_api_key: str = Field(..., min_length=1, repr=False)


class RefineResponse(WireModel):
    modules: list[ModulePayload] = Field(default_factory=list)
