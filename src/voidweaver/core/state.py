"""
Application state and the analyze / refine / generate workflows.

AppState bundles the module store, both history rings, the generation
settings and the live deep-thinking display. The run_* functions call the
backend and apply the result; a failed call raises before anything in the
store or the histories changes.
"""

from collections.abc import Callable
from dataclasses import dataclass, field

from pydantic import ValidationError as PydanticValidationError

from voidweaver.core.assembler import assemble_prompt
from voidweaver.core.client import BackendClient
from voidweaver.core.config import Config, get_config, parse_resolution
from voidweaver.core.history import (
    IMAGE_HISTORY_CAPACITY,
    REFINEMENT_HISTORY_CAPACITY,
    HistoryRing,
)
from voidweaver.core.images import decode_image_data
from voidweaver.core.merge import merge_refinement
from voidweaver.core.models import EngineType, GeneratedImage
from voidweaver.core.schemas import (
    AnalyzeRequest,
    GenerateRequest,
    ModulePayload,
    RefineRequest,
    to_modules,
)
from voidweaver.core.store import ModuleStore
from voidweaver.logging_config import get_logger
from voidweaver.utils.credentials import (
    GEMINI_API_KEY,
    GOOGLE_CREDENTIALS,
    NOVELAI_API_KEY,
    CredentialStore,
)
from voidweaver.utils.exceptions import ValidationError

logger = get_logger(__name__)


@dataclass
class GenerationSettings:
    """User-selected generation parameters."""

    engine: EngineType = EngineType.NOVELAI
    resolution: str = "832x1216"
    steps: int = 28
    scale: float = 6.0
    img2img: bool = False
    strength: float = 0.7
    deep_thinking: bool = False

    @classmethod
    def from_config(cls, config: Config | None = None) -> "GenerationSettings":
        config = config or get_config()
        return cls(
            engine=config.engine,
            resolution=config.resolution,
            steps=config.steps,
            scale=config.scale,
            strength=config.strength,
        )


@dataclass
class AppState:
    settings: GenerationSettings = field(default_factory=GenerationSettings)
    store: ModuleStore = field(default_factory=ModuleStore)
    images: HistoryRing[GeneratedImage] = field(
        default_factory=lambda: HistoryRing(IMAGE_HISTORY_CAPACITY)
    )
    refinements: HistoryRing[str] = field(
        default_factory=lambda: HistoryRing(REFINEMENT_HISTORY_CAPACITY)
    )
    raw_prompt: str = ""
    source_image: str | None = None  # base64, no data URL prefix
    # Live deep-thinking display; reset at the start of each generation
    thinking_log: list[str] = field(default_factory=list)
    sketch_image: str | None = None


def _require(value: str | None, what: str, field_name: str) -> str:
    if not value:
        raise ValidationError(
            f"{what} is required. Set it with 'voidweaver keys set'.", field=field_name
        )
    return value


def build_prompt(state: AppState) -> str:
    """Assemble the generation prompt from the current modules."""
    return assemble_prompt(state.store.modules, state.settings.engine)


def build_generate_request(state: AppState, credentials: CredentialStore) -> GenerateRequest:
    """
    Build a validated generation request from the current state.

    Only the credential for the selected engine is included.

    Raises:
        ValidationError: If the prompt is empty, the engine credential is
            missing, img2img has no source image, or a setting is out of range
    """
    settings = state.settings
    prompt = build_prompt(state)
    if not prompt.strip():
        raise ValidationError(
            "Prompt is empty. Add tags or analyze an image first.", field="prompt"
        )
    parse_resolution(settings.resolution)

    novelai_key = None
    google_credentials = None
    if settings.engine is EngineType.NOVELAI:
        novelai_key = _require(
            credentials.get(NOVELAI_API_KEY), "NovelAI API key", NOVELAI_API_KEY
        )
    else:
        google_credentials = _require(
            credentials.get(GOOGLE_CREDENTIALS), "Google credentials", GOOGLE_CREDENTIALS
        )

    image = None
    strength = None
    if settings.img2img:
        if not state.source_image:
            raise ValidationError("img2img requires a source image.", field="image")
        image = state.source_image
        strength = settings.strength

    try:
        return GenerateRequest(
            prompt=prompt,
            engine=settings.engine,
            novelai_api_key=novelai_key,
            google_credentials=google_credentials,
            resolution=settings.resolution,
            steps=settings.steps,
            scale=settings.scale,
            image=image,
            strength=strength,
            deep_thinking=settings.deep_thinking or None,
        )
    except PydanticValidationError as e:
        first = e.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        raise ValidationError(
            f"Invalid generation setting {loc}: {first.get('msg')}", field=loc
        ) from e


def run_analysis(
    state: AppState,
    client: BackendClient,
    image_data: str,
    api_key: str | None,
) -> None:
    """
    Analyze an image and replace all modules with the result.

    The image becomes the state's source image (used for img2img).
    """
    key = _require(api_key, "Gemini API key", GEMINI_API_KEY)
    if not image_data:
        raise ValidationError("Image data is required.", field="image")
    response = client.analyze_image(AnalyzeRequest(image_data=image_data, gemini_api_key=key))
    state.store.set_modules(to_modules(response.modules))
    state.raw_prompt = response.raw_prompt
    state.source_image = image_data
    logger.debug("Analysis applied raw_prompt_chars=%d", len(state.raw_prompt))


def run_refinement(
    state: AppState,
    client: BackendClient,
    instruction: str,
    api_key: str | None,
) -> None:
    """Refine the unlocked modules with a natural-language instruction."""
    key = _require(api_key, "Gemini API key", GEMINI_API_KEY)
    instruction = instruction.strip()
    if not instruction:
        raise ValidationError("Refinement instruction is empty.", field="instruction")
    request = RefineRequest(
        modules=[ModulePayload.from_module(m) for m in state.store.modules],
        instruction=instruction,
        gemini_api_key=key,
    )
    response = client.refine_modules(request)
    merged = merge_refinement(state.store.modules, to_modules(response.modules))
    state.store.set_modules(merged)
    state.refinements.push(instruction)


def run_generation(
    state: AppState,
    client: BackendClient,
    credentials: CredentialStore,
    stream: bool = False,
    on_log: Callable[[str], None] | None = None,
    on_sketch: Callable[[str], None] | None = None,
    cancel_check: Callable[[], bool] | None = None,
) -> GeneratedImage:
    """
    Generate an image from the current modules and push it onto the image history.

    In streaming mode each log line is appended to state.thinking_log and each
    sketch replaces state.sketch_image before the callbacks run. The terminal
    result's thinking log, when present, replaces the streamed one. If the
    generation fails, or returns image data that is not valid base64, the
    partial log stays visible and the history is unchanged.
    """
    request = build_generate_request(state, credentials)
    state.thinking_log = []
    state.sketch_image = None

    if stream:

        def _log(line: str) -> None:
            state.thinking_log.append(line)
            if on_log is not None:
                on_log(line)

        def _sketch(data: str) -> None:
            state.sketch_image = data
            if on_sketch is not None:
                on_sketch(data)

        response = client.generate_image_stream(
            request, on_log=_log, on_sketch=_sketch, cancel_check=cancel_check
        )
    else:
        response = client.generate_image(request)

    if response.thinking_log:
        state.thinking_log = list(response.thinking_log)
    if response.sketch_image:
        state.sketch_image = response.sketch_image
    decode_image_data(response.image_data)

    image = GeneratedImage(
        image_data=response.image_data,
        thinking_log=tuple(state.thinking_log),
        sketch_image=state.sketch_image,
        prompt=request.prompt,
    )
    state.images.push(image)
    return image
