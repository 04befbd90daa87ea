"""
Configuration management for voidweaver.

This module handles the backend URL, service credentials, default engine
settings, timeouts and retry policy.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from voidweaver.core.models import EngineType
from voidweaver.logging_config import get_logger
from voidweaver.utils.exceptions import ConfigurationError

logger = get_logger(__name__)

# Load environment variables from .env file
load_dotenv()

# Default configuration constants
DEFAULT_API_URL = "http://localhost:8080/api"
DEFAULT_ENGINE = EngineType.NOVELAI
DEFAULT_RESOLUTION = "832x1216"  # portrait
DEFAULT_STEPS = 28
DEFAULT_SCALE = 6.0
DEFAULT_STRENGTH = 0.7
DEFAULT_CREDENTIALS_FILE = Path.home() / ".voidweaver" / "credentials.json"

MIN_STEPS, MAX_STEPS = 1, 50
MIN_SCALE, MAX_SCALE = 1.0, 20.0

_RESOLUTION_RE = re.compile(r"^(\d+)x(\d+)$")


def parse_resolution(resolution: str) -> tuple[int, int]:
    """
    Parse a "WxH" resolution string.

    Raises:
        ConfigurationError: If the string is not two positive integers joined by "x"
    """
    match = _RESOLUTION_RE.match(resolution.strip())
    if not match:
        raise ConfigurationError(f"Resolution must look like 832x1216, got {resolution!r}.")
    width, height = int(match.group(1)), int(match.group(2))
    if width <= 0 or height <= 0:
        raise ConfigurationError(f"Resolution components must be positive, got {resolution!r}.")
    return width, height


@dataclass
class Config:
    """Configuration for voidweaver."""

    # Backend
    api_url: str = DEFAULT_API_URL

    # Credentials (excluded from repr to avoid leaking secrets)
    gemini_api_key: str = field(default="", repr=False)
    novelai_api_key: str = field(default="", repr=False)
    google_credentials: str = field(default="", repr=False)
    credentials_file: Path = DEFAULT_CREDENTIALS_FILE

    # Generation defaults
    engine: EngineType = DEFAULT_ENGINE
    resolution: str = DEFAULT_RESOLUTION
    steps: int = DEFAULT_STEPS
    scale: float = DEFAULT_SCALE
    strength: float = DEFAULT_STRENGTH

    # Image upload
    max_image_pixels: int = 2_000_000  # 2 megapixels

    # Timeout Configuration (seconds)
    analysis_timeout: int = 60
    generation_timeout: int = 120
    refine_timeout: int = 60
    stream_timeout: int = 300

    # Retries for network failures and timeouts
    max_retries: int = 2
    retry_delay: float = 1.0
    retry_backoff: float = 1.5

    # Debug: log request/response payloads with image data truncated
    debug_api: bool = False

    _validated: bool = field(default=False, repr=False)

    @classmethod
    def from_env(cls) -> "Config":
        """
        Create a Config instance from environment variables.

        Environment variables:
            VOIDWEAVER_API_URL: Backend base URL (default http://localhost:8080/api)
            GEMINI_API_KEY: Key for image analysis and refinement
            NOVELAI_API_KEY: Key for the NovelAI engine
            GOOGLE_CREDENTIALS: Key for the Google Imagen engine
            VOIDWEAVER_ENGINE: novelai or google-imagen
            VOIDWEAVER_RESOLUTION / VOIDWEAVER_STEPS / VOIDWEAVER_SCALE: generation defaults
            VOIDWEAVER_MAX_RETRIES: Retries for network failures (default 2)
            VOIDWEAVER_CREDENTIALS_FILE: Where stored credentials live
            VOIDWEAVER_DEBUG_API: 1/true to log payloads

        Returns:
            Config instance populated from environment

        Raises:
            ConfigurationError: If a numeric variable is not a number or the engine is unknown
        """

        def _int_env(name: str, default: int) -> int:
            val = os.getenv(name)
            if val is None or val == "":
                return default
            try:
                return int(val)
            except ValueError as e:
                raise ConfigurationError(f"{name} must be an integer, got {val!r}.") from e

        def _float_env(name: str, default: float) -> float:
            val = os.getenv(name)
            if val is None or val == "":
                return default
            try:
                return float(val)
            except ValueError as e:
                raise ConfigurationError(f"{name} must be a number, got {val!r}.") from e

        engine_raw = os.getenv("VOIDWEAVER_ENGINE", "")
        engine = DEFAULT_ENGINE
        if engine_raw:
            parsed = EngineType.parse(engine_raw)
            if parsed is None:
                raise ConfigurationError(
                    f"Unknown VOIDWEAVER_ENGINE: {engine_raw!r}. "
                    f"Must be one of: {', '.join(e.value for e in EngineType)}."
                )
            engine = parsed

        credentials_file = os.getenv("VOIDWEAVER_CREDENTIALS_FILE")
        debug_api = os.getenv("VOIDWEAVER_DEBUG_API", "").strip().lower() in ("1", "true", "yes")

        return cls(
            api_url=os.getenv("VOIDWEAVER_API_URL") or DEFAULT_API_URL,
            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            novelai_api_key=os.getenv("NOVELAI_API_KEY", ""),
            google_credentials=os.getenv("GOOGLE_CREDENTIALS", ""),
            credentials_file=(
                Path(credentials_file) if credentials_file else DEFAULT_CREDENTIALS_FILE
            ),
            engine=engine,
            resolution=os.getenv("VOIDWEAVER_RESOLUTION") or DEFAULT_RESOLUTION,
            steps=_int_env("VOIDWEAVER_STEPS", DEFAULT_STEPS),
            scale=_float_env("VOIDWEAVER_SCALE", DEFAULT_SCALE),
            max_retries=_int_env("VOIDWEAVER_MAX_RETRIES", 2),
            debug_api=debug_api,
        )

    def validate(self) -> None:
        """
        Validate the configuration.

        Credentials are not checked here; each service call checks the key it
        needs.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        logger.debug("Validating config")

        if not self.api_url.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"api_url must start with http:// or https://, got {self.api_url!r}."
            )
        parse_resolution(self.resolution)
        if not MIN_STEPS <= self.steps <= MAX_STEPS:
            raise ConfigurationError(
                f"steps must be between {MIN_STEPS} and {MAX_STEPS}, got {self.steps}."
            )
        if not MIN_SCALE <= self.scale <= MAX_SCALE:
            raise ConfigurationError(
                f"scale must be between {MIN_SCALE:g} and {MAX_SCALE:g}, got {self.scale}."
            )
        if not 0 <= self.strength <= 0.99:
            raise ConfigurationError(f"strength must be between 0 and 0.99, got {self.strength}.")
        if self.max_retries < 0:
            raise ConfigurationError(f"max_retries must not be negative, got {self.max_retries}.")
        if self.max_image_pixels <= 0:
            raise ConfigurationError(
                f"max_image_pixels must be positive, got {self.max_image_pixels}."
            )

        self._validated = True

    def is_valid(self) -> bool:
        """Return True if validate() has been called successfully."""
        return self._validated

    def set_engine(self, engine: EngineType | str) -> None:
        """
        Set the default generation engine.

        Raises:
            ConfigurationError: If the engine is unknown
        """
        parsed = EngineType.parse(engine)
        if parsed is None:
            raise ConfigurationError(f"Unknown engine: {engine!r}.")
        self.engine = parsed


# Global configuration instance
_global_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance, loading it from the environment on first use."""
    global _global_config
    if _global_config is None:
        _global_config = Config.from_env()
    return _global_config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _global_config
    _global_config = config
