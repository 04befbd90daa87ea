"""
voidweaver - structured prompt editor core

Holds an image prompt as eight named modules of weighted tags, converts tags
to and from editable text, assembles the generation prompt, merges AI
refinements around locked modules, and keeps short histories of generated
images and refinement instructions. Analysis, refinement and generation are
delegated to the voidweaver backend over HTTP.

Library usage:
- Edit modules through ModuleStore; every edit replaces whole Module objects.
- AppState bundles the store, both histories and the generation settings;
  run_analysis / run_refinement / run_generation drive the backend.
- Configuration can be passed per client (BackendClient(config)) or via the
  shared config: use get_config() / set_config().
- Logging: control verbosity with set_verbosity(0|1|2) or configure_logging(verbose_level, quiet);
  VOIDWEAVER_VERBOSITY env (0/1/2) is read when the CLI runs or when logging is configured.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("voidweaver")
except PackageNotFoundError:
    # Package is not installed (e.g., running from source in development)
    __version__ = "0.0.0.dev"

from voidweaver.core.assembler import assemble_prompt, build_raw_prompt
from voidweaver.core.client import BackendClient
from voidweaver.core.codec import parse_tags, serialize_tags
from voidweaver.core.config import Config, get_config, set_config
from voidweaver.core.history import HistoryRing
from voidweaver.core.merge import merge_refinement
from voidweaver.core.models import EngineType, GeneratedImage, Module, ModuleName, Tag
from voidweaver.core.session import load_session, save_session
from voidweaver.core.state import (
    AppState,
    GenerationSettings,
    run_analysis,
    run_generation,
    run_refinement,
)
from voidweaver.core.store import ModuleStore
from voidweaver.core.streaming import EventStreamDecoder, consume_generation_stream
from voidweaver.logging_config import configure_logging, set_verbosity
from voidweaver.utils.credentials import CredentialStore, get_credential_store
from voidweaver.utils.exceptions import (
    APIError,
    CancellationError,
    ConfigurationError,
    ImageProcessingError,
    NetworkError,
    RequestTimeoutError,
    ValidationError,
    VoidWeaverError,
)

__all__ = [
    "APIError",
    "AppState",
    "BackendClient",
    "CancellationError",
    "Config",
    "ConfigurationError",
    "CredentialStore",
    "EngineType",
    "EventStreamDecoder",
    "GeneratedImage",
    "GenerationSettings",
    "HistoryRing",
    "ImageProcessingError",
    "Module",
    "ModuleName",
    "ModuleStore",
    "NetworkError",
    "RequestTimeoutError",
    "Tag",
    "ValidationError",
    "VoidWeaverError",
    "assemble_prompt",
    "build_raw_prompt",
    "configure_logging",
    "consume_generation_stream",
    "get_config",
    "get_credential_store",
    "load_session",
    "merge_refinement",
    "parse_tags",
    "run_analysis",
    "run_generation",
    "run_refinement",
    "save_session",
    "serialize_tags",
    "set_config",
    "set_verbosity",
]
