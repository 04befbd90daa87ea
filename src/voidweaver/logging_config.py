"""
Logging setup for voidweaver.

Nothing is configured at import time: an application embedding the library
keeps full control of logging until it calls set_verbosity() or
configure_logging(). The CLI does so on every invocation.

Verbosity:
    0  INFO; analysis, refinement and generation activity
    1  INFO; also the assembled prompt and refinement instructions
    2  DEBUG; also request payloads, stream events and merge decisions

VOIDWEAVER_VERBOSITY supplies the level when no -v flag is given.
"""

import logging
import os

LOG_FORMAT = "%(levelname)s [%(name)s] %(message)s"
ROOT_LOGGER_NAME = "voidweaver"
VERBOSITY_ENV = "VOIDWEAVER_VERBOSITY"

# verbosity -> (logger level, log prompt text)
_VERBOSITY_LEVELS: dict[int, tuple[int, bool]] = {
    0: (logging.INFO, False),
    1: (logging.INFO, True),
    2: (logging.DEBUG, True),
}

_log_prompts: bool = False
_configured: bool = False


def _root_logger() -> logging.Logger:
    """The voidweaver logger, with a stderr handler attached on first use."""
    global _configured
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not _configured:
        if not root.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            root.addHandler(handler)
        _configured = True
    return root


def set_verbosity(level: int) -> None:
    """Apply verbosity 0, 1 or 2; values outside that range are clamped."""
    global _log_prompts
    level_no, _log_prompts = _VERBOSITY_LEVELS[max(0, min(level, 2))]
    _root_logger().setLevel(level_no)


def configure_logging(verbose_level: int = 0, quiet: bool = False) -> None:
    """CLI entry point: quiet shows warnings and errors only."""
    global _log_prompts
    if quiet:
        _root_logger().setLevel(logging.WARNING)
        _log_prompts = False
    else:
        set_verbosity(verbose_level)


def log_prompts() -> bool:
    """True when prompt and instruction text may be logged."""
    return _log_prompts


def get_verbosity_from_env() -> int:
    """Read VOIDWEAVER_VERBOSITY; anything but 1 or 2 means 0."""
    raw = os.environ.get(VERBOSITY_ENV, "").strip()
    return int(raw) if raw in ("1", "2") else 0


def get_logger(name: str) -> logging.Logger:
    """Logger under the voidweaver hierarchy, e.g. get_logger(__name__)."""
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


__all__ = [
    "configure_logging",
    "get_logger",
    "get_verbosity_from_env",
    "log_prompts",
    "set_verbosity",
]
