"""Exit codes, default paths and display helpers shared by the CLI commands."""

from datetime import datetime
from pathlib import Path

# 130 follows the shell convention for SIGINT
EXIT_SUCCESS = 0
EXIT_API_OR_NETWORK = 1
EXIT_VALIDATION_OR_CONFIG = 2
EXIT_CANCELLED = 130

DEFAULT_SESSION_FILE = Path.home() / ".voidweaver" / "session.json"


def default_output_path(fmt: str = "png") -> str:
    """Return default output path: voidweaver_<YYYYMMDD>_<HHMMSS>.<ext> in current directory."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    ext = fmt if fmt else "png"
    return f"voidweaver_{timestamp}.{ext}"


def mask_secret(value: str) -> str:
    """Show only the last four characters of a secret."""
    if len(value) <= 4:
        return "*" * len(value)
    return "*" * 8 + value[-4:]


__all__ = [
    "DEFAULT_SESSION_FILE",
    "EXIT_SUCCESS",
    "EXIT_API_OR_NETWORK",
    "EXIT_VALIDATION_OR_CONFIG",
    "EXIT_CANCELLED",
    "default_output_path",
    "mask_secret",
]
