"""
Exit codes and Ctrl+C handling for CLI commands.

Library exceptions are turned into a message and an exit code here so the
command bodies only contain the happy path. A streamed generation polls
cancel_check() between chunks; SIGINT sets the flag it reads.
"""

import signal
import sys
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager

import click

from voidweaver import (
    APIError,
    CancellationError,
    ConfigurationError,
    ImageProcessingError,
    NetworkError,
    RequestTimeoutError,
    ValidationError,
    VoidWeaverError,
)
from voidweaver.cli import progress
from voidweaver.cli.utils import (
    EXIT_API_OR_NETWORK,
    EXIT_CANCELLED,
    EXIT_VALIDATION_OR_CONFIG,
)

_cancel_requested = threading.Event()

# First match wins; order subclasses before VoidWeaverError
_EXIT_TABLE: tuple[tuple[type[BaseException], int, str], ...] = (
    (ValidationError, EXIT_VALIDATION_OR_CONFIG, "Validation failed."),
    (ConfigurationError, EXIT_VALIDATION_OR_CONFIG, "Invalid configuration."),
    (ImageProcessingError, EXIT_VALIDATION_OR_CONFIG, "Image processing failed."),
    (FileNotFoundError, EXIT_VALIDATION_OR_CONFIG, "File not found."),
    (CancellationError, EXIT_CANCELLED, "Cancelled."),
    (APIError, EXIT_API_OR_NETWORK, "API error."),
    (NetworkError, EXIT_API_OR_NETWORK, "Network error."),
    (RequestTimeoutError, EXIT_API_OR_NETWORK, "Request timed out."),
    (VoidWeaverError, EXIT_API_OR_NETWORK, "An error occurred."),
)


def cancel_check() -> bool:
    return _cancel_requested.is_set()


def _on_sigint(_signum: int, _frame: object) -> None:
    _cancel_requested.set()


@contextmanager
def cancellable() -> Iterator[None]:
    """Route Ctrl+C to cancel_check() for the duration of the block."""
    _cancel_requested.clear()
    previous = signal.signal(signal.SIGINT, _on_sigint)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def map_exception_to_exit(exc: BaseException) -> tuple[int, str]:
    """Return (exit_code, user_message) for an exception."""
    if isinstance(exc, CancellationError):
        return EXIT_CANCELLED, "Cancelled."
    for exc_type, code, fallback in _EXIT_TABLE:
        if isinstance(exc, exc_type):
            break
    else:
        code, fallback = EXIT_API_OR_NETWORK, "An unexpected error occurred."
    msg = str(exc.args[0]) if exc.args else fallback
    if isinstance(exc, ValidationError) and exc.field:
        msg = f"{msg} (field: {exc.field})"
    elif isinstance(exc, APIError) and exc.status_code:
        msg = f"{msg} (HTTP {exc.status_code})"
    return code, msg


def _report(code: int, msg: str, quiet: bool) -> None:
    if code == EXIT_CANCELLED:
        if not quiet:
            progress.print_warning(msg)
    elif quiet:
        click.echo(msg, err=True)
    else:
        progress.print_error(msg)


def run_with_error_handling(fn: Callable[[], None], *, quiet: bool = False) -> None:
    """Call fn(); print any failure and exit with its mapped code."""
    try:
        fn()
    except Exception as e:
        code, msg = map_exception_to_exit(e)
        _report(code, msg, quiet)
        sys.exit(code)


__all__ = [
    "cancel_check",
    "cancellable",
    "map_exception_to_exit",
    "run_with_error_handling",
]
