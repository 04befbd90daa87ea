"""
Exception hierarchy for voidweaver.

Tag parsing, refinement merging and the history rings absorb malformed data
instead of raising. These exceptions are for invalid caller input and for
failures at the boundary with the backend, the filesystem and images.
"""


class VoidWeaverError(Exception):
    """Root of every error raised by voidweaver."""


class ValidationError(VoidWeaverError):
    """
    Caller input was rejected.

    Attributes:
        field: The offending setting or argument, empty when not specific
    """

    def __init__(self, message: str, field: str = "") -> None:
        super().__init__(message)
        self.field = field


class APIError(VoidWeaverError):
    """
    The backend answered with an error status or an unusable body.

    Attributes:
        status_code: HTTP status, 0 when the failure was not an HTTP status
        response: Response text, when one was read
    """

    def __init__(self, message: str, status_code: int = 0, response: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class NetworkError(VoidWeaverError):
    """The backend could not be reached."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.original_error = original_error


class RequestTimeoutError(VoidWeaverError):
    """A backend request exceeded its timeout."""


class CancellationError(VoidWeaverError):
    """The user cancelled a streamed generation."""


class ConfigurationError(VoidWeaverError):
    """Environment settings, the bundled catalog or a session file are invalid."""


class ImageProcessingError(VoidWeaverError):
    """An image could not be read, encoded or written."""

    def __init__(self, message: str, image_path: str = "") -> None:
        super().__init__(message)
        self.image_path = image_path
