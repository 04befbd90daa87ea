"""
HTTP client for the voidweaver backend.

The backend wraps the external AI services:

- ``POST /analyze``: image -> modules + raw prompt (Gemini)
- ``POST /generate``: prompt + settings -> image (NovelAI / Google Imagen)
- ``POST /generate/stream``: same, streamed with deep-thinking log events
- ``POST /refine``: modules + instruction -> refined modules (Gemini)

Network failures and timeouts are retried with exponential backoff; HTTP
error statuses are not.
"""

import json
import time
from collections.abc import Callable, Iterator
from typing import Any, TypeVar

import requests
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from voidweaver.core.config import Config, get_config
from voidweaver.core.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    GenerateRequest,
    GenerateResponse,
    RefineRequest,
    RefineResponse,
)
from voidweaver.core.streaming import consume_generation_stream
from voidweaver.logging_config import get_logger, log_prompts
from voidweaver.utils.exceptions import APIError, NetworkError, RequestTimeoutError

logger = get_logger(__name__)

R = TypeVar("R")
M = TypeVar("M", bound=BaseModel)

_DEBUG_TRUNCATE_THRESHOLD = 200
_DEBUG_NEVER_TRUNCATE_KEYS = frozenset({"prompt", "instruction", "rawPrompt", "text", "message"})
_SECRET_KEYS = frozenset({"geminiApiKey", "novelaiApiKey", "googleCredentials"})
_STREAM_CHUNK_SIZE = 1024


def _truncate_for_log(obj: Any, parent_key: str | None = None) -> Any:
    """Recursively replace long base64 strings and secrets with placeholders for safe logging."""
    if isinstance(obj, dict):
        return {k: _truncate_for_log(v, k) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_truncate_for_log(v, None) for v in obj]
    if isinstance(obj, str):
        if parent_key in _SECRET_KEYS:
            return "<redacted>"
        if len(obj) >= _DEBUG_TRUNCATE_THRESHOLD and parent_key not in _DEBUG_NEVER_TRUNCATE_KEYS:
            if obj.startswith("data:"):
                return f"<data URL, {len(obj)} chars>"
            return f"<string, {len(obj)} chars>"
    return obj


def _server_message(response: requests.Response) -> str | None:
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    return None


def _raise_for_status(response: requests.Response) -> None:
    """Map HTTP error statuses to APIError with a user-facing message."""
    status = response.status_code
    if 200 <= status < 300:
        return
    server_message = _server_message(response)
    if status == 400:
        message = server_message or "Invalid request parameters."
    elif status == 401:
        message = "API key is invalid or expired."
    elif status == 403:
        message = "Access to this resource is forbidden."
    elif status == 404:
        message = "API endpoint not found."
    elif status == 429:
        message = "Rate limit exceeded. Please wait before making more requests."
    elif status == 500:
        message = server_message or "Internal server error."
    elif status == 503:
        message = "Service temporarily unavailable. Please try again later."
    else:
        message = server_message or f"Server error ({status})."
    raise APIError(message, status_code=status, response=response.text)


def _parse_model(model: type[M], response: requests.Response) -> M:
    try:
        data = response.json()
    except ValueError as e:
        raise APIError(
            f"Failed to parse API response as JSON: {str(e)}", response=response.text
        ) from e
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise APIError(
            f"Unexpected API response shape: {e.error_count()} validation error(s)",
            response=response.text,
        ) from e


class BackendClient:
    """Typed access to the backend endpoints."""

    def __init__(self, config: Config | None = None) -> None:
        self.config = config or get_config()

    def _url(self, path: str) -> str:
        return f"{self.config.api_url.rstrip('/')}/{path.lstrip('/')}"

    def _with_retries(self, fn: Callable[[], R]) -> R:
        """Run fn, retrying NetworkError and RequestTimeoutError with backoff."""
        retries = self.config.max_retries
        delay = self.config.retry_delay
        while True:
            try:
                return fn()
            except (NetworkError, RequestTimeoutError) as e:
                if retries <= 0:
                    raise
                logger.warning(
                    "Request failed (%s); retrying in %.1fs (%d left)", e, delay, retries
                )
                time.sleep(delay)
                retries -= 1
                delay *= self.config.retry_backoff

    def _post(
        self,
        path: str,
        payload: dict[str, Any],
        timeout: int,
        stream: bool = False,
    ) -> requests.Response:
        """Perform one HTTP POST. Maps transport failures and error statuses to exceptions."""
        url = self._url(path)
        logger.debug("API request url=%s timeout=%s stream=%s", url, timeout, stream)
        if self.config.debug_api:
            logger.info(
                "API request payload (image data truncated): %s",
                json.dumps(_truncate_for_log(payload), indent=2, default=str),
            )
        start_time = time.time()
        try:
            response = requests.post(
                url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=timeout,
                stream=stream,
            )
        except requests.exceptions.Timeout as e:
            raise RequestTimeoutError(
                f"Request timed out after {timeout} seconds. The server took too long to respond."
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise NetworkError(
                "Failed to connect to the backend. Check that it is running and reachable.",
                original_error=e,
            ) from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(
                f"Network error during API request: {str(e)}", original_error=e
            ) from e

        logger.debug(
            "API response status=%s time=%.2fs", response.status_code, time.time() - start_time
        )
        if self.config.debug_api and not stream:
            try:
                logger.info(
                    "API response (image data truncated): %s",
                    json.dumps(_truncate_for_log(response.json()), indent=2, default=str),
                )
            except ValueError:
                logger.info("API response (raw text): %s", response.text[:2000])
        _raise_for_status(response)
        return response

    def analyze_image(self, request: AnalyzeRequest) -> AnalyzeResponse:
        """Extract the eight modules from an image."""
        logger.info("Analyzing image")
        start = time.time()
        response = self._with_retries(
            lambda: self._post("analyze", request.to_wire(), self.config.analysis_timeout)
        )
        result = _parse_model(AnalyzeResponse, response)
        logger.info(
            "Analyzed in %.1fs modules=%d", time.time() - start, len(result.modules)
        )
        return result

    def generate_image(self, request: GenerateRequest) -> GenerateResponse:
        """Generate an image and wait for the complete result."""
        logger.info(
            "Generating image engine=%s resolution=%s img2img=%s",
            request.engine.value,
            request.resolution,
            request.image is not None,
        )
        if log_prompts():
            logger.info("Prompt (used): %s", request.prompt)
        start = time.time()
        response = self._with_retries(
            lambda: self._post("generate", request.to_wire(), self.config.generation_timeout)
        )
        result = _parse_model(GenerateResponse, response)
        logger.info("Generated in %.1fs", time.time() - start)
        return result

    def generate_image_stream(
        self,
        request: GenerateRequest,
        on_log: Callable[[str], None] | None = None,
        on_sketch: Callable[[str], None] | None = None,
        cancel_check: Callable[[], bool] | None = None,
    ) -> GenerateResponse:
        """
        Generate an image over the event stream.

        on_log and on_sketch are called as events arrive; the returned result
        is the terminal ``result`` event. Only opening the stream is retried.
        """
        logger.info(
            "Generating image (stream) engine=%s resolution=%s deep_thinking=%s",
            request.engine.value,
            request.resolution,
            bool(request.deep_thinking),
        )
        if log_prompts():
            logger.info("Prompt (used): %s", request.prompt)
        start = time.time()
        response = self._with_retries(
            lambda: self._post(
                "generate/stream", request.to_wire(), self.config.stream_timeout, stream=True
            )
        )

        def _chunks() -> Iterator[bytes]:
            try:
                yield from response.iter_content(chunk_size=_STREAM_CHUNK_SIZE)
            except requests.exceptions.RequestException as e:
                raise NetworkError(
                    f"Generation stream interrupted: {str(e)}", original_error=e
                ) from e

        try:
            result = consume_generation_stream(
                _chunks(), on_log=on_log, on_sketch=on_sketch, cancel_check=cancel_check
            )
        finally:
            response.close()
        logger.info("Generated in %.1fs (stream)", time.time() - start)
        return result

    def refine_modules(self, request: RefineRequest) -> RefineResponse:
        """Apply a natural-language instruction to the modules."""
        logger.info("Refining modules count=%d", len(request.modules))
        if log_prompts():
            logger.info("Instruction: %s", request.instruction)
        start = time.time()
        response = self._with_retries(
            lambda: self._post("refine", request.to_wire(), self.config.refine_timeout)
        )
        result = _parse_model(RefineResponse, response)
        logger.info("Refined in %.1fs modules=%d", time.time() - start, len(result.modules))
        return result
