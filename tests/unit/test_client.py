"""Unit tests for the backend HTTP client (requests mocked)."""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from voidweaver.core.client import BackendClient, _truncate_for_log
from voidweaver.core.config import Config
from voidweaver.core.schemas import AnalyzeRequest, GenerateRequest, ModulePayload, RefineRequest
from voidweaver.utils.exceptions import APIError, NetworkError, RequestTimeoutError


def _response(status: int = 200, body=None, text: str | None = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    if body is not None:
        resp.json.return_value = body
        resp.text = json.dumps(body)
    else:
        resp.json.side_effect = ValueError("no json")
        resp.text = text or ""
    return resp


def _client(**overrides) -> BackendClient:
    return BackendClient(Config(api_url="http://backend/api/", **overrides))


def _generate_request() -> GenerateRequest:
    return GenerateRequest(
        prompt="girl", novelai_api_key="k", resolution="832x1216", steps=28, scale=6
    )


@pytest.mark.unit
class TestAnalyzeImage:
    @patch("voidweaver.core.client.requests.post")
    def test_posts_camel_case_payload(self, mock_post):
        mock_post.return_value = _response(
            body={"modules": [{"name": "pose", "tags": [{"text": "sit"}]}], "rawPrompt": "sit"}
        )
        result = _client().analyze_image(AnalyzeRequest(image_data="aW1n", gemini_api_key="g"))
        url = mock_post.call_args[0][0]
        assert url == "http://backend/api/analyze"
        assert mock_post.call_args.kwargs["json"] == {"imageData": "aW1n", "geminiApiKey": "g"}
        assert mock_post.call_args.kwargs["timeout"] == 60
        assert result.raw_prompt == "sit"
        assert result.modules[0].name == "pose"


@pytest.mark.unit
class TestErrorMapping:
    @pytest.mark.parametrize(
        "status,expected",
        [
            (401, "invalid or expired"),
            (403, "forbidden"),
            (404, "not found"),
            (429, "Rate limit"),
            (503, "temporarily unavailable"),
        ],
    )
    @patch("voidweaver.core.client.requests.post")
    def test_status_messages(self, mock_post, status, expected):
        mock_post.return_value = _response(status, text="oops")
        with pytest.raises(APIError) as exc_info:
            _client().generate_image(_generate_request())
        assert expected in str(exc_info.value)
        assert exc_info.value.status_code == status

    @patch("voidweaver.core.client.requests.post")
    def test_400_uses_server_message(self, mock_post):
        mock_post.return_value = _response(400, body={"message": "steps must be <= 50"})
        with pytest.raises(APIError) as exc_info:
            _client().generate_image(_generate_request())
        assert str(exc_info.value) == "steps must be <= 50"

    @patch("voidweaver.core.client.requests.post")
    def test_other_status_without_message(self, mock_post):
        mock_post.return_value = _response(502, text="bad gateway")
        with pytest.raises(APIError) as exc_info:
            _client().generate_image(_generate_request())
        assert "502" in str(exc_info.value)

    @patch("voidweaver.core.client.time.sleep")
    @patch("voidweaver.core.client.requests.post")
    def test_http_errors_are_not_retried(self, mock_post, mock_sleep):
        mock_post.return_value = _response(500, text="boom")
        with pytest.raises(APIError):
            _client().generate_image(_generate_request())
        assert mock_post.call_count == 1
        mock_sleep.assert_not_called()

    @patch("voidweaver.core.client.requests.post")
    def test_non_json_success_raises(self, mock_post):
        mock_post.return_value = _response(200, text="<html>")
        with pytest.raises(APIError) as exc_info:
            _client().generate_image(_generate_request())
        assert "parse" in str(exc_info.value)

    @patch("voidweaver.core.client.requests.post")
    def test_wrong_shape_raises(self, mock_post):
        mock_post.return_value = _response(200, body={"unexpected": True})
        with pytest.raises(APIError):
            _client().generate_image(_generate_request())


@pytest.mark.unit
class TestRetries:
    @patch("voidweaver.core.client.time.sleep")
    @patch("voidweaver.core.client.requests.post")
    def test_connection_errors_retry_with_backoff(self, mock_post, mock_sleep):
        mock_post.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(NetworkError) as exc_info:
            _client().generate_image(_generate_request())
        assert mock_post.call_count == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 1.5]
        assert isinstance(exc_info.value.original_error, requests.exceptions.ConnectionError)

    @patch("voidweaver.core.client.time.sleep")
    @patch("voidweaver.core.client.requests.post")
    def test_recovers_after_timeout(self, mock_post, _mock_sleep):
        mock_post.side_effect = [
            requests.exceptions.Timeout("slow"),
            _response(body={"imageData": "aW1n"}),
        ]
        result = _client().generate_image(_generate_request())
        assert result.image_data == "aW1n"
        assert mock_post.call_count == 2

    @patch("voidweaver.core.client.time.sleep")
    @patch("voidweaver.core.client.requests.post")
    def test_zero_retries(self, mock_post, mock_sleep):
        mock_post.side_effect = requests.exceptions.Timeout("slow")
        with pytest.raises(RequestTimeoutError):
            _client(max_retries=0).generate_image(_generate_request())
        assert mock_post.call_count == 1
        mock_sleep.assert_not_called()


@pytest.mark.unit
class TestStreamAndRefine:
    @patch("voidweaver.core.client.requests.post")
    def test_generate_image_stream(self, mock_post):
        resp = _response(200, text="")
        resp.iter_content.return_value = iter(
            [b"event: log\ndata: thinking\n\n", b'event: result\ndata: {"imageData": "aW1n"}\n\n']
        )
        mock_post.return_value = resp
        logs: list[str] = []
        result = _client().generate_image_stream(_generate_request(), on_log=logs.append)
        assert logs == ["thinking"]
        assert result.image_data == "aW1n"
        assert mock_post.call_args[0][0] == "http://backend/api/generate/stream"
        assert mock_post.call_args.kwargs["stream"] is True
        resp.close.assert_called_once()

    @patch("voidweaver.core.client.requests.post")
    def test_refine_modules(self, mock_post):
        mock_post.return_value = _response(body={"modules": [{"name": "style"}]})
        request = RefineRequest(
            modules=[ModulePayload(name="style")], instruction="make it gothic", gemini_api_key="g"
        )
        result = _client().refine_modules(request)
        assert mock_post.call_args[0][0] == "http://backend/api/refine"
        assert mock_post.call_args.kwargs["json"]["instruction"] == "make it gothic"
        assert result.modules[0].name == "style"


@pytest.mark.unit
class TestTruncateForLog:
    def test_secrets_are_redacted(self):
        assert _truncate_for_log({"geminiApiKey": "secret"}) == {"geminiApiKey": "<redacted>"}

    def test_long_image_data_is_truncated(self):
        out = _truncate_for_log({"imageData": "A" * 500, "prompt": "p" * 500})
        assert out["imageData"] == "<string, 500 chars>"
        assert out["prompt"] == "p" * 500
