"""Unit tests for the generation event stream decoder."""

import json
from unittest.mock import MagicMock

import pytest

from voidweaver.core.streaming import (
    DecoderState,
    EventStreamDecoder,
    StreamEvent,
    consume_generation_stream,
)
from voidweaver.utils.exceptions import APIError, CancellationError

RESULT = json.dumps({"imageData": "aW1n", "thinkingLog": ["plan", "draw"]})


@pytest.mark.unit
class TestEventStreamDecoder:
    def test_single_event(self):
        decoder = EventStreamDecoder()
        events = decoder.feed("event: log\ndata: hello\n\n")
        assert events == [StreamEvent(event="log", data="hello")]

    def test_partial_lines_are_buffered(self):
        decoder = EventStreamDecoder()
        assert decoder.feed("event: lo") == []
        assert decoder.feed("g\ndata: hel") == []
        assert decoder.state is DecoderState.AWAITING_DATA
        assert decoder.feed("lo\n") == []
        assert decoder.state is DecoderState.COLLECTING_DATA
        assert decoder.feed("\n") == [StreamEvent("log", "hello")]
        assert decoder.state is DecoderState.AWAITING_EVENT

    def test_crlf_line_endings(self):
        decoder = EventStreamDecoder()
        assert decoder.feed("event: sketch\r\ndata: abc\r\n\r\n") == [StreamEvent("sketch", "abc")]

    def test_multiline_data_is_joined(self):
        decoder = EventStreamDecoder()
        assert decoder.feed("data: a\ndata: b\n\n") == [StreamEvent("message", "a\nb")]

    def test_comments_and_unknown_fields_are_ignored(self):
        decoder = EventStreamDecoder()
        events = decoder.feed(": keepalive\nid: 7\nevent: log\ndata: x\n\n")
        assert events == [StreamEvent("log", "x")]

    def test_event_without_data_is_not_dispatched(self):
        decoder = EventStreamDecoder()
        assert decoder.feed("event: log\n\n") == []

    def test_close_flushes_unterminated_event(self):
        decoder = EventStreamDecoder()
        decoder.feed("event: result\ndata: {}")
        assert decoder.close() == [StreamEvent("result", "{}")]


@pytest.mark.unit
class TestConsumeGenerationStream:
    def test_routes_logs_and_sketches_then_returns_result(self):
        on_log = MagicMock()
        on_sketch = MagicMock()
        chunks = [
            b"event: log\ndata: plan\n\n",
            b"event: sketch\ndata: c2tldGNo\n\n",
            f"event: result\ndata: {RESULT}\n\n".encode(),
        ]
        result = consume_generation_stream(chunks, on_log=on_log, on_sketch=on_sketch)
        on_log.assert_called_once_with("plan")
        on_sketch.assert_called_once_with("c2tldGNo")
        assert result.image_data == "aW1n"
        assert result.thinking_log == ["plan", "draw"]

    def test_utf8_split_across_chunks(self):
        on_log = MagicMock()
        payload = "event: log\ndata: 思考\n\n".encode()
        split = payload.index("思".encode()) + 1
        chunks = [payload[:split], payload[split:], f"event: result\ndata: {RESULT}\n\n".encode()]
        consume_generation_stream(chunks, on_log=on_log)
        on_log.assert_called_once_with("思考")

    def test_text_chunks_are_accepted(self):
        result = consume_generation_stream([f"event: result\ndata: {RESULT}\n\n"])
        assert result.image_data == "aW1n"

    def test_result_without_trailing_blank_line(self):
        result = consume_generation_stream([f"event: result\ndata: {RESULT}"])
        assert result.image_data == "aW1n"

    def test_events_after_result_are_not_read(self):
        on_log = MagicMock()
        chunks = [f"event: result\ndata: {RESULT}\n\nevent: log\ndata: late\n\n"]
        consume_generation_stream(chunks, on_log=on_log)
        on_log.assert_not_called()

    def test_error_event_raises(self):
        with pytest.raises(APIError) as exc_info:
            consume_generation_stream(["event: error\ndata: quota exhausted\n\n"])
        assert "quota exhausted" in str(exc_info.value)

    def test_invalid_result_raises(self):
        with pytest.raises(APIError):
            consume_generation_stream(["event: result\ndata: not json\n\n"])

    def test_stream_without_result_raises(self):
        with pytest.raises(APIError) as exc_info:
            consume_generation_stream(["event: log\ndata: a\n\n"])
        assert "without a result" in str(exc_info.value)

    def test_cancellation(self):
        with pytest.raises(CancellationError):
            consume_generation_stream(["event: log\ndata: a\n\n"], cancel_check=lambda: True)
