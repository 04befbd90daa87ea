"""
Demultiplexer for the streamed generation response.

The backend streams a text event stream of ``event:`` / ``data:`` line
pairs separated by blank lines. Event types:

- ``log``: one line of the deep-thinking log
- ``sketch``: an intermediate sketch image (base64)
- ``result``: the final JSON result; supersedes everything before it
- ``error``: the generation failed

Chunks from the network can split a line (or a UTF-8 sequence) anywhere, so
the decoder buffers partial lines between feeds.
"""

import codecs
import json
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from pydantic import ValidationError as PydanticValidationError

from voidweaver.core.schemas import GenerateResponse
from voidweaver.logging_config import get_logger
from voidweaver.utils.exceptions import APIError, CancellationError

logger = get_logger(__name__)

EVENT_LOG = "log"
EVENT_SKETCH = "sketch"
EVENT_RESULT = "result"
EVENT_ERROR = "error"
DEFAULT_EVENT = "message"


@dataclass(frozen=True)
class StreamEvent:
    event: str
    data: str


class DecoderState(Enum):
    AWAITING_EVENT = "awaiting_event"  # no fields seen for the next event
    AWAITING_DATA = "awaiting_data"  # event type seen, no data yet
    COLLECTING_DATA = "collecting_data"  # data seen; a blank line dispatches


class EventStreamDecoder:
    """Incremental event-stream parser.

    feed() accepts arbitrary text chunks and returns the events completed by
    that chunk. close() flushes an event whose trailing blank line never
    arrived.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._state = DecoderState.AWAITING_EVENT
        self._event_type = DEFAULT_EVENT
        self._data: list[str] = []

    @property
    def state(self) -> DecoderState:
        return self._state

    def feed(self, chunk: str) -> list[StreamEvent]:
        self._buffer += chunk
        events: list[StreamEvent] = []
        while True:
            newline = self._buffer.find("\n")
            if newline == -1:
                break
            line = self._buffer[:newline].rstrip("\r")
            self._buffer = self._buffer[newline + 1 :]
            event = self._process_line(line)
            if event is not None:
                events.append(event)
        return events

    def close(self) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        if self._buffer:
            line, self._buffer = self._buffer.rstrip("\r"), ""
            event = self._process_line(line)
            if event is not None:
                events.append(event)
        event = self._dispatch()
        if event is not None:
            events.append(event)
        return events

    def _process_line(self, line: str) -> StreamEvent | None:
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if field == "event":
            self._event_type = value.strip() or DEFAULT_EVENT
            if self._state is DecoderState.AWAITING_EVENT:
                self._state = DecoderState.AWAITING_DATA
        elif field == "data":
            self._data.append(value)
            self._state = DecoderState.COLLECTING_DATA
        else:
            logger.debug("Ignoring stream field %r", field)
        return None

    def _dispatch(self) -> StreamEvent | None:
        event = None
        if self._state is DecoderState.COLLECTING_DATA:
            event = StreamEvent(event=self._event_type, data="\n".join(self._data))
        self._state = DecoderState.AWAITING_EVENT
        self._event_type = DEFAULT_EVENT
        self._data = []
        return event


def _parse_result(data: str) -> GenerateResponse:
    try:
        return GenerateResponse.model_validate(json.loads(data))
    except (ValueError, PydanticValidationError) as e:
        raise APIError(f"Invalid result event in generation stream: {e}", response=data) from e


def consume_generation_stream(
    chunks: Iterable[bytes | str],
    on_log: Callable[[str], None] | None = None,
    on_sketch: Callable[[str], None] | None = None,
    cancel_check: Callable[[], bool] | None = None,
) -> GenerateResponse:
    """
    Route stream events to callbacks and return the terminal result.

    Args:
        chunks: Raw chunks from the transport (bytes are decoded as UTF-8)
        on_log: Called for each ``log`` event, in arrival order
        on_sketch: Called for each ``sketch`` event
        cancel_check: Optional callable polled between chunks; returning True
            aborts with CancellationError

    Returns:
        The parsed ``result`` event. Events after it are not read.

    Raises:
        APIError: On an ``error`` event, an unparseable result, or a stream
            that ends without a result
        CancellationError: If cancel_check returned True
    """
    decoder = EventStreamDecoder()
    utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def _route(events: list[StreamEvent]) -> GenerateResponse | None:
        for event in events:
            if event.event == EVENT_LOG:
                if on_log is not None:
                    on_log(event.data)
            elif event.event == EVENT_SKETCH:
                if on_sketch is not None:
                    on_sketch(event.data)
            elif event.event == EVENT_RESULT:
                return _parse_result(event.data)
            elif event.event == EVENT_ERROR:
                raise APIError(event.data or "Generation stream reported an error")
            else:
                logger.debug("Ignoring stream event %r", event.event)
        return None

    for chunk in chunks:
        if cancel_check is not None and cancel_check():
            raise CancellationError("Image generation was cancelled.")
        text = utf8.decode(chunk) if isinstance(chunk, bytes) else chunk
        result = _route(decoder.feed(text))
        if result is not None:
            return result

    tail = utf8.decode(b"", final=True)
    result = _route(decoder.feed(tail) + decoder.close())
    if result is not None:
        return result
    raise APIError("Generation stream ended without a result")
