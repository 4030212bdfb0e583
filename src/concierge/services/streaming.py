"""Streaming pipeline: upstream SSE bytes -> tokens -> event batches -> frames.

Each stage is a lazy generator over the previous one, so a frame is written
as soon as the segmenter completes a boundary and nothing is read from the
upstream connection ahead of demand.
"""

from __future__ import annotations

import codecs
import json
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Union

from ..core.state_machine import SegmentationPolicy, Segmenter
from ..domain.events import Event, EventBatch, MessageIds, OutputEvent
from ..errors import StreamDecodeError, UpstreamError
from ..observability.metrics import STREAM_FAILURES, record_batch

LOG = logging.getLogger("concierge.stream")

DONE_SENTINEL = "[DONE]"
FRAME_DELIMITER = "||\n"

_LINE_END_RE = re.compile(r"\r\n|\r|\n")


@dataclass(frozen=True)
class ServerSentEvent:
    data: str
    event: str = "message"
    id: Optional[str] = None
    retry: Optional[int] = None


class ServerSentEventParser:
    """Incremental ``text/event-stream`` parser.

    Feed raw transport chunks in any split; completed records come back from
    :meth:`feed`. Partial lines, partial records and partial UTF-8 sequences
    are buffered until the rest arrives.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""
        self._started = False
        self._data_lines: List[str] = []
        self._event = ""
        self._last_id: Optional[str] = None
        self._retry: Optional[int] = None

    def feed(self, chunk: Union[bytes, str]) -> List[ServerSentEvent]:
        text = chunk if isinstance(chunk, str) else self._decoder.decode(chunk)
        return self._consume(text, final=False)

    def close(self) -> List[ServerSentEvent]:
        """Flush at end of stream; an unterminated record is discarded."""
        events = self._consume(self._decoder.decode(b"", final=True), final=True)
        if self._buffer or self._data_lines:
            LOG.debug("sse_incomplete_record_dropped", extra={"pending": self._buffer})
        self._buffer = ""
        self._data_lines = []
        self._event = ""
        return events

    def _consume(self, text: str, *, final: bool) -> List[ServerSentEvent]:
        if text and not self._started:
            self._started = True
            if text.startswith("\ufeff"):
                text = text[1:]
        self._buffer += text
        events: List[ServerSentEvent] = []
        while True:
            line = self._next_line(final)
            if line is None:
                return events
            event = self._process_line(line)
            if event is not None:
                events.append(event)

    def _next_line(self, final: bool) -> Optional[str]:
        match = _LINE_END_RE.search(self._buffer)
        if match is None:
            return None
        # A trailing "\r" may be the first half of "\r\n".
        if match.group() == "\r" and match.end() == len(self._buffer) and not final:
            return None
        line = self._buffer[: match.start()]
        self._buffer = self._buffer[match.end() :]
        return line

    def _process_line(self, line: str) -> Optional[ServerSentEvent]:
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None
        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]
        if name == "data":
            self._data_lines.append(value)
        elif name == "event":
            self._event = value
        elif name == "id":
            if "\x00" not in value:
                self._last_id = value
        elif name == "retry":
            if value.isdigit():
                self._retry = int(value)
        return None

    def _dispatch(self) -> Optional[ServerSentEvent]:
        data_lines, event = self._data_lines, self._event
        self._data_lines = []
        self._event = ""
        if not data_lines:
            return None
        if event and event != "message":
            LOG.debug("sse_event_ignored", extra={"sse_event": event})
            return None
        return ServerSentEvent(data="\n".join(data_lines), id=self._last_id, retry=self._retry)


def read_events(chunks: Iterable[Union[bytes, str]]) -> Iterator[str]:
    """Yield the ``data`` payload of every plain SSE event in ``chunks``."""
    parser = ServerSentEventParser()
    for chunk in chunks:
        if not chunk:
            continue
        for event in parser.feed(chunk):
            yield event.data
    for event in parser.close():
        yield event.data


def parse_delta(data: str) -> str:
    """Return ``choices[0].delta.content`` from one completion chunk, or ``""``."""
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as exc:
        raise StreamDecodeError(data, str(exc)) from exc
    try:
        content = payload["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        return ""
    return content if isinstance(content, str) else ""


def extract_tokens(records: Iterable[str]) -> Iterator[str]:
    for data in records:
        if data.strip() == DONE_SENTINEL:
            LOG.debug("stream_done_sentinel")
            return
        yield parse_delta(data)


def event_type(event: Event) -> str:
    return event.type if isinstance(event, OutputEvent) else "topic"


def encode_frame(batch: EventBatch) -> bytes:
    """Serialize one batch as a compact JSON array followed by ``||\\n``."""
    body = json.dumps([event.to_wire() for event in batch], separators=(",", ":"), ensure_ascii=False)
    return (body + FRAME_DELIMITER).encode("utf-8")


class CompletionPipeline:
    """Wires the envelope reader, delta extractor, segmenter and serializer.

    One instance per completion request; it owns the segmenter state.
    """

    def __init__(self, policy: SegmentationPolicy, ids: MessageIds) -> None:
        self.policy = policy
        self.segmenter = Segmenter(policy, ids)

    def events(self, chunks: Iterable[Union[bytes, str]]) -> Iterator[EventBatch]:
        for token in extract_tokens(read_events(chunks)):
            for batch in self.segmenter.feed(token):
                yield batch

    def frames(self, chunks: Iterable[Union[bytes, str]]) -> Iterator[bytes]:
        state = self.segmenter.state
        try:
            for batch in self.events(chunks):
                record_batch(self.policy.name, (event_type(e) for e in batch))
                yield encode_frame(batch)
        except StreamDecodeError as exc:
            STREAM_FAILURES.labels(reason="decode").inc()
            LOG.error("stream_decode_failed", extra={"reason": exc.reason, "data": exc.data[:200]})
            raise
        except UpstreamError as exc:
            STREAM_FAILURES.labels(reason="upstream").inc()
            LOG.warning("stream_upstream_interrupted", extra={"err": str(exc)})
            raise
        finally:
            LOG.info(
                "completion_stream_closed",
                extra={
                    "variant": self.policy.name,
                    "tokens": state.counter,
                    "total_messages": state.total_messages,
                    "rewrite": state.rewrite,
                    "chars": len(state.full_message),
                },
            )
