"""
Server-sent-events aggregation for streaming chat responses.

A :class:`StreamAggregator` lives for exactly one streaming request.  The
transport hands it raw chunks as they arrive; each chunk may contain any
number of lines and a line may be split between two chunks.  Lines of the
form ``data: <json>`` contribute their ``choices[i].delta.content``
fragments; ``data: [DONE]`` is the end-of-stream sentinel.

Events surfaced to callers are the typed :class:`Partial`,
:class:`Complete` and :class:`Error` records.
"""

import codecs
import json
import logging
import threading
from dataclasses import dataclass
from typing import Union

from .errors import ApiError, ParseError, StreamCancelled
from .extract import parse_error_envelope

log = logging.getLogger("gigachat_client")

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


# ---------------------------------------------------------------------------
# Stream events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Partial:
    text: str


@dataclass(frozen=True)
class Complete:
    text: str


@dataclass(frozen=True)
class Error:
    kind: str
    message: str
    status: int | None = None


StreamEvent = Union[Partial, Complete, Error]


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------

class StreamAggregator:
    """Accumulate delta fragments across the chunks of one response."""

    def __init__(self, cancel: threading.Event | None = None) -> None:
        self._fragments: list[str] = []
        self._pending = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._cancel = cancel or threading.Event()
        self._failed: Exception | None = None
        self.done = False

    # -- state ---------------------------------------------------------

    @property
    def fragments(self) -> list[str]:
        return list(self._fragments)

    @property
    def text(self) -> str:
        return "".join(self._fragments)

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        self._cancel.set()

    # -- consumption ---------------------------------------------------

    def feed(self, chunk: str | bytes) -> list[str]:
        """Consume one transport chunk and return the fragments it added.

        Raises :class:`ParseError` for a malformed payload,
        :class:`ApiError` for an in-stream error envelope and
        :class:`StreamCancelled` once :meth:`cancel` has been called.
        """
        self._check_usable()
        if self.done:
            return []
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)

        # The last piece has no newline yet; hold it for the next chunk.
        *lines, self._pending = (self._pending + chunk).split("\n")

        added: list[str] = []
        for line in lines:
            added.extend(self._handle_line(line.rstrip("\r")))
            if self.done:
                # Nothing after the sentinel belongs to this response.
                self._pending = ""
                break
        return added

    def finish(self) -> str:
        """Flush a held partial line and return the accumulated text."""
        self._check_usable()
        if not self.done:
            self._pending += self._decoder.decode(b"", final=True)
        if self._pending and not self.done:
            line, self._pending = self._pending, ""
            self._handle_line(line.rstrip("\r"))
        if not self._fragments:
            log.warning("[SSE] Stream ended with 0 text fragments. "
                        "The model may have returned an empty response.")
        return self.text

    # -- internals -----------------------------------------------------

    def _check_usable(self) -> None:
        if self._failed is not None:
            raise self._failed
        if self.cancelled:
            raise StreamCancelled("Streaming request was cancelled.")

    def _fail(self, exc: Exception) -> Exception:
        self._failed = exc
        return exc

    def _handle_line(self, line: str) -> list[str]:
        if not line.startswith(DATA_PREFIX):
            return []
        payload = line[len(DATA_PREFIX):].strip()
        if not payload:
            return []
        if payload == DONE_SENTINEL:
            self.done = True
            return []

        try:
            event = json.loads(payload)
        except json.JSONDecodeError:
            log.warning("[SSE] Failed to parse JSON payload: %s", payload[:200])
            raise self._fail(ParseError(payload)) from None

        envelope = parse_error_envelope(event)
        if envelope is not None:
            log.error("[SSE] Stream error [%s]: %s", envelope.status, envelope.message)
            raise self._fail(ApiError(envelope.message, status=envelope.status))

        added: list[str] = []
        choices = event.get("choices") if isinstance(event, dict) else None
        for choice in choices or []:
            if not isinstance(choice, dict):
                continue
            delta = choice.get("delta")
            content = delta.get("content") if isinstance(delta, dict) else None
            if isinstance(content, str) and content:
                self._fragments.append(content)
                added.append(content)
        return added
