"""
Chat API client.

Two ways to talk to the chat completions endpoint:

* :meth:`GigaChatClient.chat` blocks and returns the assistant text, raising
  on failure.
* :meth:`GigaChatClient.chat_streaming` returns immediately; fragments,
  the final text and errors arrive through callbacks, delivered via an
  optional *dispatch* function so they run in the caller's own context
  (a GUI main loop, or an :class:`EventPump` drained by the caller).

:meth:`GigaChatClient.stream_events` is the generator both streaming
paths are built on; it yields :class:`Partial` / :class:`Complete` /
:class:`Error` events and honours a cancellation ``threading.Event``.

No request is ever retried.
"""

import json
import logging
import queue
import threading
import time
import uuid
from typing import Callable, Iterable, Iterator

import requests

from .auth import Credentials, TokenManager
from .config import Settings
from .errors import ApiError, GigaChatError, StreamCancelled
from .extract import extract_reply, parse_error_envelope
from .payload import MessageLike, Role, build_payload, summarise_payload
from .streaming import Complete, Error, Partial, StreamAggregator, StreamEvent

log = logging.getLogger("gigachat_client")

Prompt = str | Iterable[MessageLike]
Dispatch = Callable[..., object]


def _error_event(exc: Exception) -> Error:
    # args[0] is the plain message; str() carries the diagnostic block.
    message = exc.args[0] if exc.args else str(exc)
    kind = exc.kind if isinstance(exc, GigaChatError) else type(exc).__name__
    status = exc.status if isinstance(exc, GigaChatError) else None
    return Error(kind=kind, message=str(message), status=status)


def _direct(callback: Callable, *args) -> None:
    callback(*args)


class StreamHandle:
    """Handle for one in-flight :meth:`GigaChatClient.chat_streaming` call."""

    def __init__(self, cancel_event: threading.Event) -> None:
        self.cancel_event = cancel_event
        self._finished = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def done(self) -> bool:
        return self._finished.is_set()

    def cancel(self) -> None:
        """Ask the worker to stop at the next chunk boundary."""
        self.cancel_event.set()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the worker; returns *True* once it has finished."""
        return self._finished.wait(timeout)

    def start(self, target: Callable[[], None]) -> None:
        """Run *target* on a daemon thread; :attr:`done` is set when it returns."""
        def _run() -> None:
            try:
                target()
            finally:
                self._finished.set()

        self._thread = threading.Thread(target=_run, name="chat-stream", daemon=True)
        self._thread.start()


class EventPump:
    """Dispatcher that queues callbacks for the thread that drains it.

    Pass an instance as ``dispatch=`` and call :meth:`pump` (or
    :meth:`run_until_done`) from the thread that should run the callbacks.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue = queue.Queue()

    def __call__(self, callback: Callable, *args) -> None:
        self._queue.put((callback, args))

    def pump(self, timeout: float | None = None) -> int:
        """Run every queued callback; returns how many ran.

        With a *timeout*, waits up to that long for the first callback.
        """
        count = 0
        try:
            if timeout is not None:
                callback, args = self._queue.get(timeout=timeout)
                callback(*args)
                count += 1
            while True:
                callback, args = self._queue.get_nowait()
                callback(*args)
                count += 1
        except queue.Empty:
            pass
        return count

    def run_until_done(self, handle: StreamHandle, poll: float = 0.05) -> None:
        while True:
            finished = handle.done
            self.pump(timeout=poll)
            if finished and self._queue.empty():
                return


class GigaChatClient:
    """Thin wrapper around the chat completions endpoint."""

    def __init__(
        self,
        settings: Settings,
        *,
        session: requests.Session | None = None,
        token_manager: TokenManager | None = None,
        uuid_factory: Callable[[], object] = uuid.uuid4,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._session = session or requests.Session()
        self._uuid_factory = uuid_factory
        self._tokens = token_manager or TokenManager(
            Credentials(api_key=settings.api_key, scope=settings.scope),
            token_url=settings.token_url,
            timeout=settings.token_timeout,
            session=self._session,
            verify=settings.verify_ssl,
            uuid_factory=uuid_factory,
            clock=clock,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def tokens(self) -> TokenManager:
        return self._tokens

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "GigaChatClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _build(self, prompt: Prompt, model: str | None,
               temperature: float | None, stream: bool) -> dict:
        if isinstance(prompt, str):
            messages: list = [{"role": Role.USER, "content": prompt}]
        else:
            messages = list(prompt)
        if temperature is None:
            temperature = self._settings.temperature
        payload = build_payload(
            model or self._settings.model, messages, temperature, stream,
        )

        log.debug("[API] ── Sending chat request ──")
        log.debug("[API]   model = %s  |  stream = %s  |  messages = %d",
                  payload["model"], stream, len(payload["messages"]))
        for i, m in enumerate(payload["messages"]):
            content = m["content"]
            preview = (content[:120] + "…") if len(content) > 120 else content
            log.debug("[API]   msg[%d] role=%-10s  content=%s",
                      i, m["role"], preview)
        return payload

    def _post(self, payload: dict, stream: bool) -> requests.Response:
        token = self._tokens.ensure_valid()
        url = self._settings.chat_url
        headers = {
            "Authorization": f"Bearer {token.value}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream" if stream else "application/json",
            "X-Request-ID": str(self._uuid_factory()),
        }
        try:
            response = self._session.post(
                url,
                headers=headers,
                json=payload,
                stream=stream,
                timeout=self._settings.timeout,
                verify=self._settings.verify_ssl,
            )
        except requests.RequestException as exc:
            raise ApiError(
                f"Chat request failed: {type(exc).__name__}: {exc}",
                endpoint=url,
                payload_summary=summarise_payload(payload),
            ) from exc

        log.debug("[API] POST %s → %d", url, response.status_code)

        if not response.ok:
            self._raise_http_error(response, url, payload)
        return response

    def _raise_http_error(self, response: requests.Response, url: str,
                          payload: dict) -> None:
        body_text = response.text or ""
        try:
            envelope = parse_error_envelope(response.json())
        except ValueError:
            envelope = None
        response.close()

        if response.status_code == 401:
            # The server no longer accepts the cached token.
            self._tokens.invalidate()

        if envelope is not None:
            message = envelope.message
            status = envelope.status if envelope.status is not None else response.status_code
        else:
            message = f"Chat request failed (HTTP {response.status_code})."
            status = response.status_code
        raise ApiError(
            message,
            status=status,
            endpoint=url,
            response_body=body_text,
            payload_summary=summarise_payload(payload),
        )

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def chat(self, prompt: Prompt, *, model: str | None = None,
             temperature: float | None = None) -> str | None:
        """Send *prompt* and return the assistant reply.

        *prompt* is either a plain user prompt or an ordered list of
        ``Message`` objects / ``{"role", "content"}`` dicts.  Returns
        ``None`` when the response has no completed assistant message,
        unless the client was configured with ``MissingReply.RAISE``.
        """
        payload = self._build(prompt, model, temperature, stream=False)
        response = self._post(payload, stream=False)
        url = self._settings.chat_url
        try:
            body = response.json()
        except ValueError as exc:
            raise ApiError(
                "Chat endpoint returned a non-JSON response.",
                status=response.status_code,
                endpoint=url,
                response_body=response.text or "",
            ) from exc
        reply = extract_reply(body, missing=self._settings.missing_reply,
                              endpoint=url)
        if reply is None:
            log.warning("[API] Response has no completed assistant message. "
                        "Full body: %s", json.dumps(body)[:500])
        return reply

    def stream_events(self, prompt: Prompt, *, model: str | None = None,
                      temperature: float | None = None,
                      cancel: threading.Event | None = None,
                      ) -> Iterator[StreamEvent]:
        """Yield typed events for one streaming request.

        Every fragment is yielded as a :class:`Partial`; the stream ends with
        exactly one :class:`Complete` (full text) or :class:`Error`.  Errors
        are reported as events, never raised.
        """
        aggregator = StreamAggregator(cancel)
        response = None
        try:
            payload = self._build(prompt, model, temperature, stream=True)
            if aggregator.cancelled:
                raise StreamCancelled("Streaming request was cancelled.")
            response = self._post(payload, stream=True)
            # Raw bytes; the aggregator decodes them as UTF-8 whatever
            # charset requests guessed from the headers.
            for chunk in response.iter_content(chunk_size=None):
                for fragment in aggregator.feed(chunk):
                    yield Partial(fragment)
                if aggregator.done:
                    break
            text = aggregator.finish()
        except GigaChatError as exc:
            log.error("[API] Streaming request failed: %s", exc)
            yield _error_event(exc)
            return
        except requests.RequestException as exc:
            log.error("[API] Stream interrupted: %s: %s",
                      type(exc).__name__, exc)
            yield Error(kind=ApiError.__name__,
                        message=f"Stream interrupted: {type(exc).__name__}: {exc}")
            return
        finally:
            if response is not None:
                response.close()

        log.debug("[API] Stream complete — %d fragments, %d chars",
                  len(aggregator.fragments), len(text))
        yield Complete(text)

    def chat_streaming(
        self,
        prompt: Prompt,
        on_partial: Callable[[str], object],
        on_complete: Callable[[str], object],
        on_error: Callable[[str, str], object],
        *,
        model: str | None = None,
        temperature: float | None = None,
        dispatch: Dispatch | None = None,
        cancel: threading.Event | None = None,
    ) -> StreamHandle:
        """Start a streaming request on a worker thread and return at once.

        Callbacks are invoked as ``dispatch(callback, *args)``; pass e.g.
        ``lambda fn, *a: root.after(0, fn, *a)`` or an :class:`EventPump`
        to run them on the calling thread.  Without *dispatch* they run on
        the worker.  Errors are delivered only as ``on_error(kind, message)``.
        """
        handle = StreamHandle(cancel or threading.Event())
        deliver = dispatch or _direct

        def _worker() -> None:
            try:
                for event in self.stream_events(prompt, model=model,
                                                temperature=temperature,
                                                cancel=handle.cancel_event):
                    if isinstance(event, Partial):
                        deliver(on_partial, event.text)
                    elif isinstance(event, Complete):
                        deliver(on_complete, event.text)
                    else:
                        deliver(on_error, event.kind, event.message)
            except Exception as exc:  # noqa: BLE001
                # Nothing may escape the worker thread.
                log.exception("[API] Unexpected error in streaming worker")
                deliver(on_error, type(exc).__name__, str(exc))

        handle.start(_worker)
        return handle
