"""Turn a completed (non-streaming) chat response into the assistant text."""

from dataclasses import dataclass
from enum import Enum

from .errors import ApiError, NoReplyError


class MissingReply(str, Enum):
    """What :func:`extract_reply` does when no terminal choice exists."""

    NONE = "none"
    RAISE = "raise"


@dataclass(frozen=True)
class ErrorEnvelope:
    status: int | None
    message: str


def parse_error_envelope(body) -> ErrorEnvelope | None:
    """Return the ``{"error": {...}}`` envelope in *body*, or ``None``."""
    if not isinstance(body, dict) or "error" not in body:
        return None
    err = body["error"]
    if isinstance(err, dict):
        status = err.get("status", err.get("code"))
        try:
            status = int(status) if status is not None else None
        except (TypeError, ValueError):
            status = None
        return ErrorEnvelope(status=status, message=str(err.get("message", err)))
    return ErrorEnvelope(status=None, message=str(err))


def raise_for_envelope(body, *, endpoint: str = "") -> None:
    envelope = parse_error_envelope(body)
    if envelope is not None:
        raise ApiError(envelope.message, status=envelope.status, endpoint=endpoint)


def extract_reply(body: dict, *,
                  missing: MissingReply = MissingReply.NONE,
                  endpoint: str = "") -> str | None:
    """Return the content of the first ``stop`` + ``assistant`` choice.

    Raises :class:`ApiError` when *body* carries an error envelope.  When no
    choice qualifies, returns ``None`` or raises :class:`NoReplyError`
    depending on *missing*.
    """
    if not isinstance(body, dict):
        raise ApiError(
            f"Unexpected response body: expected a JSON object, "
            f"got {type(body).__name__}.",
            endpoint=endpoint,
        )
    raise_for_envelope(body, endpoint=endpoint)

    choices = body.get("choices")
    if not isinstance(choices, list):
        choices = []
    for choice in choices:
        if not isinstance(choice, dict):
            continue
        message = choice.get("message")
        if not isinstance(message, dict):
            continue
        if (choice.get("finish_reason") == "stop"
                and message.get("role") == "assistant"):
            return message.get("content", "")

    if MissingReply(missing) is MissingReply.RAISE:
        raise NoReplyError(
            "Response contained no completed assistant message "
            "(finish_reason='stop').",
            endpoint=endpoint,
        )
    return None
