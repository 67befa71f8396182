"""
Request-body construction for the chat completions endpoint.

Messages go out in exactly the order the caller supplied them.  Only the
``user`` and ``assistant`` roles are accepted; a ``system`` message is
rejected here, before a token is fetched or anything is sent.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Union

from .errors import UnsupportedRoleError


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


#: Roles that map onto the wire, with their wire names.
_WIRE_ROLES = {
    Role.USER: "user",
    Role.ASSISTANT: "assistant",
}


@dataclass(frozen=True)
class Message:
    role: Role | str
    content: str


MessageLike = Union[Message, dict]


def _wire_role(role: Role | str) -> str:
    try:
        key = Role(role)
    except ValueError:
        raise UnsupportedRoleError(str(role)) from None
    if key not in _WIRE_ROLES:
        raise UnsupportedRoleError(key.value)
    return _WIRE_ROLES[key]


def format_messages(messages: Iterable[MessageLike]) -> list[dict]:
    """Return wire-format ``{"role", "content"}`` dicts, order preserved."""
    out: list[dict] = []
    for msg in messages:
        if isinstance(msg, Message):
            role, content = msg.role, msg.content
        else:
            role, content = msg.get("role", ""), msg.get("content", "")
        out.append({"role": _wire_role(role), "content": content})
    return out


def build_payload(
    model: str,
    messages: Iterable[MessageLike],
    temperature: float | None = None,
    stream: bool = False,
    *,
    max_tokens: int | None = None,
    top_p: float | None = None,
    repetition_penalty: float | None = None,
) -> dict:
    """Build the JSON body for one chat request.

    Optional fields are only present when set; ``stream`` is only present
    when *True*.
    """
    payload: dict = {
        "model": model,
        "messages": format_messages(messages),
    }
    if temperature is not None:
        payload["temperature"] = temperature
    if top_p is not None:
        payload["top_p"] = top_p
    if max_tokens is not None:
        payload["max_tokens"] = max_tokens
    if repetition_penalty is not None:
        payload["repetition_penalty"] = repetition_penalty
    if stream:
        payload["stream"] = True
    return payload


def summarise_payload(payload: dict) -> dict:
    """Return a compact summary of a request payload for diagnostics.

    Keeps scalar fields intact but replaces the message list with a count.
    """
    summary = {}
    for k, v in payload.items():
        if k == "messages":
            summary["messages"] = f"[{len(v)} messages]"
        else:
            summary[k] = v
    return summary
