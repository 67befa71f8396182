"""
Runtime settings for the chat client.

Values come from environment variables; a local ``.env`` file is honoured
so the API key does not need to live in the shell profile.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .errors import ConfigError
from .extract import MissingReply

DEFAULT_TOKEN_URL = "https://ngw.devices.sberbank.ru:9443/api/v2/oauth"
DEFAULT_CHAT_URL = "https://gigachat.devices.sberbank.ru/api/v1/chat/completions"
DEFAULT_SCOPE = "GIGACHAT_API_PERS"
DEFAULT_MODEL = "GigaChat"

#: Seconds allowed for the token endpoint to answer.
DEFAULT_TOKEN_TIMEOUT = 5.0
#: Seconds allowed for the chat endpoint (connect + read).
DEFAULT_CHAT_TIMEOUT = 120.0


@dataclass(frozen=True)
class Settings:
    api_key: str
    scope: str = DEFAULT_SCOPE
    token_url: str = DEFAULT_TOKEN_URL
    chat_url: str = DEFAULT_CHAT_URL
    model: str = DEFAULT_MODEL
    temperature: float | None = None
    timeout: float = DEFAULT_CHAT_TIMEOUT
    token_timeout: float = DEFAULT_TOKEN_TIMEOUT
    verify_ssl: bool = True
    missing_reply: MissingReply = MissingReply.NONE

    def __post_init__(self) -> None:
        if not self.api_key:
            raise ConfigError(
                "API key is not configured. Set GIGACHAT_API_KEY in the "
                "environment or in a .env file."
            )


def _getenv(key: str, default: str | None = None) -> str | None:
    v = os.getenv(key)
    if v is None or v.strip() == "":
        return default
    return v.strip()


def _float(key: str, default: float | None) -> float | None:
    raw = _getenv(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number, got {raw!r}.") from exc


def _bool(key: str, default: bool) -> bool:
    raw = _getenv(key)
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"{key} must be a boolean, got {raw!r}.")


def load_settings(**overrides) -> Settings:
    """Build :class:`Settings` from the environment.

    Keyword *overrides* win over environment values (used by the CLI
    flags).  Raises :class:`ConfigError` when the API key is missing or a
    value cannot be parsed.
    """
    load_dotenv(override=False)

    missing_raw = (_getenv("GIGACHAT_MISSING_REPLY", "none") or "none").lower()
    try:
        missing_reply = MissingReply(missing_raw)
    except ValueError as exc:
        raise ConfigError(
            f"GIGACHAT_MISSING_REPLY must be 'none' or 'raise', "
            f"got {missing_raw!r}."
        ) from exc

    values = {
        "api_key": _getenv("GIGACHAT_API_KEY", "") or "",
        "scope": _getenv("GIGACHAT_SCOPE", DEFAULT_SCOPE),
        "token_url": _getenv("GIGACHAT_TOKEN_URL", DEFAULT_TOKEN_URL),
        "chat_url": _getenv("GIGACHAT_CHAT_URL", DEFAULT_CHAT_URL),
        "model": _getenv("GIGACHAT_MODEL", DEFAULT_MODEL),
        "temperature": _float("GIGACHAT_TEMPERATURE", None),
        "timeout": _float("GIGACHAT_TIMEOUT", DEFAULT_CHAT_TIMEOUT),
        "token_timeout": _float("GIGACHAT_TOKEN_TIMEOUT", DEFAULT_TOKEN_TIMEOUT),
        "verify_ssl": _bool("GIGACHAT_VERIFY_SSL", True),
        "missing_reply": missing_reply,
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**values)
