"""
Access-token lifecycle for the chat API.

Flow:
  1. The caller supplies :class:`Credentials` (API key + scope) once.
  2. Before each chat request :meth:`TokenManager.ensure_valid` checks the
     cached token; while it has more than 60 s left it is reused as-is.
  3. Otherwise the API key is exchanged for a fresh access token at the
     token endpoint and the cache is replaced in one step.

Only one refresh can be in flight per manager: the check and the refresh
both run under the manager's lock, and callers that waited on the lock
re-check the cache before issuing a request of their own.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable

import requests

from .config import DEFAULT_TOKEN_TIMEOUT, DEFAULT_TOKEN_URL
from .errors import AuthError

log = logging.getLogger("gigachat_client")

#: A token is treated as expired this many seconds before its real expiry.
EXPIRY_MARGIN = 60


@dataclass(frozen=True)
class Credentials:
    api_key: str
    scope: str


@dataclass(frozen=True)
class Token:
    """An access token and its expiry in epoch seconds."""

    value: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return self.expires_at - now > EXPIRY_MARGIN


class TokenCache:
    """Holds the current :class:`Token`; owned by exactly one manager."""

    def __init__(self) -> None:
        self._token: Token | None = None

    @property
    def token(self) -> Token | None:
        return self._token

    def replace(self, token: Token | None) -> None:
        self._token = token


# ---------------------------------------------------------------------------
# Token endpoint
# ---------------------------------------------------------------------------

def request_access_token(
    credentials: Credentials,
    *,
    url: str = DEFAULT_TOKEN_URL,
    rq_uid: str,
    timeout: float = DEFAULT_TOKEN_TIMEOUT,
    session: requests.Session | None = None,
    verify: bool = True,
) -> Token:
    """Exchange the API key for a short-lived access token.

    Raises :class:`AuthError` on a non-2xx answer, a timeout, a network
    failure or a success body without ``access_token`` / ``expires_at``.
    """
    headers = {
        "Authorization": f"Bearer {credentials.api_key}",
        "Content-Type": "application/x-www-form-urlencoded",
        "Accept": "application/json",
        "RqUID": rq_uid,
    }
    http = session or requests

    log.debug("[AUTH] POST %s  scope=%s  RqUID=%s", url, credentials.scope, rq_uid)
    log.debug("[AUTH]   key prefix = %s…  len = %d",
              credentials.api_key[:6], len(credentials.api_key))

    try:
        response = http.post(
            url,
            headers=headers,
            data={"scope": credentials.scope},
            timeout=timeout,
            verify=verify,
        )
    except requests.Timeout as exc:
        raise AuthError(
            f"Token request timed out after {timeout:g} s.",
            body=str(exc), endpoint=url,
        ) from exc
    except requests.RequestException as exc:
        raise AuthError(
            f"Token request failed: {type(exc).__name__}: {exc}",
            body=str(exc), endpoint=url,
        ) from exc

    log.debug("[AUTH] Token response: %s", response.status_code)

    if not response.ok:
        raise AuthError(
            f"Token request failed (HTTP {response.status_code}). "
            f"Check the API key and scope.",
            status=response.status_code,
            body=response.text or "",
            endpoint=url,
        )

    try:
        data = response.json()
        value = data["access_token"]
        expires_at_ms = float(data["expires_at"])
    except (ValueError, KeyError, TypeError) as exc:
        raise AuthError(
            "Token endpoint returned an unexpected body; expected "
            "'access_token' and 'expires_at'.",
            status=response.status_code,
            body=response.text or "",
            endpoint=url,
        ) from exc

    token = Token(value=value, expires_at=expires_at_ms / 1000.0)
    log.debug("[AUTH] Access token obtained — expires_at=%.0f", token.expires_at)
    return token


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------

class TokenManager:
    """Caches the access token and refreshes it when it is about to expire."""

    def __init__(
        self,
        credentials: Credentials,
        *,
        token_url: str = DEFAULT_TOKEN_URL,
        timeout: float = DEFAULT_TOKEN_TIMEOUT,
        session: requests.Session | None = None,
        verify: bool = True,
        uuid_factory: Callable[[], object] = uuid.uuid4,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._credentials = credentials
        self._token_url = token_url
        self._timeout = timeout
        self._session = session
        self._verify = verify
        self._uuid_factory = uuid_factory
        self._clock = clock
        self._cache = TokenCache()
        self._lock = threading.Lock()

    @property
    def cache(self) -> TokenCache:
        return self._cache

    def ensure_valid(self) -> Token:
        """Return a token with more than :data:`EXPIRY_MARGIN` seconds left."""
        with self._lock:
            now = self._clock()
            token = self._cache.token
            if token is not None and token.is_valid(now):
                return token

            log.debug("[AUTH] Access token expired or missing (now=%.0f, "
                      "expires=%.0f). Refreshing…",
                      now, token.expires_at if token else 0)
            token = request_access_token(
                self._credentials,
                url=self._token_url,
                rq_uid=str(self._uuid_factory()),
                timeout=self._timeout,
                session=self._session,
                verify=self._verify,
            )
            self._cache.replace(token)
            return token

    def invalidate(self) -> None:
        """Forget the cached token so the next call refreshes it."""
        with self._lock:
            self._cache.replace(None)
