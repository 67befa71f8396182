"""
Error taxonomy shared by the token manager, the request builder and both
response paths.

Every error derives from :class:`GigaChatError`, which keeps the diagnostic
context (HTTP status, endpoint, truncated response body, payload summary)
and renders it in ``str()`` so a log line or an ``on_error`` callback shows
everything needed to reproduce the failure.
"""


class GigaChatError(Exception):
    """Base class for every error raised by this package.

    Attributes
    ----------
    status : int | None
        HTTP status code (``None`` for non-HTTP errors).
    endpoint : str
        The URL that was called, when there was one.
    response_body : str
        First 500 chars of the response body.
    payload_summary : dict | None
        Summarised request payload (see :func:`payload.summarise_payload`).
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        endpoint: str = "",
        response_body: str = "",
        payload_summary: dict | None = None,
    ) -> None:
        self.status = status
        self.endpoint = endpoint
        self.response_body = response_body[:500] if response_body else ""
        self.payload_summary = payload_summary
        super().__init__(message)

    @property
    def kind(self) -> str:
        """Short error-kind name passed to streaming ``on_error`` callbacks."""
        return type(self).__name__

    def __str__(self) -> str:  # noqa: D105
        parts = [super().__str__()]
        if self.status is not None:
            parts.append(f"  HTTP {self.status}")
        if self.endpoint:
            parts.append(f"  Endpoint: {self.endpoint}")
        if self.response_body:
            parts.append(f"  Response: {self.response_body}")
        if self.payload_summary:
            parts.append(f"  Payload keys: {list(self.payload_summary.keys())}")
        return "\n".join(parts)


class ConfigError(GigaChatError):
    """A required setting (usually the API key) is missing or invalid."""


class AuthError(GigaChatError):
    """The token endpoint refused the credentials, failed or timed out."""

    def __init__(self, message: str, *, status: int | None = None,
                 body: str = "", endpoint: str = "") -> None:
        super().__init__(message, status=status, endpoint=endpoint,
                         response_body=body)

    @property
    def body(self) -> str:
        return self.response_body


class ApiError(GigaChatError):
    """The chat endpoint answered with an error envelope or HTTP error.

    ``message`` holds the server-supplied message verbatim, separate from
    the formatted exception text.
    """

    def __init__(self, message: str, *, status: int | None = None,
                 endpoint: str = "", response_body: str = "",
                 payload_summary: dict | None = None) -> None:
        self.message = message
        super().__init__(message, status=status, endpoint=endpoint,
                         response_body=response_body,
                         payload_summary=payload_summary)


class NoReplyError(ApiError):
    """No ``stop`` + ``assistant`` choice was found in a completed response."""


class UnsupportedRoleError(GigaChatError):
    """A message used a role the chat endpoint does not accept."""

    def __init__(self, role: str) -> None:
        self.role = role
        super().__init__(
            f"Unsupported message role {role!r}; "
            f"only 'user' and 'assistant' are accepted."
        )


class ParseError(GigaChatError):
    """A streaming ``data:`` payload was not valid JSON."""

    def __init__(self, raw_payload: str) -> None:
        self.raw_payload = raw_payload
        super().__init__(
            f"Malformed streaming event payload: {raw_payload[:200]}"
        )


class StreamCancelled(GigaChatError):
    """The caller cancelled a streaming request before it finished."""
