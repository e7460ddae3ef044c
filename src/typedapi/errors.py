"""Error taxonomy for the dispatch protocol.

Every failure the Dispatcher or Caller can report has its own class so
callers can tell them apart. Handler exceptions are deliberately absent:
they propagate unchanged and are only mapped to a wire code at the edge.
"""

from __future__ import annotations

from typing import Any

# Wire codes (JSON-RPC style)
MALFORMED_REQUEST = -32600
UNKNOWN_ENDPOINT = -32601
INVALID_INPUT = -32602
HANDLER_FAILURE = -32603
TOKEN_REQUIRED = -32001
AUTHENTICATION_FAILED = -32002
INVALID_OUTPUT = -32003


class TypedApiError(Exception):
    """Base exception for protocol failures."""

    kind = "typed_api_error"
    code = HANDLER_FAILURE

    def __init__(self, message: str, *, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "code": self.code,
            "kind": self.kind,
            "message": self.message,
        }
        if self.context:
            out["data"] = self.context
        return out


class RegistryError(TypedApiError):
    """Raised for configuration mistakes in the registry or handler set."""

    kind = "registry_error"


class MalformedRequestError(TypedApiError):
    """Raised when a wire envelope cannot be turned into a request."""

    kind = "malformed_request"
    code = MALFORMED_REQUEST


class UnknownEndpointError(TypedApiError):
    kind = "unknown_endpoint"
    code = UNKNOWN_ENDPOINT

    def __init__(self, endpoint: Any) -> None:
        super().__init__(f"Unknown endpoint: {endpoint}", context={"endpoint": endpoint})
        self.endpoint = endpoint


class InvalidInputError(TypedApiError):
    """Raised when a payload is rejected by the schema validator.

    ``reason`` is whatever structured diagnostic the validator produced.
    """

    kind = "invalid_input"
    code = INVALID_INPUT

    def __init__(self, endpoint: str, reason: Any) -> None:
        super().__init__(
            f"Invalid input for {endpoint}",
            context={"endpoint": endpoint, "reason": reason},
        )
        self.endpoint = endpoint
        self.reason = reason


class TokenRequiredError(TypedApiError):
    kind = "token_required"
    code = TOKEN_REQUIRED

    def __init__(self, endpoint: str) -> None:
        super().__init__(f"Token required for {endpoint}", context={"endpoint": endpoint})
        self.endpoint = endpoint


class AuthenticationFailedError(TypedApiError):
    """Raised when the authenticator rejects a token.

    The message is the authenticator's own reason, unmodified.
    """

    kind = "authentication_failed"
    code = AUTHENTICATION_FAILED

    def __init__(self, endpoint: str, reason: str) -> None:
        super().__init__(reason, context={"endpoint": endpoint})
        self.endpoint = endpoint
        self.reason = reason


class InvalidOutputError(TypedApiError):
    kind = "invalid_output"
    code = INVALID_OUTPUT

    def __init__(self, endpoint: str, reason: Any) -> None:
        super().__init__(
            f"Invalid output from {endpoint}",
            context={"endpoint": endpoint, "reason": reason},
        )
        self.endpoint = endpoint
        self.reason = reason


class UnexpectedTokenError(TypedApiError, TypeError):
    """Raised client-side when a token is passed to a public endpoint."""

    kind = "unexpected_token"
    code = MALFORMED_REQUEST

    def __init__(self, endpoint: str) -> None:
        super().__init__(
            f"{endpoint} is a public endpoint and takes no token",
            context={"endpoint": endpoint},
        )
        self.endpoint = endpoint


class TransportFailureError(TypedApiError):
    """Raised client-side when the transport reports a non-success outcome."""

    kind = "transport_failure"

    def __init__(self, status_code: int | None, body: str) -> None:
        message = f"Transport failure ({status_code}): {body}" if status_code else body
        super().__init__(message, context={"status_code": status_code})
        self.status_code = status_code
        self.body = body


def get_error_code(exc: BaseException) -> int:
    """Map an exception to its wire code.

    Anything outside the taxonomy is a handler failure.
    """
    if isinstance(exc, TypedApiError):
        return exc.code
    return HANDLER_FAILURE


def get_error_kind(exc: BaseException) -> str:
    if isinstance(exc, TypedApiError):
        return exc.kind
    return "handler_failure"


__all__ = [
    "AUTHENTICATION_FAILED",
    "HANDLER_FAILURE",
    "INVALID_INPUT",
    "INVALID_OUTPUT",
    "MALFORMED_REQUEST",
    "TOKEN_REQUIRED",
    "UNKNOWN_ENDPOINT",
    "AuthenticationFailedError",
    "InvalidInputError",
    "InvalidOutputError",
    "MalformedRequestError",
    "RegistryError",
    "TokenRequiredError",
    "TransportFailureError",
    "TypedApiError",
    "UnexpectedTokenError",
    "UnknownEndpointError",
    "get_error_code",
    "get_error_kind",
]
