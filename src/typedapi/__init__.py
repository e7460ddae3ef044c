"""typedapi: typed request dispatch for a single-endpoint RPC API.

Declare endpoints once in an EndpointRegistry, serve them with a Dispatcher
and call them with a Caller over any transport.
"""

from __future__ import annotations

from typedapi.caller import Caller, Transport, call, typed_api_client
from typedapi.dispatcher import Authenticator, Dispatcher, Request, check_output, handle
from typedapi.errors import (
    AuthenticationFailedError,
    InvalidInputError,
    InvalidOutputError,
    MalformedRequestError,
    RegistryError,
    TokenRequiredError,
    TransportFailureError,
    TypedApiError,
    UnexpectedTokenError,
    UnknownEndpointError,
    get_error_code,
)
from typedapi.handlers import (
    AuthenticatedHandler,
    HandlerSet,
    HandlerSetBuilder,
    PublicHandler,
)
from typedapi.registry import (
    AuthenticatedEndpoint,
    EndpointDeclaration,
    EndpointKind,
    EndpointRegistry,
    PublicEndpoint,
)
from typedapi.shapes import Accepted, ParamSpec, ParamType, Rejected, check_shape, validate
from typedapi.transport import HttpTransport, LocalTransport

__version__ = "0.1.0"

__all__ = [
    # Registry
    "AuthenticatedEndpoint",
    "EndpointDeclaration",
    "EndpointKind",
    "EndpointRegistry",
    "PublicEndpoint",
    # Handlers
    "AuthenticatedHandler",
    "HandlerSet",
    "HandlerSetBuilder",
    "PublicHandler",
    # Dispatch
    "Authenticator",
    "Dispatcher",
    "Request",
    "check_output",
    "handle",
    # Client
    "Caller",
    "HttpTransport",
    "LocalTransport",
    "Transport",
    "call",
    "typed_api_client",
    # Shapes
    "Accepted",
    "ParamSpec",
    "ParamType",
    "Rejected",
    "validate",
    "check_shape",
    # Errors
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
]
