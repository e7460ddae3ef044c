"""Server-side dispatcher.

Given a request naming an endpoint, the dispatcher performs, in order:

1. Lookup in the registry (unknown -> UnknownEndpointError)
2. Input validation (rejected -> InvalidInputError)
3. Authorization gate for authenticated endpoints
   (no token -> TokenRequiredError, authenticator raises -> AuthenticationFailedError)
4. Handler invocation; its result is returned as-is

Handler exceptions propagate unchanged. The dispatcher keeps no state
between requests and does no logging; the wire servers around it do.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .errors import (
    AuthenticationFailedError,
    InvalidInputError,
    InvalidOutputError,
    MalformedRequestError,
    RegistryError,
    TokenRequiredError,
    UnknownEndpointError,
)
from .handlers import AuthenticatedHandler, HandlerSet, PublicHandler
from .registry import EndpointDeclaration, EndpointKind, EndpointRegistry
from .shapes import Rejected, SchemaValidator, validate

# token -> identity, sync or async; raises on invalid tokens
Authenticator = Callable[[str], Any]


@dataclass(frozen=True)
class Request:
    """A request for a single endpoint."""

    endpoint: str
    payload: Any = None
    token: str | None = None

    @classmethod
    def from_wire(cls, obj: Any) -> Request:
        """Build a request from its JSON form ``{endpoint, payload, token?}``.

        An empty token string is treated as absent.
        """
        if not isinstance(obj, dict):
            raise MalformedRequestError("request must be an object")
        endpoint = obj.get("endpoint")
        if not isinstance(endpoint, str) or not endpoint:
            raise MalformedRequestError("endpoint is required")
        token = obj.get("token")
        if token is not None and not isinstance(token, str):
            raise MalformedRequestError("token must be a string")
        return cls(endpoint=endpoint, payload=obj.get("payload"), token=token or None)

    def to_wire(self) -> dict[str, Any]:
        out: dict[str, Any] = {"endpoint": self.endpoint, "payload": self.payload}
        if self.token is not None:
            out["token"] = self.token
        return out


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class Dispatcher:
    """Dispatches requests to handlers over an immutable registry."""

    def __init__(
        self,
        registry: EndpointRegistry,
        authenticator: Authenticator,
        handlers: HandlerSet,
        *,
        validator: SchemaValidator = validate,
    ) -> None:
        self.registry = registry.seal()
        self._authenticator = authenticator
        handlers.check(self.registry)
        self._handlers = handlers
        self._validator = validator

    async def handle(self, request: Request) -> Any:
        """Dispatch ``request`` and return the handler's output.

        Raises:
            UnknownEndpointError: The endpoint is not registered.
            InvalidInputError: The payload failed validation.
            TokenRequiredError: Authenticated endpoint called without a token.
            AuthenticationFailedError: The authenticator rejected the token.
            Exception: Whatever the handler raised, unchanged.
        """
        declaration = self.registry.lookup(request.endpoint)
        if declaration is None:
            raise UnknownEndpointError(request.endpoint)

        result = self._validator(declaration.input_shape, request.payload)
        if isinstance(result, Rejected) or not result.accepted:
            raise InvalidInputError(declaration.name, result.reason)
        payload = result.value

        handler = self._handlers.get(declaration.name)

        if declaration.kind is EndpointKind.AUTHENTICATED:
            if not isinstance(handler, AuthenticatedHandler):
                raise RegistryError(f"Handler for {declaration.name} must be an AuthenticatedHandler")
            if not request.token:
                raise TokenRequiredError(declaration.name)
            identity = await self._authenticate(declaration.name, request.token)
            return await _resolve(handler.fn(identity, payload))

        if not isinstance(handler, PublicHandler):
            raise RegistryError(f"Handler for {declaration.name} must be a PublicHandler")
        return await _resolve(handler.fn(payload))

    async def handle_wire(self, obj: Any) -> Any:
        """Parse a wire envelope and dispatch it."""
        return await self.handle(Request.from_wire(obj))

    async def _authenticate(self, endpoint: str, token: str) -> Any:
        try:
            identity = await _resolve(self._authenticator(token))
        except Exception as exc:
            raise AuthenticationFailedError(endpoint, str(exc)) from exc
        if identity is None:
            raise AuthenticationFailedError(endpoint, "authenticator returned no identity")
        return identity


async def handle(
    registry: EndpointRegistry,
    authenticator: Authenticator,
    handlers: HandlerSet,
    request: Request,
) -> Any:
    """One-shot form of :meth:`Dispatcher.handle`."""
    return await Dispatcher(registry, authenticator, handlers).handle(request)


def check_output(
    declaration: EndpointDeclaration[Any, Any],
    value: Any,
    validator: SchemaValidator = validate,
) -> Any:
    """Validate a handler result against the endpoint's output shape.

    Not part of :meth:`Dispatcher.handle`; callers opt in explicitly.
    Returns the normalized value.

    Raises:
        InvalidOutputError: If the value does not match the output shape.
    """
    result = validator(declaration.output_shape, value)
    if isinstance(result, Rejected) or not result.accepted:
        raise InvalidOutputError(declaration.name, result.reason)
    return result.value
