"""Client-side caller.

Mirror of the dispatcher on the send side: builds ``{endpoint, payload,
token?}`` for a registered endpoint and hands it to a transport. Requests
that the dispatcher would reject for their shape (missing token on an
authenticated endpoint, token on a public one, unknown name) are refused
before anything is sent.

Usage:
    caller = Caller(registry, HttpTransport("http://127.0.0.1:8000/"))
    reply = await caller.call(echo, {"msg": "hi"})
    me = await caller.call(whoami, None, token=session_token)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar, overload

from pydantic import BaseModel

from .dispatcher import Request, check_output
from .errors import TokenRequiredError, UnexpectedTokenError, UnknownEndpointError
from .registry import (
    AuthenticatedEndpoint,
    EndpointDeclaration,
    EndpointRegistry,
    PublicEndpoint,
)
from .shapes import SchemaValidator, validate
from .transport import HttpTransport

InT = TypeVar("InT")
OutT = TypeVar("OutT")

# request dict -> raw response; raises TransportFailureError on non-success
Transport = Callable[[dict[str, Any]], Awaitable[Any]]


def _encode_payload(payload: Any) -> Any:
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json")
    return payload


class Caller:
    """Typed client for the endpoints of a registry."""

    def __init__(
        self,
        registry: EndpointRegistry,
        transport: Transport,
        *,
        check_output: bool = False,
        validator: SchemaValidator = validate,
    ) -> None:
        self.registry = registry.seal()
        self._transport = transport
        self._check_output = check_output
        self._validator = validator

    @overload
    async def call(self, endpoint: PublicEndpoint[InT, OutT], payload: InT) -> OutT:
        ...

    @overload
    async def call(
        self, endpoint: AuthenticatedEndpoint[InT, OutT], payload: InT, *, token: str
    ) -> OutT:
        ...

    @overload
    async def call(self, endpoint: str, payload: Any, *, token: str | None = None) -> Any:
        ...

    async def call(
        self,
        endpoint: EndpointDeclaration[Any, Any] | str,
        payload: Any,
        *,
        token: str | None = None,
    ) -> Any:
        """Send a request for ``endpoint`` and return the transport's result.

        Raises:
            UnknownEndpointError: The endpoint is not in the registry.
            TokenRequiredError: Authenticated endpoint and no token given.
            UnexpectedTokenError: Public endpoint and a token given.
            TransportFailureError: Propagated from the transport.
        """
        declaration = self._resolve(endpoint)
        request = self.build_request(declaration, payload, token=token)
        result = await self._transport(request.to_wire())
        if self._check_output:
            return check_output(declaration, result, self._validator)
        return result

    def build_request(
        self,
        declaration: EndpointDeclaration[Any, Any],
        payload: Any,
        *,
        token: str | None = None,
    ) -> Request:
        """Shape a request for ``declaration`` without sending it."""
        if declaration.auth_required:
            if not token:
                raise TokenRequiredError(declaration.name)
            return Request(endpoint=declaration.name, payload=_encode_payload(payload), token=token)

        if token:
            raise UnexpectedTokenError(declaration.name)
        return Request(endpoint=declaration.name, payload=_encode_payload(payload))

    def _resolve(self, endpoint: EndpointDeclaration[Any, Any] | str) -> EndpointDeclaration[Any, Any]:
        name = endpoint.name if isinstance(endpoint, EndpointDeclaration) else endpoint
        declaration = self.registry.lookup(name)
        if declaration is None:
            raise UnknownEndpointError(name)
        if isinstance(endpoint, EndpointDeclaration) and endpoint != declaration:
            # Same name, different declaration: it belongs to another registry.
            raise UnknownEndpointError(name)
        return declaration


async def call(
    transport: Transport,
    registry: EndpointRegistry,
    endpoint: EndpointDeclaration[Any, Any] | str,
    payload: Any,
    *,
    token: str | None = None,
) -> Any:
    """One-shot form of :meth:`Caller.call`."""
    return await Caller(registry, transport).call(endpoint, payload, token=token)


def typed_api_client(registry: EndpointRegistry, url: str | None = None, **kwargs: Any) -> Caller:
    """Build a :class:`Caller` that talks HTTP to ``url`` (default: settings.url).

    Extra keyword arguments are passed to :class:`~typedapi.transport.HttpTransport`.
    """
    return Caller(registry, HttpTransport(url, **kwargs))
