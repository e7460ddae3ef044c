"""Handler set: endpoint name -> handler variant.

An authenticated endpoint's handler takes ``(identity, payload)``; a public
one takes ``(payload)``. The variant is chosen when the handler is
registered and checked against the registry when the set is built, so a
mismatch is a startup error rather than a dispatch-time surprise.

Usage:
    handlers = HandlerSetBuilder(registry)

    @handlers.authenticated("whoami")
    async def whoami(user: User, payload: None) -> dict:
        ...

    @handlers.public("echo")
    def echo(payload: EchoIn) -> EchoOut:
        ...

    handler_set = handlers.build()
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from .errors import RegistryError
from .registry import EndpointKind, EndpointRegistry

IdentityT = TypeVar("IdentityT")


@dataclass(frozen=True)
class PublicHandler:
    """Handler for a public endpoint: ``fn(payload)``."""

    fn: Callable[[Any], Any]
    kind = EndpointKind.PUBLIC


@dataclass(frozen=True)
class AuthenticatedHandler(Generic[IdentityT]):
    """Handler for an authenticated endpoint: ``fn(identity, payload)``."""

    fn: Callable[[IdentityT, Any], Any]
    kind = EndpointKind.AUTHENTICATED


Handler = PublicHandler | AuthenticatedHandler


class HandlerSet:
    """Immutable mapping of endpoint names to handler variants.

    Raises:
        RegistryError: If the names do not exactly match the registry's, or a
            handler variant does not match its endpoint's kind.
    """

    def __init__(self, registry: EndpointRegistry, handlers: Mapping[str, Handler]) -> None:
        self._handlers: dict[str, Handler] = dict(handlers)
        self.check(registry)

    def check(self, registry: EndpointRegistry) -> None:
        """Verify this set against ``registry``, raising RegistryError on mismatch."""
        handlers = self._handlers
        missing = sorted(set(registry.names()) - set(handlers))
        extra = sorted(set(handlers) - set(registry.names()))
        if missing or extra:
            raise RegistryError(
                "Handler set does not match registry",
                context={"missing": missing, "unknown": extra},
            )

        for name, handler in handlers.items():
            if not isinstance(handler, (PublicHandler, AuthenticatedHandler)):
                raise RegistryError(f"Handler for {name} must be PublicHandler or AuthenticatedHandler")
            declaration = registry.lookup(name)
            if declaration is None:
                raise RegistryError(f"Endpoint not registered: {name}")
            if handler.kind is not declaration.kind:
                raise RegistryError(
                    f"Handler for {name} is {handler.kind.value} but endpoint is {declaration.kind.value}",
                    context={"endpoint": name},
                )

    def get(self, name: str) -> Handler | None:
        return self._handlers.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


class HandlerSetBuilder:
    """Decorator-based construction of a :class:`HandlerSet`."""

    def __init__(self, registry: EndpointRegistry) -> None:
        self._registry = registry
        self._handlers: dict[str, Handler] = {}

    def public(self, name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register ``fn(payload)`` for a public endpoint."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self._add(name, PublicHandler(func))
            return func

        return decorator

    def authenticated(self, name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register ``fn(identity, payload)`` for an authenticated endpoint."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self._add(name, AuthenticatedHandler(func))
            return func

        return decorator

    def _add(self, name: str, handler: Handler) -> None:
        if name in self._handlers:
            raise RegistryError(f"Handler already registered: {name}")
        self._handlers[name] = handler

    def build(self) -> HandlerSet:
        return HandlerSet(self._registry, self._handlers)
