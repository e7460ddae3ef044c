"""Endpoint registry.

Maps endpoint names to their declarations. Built once at startup, then
sealed and shared read-only by the dispatcher and the caller.

Usage:
    registry = EndpointRegistry()
    echo = registry.public("echo", EchoIn, EchoOut)
    whoami = registry.authenticated("whoami", None, WhoAmIOut)
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from .errors import RegistryError
from .shapes import check_shape, shape_name

InT = TypeVar("InT")
OutT = TypeVar("OutT")


class EndpointKind(Enum):
    """Whether an endpoint requires an authenticated identity."""

    PUBLIC = "public"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class EndpointDeclaration(Generic[InT, OutT]):
    """Declaration of a single endpoint."""

    name: str
    input_shape: Any
    output_shape: Any
    kind: EndpointKind
    description: str = ""

    @property
    def auth_required(self) -> bool:
        return self.kind is EndpointKind.AUTHENTICATED

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "authRequired": self.auth_required,
            "input": shape_name(self.input_shape),
            "output": shape_name(self.output_shape),
            "description": self.description,
        }


@dataclass(frozen=True)
class PublicEndpoint(EndpointDeclaration[InT, OutT]):
    kind: EndpointKind = field(default=EndpointKind.PUBLIC, init=False)


@dataclass(frozen=True)
class AuthenticatedEndpoint(EndpointDeclaration[InT, OutT]):
    kind: EndpointKind = field(default=EndpointKind.AUTHENTICATED, init=False)


class EndpointRegistry:
    """Registry of endpoint declarations keyed by unique name."""

    def __init__(self) -> None:
        self._endpoints: dict[str, EndpointDeclaration[Any, Any]] = {}
        self._sealed = False

    def register(
        self,
        name: str,
        input_shape: Any,
        output_shape: Any,
        auth_required: bool = True,
        *,
        description: str = "",
    ) -> EndpointDeclaration[Any, Any]:
        """Register an endpoint.

        Args:
            name: Unique endpoint name.
            input_shape: Shape the payload is validated against.
            output_shape: Shape of the handler result (not enforced server-side).
            auth_required: If True, handlers receive an identity and requests
                must carry a token.
            description: Optional text for endpoint listings.

        Raises:
            RegistryError: If the name is empty or already registered, the
                registry has been sealed, or a shape is not supported by the
                default validator.
        """
        if auth_required:
            return self.authenticated(name, input_shape, output_shape, description=description)
        return self.public(name, input_shape, output_shape, description=description)

    def public(
        self,
        name: str,
        input_shape: Any,
        output_shape: Any,
        *,
        description: str = "",
    ) -> PublicEndpoint[Any, Any]:
        declaration: PublicEndpoint[Any, Any] = PublicEndpoint(
            name=name,
            input_shape=input_shape,
            output_shape=output_shape,
            description=description,
        )
        self._add(declaration)
        return declaration

    def authenticated(
        self,
        name: str,
        input_shape: Any,
        output_shape: Any,
        *,
        description: str = "",
    ) -> AuthenticatedEndpoint[Any, Any]:
        declaration: AuthenticatedEndpoint[Any, Any] = AuthenticatedEndpoint(
            name=name,
            input_shape=input_shape,
            output_shape=output_shape,
            description=description,
        )
        self._add(declaration)
        return declaration

    def _add(self, declaration: EndpointDeclaration[Any, Any]) -> None:
        if self._sealed:
            raise RegistryError(f"Registry is sealed; cannot register {declaration.name}")
        if not isinstance(declaration.name, str) or not declaration.name:
            raise RegistryError("Endpoint name must be a non-empty string")
        if declaration.name in self._endpoints:
            raise RegistryError(f"Endpoint already registered: {declaration.name}")
        for label, shape in (("input", declaration.input_shape), ("output", declaration.output_shape)):
            try:
                check_shape(shape)
            except TypeError as exc:
                raise RegistryError(
                    f"Unsupported {label} shape for {declaration.name}: {exc}",
                    context={"endpoint": declaration.name},
                ) from exc
        self._endpoints[declaration.name] = declaration

    def seal(self) -> EndpointRegistry:
        """Disallow further registration. Idempotent."""
        self._sealed = True
        return self

    @property
    def sealed(self) -> bool:
        return self._sealed

    def lookup(self, name: Any) -> EndpointDeclaration[Any, Any] | None:
        """Get a declaration by name, or None if not registered."""
        if not isinstance(name, str):
            return None
        return self._endpoints.get(name)

    get = lookup

    def names(self) -> list[str]:
        """List all registered endpoint names, sorted."""
        return sorted(self._endpoints.keys())

    def describe(self) -> list[dict[str, Any]]:
        return [self._endpoints[name].to_dict() for name in self.names()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name in self._endpoints

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._endpoints)
