"""Schema validation boundary.

The dispatcher never matches shapes itself; it hands ``(shape, value)`` to a
validator and gets back either :class:`Accepted` or :class:`Rejected`.

Supported shapes for the default :func:`validate`:
- a pydantic ``BaseModel`` subclass or ``TypeAdapter``
- any other type expression pydantic can build a schema for
  (``list[int]``, ``dict[str, Any]``, ``Model | None``, ``Annotated[...]``,
  dataclasses, TypedDicts)
- a list/tuple of :class:`ParamSpec` field specs
- a plain predicate ``Callable[[Any], bool]``
- ``None`` or ``typing.Any`` (accept everything)
"""

from __future__ import annotations

import functools
import json
import types
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, NewType, Protocol, get_origin

from pydantic import BaseModel, TypeAdapter, ValidationError

# Default maximum length for string fields
MAX_TEXT_LENGTH = 100_000


@dataclass(frozen=True)
class Accepted:
    """Value accepted by a shape, possibly normalized."""

    value: Any
    accepted: bool = True


@dataclass(frozen=True)
class Rejected:
    """Structured validation failure."""

    reason: Any
    accepted: bool = False


ValidationResult = Accepted | Rejected

Predicate = Callable[[Any], bool]


class SchemaValidator(Protocol):
    """Callable validator consumed by the dispatcher."""

    def __call__(self, shape: Any, value: Any) -> ValidationResult:
        ...


class ParamType(Enum):
    """Field types for ParamSpec shapes."""

    STRING = "string"
    STRING_OPTIONAL = "string_optional"
    INT = "int"
    INT_OPTIONAL = "int_optional"
    BOOL = "bool"
    BOOL_OPTIONAL = "bool_optional"
    OBJECT = "object"
    OBJECT_OPTIONAL = "object_optional"
    ANY = "any"


@dataclass(frozen=True)
class ParamSpec:
    """Specification for a single payload field."""

    name: str
    param_type: ParamType
    max_length: int | None = None  # For strings
    min_value: int | None = None  # For ints
    max_value: int | None = None  # For ints
    allow_empty: bool = False  # For strings


class _FieldError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def validate(shape: Any, value: Any) -> ValidationResult:
    """Validate ``value`` against ``shape``.

    Deterministic and side-effect free. Raises ``TypeError`` only when the
    shape itself is not something this validator understands.
    """
    if shape is None or shape is Any:
        return Accepted(value)

    if isinstance(shape, type) and issubclass(shape, BaseModel):
        try:
            return Accepted(shape.model_validate(value))
        except ValidationError as exc:
            return Rejected(_pydantic_reason(exc))

    if isinstance(shape, TypeAdapter):
        try:
            return Accepted(shape.validate_python(value))
        except ValidationError as exc:
            return Rejected(_pydantic_reason(exc))

    if is_type_expression(shape):
        return validate(_adapter_for(shape), value)

    if _is_param_specs(shape):
        return _validate_params(shape, value)

    if callable(shape):
        if shape(value):
            return Accepted(value)
        return Rejected({"message": "predicate rejected value"})

    raise TypeError(f"Unsupported shape: {shape!r}")


def check_shape(shape: Any) -> None:
    """Fail fast on a shape :func:`validate` cannot handle.

    Builds (and caches) the pydantic adapter for type expressions, so schema
    generation errors surface at registration rather than on first request.

    Raises:
        TypeError: If the shape is unsupported. Pydantic's schema errors are
            ``TypeError`` subclasses and propagate as-is.
    """
    if shape is None or shape is Any or isinstance(shape, TypeAdapter):
        return
    if isinstance(shape, type) and issubclass(shape, BaseModel):
        return
    if is_type_expression(shape):
        _adapter_for(shape)
        return
    if _is_param_specs(shape) or callable(shape):
        return
    raise TypeError(f"Unsupported shape: {shape!r}")


def is_type_expression(shape: Any) -> bool:
    """True for classes, parameterized generics, unions and ``Annotated``."""
    return (
        isinstance(shape, (type, types.UnionType, NewType))
        or get_origin(shape) is not None
    )


@functools.lru_cache(maxsize=256)
def _cached_adapter(shape: Any) -> TypeAdapter[Any]:
    return TypeAdapter(shape)


def _adapter_for(shape: Any) -> TypeAdapter[Any]:
    try:
        hash(shape)
    except TypeError:
        # Annotated metadata can be unhashable
        return TypeAdapter(shape)
    return _cached_adapter(shape)


def _is_param_specs(shape: Any) -> bool:
    return isinstance(shape, (list, tuple)) and all(isinstance(s, ParamSpec) for s in shape)


def shape_name(shape: Any) -> str:
    """Human-readable name of a shape, for endpoint listings."""
    if shape is None or shape is Any:
        return "any"
    if isinstance(shape, type):
        return shape.__name__
    if isinstance(shape, TypeAdapter):
        return str(shape.core_schema.get("type", "adapter"))
    if is_type_expression(shape):
        return str(shape)
    if isinstance(shape, (list, tuple)):
        return "{" + ", ".join(s.name for s in shape if isinstance(s, ParamSpec)) + "}"
    return getattr(shape, "__name__", type(shape).__name__)


def _pydantic_reason(exc: ValidationError) -> list[dict[str, Any]]:
    # Round-trip through JSON so ctx values (exceptions etc.) become plain data.
    return json.loads(exc.json(include_url=False))


def _validate_params(specs: Sequence[ParamSpec], value: Any) -> ValidationResult:
    if not isinstance(value, dict):
        return Rejected([{"field": None, "message": "payload must be an object"}])

    extracted: dict[str, Any] = {}
    errors: list[dict[str, Any]] = []
    for spec in specs:
        try:
            extracted[spec.name] = _validate_single_param(value, spec)
        except _FieldError as exc:
            errors.append({"field": spec.name, "message": exc.message})

    if errors:
        return Rejected(errors)
    return Accepted(extracted)


def _check_int_range(value: int, spec: ParamSpec) -> None:
    if spec.min_value is not None and value < spec.min_value:
        raise _FieldError(f"{spec.name} must be at least {spec.min_value}")
    if spec.max_value is not None and value > spec.max_value:
        raise _FieldError(f"{spec.name} must be at most {spec.max_value}")


def _check_string(value: str, spec: ParamSpec) -> None:
    max_len = spec.max_length or MAX_TEXT_LENGTH
    if len(value) > max_len:
        raise _FieldError(f"{spec.name} exceeds maximum length of {max_len}")


def _validate_single_param(params: dict[str, Any], spec: ParamSpec) -> Any:
    """Validate a single field and return the extracted value."""
    value = params.get(spec.name)

    if spec.param_type == ParamType.STRING:
        if not isinstance(value, str):
            raise _FieldError(f"{spec.name} is required")
        if not value.strip() and not spec.allow_empty:
            raise _FieldError(f"{spec.name} is required")
        _check_string(value, spec)
        return value

    if spec.param_type == ParamType.STRING_OPTIONAL:
        if value is None:
            return None
        if not isinstance(value, str):
            raise _FieldError(f"{spec.name} must be a string or null")
        _check_string(value, spec)
        return value

    if spec.param_type == ParamType.INT:
        if not isinstance(value, int) or isinstance(value, bool):
            raise _FieldError(f"{spec.name} must be an integer")
        _check_int_range(value, spec)
        return value

    if spec.param_type == ParamType.INT_OPTIONAL:
        if value is None:
            return None
        if not isinstance(value, int) or isinstance(value, bool):
            raise _FieldError(f"{spec.name} must be an integer or null")
        _check_int_range(value, spec)
        return value

    if spec.param_type == ParamType.BOOL:
        if not isinstance(value, bool):
            raise _FieldError(f"{spec.name} must be a boolean")
        return value

    if spec.param_type == ParamType.BOOL_OPTIONAL:
        if value is None:
            return None
        if not isinstance(value, bool):
            raise _FieldError(f"{spec.name} must be a boolean or null")
        return value

    if spec.param_type == ParamType.OBJECT:
        if not isinstance(value, dict):
            raise _FieldError(f"{spec.name} must be an object")
        return value

    if spec.param_type == ParamType.OBJECT_OPTIONAL:
        if value is None:
            return None
        if not isinstance(value, dict):
            raise _FieldError(f"{spec.name} must be an object or null")
        return value

    # ParamType.ANY - no validation
    return value


def create_param(
    name: str,
    param_type: ParamType | str,
    *,
    max_length: int | None = None,
    min_value: int | None = None,
    max_value: int | None = None,
    allow_empty: bool = False,
) -> ParamSpec:
    """Factory function for creating field specs.

    String fields default to a maximum length of ``MAX_TEXT_LENGTH``.
    """
    if isinstance(param_type, str):
        param_type = ParamType(param_type)

    if max_length is None and param_type in (ParamType.STRING, ParamType.STRING_OPTIONAL):
        max_length = MAX_TEXT_LENGTH

    return ParamSpec(
        name=name,
        param_type=param_type,
        max_length=max_length,
        min_value=min_value,
        max_value=max_value,
        allow_empty=allow_empty,
    )


def string_param(name: str, *, max_length: int | None = None, allow_empty: bool = False) -> ParamSpec:
    return create_param(name, ParamType.STRING, max_length=max_length, allow_empty=allow_empty)


def optional_string_param(name: str, *, max_length: int | None = None) -> ParamSpec:
    return create_param(name, ParamType.STRING_OPTIONAL, max_length=max_length)


def int_param(name: str, *, min_value: int | None = None, max_value: int | None = None) -> ParamSpec:
    return create_param(name, ParamType.INT, min_value=min_value, max_value=max_value)


def optional_int_param(name: str, *, min_value: int | None = None, max_value: int | None = None) -> ParamSpec:
    return create_param(name, ParamType.INT_OPTIONAL, min_value=min_value, max_value=max_value)


def bool_param(name: str) -> ParamSpec:
    return create_param(name, ParamType.BOOL)


def optional_bool_param(name: str) -> ParamSpec:
    return create_param(name, ParamType.BOOL_OPTIONAL)


def object_param(name: str) -> ParamSpec:
    return create_param(name, ParamType.OBJECT)


def optional_object_param(name: str) -> ParamSpec:
    return create_param(name, ParamType.OBJECT_OPTIONAL)


def any_param(name: str) -> ParamSpec:
    return create_param(name, ParamType.ANY)

