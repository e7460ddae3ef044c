"""HTTP wiring for a Dispatcher.

A single POST route receives ``{endpoint, payload, token?}`` and answers with
the handler output as JSON (status 200) or an error body:

    {"error": {"code": -32601, "kind": "unknown_endpoint", "message": "..."}}

Handler exceptions are logged with their traceback and reported as a generic
"Internal error"; their details never reach the client.

Usage:
    app = create_app(dispatcher)
    uvicorn.run(app)
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic_core import to_jsonable_python

from .dispatcher import Dispatcher
from .errors import (
    HANDLER_FAILURE,
    AuthenticationFailedError,
    InvalidInputError,
    MalformedRequestError,
    TokenRequiredError,
    TypedApiError,
    UnknownEndpointError,
)
from .settings import settings

logger = logging.getLogger(__name__)

# Error class -> HTTP status
HTTP_STATUS: dict[type[TypedApiError], int] = {
    MalformedRequestError: 400,
    UnknownEndpointError: 404,
    InvalidInputError: 422,
    TokenRequiredError: 401,
    AuthenticationFailedError: 401,
}

SENSITIVE_KEYS = {"password", "token", "secret", "key", "credential", "api_key"}


def redact_sensitive(params: Any) -> Any:
    """Redact credential-like values before a payload is logged."""
    if not isinstance(params, dict):
        return params
    result: dict[str, Any] = {}
    for k, v in params.items():
        if any(s in str(k).lower() for s in SENSITIVE_KEYS):
            result[k] = "[REDACTED]"
        elif isinstance(v, str) and len(v) > 500:
            result[k] = f"[STRING: {len(v)} chars]"
        elif isinstance(v, dict):
            result[k] = redact_sensitive(v)
        else:
            result[k] = v
    return result


def encode_result(value: Any) -> Any:
    """Turn a handler result (pydantic models, dataclasses, ...) into JSON data."""
    return to_jsonable_python(value)


def error_body(exc: BaseException) -> dict[str, Any]:
    if isinstance(exc, TypedApiError):
        return {"error": exc.to_dict()}
    return {"error": {"code": HANDLER_FAILURE, "kind": "handler_failure", "message": "Internal error"}}


async def dispatch_envelope(dispatcher: Dispatcher, envelope: Any) -> tuple[int, Any]:
    """Dispatch a decoded envelope and return ``(http_status, body)``.

    Shared by the HTTP app and usable by any other wire binding.
    """
    endpoint = envelope.get("endpoint") if isinstance(envelope, dict) else None
    logger.debug("Dispatching %s: %s", endpoint, redact_sensitive(envelope))
    try:
        result = await dispatcher.handle_wire(envelope)
    except TypedApiError as exc:
        logger.warning("%s in %s: %s", type(exc).__name__, endpoint, exc.message)
        return HTTP_STATUS.get(type(exc), 500), error_body(exc)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Handler failure in %s", endpoint)
        return 500, error_body(exc)

    try:
        return 200, encode_result(result)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Could not encode result of %s", endpoint)
        return 500, error_body(exc)


def create_app(
    dispatcher: Dispatcher,
    *,
    path: str = "/",
    expose_endpoints: bool | None = None,
) -> FastAPI:
    """Create a FastAPI app serving ``dispatcher`` at ``path``.

    Args:
        dispatcher: The dispatcher to serve.
        path: Route for the POST endpoint.
        expose_endpoints: Serve ``GET {path}endpoints`` with the registry
            listing. Defaults to settings.expose_endpoints.
    """
    app = FastAPI()
    if not path.endswith("/"):
        path += "/"
    if expose_endpoints is None:
        expose_endpoints = settings.expose_endpoints

    @app.post(path)
    async def rpc(request: Request) -> JSONResponse:
        raw = await request.body()
        try:
            envelope = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            exc = MalformedRequestError("request body must be JSON")
            return JSONResponse(error_body(exc), status_code=400)

        status, body = await dispatch_envelope(dispatcher, envelope)
        return JSONResponse(body, status_code=status)

    if expose_endpoints:

        @app.get(path + "endpoints")
        async def endpoints() -> dict[str, Any]:
            return {"endpoints": dispatcher.registry.describe()}

    return app
