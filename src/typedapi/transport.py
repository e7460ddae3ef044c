"""Transports: move a request dict to a dispatcher and bring back the result.

- HttpTransport: POSTs the JSON envelope with httpx; any status other than
  200 becomes a TransportFailureError carrying the raw body.
- LocalTransport: calls a Dispatcher in-process (tests, embedding).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from .errors import TransportFailureError
from .settings import settings

if TYPE_CHECKING:
    from .dispatcher import Dispatcher

logger = logging.getLogger(__name__)


class HttpTransport:
    """Send requests to a typedapi HTTP server.

    Example:
        transport = HttpTransport("http://127.0.0.1:8000/")
        result = await transport({"endpoint": "echo", "payload": {"msg": "hi"}})
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        timeout_seconds: float | None = None,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            url: Server URL. Defaults to settings.url.
            timeout_seconds: Request timeout. Defaults to settings.timeout_seconds.
            headers: Extra headers sent with every request.
            client: Pre-built AsyncClient to reuse (owned by the caller).
        """
        self._url = url or settings.url
        self._timeout = timeout_seconds if timeout_seconds is not None else settings.timeout_seconds
        self._headers = headers or {}
        self._client = client

    async def __call__(self, request: dict[str, Any]) -> Any:
        try:
            if self._client is not None:
                res = await self._post(self._client, request)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    res = await self._post(client, request)
        except httpx.RequestError as exc:
            logger.warning("Transport error for %s: %s", request.get("endpoint"), exc)
            raise TransportFailureError(None, str(exc)) from exc

        if res.status_code != 200:
            logger.debug("Non-success status %s for %s", res.status_code, request.get("endpoint"))
            raise TransportFailureError(res.status_code, res.text)

        try:
            return res.json()
        except ValueError as exc:
            raise TransportFailureError(res.status_code, res.text) from exc

    async def _post(self, client: httpx.AsyncClient, request: dict[str, Any]) -> httpx.Response:
        return await client.post(self._url, json=request, headers=self._headers, timeout=self._timeout)


class LocalTransport:
    """In-process transport; dispatcher errors propagate unchanged."""

    def __init__(self, dispatcher: Dispatcher) -> None:
        self._dispatcher = dispatcher
        self.sent: list[dict[str, Any]] = []

    async def __call__(self, request: dict[str, Any]) -> Any:
        self.sent.append(request)
        return await self._dispatcher.handle_wire(request)
