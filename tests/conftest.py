from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import pytest
from pydantic import BaseModel

from typedapi.dispatcher import Dispatcher
from typedapi.handlers import HandlerSet, HandlerSetBuilder
from typedapi.registry import EndpointRegistry


class MsgIn(BaseModel):
    msg: str


class ReplyOut(BaseModel):
    reply: str


@dataclass(frozen=True)
class User:
    id: str


class FakeAuthenticator:
    """Maps token "valid" to User("user1"); rejects everything else."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    async def __call__(self, token: str) -> User:
        self.calls.append(token)
        if token == "valid":
            return User(id="user1")
        raise ValueError("Invalid token")


class RecordingHandlers:
    """Handlers for the auth/public scenario that record their calls."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    async def auth_endpoint(self, user: User, payload: MsgIn) -> dict[str, str]:
        self.calls.append(("authEndpoint", (user, payload)))
        return {"reply": f"auth: {user.id} - {payload.msg}"}

    def public_endpoint(self, payload: MsgIn) -> dict[str, str]:
        self.calls.append(("publicEndpoint", (payload,)))
        return {"reply": f"public: {payload.msg}"}


@pytest.fixture
def registry() -> EndpointRegistry:
    reg = EndpointRegistry()
    reg.register("authEndpoint", MsgIn, ReplyOut, auth_required=True)
    reg.register("publicEndpoint", MsgIn, ReplyOut, auth_required=False)
    return reg


@pytest.fixture
def authenticator() -> FakeAuthenticator:
    return FakeAuthenticator()


@pytest.fixture
def recorder() -> RecordingHandlers:
    return RecordingHandlers()


@pytest.fixture
def handler_set(registry: EndpointRegistry, recorder: RecordingHandlers) -> HandlerSet:
    builder = HandlerSetBuilder(registry)
    builder.authenticated("authEndpoint")(recorder.auth_endpoint)
    builder.public("publicEndpoint")(recorder.public_endpoint)
    return builder.build()


@pytest.fixture
def dispatcher(
    registry: EndpointRegistry,
    authenticator: FakeAuthenticator,
    handler_set: HandlerSet,
) -> Dispatcher:
    return Dispatcher(registry, authenticator, handler_set)
