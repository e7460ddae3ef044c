"""Tests for the dispatcher protocol."""

from __future__ import annotations

from typing import Any

import pytest

from conftest import FakeAuthenticator, MsgIn, RecordingHandlers, User
from typedapi.dispatcher import Dispatcher, Request, check_output, handle
from typedapi.errors import (
    AuthenticationFailedError,
    InvalidInputError,
    InvalidOutputError,
    MalformedRequestError,
    RegistryError,
    TokenRequiredError,
    UnknownEndpointError,
)
from typedapi.handlers import AuthenticatedHandler, HandlerSet, PublicHandler
from typedapi.registry import EndpointRegistry
from typedapi.shapes import Accepted, Rejected, string_param


class TestScenario:
    @pytest.mark.asyncio
    async def test_authenticated_endpoint_with_valid_token(self, dispatcher: Dispatcher) -> None:
        res = await dispatcher.handle(
            Request(endpoint="authEndpoint", token="valid", payload={"msg": "hello"})
        )
        assert res == {"reply": "auth: user1 - hello"}

    @pytest.mark.asyncio
    async def test_authenticated_endpoint_with_invalid_token(self, dispatcher: Dispatcher) -> None:
        with pytest.raises(AuthenticationFailedError) as exc_info:
            await dispatcher.handle(
                Request(endpoint="authEndpoint", token="bad", payload={"msg": "fail"})
            )

        assert exc_info.value.reason == "Invalid token"
        assert str(exc_info.value) == "Invalid token"
        assert isinstance(exc_info.value.__cause__, ValueError)

    @pytest.mark.asyncio
    async def test_public_endpoint_without_token(self, dispatcher: Dispatcher) -> None:
        res = await dispatcher.handle(Request(endpoint="publicEndpoint", payload={"msg": "world"}))
        assert res == {"reply": "public: world"}

    @pytest.mark.asyncio
    async def test_unknown_endpoint(self, dispatcher: Dispatcher) -> None:
        with pytest.raises(UnknownEndpointError) as exc_info:
            await dispatcher.handle(Request(endpoint="noSuchEndpoint", payload={"msg": "x"}))

        assert exc_info.value.endpoint == "noSuchEndpoint"

    @pytest.mark.asyncio
    async def test_module_level_handle(
        self,
        registry: EndpointRegistry,
        authenticator: FakeAuthenticator,
        handler_set: HandlerSet,
    ) -> None:
        res = await handle(
            registry,
            authenticator,
            handler_set,
            Request(endpoint="publicEndpoint", payload={"msg": "x"}),
        )
        assert res == {"reply": "public: x"}


class TestPublicEndpoints:
    @pytest.mark.asyncio
    async def test_handler_receives_validated_payload(
        self, dispatcher: Dispatcher, recorder: RecordingHandlers
    ) -> None:
        await dispatcher.handle(Request(endpoint="publicEndpoint", payload={"msg": "hi"}))

        assert len(recorder.calls) == 1
        name, args = recorder.calls[0]
        assert name == "publicEndpoint"
        assert args == (MsgIn(msg="hi"),)

    @pytest.mark.asyncio
    async def test_token_is_ignored(
        self, dispatcher: Dispatcher, authenticator: FakeAuthenticator
    ) -> None:
        res = await dispatcher.handle(
            Request(endpoint="publicEndpoint", payload={"msg": "world"}, token="bad")
        )

        assert res == {"reply": "public: world"}
        assert authenticator.calls == []


class TestAuthorizationGate:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", [None, ""])
    async def test_missing_token_fails_before_authenticator(
        self,
        dispatcher: Dispatcher,
        authenticator: FakeAuthenticator,
        recorder: RecordingHandlers,
        token: str | None,
    ) -> None:
        with pytest.raises(TokenRequiredError):
            await dispatcher.handle(
                Request(endpoint="authEndpoint", payload={"msg": "hi"}, token=token)
            )

        assert authenticator.calls == []
        assert recorder.calls == []

    @pytest.mark.asyncio
    async def test_failed_authentication_never_calls_handler(
        self,
        dispatcher: Dispatcher,
        authenticator: FakeAuthenticator,
        recorder: RecordingHandlers,
    ) -> None:
        with pytest.raises(AuthenticationFailedError):
            await dispatcher.handle(Request(endpoint="authEndpoint", payload={"msg": "hi"}, token="bad"))

        assert authenticator.calls == ["bad"]
        assert recorder.calls == []

    @pytest.mark.asyncio
    async def test_authenticator_called_once_then_handler(
        self,
        dispatcher: Dispatcher,
        authenticator: FakeAuthenticator,
        recorder: RecordingHandlers,
    ) -> None:
        await dispatcher.handle(Request(endpoint="authEndpoint", payload={"msg": "hi"}, token="valid"))

        assert authenticator.calls == ["valid"]
        assert recorder.calls == [("authEndpoint", (User(id="user1"), MsgIn(msg="hi")))]

    @pytest.mark.asyncio
    async def test_sync_authenticator(
        self, registry: EndpointRegistry, handler_set: HandlerSet
    ) -> None:
        dispatcher = Dispatcher(registry, lambda token: User(id=token), handler_set)

        res = await dispatcher.handle(Request(endpoint="authEndpoint", payload={"msg": "m"}, token="abc"))
        assert res == {"reply": "auth: abc - m"}

    @pytest.mark.asyncio
    async def test_authenticator_returning_none_fails(
        self, registry: EndpointRegistry, handler_set: HandlerSet, recorder: RecordingHandlers
    ) -> None:
        dispatcher = Dispatcher(registry, lambda token: None, handler_set)

        with pytest.raises(AuthenticationFailedError) as exc_info:
            await dispatcher.handle(Request(endpoint="authEndpoint", payload={"msg": "m"}, token="abc"))

        assert "no identity" in exc_info.value.reason
        assert recorder.calls == []


class TestInputValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("endpoint", ["authEndpoint", "publicEndpoint"])
    @pytest.mark.parametrize("payload", [None, {}, {"msg": 5}, "hello", [1, 2]])
    async def test_invalid_input_skips_authenticator_and_handler(
        self,
        dispatcher: Dispatcher,
        authenticator: FakeAuthenticator,
        recorder: RecordingHandlers,
        endpoint: str,
        payload: Any,
    ) -> None:
        with pytest.raises(InvalidInputError) as exc_info:
            await dispatcher.handle(Request(endpoint=endpoint, payload=payload, token="valid"))

        assert exc_info.value.endpoint == endpoint
        assert isinstance(exc_info.value.reason, list)
        assert authenticator.calls == []
        assert recorder.calls == []

    @pytest.mark.asyncio
    async def test_validation_precedes_token_check(self, dispatcher: Dispatcher) -> None:
        with pytest.raises(InvalidInputError):
            await dispatcher.handle(Request(endpoint="authEndpoint", payload={}))

    @pytest.mark.asyncio
    async def test_custom_validator_reason_is_carried(
        self, registry: EndpointRegistry, authenticator: FakeAuthenticator, handler_set: HandlerSet
    ) -> None:
        def reject_all(shape: Any, value: Any) -> Rejected:
            return Rejected({"why": "nope"})

        dispatcher = Dispatcher(registry, authenticator, handler_set, validator=reject_all)

        with pytest.raises(InvalidInputError) as exc_info:
            await dispatcher.handle(Request(endpoint="publicEndpoint", payload={"msg": "x"}))

        assert exc_info.value.reason == {"why": "nope"}

    @pytest.mark.asyncio
    async def test_param_spec_shape(self) -> None:
        registry = EndpointRegistry()
        registry.public("echo", [string_param("msg")], None)
        handlers = HandlerSet(registry, {"echo": PublicHandler(lambda p: {"echo": p["msg"]})})
        dispatcher = Dispatcher(registry, FakeAuthenticator(), handlers)

        assert await dispatcher.handle(Request(endpoint="echo", payload={"msg": "a", "x": 1})) == {"echo": "a"}
        with pytest.raises(InvalidInputError) as exc_info:
            await dispatcher.handle(Request(endpoint="echo", payload={}))
        assert exc_info.value.reason == [{"field": "msg", "message": "msg is required"}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("shape", [list[int], dict[str, Any], MsgIn | None])
    async def test_type_expression_shape_rejects_wrong_payload(
        self, shape: Any, authenticator: FakeAuthenticator
    ) -> None:
        registry = EndpointRegistry()
        registry.public("e", shape, None)
        calls: list[Any] = []
        handlers = HandlerSet(registry, {"e": PublicHandler(calls.append)})
        dispatcher = Dispatcher(registry, authenticator, handlers)

        with pytest.raises(InvalidInputError) as exc_info:
            await dispatcher.handle(Request(endpoint="e", payload="definitely wrong"))

        assert isinstance(exc_info.value.reason, list)
        assert calls == []

    @pytest.mark.asyncio
    async def test_optional_model_shape_normalizes(self, authenticator: FakeAuthenticator) -> None:
        registry = EndpointRegistry()
        registry.public("e", MsgIn | None, None)
        handlers = HandlerSet(registry, {"e": PublicHandler(lambda p: p)})
        dispatcher = Dispatcher(registry, authenticator, handlers)

        assert await dispatcher.handle(Request(endpoint="e", payload=None)) is None
        assert await dispatcher.handle(Request(endpoint="e", payload={"msg": "m"})) == MsgIn(msg="m")


class TestLookup:
    @pytest.mark.asyncio
    async def test_unknown_endpoint_never_validates_or_authenticates(
        self, registry: EndpointRegistry, authenticator: FakeAuthenticator, handler_set: HandlerSet
    ) -> None:
        seen: list[Any] = []

        def spy(shape: Any, value: Any) -> Accepted:
            seen.append(value)
            return Accepted(value)

        dispatcher = Dispatcher(registry, authenticator, handler_set, validator=spy)

        with pytest.raises(UnknownEndpointError):
            await dispatcher.handle(Request(endpoint="nope", payload={"msg": "x"}, token="valid"))

        assert seen == []
        assert authenticator.calls == []


class TestHandlerFailure:
    @pytest.mark.asyncio
    async def test_handler_exception_propagates_unchanged(self, authenticator: FakeAuthenticator) -> None:
        registry = EndpointRegistry()
        registry.authenticated("boom", None, None)
        error = KeyError("missing")

        async def explode(user: User, payload: Any) -> None:
            raise error

        dispatcher = Dispatcher(registry, authenticator, HandlerSet(registry, {"boom": AuthenticatedHandler(explode)}))

        with pytest.raises(KeyError) as exc_info:
            await dispatcher.handle(Request(endpoint="boom", payload=None, token="valid"))

        assert exc_info.value is error


class TestIdempotence:
    @pytest.mark.asyncio
    async def test_same_request_same_result(self, dispatcher: Dispatcher) -> None:
        request = Request(endpoint="authEndpoint", payload={"msg": "again"}, token="valid")

        first = await dispatcher.handle(request)
        second = await dispatcher.handle(request)

        assert first == second

    @pytest.mark.asyncio
    async def test_same_failure_twice(self, dispatcher: Dispatcher) -> None:
        request = Request(endpoint="authEndpoint", payload={"msg": "again"}, token="bad")
        messages = []
        for _ in range(2):
            with pytest.raises(AuthenticationFailedError) as exc_info:
                await dispatcher.handle(request)
            messages.append(exc_info.value.to_dict())

        assert messages[0] == messages[1]


class TestConstruction:
    def test_dispatcher_seals_registry(
        self, registry: EndpointRegistry, authenticator: FakeAuthenticator, handler_set: HandlerSet
    ) -> None:
        Dispatcher(registry, authenticator, handler_set)

        with pytest.raises(RegistryError):
            registry.public("late", None, None)

    def test_handler_set_from_other_registry_rejected(
        self, authenticator: FakeAuthenticator, handler_set: HandlerSet
    ) -> None:
        other = EndpointRegistry()
        other.public("authEndpoint", MsgIn, None)
        other.public("publicEndpoint", MsgIn, None)

        with pytest.raises(RegistryError):
            Dispatcher(other, authenticator, handler_set)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("endpoint", "wrong"),
        [
            ("publicEndpoint", AuthenticatedHandler(lambda user, p: p)),
            ("authEndpoint", PublicHandler(lambda p: p)),
        ],
    )
    async def test_handler_swapped_after_construction_raises(
        self,
        dispatcher: Dispatcher,
        handler_set: HandlerSet,
        monkeypatch: pytest.MonkeyPatch,
        endpoint: str,
        wrong: Any,
    ) -> None:
        monkeypatch.setitem(handler_set._handlers, endpoint, wrong)

        with pytest.raises(RegistryError, match=endpoint):
            await dispatcher.handle(Request(endpoint=endpoint, payload={"msg": "x"}, token="valid"))


class TestWireEnvelope:
    @pytest.mark.asyncio
    async def test_handle_wire(self, dispatcher: Dispatcher) -> None:
        res = await dispatcher.handle_wire(
            {"endpoint": "authEndpoint", "token": "valid", "payload": {"msg": "hello"}}
        )
        assert res == {"reply": "auth: user1 - hello"}

    @pytest.mark.asyncio
    async def test_empty_token_on_wire_is_absent(self, dispatcher: Dispatcher) -> None:
        with pytest.raises(TokenRequiredError):
            await dispatcher.handle_wire({"endpoint": "authEndpoint", "token": "", "payload": {"msg": "x"}})

    @pytest.mark.parametrize(
        "envelope",
        [
            "not an object",
            [],
            {},
            {"endpoint": ""},
            {"endpoint": 3, "payload": {}},
            {"endpoint": "authEndpoint", "token": 42, "payload": {}},
        ],
    )
    def test_malformed_envelopes(self, envelope: Any) -> None:
        with pytest.raises(MalformedRequestError):
            Request.from_wire(envelope)

    def test_to_wire_omits_missing_token(self) -> None:
        assert Request(endpoint="e", payload={"a": 1}).to_wire() == {"endpoint": "e", "payload": {"a": 1}}
        assert Request(endpoint="e", payload=None, token="t").to_wire() == {
            "endpoint": "e",
            "payload": None,
            "token": "t",
        }


class TestCheckOutput:
    def test_valid_output_is_normalized(self, registry: EndpointRegistry) -> None:
        declaration = registry.lookup("publicEndpoint")
        assert declaration is not None

        out = check_output(declaration, {"reply": "x"})
        assert out.reply == "x"

    def test_invalid_output_raises(self, registry: EndpointRegistry) -> None:
        declaration = registry.lookup("publicEndpoint")
        assert declaration is not None

        with pytest.raises(InvalidOutputError) as exc_info:
            check_output(declaration, {"nope": 1})

        assert exc_info.value.endpoint == "publicEndpoint"
