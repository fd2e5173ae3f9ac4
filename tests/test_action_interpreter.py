import asyncio

import pytest

from core.actions.action_interpreter import ActionInterpreter, InterpreterState
from core.resolver.variable_resolver import ResolutionContext, resolve
from exceptions.exceptions import (
    ApiError,
    CallbackNotFoundError,
    NavigationError,
    NetworkError,
    StructureError,
    ValidationError,
)


def _start(manager):
    asyncio.run(manager.initialize_app("auth", "flows/auth.json"))


def _run(manager, trigger, fields=None):
    return asyncio.run(manager.handle_event(trigger, fields))


def _recorder(manager, name):
    calls = []
    manager.register_callback(name, lambda params: calls.append(params) or "done")
    return calls


def test_navigate_to_flow_merges_data_and_resolves(manager):
    _start(manager)
    chain = _run(
        manager,
        {
            "action": "navigateToFlow",
            "targetFlow": "dashboard",
            "targetScreen": "home",
            "data": {"username": "${fields.username}"},
        },
        {"username": "ann"},
    )

    assert chain.ok
    assert (manager.current_flow_id, manager.current_screen_id) == ("dashboard", "home")
    assert manager.navigation.depth == 2
    ctx = ResolutionContext(navigation_data=manager.session_store.view())
    assert resolve("Hi ${navigationData.username}", ctx) == "Hi ann"
    assert manager.resolve_current_screen()["title"] == "Hi ann"


def test_navigate_to_flow_defaults_to_first_screen(manager):
    _start(manager)
    _run(manager, {"action": "navigateToFlow", "targetFlow": "dashboard"})
    assert manager.current_screen_id == "home"


def test_navigate_replaces_top_frame(manager):
    _start(manager)
    _run(manager, {"action": "navigate", "screen": "register"})
    assert manager.navigation.depth == 1
    assert manager.current_screen_id == "register"


def test_navigate_to_unknown_screen_fails(manager):
    _start(manager)
    chain = _run(manager, {"action": "navigate", "screen": "nowhere"})
    assert not chain.ok
    assert isinstance(chain.results[0].error, NavigationError)
    assert manager.current_screen_id == "login"


def test_go_back_pops_frames(manager):
    _start(manager)
    _run(manager, {"action": "navigateToFlow", "targetFlow": "dashboard"})
    chain = _run(manager, {"action": "goBack"})
    assert chain.results[0].response == {"popped": 1}
    assert manager.current_flow_id == "auth"


def test_set_state_sees_fields_and_session(manager):
    _start(manager)
    manager.session_store.set("count", 2)
    _run(
        manager,
        {"action": "setState", "updates": {"label": "${navigationData.count} for ${fields.who}"}},
        {"who": "ann"},
    )
    assert manager.session_store.get("label") == "2 for ann"


def test_continuation_sees_parent_state(manager):
    _start(manager)
    _run(
        manager,
        {
            "action": "setState",
            "updates": {"step": "one"},
            "onSuccess": {"action": "setState", "updates": {"trail": "${navigationData.step}-two"}},
        },
    )
    assert manager.session_store.get("trail") == "one-two"


def test_api_call_builds_request_and_passes_response(manager, network):
    _start(manager)
    network.respond({"token": "t-1"})
    calls = _recorder(manager, "storeToken")

    chain = _run(
        manager,
        {
            "action": "apiCall",
            "method": "post",
            "endpoint": "/login",
            "headers": {"X-User": "${fields.email}"},
            "body": {"email": "${fields.email}"},
            "onSuccess": {"action": "executeCallback", "callbackName": "storeToken"},
        },
        {"email": "ann@example.com"},
    )

    assert chain.ok
    request = network.calls[0]
    assert request["method"] == "POST"
    assert request["url"] == "https://api.example.test/login"
    assert request["headers"] == {"X-User": "ann@example.com"}
    assert request["body"] == {"email": "ann@example.com"}
    assert calls == [{"response": {"token": "t-1"}}]
    assert chain.results[0].response == {"token": "t-1"}
    assert chain.results[0].continuation.response == "done"


def test_failed_api_call_fires_on_error_exactly_once(manager, network):
    _start(manager)
    network.fail(NetworkError("connection refused", "https://api.example.test/login"))
    successes = _recorder(manager, "onOk")
    failures = _recorder(manager, "onFail")

    chain = _run(
        manager,
        {
            "action": "apiCall",
            "method": "POST",
            "endpoint": "/login",
            "onSuccess": {"action": "executeCallback", "callbackName": "onOk"},
            "onError": {"action": "executeCallback", "callbackName": "onFail"},
        },
    )

    assert successes == []
    assert len(failures) == 1
    assert failures[0]["error"]["type"] == "NetworkError"
    result = chain.results[0]
    assert result.succeeded is False
    assert result.ok is True
    assert chain.ok


def test_api_error_details_reach_on_error(manager, network):
    _start(manager)
    network.fail(ApiError(401, "https://api.example.test/login", {"message": "bad credentials"}))
    failures = _recorder(manager, "onFail")

    _run(
        manager,
        {
            "action": "apiCall",
            "method": "POST",
            "endpoint": "/login",
            "onError": {"action": "custom", "handler": "onFail", "parameters": {"source": "login"}},
        },
    )

    error = failures[0]["error"]
    assert error["statusCode"] == 401
    assert error["body"] == {"message": "bad credentials"}
    assert failures[0]["source"] == "login"


def test_unexpected_transport_errors_become_network_errors(manager, network):
    _start(manager)
    network.fail(ConnectionResetError("reset"))
    chain = _run(manager, {"action": "apiCall", "method": "GET", "endpoint": "/me"})
    assert isinstance(chain.results[0].error, NetworkError)


def test_fail_fast_skips_remaining_entries(manager, network):
    _start(manager)
    network.fail(NetworkError("down"))
    chain = _run(
        manager,
        [
            {"action": "apiCall", "method": "GET", "endpoint": "/me"},
            {"action": "setState", "updates": {"after": True}},
        ],
    )
    assert not chain.ok
    assert chain.skipped == ["setState"]
    assert manager.session_store.get("after") is None


def test_continue_policy_runs_remaining_entries(assets_dir, network):
    from core.flows.flow_loader import FileTextLoader
    from runtime.flow.flow_manager import FlowManager

    manager = FlowManager(FileTextLoader(assets_dir), network, chain_policy="continue")
    network.fail(NetworkError("down"))
    chain = _run(
        manager,
        [
            {"action": "apiCall", "method": "GET", "endpoint": "https://other.test/me"},
            {"action": "setState", "updates": {"after": True}},
        ],
    )
    assert not chain.ok
    assert chain.skipped == []
    assert len(chain.results) == 2
    assert manager.session_store.get("after") is True
    assert network.calls[0]["url"] == "https://other.test/me"


def test_handled_failure_does_not_abort_chain(manager, network):
    _start(manager)
    network.fail(NetworkError("down"))
    chain = _run(
        manager,
        [
            {
                "action": "apiCall",
                "method": "GET",
                "endpoint": "/me",
                "onError": {"action": "setState", "updates": {"offline": True}},
            },
            {"action": "setState", "updates": {"after": True}},
        ],
    )
    assert chain.ok
    assert manager.session_store.snapshot() == {"offline": True, "after": True}


def test_list_entries_run_in_order(manager):
    order = []
    manager.register_callback("first", lambda p: order.append("first"))
    manager.register_callback("second", lambda p: order.append("second"))
    _run(
        manager,
        [
            {"action": "executeCallback", "callbackName": "first"},
            {"action": "custom", "handler": "second"},
        ],
    )
    assert order == ["first", "second"]


def test_malformed_trigger_runs_nothing(manager):
    with pytest.raises(StructureError) as exc:
        _run(
            manager,
            [
                {"action": "setState", "updates": {"ran": True}},
                {"action": "mystery"},
            ],
        )
    assert exc.value.field == "[1].action"
    assert manager.session_store.get("ran") is None


def test_missing_callback_is_reported_not_raised(manager):
    chain = _run(manager, {"action": "executeCallback", "callbackName": "missing"})
    assert not chain.ok
    assert isinstance(chain.results[0].error, CallbackNotFoundError)


def test_validation_error_from_handler_selects_on_error(manager):
    def validate(params):
        raise ValidationError("Email is required", errors={"email": "required"})

    manager.register_callback("validate", validate)
    chain = _run(
        manager,
        {
            "action": "custom",
            "handler": "validate",
            "onError": {"action": "setState", "updates": {"formError": "invalid"}},
        },
    )
    assert chain.ok
    assert manager.session_store.get("formError") == "invalid"
    assert chain.to_dict()["results"][0]["error"]["errors"] == {"email": "required"}


def test_interpreter_is_busy_while_running_and_idle_after(manager):
    seen = []

    async def probe(params):
        seen.append((manager.is_busy, manager.interpreter.state))

    manager.register_callback("probe", probe)
    _run(manager, {"action": "executeCallback", "callbackName": "probe"})

    assert seen == [(True, InterpreterState.EXECUTING)]
    assert manager.is_busy is False
    assert manager.interpreter.state == InterpreterState.IDLE


def test_unknown_chain_policy_is_rejected(manager):
    with pytest.raises(ValueError):
        ActionInterpreter(
            manager.session_store,
            manager.navigation,
            manager.flow_cache,
            manager.callbacks,
            chain_policy="sometimes",
        )


def test_navigate_to_flow_keeps_merged_data_when_load_fails(manager):
    _start(manager)
    chain = _run(
        manager,
        {"action": "navigateToFlow", "targetFlow": "unknown", "data": {"attempted": True}},
    )
    assert not chain.ok
    assert manager.current_flow_id == "auth"
    assert manager.session_store.get("attempted") is True


def test_pending_api_call_still_applies_after_navigating_away(manager, network):
    _start(manager)

    class GatedClient:
        def __init__(self):
            self.entered = None
            self.gate = None

        async def request(self, method, url, headers=None, body=None, *, params=None, timeout=None):
            self.gate = asyncio.get_running_loop().create_future()
            self.entered.set()
            await self.gate
            return await network.request(method, url, headers, body, params=params, timeout=timeout)

    gated = GatedClient()
    manager.interpreter.network_client = gated
    network.respond({"status": "ok"})

    async def scenario():
        gated.entered = asyncio.Event()
        pending = asyncio.create_task(
            manager.handle_event(
                {
                    "action": "apiCall",
                    "method": "GET",
                    "endpoint": "/slow",
                    "onSuccess": {"action": "setState", "updates": {"late": "yes"}},
                }
            )
        )
        await gated.entered.wait()
        busy_while_suspended = manager.is_busy

        await manager.handle_event({"action": "navigateToFlow", "targetFlow": "dashboard"})
        gated.gate.set_result(None)
        chain = await pending
        return busy_while_suspended, chain

    busy_while_suspended, chain = asyncio.run(scenario())

    assert busy_while_suspended is True
    assert chain.ok
    assert manager.current_flow_id == "dashboard"
    assert manager.session_store.get("late") == "yes"
    assert manager.is_busy is False
