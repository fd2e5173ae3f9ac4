"""
core.actions.action_interpreter

Executes action descriptors triggered by UI events.

Lifecycle of one node:

    IDLE -> EXECUTING(action) -> SUCCEEDED | FAILED
         -> EXECUTING(onSuccess | onError) -> ... -> IDLE

Rules:

- A trigger is one descriptor or an ordered list. List entries run one
  after another. With the "fail_fast" policy, an entry whose failure is
  not handled by an onError branch aborts the remaining entries; with
  "continue" the remaining entries still run.
- Exactly one continuation fires per node, strictly after the node
  settles: onSuccess with the leaf's result exposed as `response`, or
  onError with the failure exposed as `error`.
- Network, API, validation and handler errors never escape `execute`;
  they select the onError branch or are reported on the result.
  A malformed trigger raises StructureError before anything runs.
- String payloads (`updates`, `data`, `endpoint`, `body`, `params`, ...)
  are resolved against the live session data and the caller's field
  values right before the node runs, so a continuation sees the state
  its parent left behind.
- There is no cancellation: an apiCall that settles after the user has
  navigated away still runs its continuation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from core.api.network_client import HttpNetworkClient, NetworkClient, NetworkResponse, join_url
from core.flows.flow_loader import FlowCache
from core.resolver.variable_resolver import ResolutionContext, resolve, resolve_value
from configs.settings import CHAIN_POLICIES, settings
from exceptions.exceptions import (
    ApiError,
    NavigationError,
    NetworkError,
    StructureError,
    ValidationError,
)
from runtime.store.navigation_stack import NavigationStack
from runtime.store.session_store import SessionStore

from .action_models import (
    ActionDescriptor,
    ApiCallAction,
    CustomAction,
    ExecuteCallbackAction,
    GoBackAction,
    NavigateAction,
    NavigateToFlowAction,
    SetStateAction,
    parse_action_chain,
)
from .callback_registry import CallbackRegistry


logger = logging.getLogger(__name__)

ScreenChangedHook = Callable[[str, str], None]


class InterpreterState(str, Enum):
    IDLE = "IDLE"
    EXECUTING = "EXECUTING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


def describe_error(error: Optional[BaseException]) -> Optional[Dict[str, Any]]:
    """JSON-friendly description of a failure for continuations and diagnostics."""
    if error is None:
        return None
    info: Dict[str, Any] = {"type": type(error).__name__, "message": str(error)}
    if isinstance(error, ApiError):
        info["statusCode"] = error.status_code
        info["body"] = error.body
    elif isinstance(error, ValidationError):
        info["errors"] = error.errors
    elif isinstance(error, StructureError):
        info["field"] = error.field
    return info


@dataclass
class ActionResult:
    """Outcome of one node and of the continuation it fired."""

    action: str
    succeeded: bool
    response: Any = None
    error: Optional[BaseException] = None
    continuation: Optional["ActionResult"] = None

    @property
    def ok(self) -> bool:
        """True when no unhandled failure happened in this subtree.

        A failed node whose onError branch completed counts as handled.
        """
        if self.continuation is not None:
            return self.continuation.ok
        return self.succeeded

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "succeeded": self.succeeded,
            "ok": self.ok,
            "response": self.response,
            "error": describe_error(self.error),
            "continuation": self.continuation.to_dict() if self.continuation else None,
        }


@dataclass
class ChainResult:
    """Outcome of a whole trigger."""

    results: List[ActionResult] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(result.ok for result in self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "results": [result.to_dict() for result in self.results],
            "skipped": list(self.skipped),
        }


@dataclass(frozen=True)
class ActionScope:
    """Data visible to one node: the caller's fields plus its parent's outcome."""

    fields: Mapping[str, Any] = field(default_factory=dict)
    response: Any = None
    error: Optional[BaseException] = None

    def with_response(self, response: Any) -> "ActionScope":
        return ActionScope(fields=self.fields, response=response)

    def with_error(self, error: BaseException) -> "ActionScope":
        return ActionScope(fields=self.fields, error=error)


class ActionInterpreter:
    """Drives session data, navigation, flows and callbacks from descriptors.

    Parameters
    ----------
    session_store, navigation, flow_cache, callbacks:
        The engine state this interpreter is allowed to mutate.
    network_client:
        Transport for apiCall actions (HttpNetworkClient when omitted).
    api_base_url:
        Prefix for relative apiCall endpoints (FLOWUI_API_BASE_URL when omitted).
    chain_policy:
        "fail_fast" or "continue" (FLOWUI_CHAIN_POLICY when omitted).
    on_screen_changed:
        Called with (flow_id, screen_id) after every navigation change.
    """

    def __init__(
        self,
        session_store: SessionStore,
        navigation: NavigationStack,
        flow_cache: FlowCache,
        callbacks: CallbackRegistry,
        network_client: Optional[NetworkClient] = None,
        *,
        api_base_url: Optional[str] = None,
        chain_policy: Optional[str] = None,
        on_screen_changed: Optional[ScreenChangedHook] = None,
    ) -> None:
        self.session_store = session_store
        self.navigation = navigation
        self.flow_cache = flow_cache
        self.callbacks = callbacks
        self.network_client = network_client or HttpNetworkClient()
        self.api_base_url = api_base_url if api_base_url is not None else settings.api_base_url
        self.chain_policy = chain_policy or settings.chain_policy
        if self.chain_policy not in CHAIN_POLICIES:
            raise ValueError(f"Unknown chain policy: {self.chain_policy!r}")
        self.on_screen_changed = on_screen_changed

        self._state = InterpreterState.IDLE
        self._in_flight = 0

        self._performers = {
            NavigateAction: self._navigate,
            NavigateToFlowAction: self._navigate_to_flow,
            GoBackAction: self._go_back,
            SetStateAction: self._set_state,
            ApiCallAction: self._api_call,
            CustomAction: self._custom,
            ExecuteCallbackAction: self._execute_callback,
        }

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> InterpreterState:
        return self._state

    @property
    def in_flight(self) -> int:
        """Number of triggers currently executing (suspended ones included)."""
        return self._in_flight

    @property
    def is_busy(self) -> bool:
        return self._in_flight > 0

    def _transition(self, state: InterpreterState, action: Optional[str] = None) -> None:
        logger.debug("[ACTIONS] %s -> %s (%s)", self._state.value, state.value, action or "-")
        self._state = state

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def execute(self, trigger: Any, fields: Optional[Mapping[str, Any]] = None) -> ChainResult:
        """Run a trigger (one descriptor or a list) and report the outcome.

        Raises
        ------
        StructureError
            If the trigger is malformed; nothing is executed in that case.
        """
        try:
            actions = parse_action_chain(trigger)
        except StructureError as exc:
            logger.error("[ACTIONS] Rejected malformed trigger: %s", exc)
            raise

        scope = ActionScope(fields=dict(fields or {}))
        chain = ChainResult()

        self._in_flight += 1
        try:
            for index, action in enumerate(actions):
                result = await self._run(action, scope)
                chain.results.append(result)
                if not result.ok and self.chain_policy == "fail_fast":
                    chain.skipped = [remaining.action for remaining in actions[index + 1:]]
                    if chain.skipped:
                        logger.warning(
                            "[ACTIONS] Aborting chain after failed %s; skipped %s",
                            action.action,
                            chain.skipped,
                        )
                    break
        finally:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._transition(InterpreterState.IDLE)
        return chain

    # ------------------------------------------------------------------
    # Node execution
    # ------------------------------------------------------------------

    async def _run(self, action: ActionDescriptor, scope: ActionScope) -> ActionResult:
        self._transition(InterpreterState.EXECUTING, action.action)
        try:
            response = await self._performers[type(action)](action, scope)
        except Exception as exc:
            self._transition(InterpreterState.FAILED, action.action)
            if action.on_error is None:
                logger.error("[ACTIONS] Unhandled failure in %s: %s", action.action, exc)
                return ActionResult(action=action.action, succeeded=False, error=exc)

            logger.warning("[ACTIONS] %s failed, running onError: %s", action.action, exc)
            child = await self._run(action.on_error, scope.with_error(exc))
            return ActionResult(
                action=action.action, succeeded=False, error=exc, continuation=child
            )

        self._transition(InterpreterState.SUCCEEDED, action.action)
        if action.on_success is None:
            return ActionResult(action=action.action, succeeded=True, response=response)

        child = await self._run(action.on_success, scope.with_response(response))
        return ActionResult(
            action=action.action, succeeded=True, response=response, continuation=child
        )

    def _context(self, scope: ActionScope) -> ResolutionContext:
        return ResolutionContext(
            navigation_data=self.session_store.view(),
            fields=scope.fields,
        )

    def _notify_screen_changed(self) -> None:
        frame = self.navigation.current()
        if frame is not None and self.on_screen_changed is not None:
            self.on_screen_changed(frame.flow_id, frame.screen_id)

    # ------------------------------------------------------------------
    # Navigation kinds
    # ------------------------------------------------------------------

    async def _navigate(self, action: NavigateAction, scope: ActionScope) -> Dict[str, Any]:
        screen_id = resolve(action.screen, self._context(scope))
        frame = self.navigation.current()
        if frame is None:
            raise NavigationError("Navigation stack is not initialized")

        flow = self.flow_cache.get_cached(frame.flow_id)
        if flow is not None and screen_id not in flow["screens"]:
            raise NavigationError(f"Screen not found in flow {frame.flow_id}: {screen_id}")

        frame = self.navigation.replace_top(screen_id)
        self._notify_screen_changed()
        return frame.model_dump(by_alias=True)

    async def _navigate_to_flow(
        self, action: NavigateToFlowAction, scope: ActionScope
    ) -> Dict[str, Any]:
        """Merge `data`, then load the target flow and push its screen.

        The merge happens first and stays in place when the flow cannot be
        loaded or the screen does not exist.
        """
        ctx = self._context(scope)
        flow_id = resolve(action.target_flow, ctx)
        if action.data:
            self.session_store.merge(resolve_value(action.data, ctx))

        flow = await self.flow_cache.get_flow(flow_id)
        screens = flow["screens"]
        if action.target_screen is not None:
            screen_id = resolve(action.target_screen, self._context(scope))
        else:
            screen_id = next(iter(screens))
        if screen_id not in screens:
            raise NavigationError(f"Screen not found in flow {flow_id}: {screen_id}")

        frame = self.navigation.push(flow_id, screen_id)
        self._notify_screen_changed()
        return frame.model_dump(by_alias=True)

    async def _go_back(self, action: GoBackAction, scope: ActionScope) -> Dict[str, Any]:
        popped = self.navigation.go_back(steps=action.steps, clear_data=action.clear_data)
        if popped:
            self._notify_screen_changed()
        return {"popped": len(popped)}

    # ------------------------------------------------------------------
    # Data kinds
    # ------------------------------------------------------------------

    async def _set_state(self, action: SetStateAction, scope: ActionScope) -> Dict[str, Any]:
        updates = resolve_value(action.updates, self._context(scope))
        self.session_store.merge(updates)
        return updates

    async def _api_call(self, action: ApiCallAction, scope: ActionScope) -> Any:
        ctx = self._context(scope)
        url = join_url(self.api_base_url, resolve(action.endpoint, ctx))
        headers = resolve_value(action.headers or {}, ctx)
        body = resolve_value(action.body, ctx)
        params = resolve_value(action.query_params or {}, ctx)

        logger.info("[ACTIONS] apiCall %s %s", action.method, url)
        try:
            result = await self.network_client.request(
                action.method,
                url,
                headers,
                body,
                params=params,
                timeout=action.timeout,
            )
        except (ApiError, NetworkError):
            raise
        except Exception as exc:
            raise NetworkError(str(exc), url) from exc

        if isinstance(result, NetworkResponse):
            return result.body
        return result

    # ------------------------------------------------------------------
    # Callback kinds
    # ------------------------------------------------------------------

    def _callback_params(
        self, raw: Optional[Mapping[str, Any]], scope: ActionScope
    ) -> Dict[str, Any]:
        params = resolve_value(dict(raw or {}), self._context(scope))
        if scope.response is not None:
            params.setdefault("response", scope.response)
        if scope.error is not None:
            params.setdefault("error", describe_error(scope.error))
        return params

    async def _custom(self, action: CustomAction, scope: ActionScope) -> Any:
        params = self._callback_params(action.parameters, scope)
        return await self.callbacks.execute(action.handler, params)

    async def _execute_callback(self, action: ExecuteCallbackAction, scope: ActionScope) -> Any:
        params = self._callback_params(action.params, scope)
        return await self.callbacks.execute(action.callback_name, params)
