"""FlowManager implementation.

Responsible for:
- owning one engine instance: session data, navigation stack, flow cache,
  callback registry and action interpreter
- bootstrapping the first flow and screen
- handing UI events to the action interpreter
- giving the rendering layer the current, variable-substituted screen
- notifying listeners when the current screen changes

Nothing here is global: two FlowManager instances (for example in two
tests) never share state.
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from core.actions.action_interpreter import ActionInterpreter, ChainResult
from core.actions.callback_registry import CallbackHandler, CallbackRegistry
from core.api.network_client import NetworkClient
from core.flows.flow_loader import AssetTextLoader, FileTextLoader, FlowCache
from core.resolver.variable_resolver import ResolutionContext, resolve_value
from configs.settings import settings
from exceptions.exceptions import NavigationError

from ..models.session_models import SessionBackup
from ..store.navigation_stack import NavigationStack
from ..store.session_store import SessionStore


logger = logging.getLogger(__name__)

ScreenListener = Callable[[str, str], None]


class FlowManager:
    """Explicit engine context passed to the UI layer.

    Parameters
    ----------
    text_loader:
        Source of raw flow JSON (FileTextLoader on FLOWUI_ASSETS_ROOT when
        omitted).
    network_client:
        Transport for apiCall actions (HttpNetworkClient when omitted).
    api_base_url, chain_policy:
        Forwarded to the ActionInterpreter (settings when omitted).
    """

    def __init__(
        self,
        text_loader: Optional[AssetTextLoader] = None,
        network_client: Optional[NetworkClient] = None,
        *,
        api_base_url: Optional[str] = None,
        chain_policy: Optional[str] = None,
    ) -> None:
        self.session_store = SessionStore()
        self.navigation = NavigationStack(self.session_store)
        self.flow_cache = FlowCache(text_loader or FileTextLoader(settings.assets_root))
        self.callbacks = CallbackRegistry()
        self.interpreter = ActionInterpreter(
            self.session_store,
            self.navigation,
            self.flow_cache,
            self.callbacks,
            network_client,
            api_base_url=api_base_url,
            chain_policy=chain_policy,
            on_screen_changed=self._trigger_screen_change,
        )
        self._listeners: List[ScreenListener] = []

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    async def initialize_app(
        self,
        initial_flow_id: str,
        initial_path: str,
        additional_flow_configs: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Load the first flow and push its first screen."""
        logger.info("[ENGINE] Initializing with flow: %s", initial_flow_id)

        self.flow_cache.register_flow_configs({initial_flow_id: initial_path})
        if additional_flow_configs:
            self.flow_cache.register_flow_configs(additional_flow_configs)

        flow = await self.flow_cache.load_flow(initial_flow_id, initial_path)
        first_screen = next(iter(flow["screens"]))

        self.navigation.clear()
        self.navigation.push(initial_flow_id, first_screen)
        self._trigger_screen_change(initial_flow_id, first_screen)
        logger.info("[ENGINE] Initialized - current: %s/%s", initial_flow_id, first_screen)

    def register_flow_configs(self, flow_configs: Mapping[str, str]) -> None:
        self.flow_cache.register_flow_configs(flow_configs)

    def register_callback(self, name: str, handler: CallbackHandler) -> None:
        self.callbacks.register(name, handler)

    async def preload_flows(self, flow_ids: List[str]) -> Dict[str, Any]:
        return await self.flow_cache.preload_flows(flow_ids)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def handle_event(
        self, trigger: Any, fields: Optional[Mapping[str, Any]] = None
    ) -> ChainResult:
        """Execute the action descriptor(s) attached to a UI event."""
        return await self.interpreter.execute(trigger, fields)

    @property
    def is_busy(self) -> bool:
        return self.interpreter.is_busy

    # ------------------------------------------------------------------
    # Current location
    # ------------------------------------------------------------------

    @property
    def current_flow_id(self) -> Optional[str]:
        frame = self.navigation.current()
        return frame.flow_id if frame else None

    @property
    def current_screen_id(self) -> Optional[str]:
        frame = self.navigation.current()
        return frame.screen_id if frame else None

    def can_go_back(self) -> bool:
        return self.navigation.can_go_back()

    def get_current_screen_config(self) -> Optional[Dict[str, Any]]:
        """Return a copy of the raw descriptor of the current screen."""
        frame = self.navigation.current()
        if frame is None:
            return None
        flow = self.flow_cache.get_cached(frame.flow_id)
        if flow is None:
            logger.warning("[ENGINE] Current flow is not cached: %s", frame.flow_id)
            return None
        return flow["screens"].get(frame.screen_id)

    def resolve_current_screen(
        self, fields: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, Any]:
        """Return the current screen with every placeholder substituted.

        This is what the rendering layer consumes after each change.
        """
        screen = self.get_current_screen_config()
        if screen is None:
            raise NavigationError("No current screen to resolve")
        context = ResolutionContext(
            navigation_data=self.session_store.view(),
            fields=dict(fields or {}),
        )
        return resolve_value(screen, context)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def on_screen_changed(self, listener: ScreenListener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _trigger_screen_change(self, flow_id: str, screen_id: str) -> None:
        logger.info("[ENGINE] Screen changed to: %s/%s", flow_id, screen_id)
        for listener in list(self._listeners):
            listener(flow_id, screen_id)

    # ------------------------------------------------------------------
    # Session data / flow state
    # ------------------------------------------------------------------

    def get_session_snapshot(self) -> Dict[str, Any]:
        return self.session_store.snapshot()

    def save_flow_state(self, flow_id: str, state: Any) -> None:
        self.navigation.save_flow_state(flow_id, state)

    def get_flow_state(self, flow_id: str) -> Optional[Any]:
        return self.navigation.get_flow_state(flow_id)

    def create_backup(self) -> SessionBackup:
        return self.navigation.create_backup()

    def restore_from_backup(self, backup: Any) -> None:
        self.navigation.restore_from_backup(backup)
        frame = self.navigation.current()
        if frame is not None:
            self._trigger_screen_change(frame.flow_id, frame.screen_id)

    def logout(self) -> None:
        """Clear session data and flow state and return to the root screen."""
        logger.info("[ENGINE] Logout: clearing session data and flow state")
        self.session_store.clear_all()
        self.navigation.clear_flow_state()
        if self.navigation.can_go_back():
            self.navigation.reset_to_root()
            frame = self.navigation.current()
            self._trigger_screen_change(frame.flow_id, frame.screen_id)

    def reset(self) -> None:
        """Drop everything, including the flow cache and the stack."""
        logger.info("[ENGINE] Resetting to initial state")
        self.session_store.clear_all()
        self.navigation.clear_flow_state()
        self.navigation.clear()
        self.flow_cache.clear_cache()

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def get_stats(self) -> Dict[str, Any]:
        return {
            "currentFlow": self.current_flow_id,
            "currentScreen": self.current_screen_id,
            "interpreterState": self.interpreter.state.value,
            "navigation": self.navigation.get_stats(),
            "cache": self.flow_cache.get_cache_stats(),
            "callbacks": self.callbacks.get_stats(),
        }
