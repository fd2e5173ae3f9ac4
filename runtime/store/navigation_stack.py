"""Navigation history and per-flow state for the FlowUI engine.

The NavigationStack is an ordered list of NavigationFrame objects; the
last frame is the current location. Once the first frame is pushed the
stack never becomes empty again through normal navigation:

- `pop()` on a single-frame stack is a no-op returning None.
- `go_back(steps)` is clamped so at least one frame remains.

Flow state (draft input, per-flow UI state) is kept here as well, keyed
by flowId and independent of session data. Session data itself lives in
the SessionStore this stack was constructed with; the stack only needs
it for `go_back(clear_data=True)` and for backup/restore.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from core.values.json_values import copy_json, to_json_value
from exceptions.exceptions import NavigationError

from ..models.session_models import NavigationFrame, SessionBackup
from .session_store import SessionStore


logger = logging.getLogger(__name__)


class NavigationStack:
    """Back stack of (flowId, screenId) frames plus flow state snapshots.

    Parameters
    ----------
    session_store:
        Session data cleared by `go_back(clear_data=True)` and included in
        backups.
    """

    def __init__(self, session_store: SessionStore) -> None:
        self._session_store = session_store
        self._frames: List[NavigationFrame] = []
        self._flow_state: Dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Stack operations
    # ------------------------------------------------------------------

    def push(self, flow_id: str, screen_id: str) -> NavigationFrame:
        logger.info("[NAV] Pushing navigation: %s -> %s", flow_id, screen_id)
        frame = NavigationFrame(flow_id=flow_id, screen_id=screen_id)
        self._frames.append(frame)
        return frame

    def pop(self) -> Optional[NavigationFrame]:
        """Remove and return the top frame.

        Returns None (and leaves the stack untouched) when one frame or
        none remains.
        """
        if len(self._frames) <= 1:
            logger.warning("[NAV] Cannot pop: stack depth is %d", len(self._frames))
            return None
        popped = self._frames.pop()
        logger.info("[NAV] Popped navigation: %s -> %s", popped.flow_id, popped.screen_id)
        return popped

    def current(self) -> Optional[NavigationFrame]:
        if not self._frames:
            return None
        return self._frames[-1]

    def frames(self) -> List[NavigationFrame]:
        return list(self._frames)

    @property
    def depth(self) -> int:
        return len(self._frames)

    def __len__(self) -> int:
        return len(self._frames)

    def can_go_back(self) -> bool:
        return len(self._frames) > 1

    def replace_top(self, screen_id: str) -> NavigationFrame:
        """Replace the current frame's screen, keeping its flow."""
        if not self._frames:
            raise NavigationError("Navigation stack is not initialized")
        top = self._frames[-1]
        logger.info("[NAV] Replacing screen: %s/%s -> %s", top.flow_id, top.screen_id, screen_id)
        frame = NavigationFrame(flow_id=top.flow_id, screen_id=screen_id)
        self._frames[-1] = frame
        return frame

    def go_back(self, steps: int = 1, clear_data: bool = False) -> List[NavigationFrame]:
        """Pop up to `steps` frames, always keeping at least one.

        Returns the popped frames, most recent first. With `clear_data`
        the session store is cleared as well.
        """
        if steps < 0:
            raise ValueError(f"steps must be >= 0, got {steps}")

        effective = min(steps, max(len(self._frames) - 1, 0))
        logger.info("[NAV] Going back %d steps (requested %d)", effective, steps)

        popped: List[NavigationFrame] = []
        for _ in range(effective):
            popped.append(self._frames.pop())

        if clear_data:
            self._session_store.clear_all()
        return popped

    def reset_to_root(self) -> None:
        """Drop every frame above the first one."""
        del self._frames[1:]

    def clear(self) -> None:
        """Drop all frames; the stack is uninitialized afterwards."""
        logger.info("[NAV] Clearing navigation stack")
        self._frames.clear()

    # ------------------------------------------------------------------
    # Flow state
    # ------------------------------------------------------------------

    def save_flow_state(self, flow_id: str, state: Any) -> None:
        logger.info("[NAV] Saving state for flow: %s", flow_id)
        self._flow_state[flow_id] = to_json_value(state)

    def get_flow_state(self, flow_id: str) -> Optional[Any]:
        if flow_id not in self._flow_state:
            logger.warning("[NAV] Flow state not found: %s", flow_id)
            return None
        return copy_json(self._flow_state[flow_id])

    def clear_flow_state(self, flow_id: Optional[str] = None) -> None:
        if flow_id is not None:
            logger.info("[NAV] Clearing state for flow: %s", flow_id)
            self._flow_state.pop(flow_id, None)
        else:
            logger.info("[NAV] Clearing all flow state")
            self._flow_state.clear()

    # ------------------------------------------------------------------
    # Backup / restore
    # ------------------------------------------------------------------

    def create_backup(self) -> SessionBackup:
        """Deep-copy session data, stack and flow state."""
        return SessionBackup(
            session=self._session_store.snapshot(),
            stack=list(self._frames),
            flow_state=copy_json(self._flow_state),
        )

    def restore_from_backup(self, backup: Union[SessionBackup, Mapping[str, Any]]) -> None:
        """Replace session data, stack and flow state with a backup.

        Accepts a SessionBackup or its dict dump (either field names or
        aliases). The backup object itself is not shared afterwards.
        """
        if not isinstance(backup, SessionBackup):
            backup = SessionBackup.model_validate(backup)

        self._session_store.restore(backup.session)
        self._frames = list(backup.stack)
        self._flow_state = {
            flow_id: to_json_value(state) for flow_id, state in backup.flow_state.items()
        }
        logger.info("[NAV] Restored from backup taken at %s", backup.created_at)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "navigationStackDepth": len(self._frames),
            "canGoBack": self.can_go_back(),
            "flowStateCount": len(self._flow_state),
            "sessionDataKeys": len(self._session_store),
            "navigationStack": [
                frame.model_dump(by_alias=True) for frame in self._frames
            ],
        }
