"""Session data storage for the FlowUI engine.

A SessionStore is a flat key -> JSON-like value map that survives across
screens and flows for the lifetime of one engine instance. It is cleared
only by explicit calls (logout, goBack with clearData, restore).

The design is intentionally simple:
- Merges are shallow: `merge({"profile": {...}})` replaces the whole
  "profile" value, nested maps are never deep-merged.
- Reads never raise: a missing key yields None and a warning in the log.
- Values are validated and copied on the way in and copied on the way
  out, so callers holding a returned value cannot change the store.
"""

import logging
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from core.values.json_values import copy_json, to_json_value


logger = logging.getLogger(__name__)


class SessionStore:
    """In-memory key/value store for cross-screen data.

    Parameters
    ----------
    initial:
        Optional mapping used to seed the store (validated like `merge`).
    """

    def __init__(self, initial: Optional[Mapping[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = {}
        if initial:
            self.merge(initial)

    def set(self, key: str, value: Any) -> None:
        """Store `value` under `key`, replacing any previous value."""
        logger.info("[SESSION] Setting session data: %s", key)
        self._data[key] = to_json_value(value)

    def get(self, key: str) -> Optional[Any]:
        """Return a copy of the value stored under `key`, or None."""
        if key not in self._data:
            logger.warning("[SESSION] Session data not found: %s", key)
            return None
        return copy_json(self._data[key])

    def merge(self, partial: Mapping[str, Any]) -> None:
        """Shallow, top-level merge: every key in `partial` overwrites."""
        logger.info("[SESSION] Merging session data with %d keys", len(partial))
        # Validate everything first so a bad value leaves the store untouched.
        validated = {key: to_json_value(value) for key, value in partial.items()}
        self._data.update(validated)

    def clear_key(self, key: str) -> None:
        logger.info("[SESSION] Clearing session data key: %s", key)
        self._data.pop(key, None)

    def clear_all(self) -> None:
        logger.info("[SESSION] Clearing all session data")
        self._data.clear()

    def restore(self, data: Mapping[str, Any]) -> None:
        """Replace the whole content of the store."""
        validated = {key: to_json_value(value) for key, value in data.items()}
        self._data.clear()
        self._data.update(validated)

    def snapshot(self) -> Dict[str, Any]:
        """Return a deep copy of all session data."""
        return copy_json(self._data)

    def view(self) -> Mapping[str, Any]:
        """Return a read-only live view of the data (no copy).

        Used by the variable resolver, which only reads single keys.
        """
        return MappingProxyType(self._data)

    def keys(self) -> List[str]:
        return list(self._data.keys())

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)
