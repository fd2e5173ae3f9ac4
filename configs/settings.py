from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


load_dotenv()


CHAIN_POLICIES = ("fail_fast", "continue")


class Settings:
    """
    Central configuration for the FlowUI engine.

    Values are loaded once from environment variables (with sensible defaults)
    and then exposed via typed properties.
    """

    def __init__(self) -> None:
        # Flow assets
        self._assets_root = Path(os.getenv("FLOWUI_ASSETS_ROOT", "assets"))

        # Network collaborator
        self._api_base_url = os.getenv("FLOWUI_API_BASE_URL") or None
        self._http_timeout = os.getenv("FLOWUI_HTTP_TIMEOUT", "30")

        # Action chaining
        self._chain_policy = os.getenv("FLOWUI_CHAIN_POLICY", "fail_fast")

        # Optional bootstrap flow for the diagnostics server
        self._initial_flow = os.getenv("FLOWUI_INITIAL_FLOW") or None
        self._initial_flow_path = os.getenv("FLOWUI_INITIAL_FLOW_PATH") or None

        # Logging
        self._log_level = os.getenv("FLOWUI_LOG_LEVEL", "INFO")

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def assets_root(self) -> Path:
        return self._assets_root

    # ------------------------------------------------------------------
    # Network settings
    # ------------------------------------------------------------------

    @property
    def api_base_url(self) -> Optional[str]:
        return self._api_base_url

    @property
    def http_timeout(self) -> float:
        try:
            timeout = float(self._http_timeout)
        except ValueError:
            raise RuntimeError(
                f"FLOWUI_HTTP_TIMEOUT must be a number of seconds, got {self._http_timeout!r}."
            )
        if timeout <= 0:
            raise RuntimeError("FLOWUI_HTTP_TIMEOUT must be greater than zero.")
        return timeout

    # ------------------------------------------------------------------
    # Engine behaviour
    # ------------------------------------------------------------------

    @property
    def chain_policy(self) -> str:
        policy = self._chain_policy.strip().lower()
        if policy not in CHAIN_POLICIES:
            raise RuntimeError(
                f"FLOWUI_CHAIN_POLICY must be one of {', '.join(CHAIN_POLICIES)}; "
                f"got {self._chain_policy!r}."
            )
        return policy

    @property
    def initial_flow(self) -> Optional[str]:
        return self._initial_flow

    @property
    def initial_flow_path(self) -> Optional[str]:
        if self._initial_flow_path:
            return self._initial_flow_path
        if self._initial_flow:
            return f"flows/{self._initial_flow}.json"
        return None

    @property
    def log_level(self) -> str:
        return self._log_level.upper()


settings = Settings()
