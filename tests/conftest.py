import json
from typing import Any, Dict, List, Optional

import pytest

from core.api.network_client import NetworkResponse
from core.flows.flow_loader import FileTextLoader
from runtime.flow.flow_manager import FlowManager


AUTH_FLOW = {
    "type": "flow",
    "flowId": "auth",
    "properties": {"title": "Sign in"},
    "screens": {
        "login": {
            "type": "screen",
            "title": "Welcome ${navigationData.username}",
            "children": [
                {
                    "type": "button",
                    "text": "Sign in",
                    "onPress": {
                        "action": "apiCall",
                        "method": "post",
                        "endpoint": "/login",
                        "body": {"email": "${fields.email}"},
                        "onSuccess": {
                            "action": "navigateToFlow",
                            "targetFlow": "dashboard",
                            "targetScreen": "home",
                        },
                        "onError": {"action": "setState", "updates": {"loginFailed": True}},
                    },
                },
                {
                    "type": "link",
                    "text": "Create account",
                    "onPress": {"action": "navigate", "screen": "register"},
                },
            ],
        },
        "register": {
            "type": "screen",
            "title": "Register",
            "children": [],
        },
    },
}

DASHBOARD_FLOW = {
    "type": "flow",
    "flowId": "dashboard",
    "properties": {},
    "screens": {
        "home": {"type": "screen", "title": "Hi ${navigationData.username}"},
        "settings": {"type": "screen", "title": "Settings"},
    },
}


class FakeNetworkClient:
    """Records requests and replays queued outcomes (responses or exceptions)."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.outcomes: List[Any] = []

    def respond(self, body: Any = None, status_code: int = 200) -> None:
        self.outcomes.append(NetworkResponse(status_code=status_code, body=body))

    def fail(self, error: Exception) -> None:
        self.outcomes.append(error)

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
        *,
        params: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> NetworkResponse:
        self.calls.append(
            {
                "method": method,
                "url": url,
                "headers": headers,
                "body": body,
                "params": params,
                "timeout": timeout,
            }
        )
        outcome = self.outcomes.pop(0) if self.outcomes else NetworkResponse(status_code=200)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def write_flow(root, name: str, data: Any) -> str:
    flows_dir = root / "flows"
    flows_dir.mkdir(parents=True, exist_ok=True)
    path = flows_dir / f"{name}.json"
    if isinstance(data, str):
        path.write_text(data, encoding="utf-8")
    else:
        path.write_text(json.dumps(data), encoding="utf-8")
    return f"flows/{name}.json"


@pytest.fixture
def assets_dir(tmp_path):
    write_flow(tmp_path, "auth", AUTH_FLOW)
    write_flow(tmp_path, "dashboard", DASHBOARD_FLOW)
    return tmp_path


@pytest.fixture
def network():
    return FakeNetworkClient()


@pytest.fixture
def manager(assets_dir, network):
    mgr = FlowManager(
        FileTextLoader(assets_dir),
        network,
        api_base_url="https://api.example.test",
        chain_policy="fail_fast",
    )
    mgr.register_flow_configs({"dashboard": "flows/dashboard.json"})
    return mgr
