"""
Session-related models for the FlowUI runtime.

These describe:
- NavigationFrame: one (flowId, screenId) entry of the back stack
- SessionBackup: a deep snapshot of session data, stack and flow state
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class NavigationFrame(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    flow_id: str = Field(alias="flowId")
    screen_id: str = Field(alias="screenId")
    timestamp: str = Field(default_factory=_now)


class SessionBackup(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session: Dict[str, Any] = Field(default_factory=dict, alias="sessionData")
    stack: List[NavigationFrame] = Field(default_factory=list, alias="navigationStack")
    flow_state: Dict[str, Any] = Field(default_factory=dict, alias="flowHistory")
    created_at: str = Field(default_factory=_now, alias="timestamp")
