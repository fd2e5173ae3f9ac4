"""
HTTP request/response models for the FlowUI diagnostics API.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class ActionRequest(BaseModel):
    """
    A UI event to execute:

    - trigger: one action descriptor or an ordered list of them
    - fields: current local field values (for ${fields.<id>} placeholders)
    """
    trigger: Any
    fields: Dict[str, Any] = Field(default_factory=dict)


class ActionResponse(BaseModel):
    """
    Outcome of a trigger:

    - ok: no unhandled failure in any executed entry
    - results: per-entry outcome trees (action, succeeded, response, error, continuation)
    - skipped: action kinds not executed because the chain aborted
    - current_flow / current_screen: location after execution
    """
    ok: bool
    results: List[Dict[str, Any]]
    skipped: List[str] = Field(default_factory=list)
    current_flow: Optional[str] = None
    current_screen: Optional[str] = None


class NavigationResponse(BaseModel):
    frames: List[Dict[str, Any]]
    current: Optional[Dict[str, Any]] = None
    can_go_back: bool


class ScreenResponse(BaseModel):
    flow_id: str
    screen_id: str
    screen: Dict[str, Any]
