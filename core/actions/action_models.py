"""
core.actions.action_models

Typed models for the JSON action descriptors attached to UI events.

A descriptor is discriminated by its "action" field:

    {"action": "navigate", "screen": "details"}
    {"action": "navigateToFlow", "targetFlow": "dashboard", "targetScreen": "home",
     "data": {"username": "${fields.username}"}}
    {"action": "setState", "updates": {"loading": true}}
    {"action": "apiCall", "method": "POST", "endpoint": "/login",
     "body": {...}, "onSuccess": {...}, "onError": {...}}
    {"action": "custom", "handler": "validateForm", "parameters": {...}}
    {"action": "goBack", "steps": 2, "clearData": false}
    {"action": "executeCallback", "callbackName": "refresh", "params": {...}}

Every kind may carry `onSuccess` / `onError` sub-descriptors, so a single
trigger is a tree. The set of kinds is closed: an unknown "action" tag is
rejected with StructureError at parse time instead of being ignored at
run time.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from exceptions.exceptions import StructureError


HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")


# ============================================================
# Data models
# ============================================================

class BaseAction(BaseModel):
    """Fields shared by every action kind."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    on_success: Optional["ActionDescriptor"] = Field(default=None, alias="onSuccess")
    on_error: Optional["ActionDescriptor"] = Field(default=None, alias="onError")

    def to_json(self) -> Dict[str, Any]:
        """Serialize back to the JSON shape (camelCase, unset optionals dropped)."""
        return self.model_dump(by_alias=True, exclude_none=True)


class NavigateAction(BaseAction):
    """Replace the current screen within the current flow."""

    action: Literal["navigate"] = "navigate"
    # "target" is accepted for descriptors written against the older schema.
    screen: str = Field(
        validation_alias=AliasChoices("screen", "target"),
        serialization_alias="screen",
    )


class NavigateToFlowAction(BaseAction):
    """Merge data into the session, load a flow and push a new frame."""

    action: Literal["navigateToFlow"] = "navigateToFlow"
    target_flow: str = Field(alias="targetFlow")
    # None means "first screen declared by the target flow".
    target_screen: Optional[str] = Field(default=None, alias="targetScreen")
    data: Optional[Dict[str, Any]] = None


class SetStateAction(BaseAction):
    action: Literal["setState"] = "setState"
    updates: Dict[str, Any] = Field(default_factory=dict)


class ApiCallAction(BaseAction):
    action: Literal["apiCall"] = "apiCall"
    method: str
    endpoint: str
    headers: Optional[Dict[str, str]] = None
    body: Optional[Any] = None
    query_params: Optional[Dict[str, str]] = Field(default=None, alias="queryParams")
    # Seconds; None falls back to the network client's default.
    timeout: Optional[float] = Field(default=None, gt=0)

    @field_validator("method")
    @classmethod
    def _normalize_method(cls, value: str) -> str:
        method = value.strip().upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"unsupported HTTP method {value!r}")
        return method


class CustomAction(BaseAction):
    action: Literal["custom"] = "custom"
    handler: str
    parameters: Optional[Dict[str, Any]] = None


class GoBackAction(BaseAction):
    action: Literal["goBack"] = "goBack"
    steps: int = Field(default=1, ge=0)
    clear_data: bool = Field(default=False, alias="clearData")


class ExecuteCallbackAction(BaseAction):
    action: Literal["executeCallback"] = "executeCallback"
    callback_name: str = Field(alias="callbackName")
    params: Optional[Dict[str, Any]] = None


ActionDescriptor = Annotated[
    Union[
        NavigateAction,
        NavigateToFlowAction,
        SetStateAction,
        ApiCallAction,
        CustomAction,
        GoBackAction,
        ExecuteCallbackAction,
    ],
    Field(discriminator="action"),
]

ACTION_KINDS = (
    "navigate",
    "navigateToFlow",
    "setState",
    "apiCall",
    "custom",
    "goBack",
    "executeCallback",
)

for _model in (
    BaseAction,
    NavigateAction,
    NavigateToFlowAction,
    SetStateAction,
    ApiCallAction,
    CustomAction,
    GoBackAction,
    ExecuteCallbackAction,
):
    _model.model_rebuild()

_ACTION_ADAPTER: TypeAdapter[ActionDescriptor] = TypeAdapter(ActionDescriptor)


# ============================================================
# Parsing helpers
# ============================================================

def _error_field(error: Dict[str, Any]) -> str:
    """Turn a pydantic error location into a dotted field name.

    Discriminator tags show up in the location of tagged unions; they are
    not fields, so they are dropped.
    """
    parts = [
        str(part)
        for part in error.get("loc", ())
        if not (isinstance(part, str) and part in ACTION_KINDS)
    ]
    if error.get("type") in ("union_tag_invalid", "union_tag_not_found"):
        parts.append("action")
    return ".".join(parts) or "action"


def parse_action(data: Any) -> ActionDescriptor:
    """Validate one descriptor (dict or already parsed model).

    Raises
    ------
    StructureError
        For an unknown/missing "action" tag or a missing/invalid field,
        naming the field (e.g. "onSuccess.screen").
    """
    if isinstance(data, BaseAction):
        return data
    if not isinstance(data, dict):
        raise StructureError("<trigger>", f"expected an object, got {type(data).__name__}")

    tag = data.get("action")
    if tag is None:
        raise StructureError("action", "missing action type")
    if tag not in ACTION_KINDS:
        raise StructureError("action", f"unknown action type {tag!r}")

    try:
        return _ACTION_ADAPTER.validate_python(data)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        raise StructureError(_error_field(first), first.get("msg")) from exc


def parse_action_chain(data: Any) -> List[ActionDescriptor]:
    """Validate a trigger: a single descriptor or an ordered list of them."""
    if isinstance(data, list):
        actions: List[ActionDescriptor] = []
        for index, item in enumerate(data):
            try:
                actions.append(parse_action(item))
            except StructureError as exc:
                raise StructureError(f"[{index}].{exc.field}", exc.details) from exc
        return actions
    return [parse_action(data)]
