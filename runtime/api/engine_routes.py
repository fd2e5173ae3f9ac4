"""HTTP routes for inspecting and driving a FlowUI engine instance.

Exposes endpoints like:

- GET  /engine/session    -> snapshot of session data
- GET  /engine/navigation -> navigation stack and current frame
- GET  /engine/cache      -> flow cache statistics
- GET  /engine/screen     -> current screen, placeholders resolved
- POST /engine/actions    -> execute a trigger (descriptor or list)
"""

import logging

from fastapi import APIRouter, HTTPException
from fastapi.encoders import jsonable_encoder
from typing import Any, Dict, Optional

from exceptions.exceptions import StructureError
from ..flow.flow_manager import FlowManager
from ..models.api_models import (
    ActionRequest,
    ActionResponse,
    NavigationResponse,
    ScreenResponse,
)


logger = logging.getLogger(__name__)

# Router for all engine endpoints
router = APIRouter()


# Module-level reference, to be initialized by the server.
_FLOW_MANAGER: Optional[FlowManager] = None


def init_routes(flow_manager: Optional[FlowManager]) -> None:
    """Initialize the module-level FlowManager used by the route handlers."""
    global _FLOW_MANAGER
    _FLOW_MANAGER = flow_manager


def _require_flow_manager() -> FlowManager:
    if _FLOW_MANAGER is None:
        raise HTTPException(
            status_code=500,
            detail="FlowManager is not configured on the server.",
        )
    return _FLOW_MANAGER


@router.get("/session")
def get_session() -> Dict[str, Any]:
    """Return a deep copy of the current session data."""
    return _require_flow_manager().get_session_snapshot()


@router.get("/navigation", response_model=NavigationResponse)
def get_navigation() -> NavigationResponse:
    manager = _require_flow_manager()
    current = manager.navigation.current()
    return NavigationResponse(
        frames=[frame.model_dump(by_alias=True) for frame in manager.navigation.frames()],
        current=current.model_dump(by_alias=True) if current else None,
        can_go_back=manager.can_go_back(),
    )


@router.get("/cache")
def get_cache_stats() -> Dict[str, Any]:
    return _require_flow_manager().flow_cache.get_cache_stats()


@router.get("/screen", response_model=ScreenResponse)
def get_screen() -> ScreenResponse:
    """Return the current screen with placeholders resolved."""
    manager = _require_flow_manager()
    screen = manager.get_current_screen_config()
    if screen is None:
        raise HTTPException(status_code=404, detail="No current screen")
    return ScreenResponse(
        flow_id=manager.current_flow_id,
        screen_id=manager.current_screen_id,
        screen=manager.resolve_current_screen(),
    )


@router.post("/actions", response_model=ActionResponse)
async def execute_actions(request: ActionRequest) -> ActionResponse:
    """Execute a trigger against the engine.

    A malformed trigger is a client error (400) and nothing is executed.
    Failures inside the chain are part of the response, not HTTP errors.
    """
    manager = _require_flow_manager()
    try:
        chain = await manager.handle_event(request.trigger, request.fields)
    except StructureError as e:
        logger.warning("[ENGINE] Rejected trigger: field=%s reason=%s", e.field, e.details)
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("[ENGINE] Unexpected error while executing trigger")
        raise

    payload = jsonable_encoder(chain.to_dict())
    return ActionResponse(
        ok=payload["ok"],
        results=payload["results"],
        skipped=payload["skipped"],
        current_flow=manager.current_flow_id,
        current_screen=manager.current_screen_id,
    )


# --------------------------------------------------------
# Endpoint: GET /healthz
# --------------------------------------------------------
@router.get("/healthz")
def health_check():
    """
    Simple health check endpoint for uptime monitoring.
    """
    return {"status": "ok"}
