"""
FastAPI application entry point for the FlowUI diagnostics server.

Responsibilities:
- create the FastAPI app
- construct the shared FlowManager (file loader on FLOWUI_ASSETS_ROOT,
  requests-based network client)
- load the initial flow on startup when FLOWUI_INITIAL_FLOW is set
- include engine routes under /engine

Run with:

    uvicorn runtime.api.server:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from configs.settings import settings
from runtime.flow.flow_manager import FlowManager
from . import engine_routes


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shared engine instance
# ---------------------------------------------------------------------------

flow_manager = FlowManager()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.initial_flow:
        initial_flow = settings.initial_flow
        initial_path = settings.initial_flow_path
        logger.info(
            "[ENGINE] Loading initial flow %s from %s (assets root: %s)",
            initial_flow,
            initial_path,
            settings.assets_root,
        )
        await flow_manager.initialize_app(initial_flow, initial_path)
    yield


# ---------------------------------------------------------------------------
# FastAPI app + route registration
# ---------------------------------------------------------------------------

app = FastAPI(title="FlowUI Engine", lifespan=lifespan)

# Initialize the router module with our shared engine, then include it.
engine_routes.init_routes(flow_manager=flow_manager)
app.include_router(engine_routes.router, prefix="/engine")
