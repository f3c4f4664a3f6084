"""API routes package."""

from agent.routes.submission_routes import router as submission_router
from agent.routes.sync_routes import router as sync_router

__all__ = ["submission_router", "sync_router"]
