"""Request dependencies shared by the agent routes."""

from fastapi import Request

from agent.engine import SyncEngine


def get_engine(request: Request) -> SyncEngine:
    """Engine bound to the running application."""
    return request.app.state.engine
