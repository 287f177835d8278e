# backend/api/routes/health.py

from fastapi import APIRouter, Depends

from backend.api.deps import get_state
from backend.core.state import AppState

router = APIRouter()

@router.get("/health")
async def health(state: AppState = Depends(get_state)):
    """
    Health check endpoint.

    Returns current system status, connection counts, and room counts.
    Used by container health probes and monitoring.

    Returns:
        dict: Status, connection count, room count, live feed count
    """
    return {
        "status": "healthy",
        "connections": len(state.connection_manager.sessions),
        "rooms": len(state.room_manager.rooms),
        "active_feeds": state.connection_manager.active_feeds(),
        "relay": state.settings.PUB_SUB_SERVICE,
    }
