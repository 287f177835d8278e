# backend/api/routes/root.py

from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information (served when no client bundle is configured).

    Returns basic info about the API and its features.
    """
    return {
        "message": "Normie Chat - style-aware message translation",
        "version": "1.0",
        "features": ["per_recipient_rewrites", "guest_access", "live_rooms"],
        "endpoints": {
            "websocket": "/ws",
            "rooms": "/rooms",
            "messages": "/rooms/{room_id}/messages",
            "participants": "/participants/me",
            "session": "/auth/session",
            "health": "/health",
            "metrics": "/metrics",
        },
    }
