# backend/api/routes/metrics.py
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from backend.api.deps import get_state
from backend.core.state import AppState

router = APIRouter()

@router.get("/metrics")
async def get_metrics(state: AppState = Depends(get_state)):
    """
    Usage metrics for the translation pipeline.

    Returns:
        dict: Message statistics, rewrite counts (each rewrite is one call to
            the generation service), failures, denied sends and capacity.

    Example Response:
        {
            "total_messages": 120,
            "guest_messages": 4,
            "rewrites": 61,
            "generation_failures": 1,
            "denied_sends": 2,
            "rewrites_per_message": 0.51,
            "concurrent_connections": 3,
            ...
        }
    """
    metrics = state.metrics
    uptime_seconds = (datetime.now(timezone.utc) - metrics.started_at).total_seconds()

    if uptime_seconds > 0:
        messages_per_second = metrics.messages_sent / uptime_seconds
    else:
        messages_per_second = 0

    authenticated_messages = metrics.messages_sent - metrics.guest_messages

    return {
        # Statistics
        "total_messages": metrics.messages_sent,
        "guest_messages": metrics.guest_messages,
        "uptime_hours": round(uptime_seconds / 3600, 2) if uptime_seconds > 0 else 0,
        "messages_per_second": round(messages_per_second, 4),

        # Generation service
        "rewrites": metrics.rewrites,
        "generation_failures": metrics.generation_failures,
        "rewrites_per_message": (
            round(metrics.rewrites / authenticated_messages, 2) if authenticated_messages > 0 else 0
        ),
        "model": state.settings.GENERATION_MODEL,

        # Policy
        "denied_sends": metrics.denied_sends,
        "guest_message_limit": state.settings.GUEST_MESSAGE_LIMIT,

        # Capacity
        "concurrent_connections": len(state.connection_manager.sessions),
        "total_rooms": len(state.room_manager.rooms),
        "live_subscriptions": state.hub.count(),
    }
