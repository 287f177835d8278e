# backend/api/routes/messages.py

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from backend.api.deps import get_identity, get_state, http_error
from backend.core.errors import ChatError
from backend.core.state import AppState
from backend.models.models import Identity, RenderedMessage, SendMessageRequest

# ============================================================================
# MESSAGE ENDPOINTS
# ============================================================================

router = APIRouter()


@router.get("/rooms/{room_id}/messages", response_model=List[RenderedMessage])
async def list_messages(room_id: str, state: AppState = Depends(get_state), identity: Identity = Depends(get_identity)):
    """Messages of a room, oldest first, each rendered for the caller."""
    try:
        return state.chat_service.messages_for(room_id, identity)
    except ChatError as e:
        raise http_error(e)


@router.post("/rooms/{room_id}/messages", response_model=RenderedMessage)
async def send_message(
    room_id: str,
    request: SendMessageRequest,
    state: AppState = Depends(get_state),
    identity: Identity = Depends(get_identity),
):
    """
    Send a message into a room.

    Flow:
        1. Room lookup (404 / 403 for private rooms without membership)
        2. Delivery gate (403 with {"reason": ...}; auto-join for signed-in users)
        3. Per-recipient rewrites, run concurrently
        4. One append with the complete translation map

    Returns:
        RenderedMessage: The stored message as the sender sees it

    Raises:
        HTTPException: 400 blank text, 409 send already in flight,
            502 rewrite failed (detail.restored_text holds the typed text),
            503 store unavailable
    """
    if not request.text.strip():
        raise HTTPException(status_code=400, detail="Message text required")

    session = state.chat_service.session_for(identity)
    try:
        message = await state.chat_service.send(session, room_id, request.text)
    except ChatError as e:
        raise http_error(e, restored_text=session.restored_text)

    return RenderedMessage.for_viewer(message, identity.id)
