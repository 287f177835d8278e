# backend/api/routes/rooms.py

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from backend.api.deps import get_identity, get_state, http_error
from backend.core.errors import ChatError
from backend.core.state import AppState
from backend.models.models import CreateRoomRequest, Identity, Room, RoomView

router = APIRouter()

# ============================================================================
# ROOM ENDPOINTS
# ============================================================================

@router.get("/rooms", response_model=List[Room])
async def list_rooms(state: AppState = Depends(get_state), identity: Identity = Depends(get_identity)):
    """
    List the rooms the caller participates in (their dashboard).

    Returns:
        List[Room]: Rooms whose participants contain the caller, newest first
    """
    return state.chat_service.rooms_for(identity)


@router.post("/rooms", response_model=Room)
async def create_room(
    request: CreateRoomRequest,
    state: AppState = Depends(get_state),
    identity: Identity = Depends(get_identity),
):
    """
    Create a new chat room.

    The authenticated caller becomes owner and sole initial participant.
    Others join by sending into a public room; sharing the room link is the
    only invite step.

    Raises:
        HTTPException: 400 if name is empty, 403 for guests
    """
    if not request.name.strip():
        raise HTTPException(status_code=400, detail="Room name required")
    try:
        return await state.chat_service.create_room(identity, request.name, request.is_public)
    except ChatError as e:
        raise http_error(e)


@router.get("/rooms/{room_id}", response_model=RoomView)
async def get_room(room_id: str, state: AppState = Depends(get_state), identity: Identity = Depends(get_identity)):
    """
    Get a room with a read-time snapshot of its participants' details.

    Raises:
        HTTPException: 404 if room not found, 403 if private and not a member
    """
    try:
        return state.chat_service.room_view(room_id, identity)
    except ChatError as e:
        raise http_error(e)


@router.delete("/rooms/{room_id}")
async def delete_room(room_id: str, state: AppState = Depends(get_state), identity: Identity = Depends(get_identity)):
    """
    Delete a room and its messages (owner only).

    Followers of the room receive a "room_deleted" push and their feeds end.
    """
    try:
        await state.chat_service.delete_room(room_id, identity)
    except ChatError as e:
        raise http_error(e)
    return {"status": "deleted", "room_id": room_id}
