# backend/api/websocket.py

from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from backend.core.errors import (
    AuthenticationRequired,
    AuthorizationDenied,
    ChatError,
    GenerationError,
)
from backend.models.models import CommunicationStyle, RenderedMessage

logger = logging.getLogger(__name__)

router = APIRouter()

# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = None, guest_id: Optional[str] = None):
    """
    WebSocket endpoint for live rooms.

    Protocol:
    =========

    Client -> Server Actions:
    -------------------------
    Join Room (start following it):
        {"action": "join", "room_id": "uuid-123"}
        Pushes: {"type": "room_snapshot", "room": {...}}
                {"type": "messages_snapshot", "room_id": "...", "messages": [...]}
        Both are re-sent whenever the room or its messages change.

    Leave Room:
        {"action": "leave", "room_id": "uuid-123"}
        Response: {"type": "room_left", "room_id": "uuid-123"}

    List My Rooms:
        {"action": "list_rooms"}
        Response: {"type": "rooms_list", "rooms": [...]}

    Send Message:
        {"action": "send", "room_id": "uuid-123", "text": "..."}
        Response: {"type": "message_sent", "message": {...}}
              or: {"type": "send_failed", "error": "...", "reason": "...", "restored_text": "..."}

    Set Communication Style:
        {"action": "set_style", "communication_style": "Autistic"}
        Response: {"type": "style_updated", "participant": {...}}

    Server -> Client Messages:
    -------------------------
    Room deleted:
        {"type": "room_deleted", "room_id": "uuid-123"}

    Error:
        {"type": "error", "message": "..."}

    Lifecycle:
    ==========
    1. Client connects with ?token=<id token> or ?guest_id=<session id>
    2. Identity resolved; unusable credentials close the socket (4401)
    3. Client sends "join" actions for rooms it displays
    4. Every snapshot is rendered for this viewer
    5. On disconnect, all feeds are cancelled
    """
    state = websocket.app.state.chat
    manager = state.connection_manager

    try:
        identity = await state.auth_service.resolve(token, guest_id)
    except AuthenticationRequired as e:
        await websocket.close(code=4401, reason=str(e))
        return

    session = await manager.connect(websocket, identity)

    try:
        while True:
            data = await websocket.receive_text()

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            if not isinstance(message, dict):
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            action = message.get("action")
            logger.info(f"Websocket input: Action: {action}, Viewer: {session.viewer_id}")

            try:
                if action == "join":
                    room_id = message.get("room_id")
                    if room_id:
                        await manager.join_room(websocket, room_id)

                elif action == "leave":
                    room_id = message.get("room_id")
                    if room_id and await manager.leave_room(websocket, room_id):
                        await websocket.send_json({"type": "room_left", "room_id": room_id})

                elif action == "list_rooms":
                    rooms = [r.model_dump() for r in state.chat_service.rooms_for(session.identity)]
                    await websocket.send_json({"type": "rooms_list", "rooms": rooms})

                elif action == "send":
                    await _handle_send(websocket, state, session, message)

                elif action == "set_style":
                    style = CommunicationStyle(message.get("communication_style"))
                    participant = await state.chat_service.update_profile(session.identity, communication_style=style)
                    await websocket.send_json(
                        {"type": "style_updated", "participant": participant.model_dump(mode="json")}
                    )

                else:
                    await websocket.send_json({"type": "error", "message": f"Unknown action: {action}"})

            except ChatError as e:
                await websocket.send_json({"type": "error", "message": str(e)})
            except ValueError as e:
                await websocket.send_json({"type": "error", "message": str(e)})

    except WebSocketDisconnect:
        manager.disconnect(websocket)
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
        manager.disconnect(websocket)


async def _handle_send(websocket: WebSocket, state, session, message: dict) -> None:
    room_id = message.get("room_id") or (session.room.id if session.room else None)
    text = message.get("text") or ""
    if not room_id:
        await websocket.send_json({"type": "send_failed", "error": "room_id required", "restored_text": text})
        return

    try:
        stored = await state.chat_service.send(session, room_id, text)
    except AuthorizationDenied as e:
        await websocket.send_json(
            {"type": "send_failed", "error": "not allowed", "reason": e.reason, "restored_text": text}
        )
        return
    except GenerationError:
        await websocket.send_json(
            {
                "type": "send_failed",
                "error": "Translation failed, please try again",
                "restored_text": session.restored_text,
            }
        )
        return
    except ChatError as e:
        await websocket.send_json({"type": "send_failed", "error": str(e), "restored_text": text})
        return

    rendered = RenderedMessage.for_viewer(stored, session.viewer_id)
    await websocket.send_json({"type": "message_sent", "message": rendered.model_dump()})
