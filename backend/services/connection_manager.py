# backend/services/connection_manager.py

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from fastapi import WebSocket

from backend.models.models import Identity
from backend.services.chat_service import ChatService, ChatSession, render_for
from backend.services.subscriptions import Subscription

logger = logging.getLogger(__name__)


# ============================================================================
# WEBSOCKET CONNECTION MANAGER
# ============================================================================

class RoomFeed:
    """A viewer's live presence in one room: two subscriptions + their pump tasks."""

    def __init__(self, room_sub: Subscription, messages_sub: Subscription) -> None:
        self.room_sub = room_sub
        self.messages_sub = messages_sub
        self.tasks: list[asyncio.Task] = []

    def cancel(self) -> None:
        self.room_sub.cancel()
        self.messages_sub.cancel()
        for task in self.tasks:
            task.cancel()


class ConnectionManager:
    """
    Manages WebSocket connections and the room feeds each one follows.

    Every joined room gets two live subscriptions (the room document and its
    messages). A pump task per subscription forwards each new snapshot to the
    socket; messages are rendered for that viewer, so everyone receives the
    variant addressed to them.

    Data Structures:
        sessions: WebSocket -> ChatSession (identity + in-flight send state)
        feeds:    WebSocket -> {room_id: RoomFeed}
    """

    def __init__(self, chat_service: ChatService) -> None:
        self.chat_service = chat_service
        self.sessions: Dict[WebSocket, ChatSession] = {}
        self.feeds: Dict[WebSocket, Dict[str, RoomFeed]] = {}

    async def connect(self, websocket: WebSocket, identity: Identity) -> ChatSession:
        """Accept a new WebSocket connection. No room is joined automatically."""
        await websocket.accept()
        session = ChatSession(identity)
        self.sessions[websocket] = session
        self.feeds[websocket] = {}
        logger.info(f"✓ {identity.id} connected. Total: {len(self.sessions)}")
        return session

    def disconnect(self, websocket: WebSocket) -> None:
        """Cancel every feed of the connection and forget it."""
        session = self.sessions.pop(websocket, None)
        for feed in self.feeds.pop(websocket, {}).values():
            feed.cancel()
        if session is not None:
            logger.info(f"✗ {session.viewer_id} disconnected. Total: {len(self.sessions)}")

    async def join_room(self, websocket: WebSocket, room_id: str) -> None:
        """
        Start following a room.

        Raises:
            RoomNotFound / PermissionDenied from the access check
        """
        session = self.sessions.get(websocket)
        if session is None:
            return  # Connection already closed

        room = self.chat_service.open_room(room_id, session.identity)
        session.room = room

        feeds = self.feeds[websocket]
        if room_id in feeds:
            return

        feed = RoomFeed(
            self.chat_service.room_manager.subscribe(room_id),
            self.chat_service.message_store.subscribe(room_id),
        )
        feed.tasks = [
            asyncio.create_task(self._pump_room(websocket, room_id, feed.room_sub)),
            asyncio.create_task(self._pump_messages(websocket, room_id, feed.messages_sub)),
        ]
        feeds[room_id] = feed
        logger.info(f"→ {session.viewer_id} joined feed for room {room_id}")

    async def leave_room(self, websocket: WebSocket, room_id: str) -> bool:
        feed = self.feeds.get(websocket, {}).pop(room_id, None)
        if feed is None:
            return False
        feed.cancel()
        return True

    async def _pump_room(self, websocket: WebSocket, room_id: str, subscription: Subscription) -> None:
        async for room in subscription:
            if room is None:
                await self._send(websocket, {"type": "room_deleted", "room_id": room_id})
                await self.leave_room(websocket, room_id)
                return
            view = self.chat_service.build_room_view(room)
            if not await self._send(websocket, {"type": "room_snapshot", "room": view.model_dump(mode="json")}):
                return

    async def _pump_messages(self, websocket: WebSocket, room_id: str, subscription: Subscription) -> None:
        async for messages in subscription:
            session = self.sessions.get(websocket)
            if session is None:
                return
            rendered = [m.model_dump() for m in render_for(messages, session.viewer_id)]
            payload = {"type": "messages_snapshot", "room_id": room_id, "messages": rendered}
            if not await self._send(websocket, payload):
                return

    async def _send(self, websocket: WebSocket, payload: dict) -> bool:
        """Send JSON; on failure the connection is cleaned up."""
        try:
            await websocket.send_json(payload)
            return True
        except Exception as e:
            logger.error(f"Send error: {e}")
            self.disconnect(websocket)
            return False

    def session_for(self, websocket: WebSocket) -> Optional[ChatSession]:
        return self.sessions.get(websocket)

    def active_feeds(self) -> int:
        return sum(len(feeds) for feeds in self.feeds.values())
