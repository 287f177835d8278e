# backend/services/delivery_gate.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from backend.core.errors import AuthorizationDenied, RoomNotFound
from backend.models.models import Identity, Room
from backend.services.message_store import MessageStore
from backend.services.room_manager import RoomManager

logger = logging.getLogger(__name__)

PRIVATE_ROOM_REASON = "private room, sign-in required"
MEMBERS_ONLY_REASON = "private room, members only"
GUEST_LIMIT_REASON = "guest limit reached"


@dataclass
class GateDecision:
    allowed: bool
    reason: Optional[str] = None
    room: Optional[Room] = None
    joined: bool = False

    def require_allowed(self) -> Room:
        if not self.allowed:
            raise AuthorizationDenied(self.reason or "not allowed")
        return self.room


class DeliveryGate:
    """
    Decides who may send into a room, before anything reaches the dispatcher.

    Rules, evaluated in order:
        1. guest + private room          -> deny "private room, sign-in required"
        2. guest + limit already reached -> deny "guest limit reached"
        3. non-member + private room     -> deny "private room, members only"
        4. otherwise                     -> allow

    Guest counts come from the message store, keyed by (room, guest id), so
    the limit holds no matter what the client remembers.

    On allow, an authenticated sender who isn't in the roster of a public room
    yet is added to it first; the returned decision carries the updated room
    so the caller dispatches against the roster that includes the sender.
    """

    def __init__(self, room_manager: RoomManager, message_store: MessageStore, guest_limit: int = 5) -> None:
        self.room_manager = room_manager
        self.message_store = message_store
        self.guest_limit = guest_limit

    async def authorize(self, room: Room, sender: Identity) -> GateDecision:
        if sender.is_guest:
            if not room.is_public:
                logger.info(f"✗ Guest {sender.id} denied in private room {room.id}")
                return GateDecision(False, PRIVATE_ROOM_REASON, room)

            sent = self.message_store.count_guest_messages(room.id, sender.id)
            if sent >= self.guest_limit:
                logger.info(f"✗ Guest {sender.id} hit the limit in room {room.id} ({sent} sent)")
                return GateDecision(False, GUEST_LIMIT_REASON, room)

            return GateDecision(True, room=room)

        if sender.id in room.participants:
            return GateDecision(True, room=room)

        if not room.is_public:
            logger.info(f"✗ {sender.id} denied in private room {room.id} (not a member)")
            return GateDecision(False, MEMBERS_ONLY_REASON, room)

        updated = await self.room_manager.add_participant(room.id, sender.id)
        if updated is None:
            raise RoomNotFound(room.id)
        return GateDecision(True, room=updated, joined=True)
