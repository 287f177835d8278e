# backend/services/room_manager.py

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, TYPE_CHECKING

from backend.core.errors import StoreError
from backend.core.persistence import JsonFile
from backend.models.models import Room
from backend.services.subscriptions import Subscription, SubscriptionHub

if TYPE_CHECKING:
    from backend.services.redis_pub_sub import AsyncRedisPubSubService

logger = logging.getLogger(__name__)

ROOMS_FILE = "rooms.json"  # File where room documents are persisted (inside DATA_DIR)


# ============================================================================
# ROOM PERSISTENCE MANAGER
# ============================================================================
class RoomManager:
    """
    Owns room documents: metadata plus the participant roster.

    This class handles CRUD operations for rooms and persists them to a JSON
    file when a data directory is configured. Every committed change is pushed
    to live subscribers and, when a relay is attached, to other instances.

    Attributes:
        rooms: Dictionary mapping room_id -> Room object

    Storage Format (rooms.json):
        {
            "uuid-123": {
                "id": "uuid-123",
                "name": "Tuesday check-in",
                "is_public": true,
                "owner_id": "user-a",
                "participants": ["user-a", "user-b"],
                "created_at": "2025-11-30T20:00:00+00:00"
            }
        }

    Invariant: a room's owner is always in its participants.
    """

    def __init__(self, data_dir: str = "", hub: SubscriptionHub | None = None) -> None:
        """Initialize room manager and load existing rooms from file."""
        self.rooms: Dict[str, Room] = {}
        self.hub = hub or SubscriptionHub()
        self.relay: Optional["AsyncRedisPubSubService"] = None
        self._file = JsonFile.in_dir(data_dir, ROOMS_FILE)
        self.load_rooms()

    def load_rooms(self) -> None:
        """Load rooms from persistent storage (rooms.json), if any."""
        data = self._file.load({})
        self.rooms = {k: Room(**v) for k, v in data.items()}
        if self.rooms:
            logger.info(f"✓ Loaded {len(self.rooms)} rooms from {self._file.path}")

    def save_rooms(self) -> None:
        """Persist rooms to file. Raises StoreError on failure."""
        self._file.save({k: v.model_dump() for k, v in self.rooms.items()})

    async def _commit(self, room_id: str, previous: Optional[Room]) -> None:
        """Persist, roll back on failure, then notify subscribers and the relay."""
        try:
            self.save_rooms()
        except Exception:
            if previous is None:
                self.rooms.pop(room_id, None)
            else:
                self.rooms[room_id] = previous
            raise
        self._notify(room_id)
        if self.relay is not None:
            await self.relay.publish_room(room_id, self.rooms.get(room_id))

    def _notify(self, room_id: str) -> None:
        self.hub.publish(f"room:{room_id}")
        self.hub.publish("rooms")

    async def create_room(self, name: str, owner_id: str, is_public: bool = True) -> Room:
        """
        Create a new room owned by ``owner_id`` and persist it.

        Args:
            name: Room name
            owner_id: Identifier of the authenticated creator
            is_public: Whether guests and non-members may post

        Returns:
            Room: The newly created room, with the owner as sole participant
        """
        room = Room(
            id=str(uuid.uuid4()),
            name=name,
            is_public=is_public,
            owner_id=owner_id,
            participants=[owner_id],
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self.rooms[room.id] = room
        await self._commit(room.id, None)
        logger.info(f"✓ Created room: {room.name} (owner={owner_id}, public={is_public})")
        return room

    def get_room(self, room_id: str) -> Optional[Room]:
        """Return a copy of the room, or None if it doesn't exist."""
        room = self.rooms.get(room_id)
        return room.model_copy(deep=True) if room else None

    def list_rooms_for(self, participant_id: str) -> List[Room]:
        """Rooms whose participants contain ``participant_id``, newest first."""
        rooms = [r.model_copy(deep=True) for r in self.rooms.values() if participant_id in r.participants]
        return sorted(rooms, key=lambda r: r.created_at, reverse=True)

    async def add_participant(self, room_id: str, participant_id: str) -> Optional[Room]:
        """
        Add a participant to a room's roster (no-op if already present).

        Returns:
            The updated room, or None if the room doesn't exist
        """
        room = self.rooms.get(room_id)
        if room is None:
            return None
        if participant_id in room.participants:
            return room.model_copy(deep=True)

        previous = room.model_copy(deep=True)
        room.participants.append(participant_id)
        await self._commit(room_id, previous)
        logger.info(f"→ {participant_id} joined room '{room.name}' ({len(room.participants)} participants)")
        return room.model_copy(deep=True)

    async def delete_room(self, room_id: str) -> bool:
        """
        Delete a room and persist the change.

        Returns:
            True if room was deleted, False if room didn't exist
        """
        previous = self.rooms.pop(room_id, None)
        if previous is None:
            return False
        await self._commit(room_id, previous)
        logger.info(f"✓ Deleted room: {room_id}")
        return True

    def apply_remote(self, room_id: str, data: Optional[dict]) -> None:
        """Ingest a room change relayed from another instance (None = deleted)."""
        if data is None:
            if self.rooms.pop(room_id, None) is None:
                return
        else:
            self.rooms[room_id] = Room(**data)
        try:
            self.save_rooms()
        except StoreError as e:
            logger.error(f"Could not persist relayed room {room_id}: {e}")
        self._notify(room_id)

    def touch_rooms_for(self, participant_id: str) -> None:
        """Re-push the room documents of a participant whose profile changed."""
        for room in self.list_rooms_for(participant_id):
            self.hub.publish(f"room:{room.id}")

    def subscribe(self, room_id: str) -> Subscription[Optional[Room]]:
        """Live view of one room document; yields None once the room is deleted."""
        return self.hub.subscribe(f"room:{room_id}", lambda: self.get_room(room_id))

    def subscribe_for(self, participant_id: str) -> Subscription[List[Room]]:
        """Live query: rooms where participants contains ``participant_id``."""
        return self.hub.subscribe("rooms", lambda: self.list_rooms_for(participant_id))
