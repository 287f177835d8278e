# backend/services/message_store.py

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, TYPE_CHECKING

from backend.core.errors import StoreError
from backend.core.persistence import JsonFile
from backend.models.models import Message
from backend.services.subscriptions import Subscription, SubscriptionHub

if TYPE_CHECKING:
    from backend.services.redis_pub_sub import AsyncRedisPubSubService

logger = logging.getLogger(__name__)

MESSAGES_FILE = "messages.json"


# ============================================================================
# MESSAGE STORE
# ============================================================================

class MessageStore:
    """
    Append-only message collections, one per room.

    Ordering:
        Messages are ordered by ``created_at`` ascending. The store assigns
        ``created_at`` itself and keeps it strictly increasing, so ties are
        impossible; ``sequence`` records arrival order at this store.

    Atomicity:
        ``append`` writes a complete record or nothing. If persisting fails the
        in-memory append is rolled back and ``StoreError`` is raised before any
        subscriber is notified.
    """

    def __init__(self, data_dir: str = "", hub: SubscriptionHub | None = None) -> None:
        self.hub = hub or SubscriptionHub()
        self.relay: Optional["AsyncRedisPubSubService"] = None
        self._file = JsonFile.in_dir(data_dir, MESSAGES_FILE)
        self.messages: Dict[str, List[Message]] = {
            room_id: [Message(**m) for m in items] for room_id, items in self._file.load({}).items()
        }
        self._sequence = max(
            (m.sequence for items in self.messages.values() for m in items),
            default=0,
        )
        self._last_created: Optional[datetime] = max(
            (datetime.fromisoformat(m.created_at) for items in self.messages.values() for m in items),
            default=None,
        )

    def _save(self) -> None:
        self._file.save(
            {room_id: [m.model_dump() for m in items] for room_id, items in self.messages.items()}
        )

    def _next_timestamp(self) -> datetime:
        now = datetime.now(timezone.utc)
        if self._last_created is not None and now <= self._last_created:
            now = self._last_created + timedelta(microseconds=1)
        self._last_created = now
        return now

    async def append(self, message: Message) -> Message:
        """
        Persist a new message and notify the room's subscribers.

        The store owns ``id``, ``created_at`` and ``sequence``; values set by
        the caller are replaced.

        Raises:
            StoreError: if the write could not be persisted
        """
        self._sequence += 1
        stored = message.model_copy(
            update={
                "id": str(uuid.uuid4()),
                "created_at": self._next_timestamp().isoformat(),
                "sequence": self._sequence,
            },
            deep=True,
        )
        room_messages = self.messages.setdefault(stored.room_id, [])
        room_messages.append(stored)

        try:
            self._save()
        except StoreError:
            room_messages.pop()
            if not room_messages:
                del self.messages[stored.room_id]
            raise

        logger.info(f"📨 Stored message {stored.id} in room {stored.room_id}")
        self.hub.publish(f"messages:{stored.room_id}")
        if self.relay is not None:
            await self.relay.publish_message(stored)
        return stored.model_copy(deep=True)

    def ingest(self, message: Message) -> bool:
        """
        Insert a message committed by another instance (relayed via pub/sub).

        Returns:
            False if the message is already known
        """
        room_messages = self.messages.setdefault(message.room_id, [])
        if any(m.id == message.id for m in room_messages):
            return False
        created = datetime.fromisoformat(message.created_at)
        self._sequence += 1
        room_messages.append(message.model_copy(update={"sequence": self._sequence}))
        room_messages.sort(key=lambda m: (datetime.fromisoformat(m.created_at), m.sequence))
        # Later local stamps sort after this one
        if self._last_created is None or created > self._last_created:
            self._last_created = created
        try:
            self._save()
        except StoreError as e:
            logger.error(f"Could not persist relayed message {message.id}: {e}")
        self.hub.publish(f"messages:{message.room_id}")
        return True

    def list_messages(self, room_id: str) -> List[Message]:
        return [m.model_copy(deep=True) for m in self.messages.get(room_id, [])]

    def count_guest_messages(self, room_id: str, guest_id: str) -> int:
        """Messages a guest has already sent in a room (server-authoritative)."""
        return sum(
            1 for m in self.messages.get(room_id, []) if m.sender_is_guest and m.sender_id == guest_id
        )

    def delete_room_messages(self, room_id: str) -> None:
        removed = self.messages.pop(room_id, None)
        if removed is None:
            return
        try:
            self._save()
        except StoreError:
            self.messages[room_id] = removed
            raise
        self.hub.publish(f"messages:{room_id}")

    def subscribe(self, room_id: str) -> Subscription[List[Message]]:
        """Live query over a room's messages, ordered by ``created_at``."""
        return self.hub.subscribe(f"messages:{room_id}", lambda: self.list_messages(room_id))
