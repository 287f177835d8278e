# backend/services/redis_pub_sub.py

from __future__ import annotations

import json
import logging
import uuid
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from backend.models.models import Message, Participant, Room
from backend.services.message_store import MessageStore
from backend.services.participant_registry import ParticipantRegistry
from backend.services.room_manager import RoomManager

logger = logging.getLogger(__name__)

ROOM_CHANNELS = "room:*"  # One channel per room: room:<room_id>
PARTICIPANTS_CHANNEL = "participants"


class AsyncRedisPubSubService:
    """
    Relays committed store changes between backend instances.

    Each instance keeps its own in-memory view of rooms, messages and
    participant profiles. After a local commit the change is published:
    room and message changes to the room's channel (``room:<room_id>``),
    profile and style changes to ``participants``. Every other instance
    ingests them into its local stores, which in turn push fresh snapshots to
    that instance's viewers.

    Envelope:
        {"origin": "<instance id>", "kind": "message" | "room" | "participant",
         "room_id": "..." (message/room), "data": {...} | null}

    Envelopes carrying our own ``origin`` are skipped.
    """

    def __init__(
        self,
        url: str,
        room_manager: RoomManager,
        message_store: MessageStore,
        registry: ParticipantRegistry,
    ) -> None:
        self.url = url
        self.room_manager = room_manager
        self.message_store = message_store
        self.registry = registry
        self.instance_id = uuid.uuid4().hex
        self.client = None
        self.pubsub = None

    async def connect(self) -> None:
        """Establish async connection to Redis and attach to the stores."""
        self.client = redis.from_url(self.url, decode_responses=True)
        await self.client.ping()
        self.attach()
        logger.info(f"✓ Connected to Redis relay (instance {self.instance_id[:8]})")

    def attach(self) -> None:
        """Make the stores publish their commits through this relay."""
        self.room_manager.relay = self
        self.message_store.relay = self
        self.registry.relay = self

    def detach(self) -> None:
        self.room_manager.relay = None
        self.message_store.relay = None
        self.registry.relay = None

    async def publish(self, channel: str, envelope: dict) -> None:
        """Publish an envelope; relay failures are logged, the local commit stands."""
        if self.client is None:
            return
        try:
            await self.client.publish(channel, json.dumps(envelope))
        except RedisError as e:
            logger.error(f"Redis publish to '{channel}' failed: {e}")

    async def publish_message(self, message: Message) -> None:
        await self.publish(
            f"room:{message.room_id}",
            {
                "origin": self.instance_id,
                "kind": "message",
                "room_id": message.room_id,
                "data": message.model_dump(),
            },
        )

    async def publish_room(self, room_id: str, room: Optional[Room]) -> None:
        await self.publish(
            f"room:{room_id}",
            {
                "origin": self.instance_id,
                "kind": "room",
                "room_id": room_id,
                "data": room.model_dump() if room else None,
            },
        )

    async def publish_participant(self, participant: Participant) -> None:
        await self.publish(
            PARTICIPANTS_CHANNEL,
            {
                "origin": self.instance_id,
                "kind": "participant",
                "data": participant.model_dump(mode="json"),
            },
        )

    def handle(self, raw: str) -> None:
        """Apply one relayed envelope to the local stores."""
        envelope = json.loads(raw)
        if envelope.get("origin") == self.instance_id:
            return

        kind = envelope.get("kind")
        if kind == "participant":
            participant = self.registry.apply_remote(envelope["data"])
            # Open room views show profile details
            self.room_manager.touch_rooms_for(participant.id)
            return

        room_id = envelope.get("room_id")
        if not room_id:
            logger.warning(f"Redis '{kind}' envelope without room_id - ignoring")
            return

        if kind == "message":
            self.message_store.ingest(Message(**envelope["data"]))
        elif kind == "room":
            self.room_manager.apply_remote(room_id, envelope.get("data"))
        else:
            logger.warning(f"Unknown Redis envelope kind: {kind}")

    async def listen(self, pattern: str = ROOM_CHANNELS, channel: str = PARTICIPANTS_CHANNEL) -> None:
        """
        Listen to Redis and apply what other instances commit.

        Rooms and messages arrive on the ``room:*`` pattern, profile changes
        on the ``participants`` channel.
        """
        self.pubsub = self.client.pubsub()

        await self.pubsub.psubscribe(pattern)
        logger.info(f"✓ Subscribed to Redis pattern '{pattern}'")
        await self.pubsub.subscribe(channel)
        logger.info(f"✓ Subscribed to Redis channel '{channel}'")

        async for message in self.pubsub.listen():
            if message["type"] in ("message", "pmessage"):
                try:
                    self.handle(message["data"])
                except Exception as e:
                    logger.error(f"Error processing Redis message: {e}")

    async def close(self) -> None:
        """Close connections."""
        self.detach()
        if self.pubsub:
            await self.pubsub.punsubscribe()
            await self.pubsub.unsubscribe()
            await self.pubsub.aclose()
        if self.client:
            await self.client.aclose()
        logger.info("Redis connection closed")
