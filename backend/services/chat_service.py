# backend/services/chat_service.py

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from backend.core.errors import (
    ChatError,
    GenerationError,
    PermissionDenied,
    RoomNotFound,
    SendInProgress,
)
from backend.models.models import (
    CommunicationStyle,
    Identity,
    Message,
    Participant,
    ParticipantDetails,
    RenderedMessage,
    Room,
    RoomView,
)
from backend.services.delivery_gate import DeliveryGate
from backend.services.dispatcher import TranslationDispatcher
from backend.services.message_store import MessageStore
from backend.services.participant_registry import ParticipantRegistry
from backend.services.room_manager import RoomManager

logger = logging.getLogger(__name__)


class ChatMetrics:
    """Counters exposed by /metrics."""

    def __init__(self) -> None:
        self.messages_sent = 0
        self.guest_messages = 0
        self.rewrites = 0
        self.generation_failures = 0
        self.denied_sends = 0
        self.started_at = datetime.now(timezone.utc)


class ChatSession:
    """
    One viewer's conversation state: who they are, which room snapshot they
    last opened, and whether a send is in flight.

    Sends on one session never overlap. If a send fails, ``restored_text``
    holds what the viewer typed so the client can put it back in the compose
    box.
    """

    def __init__(self, identity: Identity) -> None:
        self.identity = identity
        self.room: Optional[Room] = None
        self.sending = False
        self.restored_text: Optional[str] = None

    @property
    def viewer_id(self) -> str:
        return self.identity.id


# ============================================================================
# SEND PIPELINE
# ============================================================================

class ChatService:
    """
    Composes the gate, dispatcher and stores into the operations the API
    exposes. All collaborators are injected; nothing here reaches for a
    global client.

    Send flow:
        1. room lookup (RoomNotFound)
        2. DeliveryGate.authorize (AuthorizationDenied; auto-join into public rooms)
        3. guest -> empty translations; otherwise roster read (StoreError on an
           unknown id) + dispatch
        4. single MessageStore.append with the complete map
    """

    def __init__(
        self,
        room_manager: RoomManager,
        message_store: MessageStore,
        registry: ParticipantRegistry,
        gate: DeliveryGate,
        dispatcher: TranslationDispatcher,
        metrics: Optional[ChatMetrics] = None,
    ) -> None:
        self.room_manager = room_manager
        self.message_store = message_store
        self.registry = registry
        self.gate = gate
        self.dispatcher = dispatcher
        self.metrics = metrics or ChatMetrics()
        self.sessions: dict[str, ChatSession] = {}

    # ── Sessions ─────────────────────────────────────────────────────────────

    def session_for(self, identity: Identity) -> ChatSession:
        """REST callers share one session per identity."""
        session = self.sessions.get(identity.id)
        if session is None:
            session = ChatSession(identity)
            self.sessions[identity.id] = session
        else:
            session.identity = identity
        return session

    # ── Rooms ────────────────────────────────────────────────────────────────

    def open_room(self, room_id: str, viewer: Identity) -> Room:
        room = self.room_manager.get_room(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        if not room.is_public and viewer.id not in room.participants:
            raise PermissionDenied("This room is private")
        return room

    def build_room_view(self, room: Room) -> RoomView:
        details = {
            p.id: ParticipantDetails(
                display_name=p.display_name,
                photo_url=p.photo_url,
                communication_style=p.communication_style,
            )
            for p in self.registry.get_many(room.participants)
        }
        return RoomView(**room.model_dump(), participant_details=details)

    def room_view(self, room_id: str, viewer: Identity) -> RoomView:
        return self.build_room_view(self.open_room(room_id, viewer))

    async def create_room(self, owner: Identity, name: str, is_public: bool = True) -> Room:
        if owner.is_guest:
            raise PermissionDenied("Sign in to create a room")
        name = name.strip()
        if not name:
            raise ValueError("Room name required")
        return await self.room_manager.create_room(name, owner.id, is_public)

    def rooms_for(self, viewer: Identity) -> List[Room]:
        return self.room_manager.list_rooms_for(viewer.id)

    async def delete_room(self, room_id: str, viewer: Identity) -> None:
        room = self.room_manager.get_room(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        if room.owner_id != viewer.id:
            raise PermissionDenied("Only the room owner can delete it")
        await self.room_manager.delete_room(room_id)
        self.message_store.delete_room_messages(room_id)

    # ── Messages ─────────────────────────────────────────────────────────────

    def messages_for(self, room_id: str, viewer: Identity) -> List[RenderedMessage]:
        self.open_room(room_id, viewer)
        return render_for(self.message_store.list_messages(room_id), viewer.id)

    async def send(self, session: ChatSession, room_id: str, text: str) -> Message:
        """
        Run one outbound message through gate, dispatcher and store.

        Raises:
            ValueError: blank text
            SendInProgress: the session already has a send in flight
            RoomNotFound: no such room
            AuthorizationDenied: the gate refused the send
            GenerationError: a required rewrite failed (nothing persisted)
            StoreError: a roster profile is missing or the append failed
                (nothing persisted)
        """
        if not text or not text.strip():
            raise ValueError("Message text required")
        if session.sending:
            raise SendInProgress("A message is already being sent")

        session.sending = True
        session.restored_text = None
        try:
            message = await self._send(session, room_id, text)
        except ChatError as exc:
            session.restored_text = text
            if isinstance(exc, GenerationError):
                self.metrics.generation_failures += 1
                logger.warning(f"✗ Send from {session.viewer_id} failed during rewrite: {exc}")
            raise
        finally:
            session.sending = False

        self.metrics.messages_sent += 1
        if message.sender_is_guest:
            self.metrics.guest_messages += 1
        return message

    async def _send(self, session: ChatSession, room_id: str, text: str) -> Message:
        sender = session.identity
        room = self.room_manager.get_room(room_id)
        if room is None:
            raise RoomNotFound(room_id)

        decision = await self.gate.authorize(room, sender)
        if not decision.allowed:
            self.metrics.denied_sends += 1
        room = decision.require_allowed()
        session.room = room

        if sender.is_guest:
            translations: dict[str, str] = {}
        else:
            participant = await self._participant(sender)
            recipients = self.registry.require_many(room.participants)
            translations = await self.dispatcher.dispatch(text, participant, recipients)
            self.metrics.rewrites += sum(1 for value in translations.values() if value != text)

        return await self.message_store.append(
            Message(
                room_id=room.id,
                sender_id=sender.id,
                sender_name=sender.display_name,
                sender_is_guest=sender.is_guest,
                original_message=text,
                translations=translations,
            )
        )

    async def _participant(self, identity: Identity) -> Participant:
        participant = self.registry.get(identity.id)
        if participant is None:
            participant = await self.registry.ensure(identity)
        return participant

    # ── Participants ─────────────────────────────────────────────────────────

    async def profile(self, viewer: Identity) -> Participant:
        if viewer.is_guest:
            raise PermissionDenied("Guests have no profile")
        return await self._participant(viewer)

    async def update_profile(
        self,
        viewer: Identity,
        *,
        communication_style: Optional[CommunicationStyle] = None,
        display_name: Optional[str] = None,
    ) -> Participant:
        """Takes effect for messages sent afterwards; stored ones are never retranslated."""
        participant = await self.profile(viewer)
        updated = await self.registry.update_profile(
            participant.id,
            communication_style=communication_style,
            display_name=display_name,
        )
        self.room_manager.touch_rooms_for(participant.id)
        return updated


def render_for(messages: List[Message], viewer_id: str) -> List[RenderedMessage]:
    return [RenderedMessage.for_viewer(m, viewer_id) for m in messages]
