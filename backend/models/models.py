# backend/models/models.py
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class CommunicationStyle(str, Enum):
    NEUROTYPICAL = "Neurotypical"
    AUTISTIC = "Autistic"


class Identity(BaseModel):
    """Who is making a request, as resolved from the identity provider or a guest id."""

    id: str
    display_name: str = "Guest"
    photo_url: Optional[str] = None
    is_guest: bool = False


class Participant(BaseModel):
    id: str
    display_name: str
    photo_url: Optional[str] = None
    communication_style: CommunicationStyle = CommunicationStyle.NEUROTYPICAL


class Room(BaseModel):
    id: str
    name: str
    is_public: bool = True
    owner_id: str
    participants: List[str] = Field(default_factory=list)
    created_at: str


class ParticipantDetails(BaseModel):
    display_name: str
    photo_url: Optional[str] = None
    communication_style: CommunicationStyle


class RoomView(Room):
    """Room plus a read-time snapshot of each participant's profile."""

    participant_details: Dict[str, ParticipantDetails] = Field(default_factory=dict)


class Message(BaseModel):
    id: str = ""
    room_id: str
    sender_id: str
    sender_name: str
    sender_is_guest: bool = False
    original_message: str
    translations: Dict[str, str] = Field(default_factory=dict)
    created_at: str = ""
    sequence: int = 0

    def text_for(self, viewer_id: str) -> str:
        """Return the variant addressed to ``viewer_id`` (original when none exists)."""
        if viewer_id == self.sender_id:
            return self.original_message
        return self.translations.get(viewer_id, self.original_message)


class RenderedMessage(BaseModel):
    id: str
    room_id: str
    sender_id: str
    sender_name: str
    sender_is_guest: bool
    original_message: str
    text: str
    is_translated: bool
    created_at: str

    @classmethod
    def for_viewer(cls, message: Message, viewer_id: str) -> "RenderedMessage":
        text = message.text_for(viewer_id)
        return cls(
            id=message.id,
            room_id=message.room_id,
            sender_id=message.sender_id,
            sender_name=message.sender_name,
            sender_is_guest=message.sender_is_guest,
            original_message=message.original_message,
            text=text,
            is_translated=viewer_id != message.sender_id and text != message.original_message,
            created_at=message.created_at,
        )


class CreateRoomRequest(BaseModel):
    name: str
    is_public: bool = True


class SendMessageRequest(BaseModel):
    text: str


class UpdateParticipantRequest(BaseModel):
    communication_style: Optional[CommunicationStyle] = None
    display_name: Optional[str] = None
