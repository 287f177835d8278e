# backend/services/participant_registry.py

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, TYPE_CHECKING

from backend.core.errors import StoreError
from backend.core.persistence import JsonFile
from backend.models.models import CommunicationStyle, Identity, Participant

if TYPE_CHECKING:
    from backend.services.redis_pub_sub import AsyncRedisPubSubService

logger = logging.getLogger(__name__)

PARTICIPANTS_FILE = "participants.json"


class ParticipantRegistry:
    """
    Style registry: each authenticated participant's profile and
    communication style, keyed by their stable identity-provider id.

    Guests are never registered. A style change only affects messages sent
    after it; stored messages keep the translations computed at send time.
    Committed changes go out on the relay so every instance dispatches
    against the same styles.
    """

    def __init__(self, data_dir: str = "") -> None:
        self.relay: Optional["AsyncRedisPubSubService"] = None
        self._file = JsonFile.in_dir(data_dir, PARTICIPANTS_FILE)
        self.participants: Dict[str, Participant] = {
            k: Participant(**v) for k, v in self._file.load({}).items()
        }

    def _save(self) -> None:
        self._file.save({k: v.model_dump(mode="json") for k, v in self.participants.items()})

    async def _commit(self, participant_id: str, previous: Optional[Participant]) -> None:
        try:
            self._save()
        except Exception:
            if previous is None:
                self.participants.pop(participant_id, None)
            else:
                self.participants[participant_id] = previous
            raise
        if self.relay is not None:
            await self.relay.publish_participant(self.participants[participant_id])

    async def ensure(self, identity: Identity) -> Participant:
        """
        Create the participant on first authentication, otherwise refresh the
        profile fields the identity provider owns. Style is never touched here.
        """
        existing = self.participants.get(identity.id)
        if existing is None:
            participant = Participant(
                id=identity.id,
                display_name=identity.display_name,
                photo_url=identity.photo_url,
            )
            self.participants[identity.id] = participant
            await self._commit(identity.id, None)
            logger.info(f"✓ Registered participant {identity.id} ({identity.display_name})")
            return participant.model_copy()

        if existing.photo_url != identity.photo_url:
            previous = existing.model_copy()
            existing.photo_url = identity.photo_url
            await self._commit(identity.id, previous)
        return existing.model_copy()

    def get(self, participant_id: str) -> Optional[Participant]:
        participant = self.participants.get(participant_id)
        return participant.model_copy() if participant else None

    def get_many(self, participant_ids: Iterable[str]) -> List[Participant]:
        """Resolve ids in order, skipping ids that were never registered."""
        return [self.participants[pid].model_copy() for pid in participant_ids if pid in self.participants]

    def require_many(self, participant_ids: Iterable[str]) -> List[Participant]:
        """
        Resolve every id in order.

        Raises:
            StoreError: if any id has no profile on this instance
        """
        participant_ids = list(participant_ids)
        missing = [pid for pid in participant_ids if pid not in self.participants]
        if missing:
            raise StoreError(f"No profile for participants: {', '.join(missing)}")
        return self.get_many(participant_ids)

    async def set_style(self, participant_id: str, style: CommunicationStyle) -> Participant:
        return await self.update_profile(participant_id, communication_style=style)

    async def update_profile(
        self,
        participant_id: str,
        *,
        communication_style: Optional[CommunicationStyle] = None,
        display_name: Optional[str] = None,
    ) -> Participant:
        participant = self.participants[participant_id]
        previous = participant.model_copy()
        if communication_style is not None:
            participant.communication_style = CommunicationStyle(communication_style)
        if display_name is not None and display_name.strip():
            participant.display_name = display_name.strip()
        await self._commit(participant_id, previous)
        logger.info(
            f"→ Participant {participant_id} updated (style={participant.communication_style.value})"
        )
        return participant.model_copy()

    def apply_remote(self, data: dict) -> Participant:
        """Upsert a profile relayed from another instance."""
        participant = Participant(**data)
        self.participants[participant.id] = participant
        try:
            self._save()
        except StoreError as e:
            logger.error(f"Could not persist relayed participant {participant.id}: {e}")
        return participant.model_copy()
