# backend/services/dispatcher.py

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable

from backend.core.errors import GenerationError
from backend.models.models import Participant
from backend.services.generation_client import GenerationClient
from backend.services.instructions import select_instruction

logger = logging.getLogger(__name__)


# ============================================================================
# TRANSLATION DISPATCHER
# ============================================================================

class TranslationDispatcher:
    """
    Computes the per-recipient translation map for one outbound message.

    For every recipient other than the sender:
        - same communication style -> the original text, no remote call
        - different style -> one GenerationClient.generate() call

    All remote calls for a message run concurrently and are joined before
    ``dispatch`` returns, so latency is bounded by the slowest rewrite. The
    first failure cancels the calls still in flight and is re-raised; a
    partial map is never returned.

    Guest senders never reach the dispatcher.
    """

    def __init__(self, generation_client: GenerationClient) -> None:
        self.generation_client = generation_client

    async def dispatch(
        self,
        text: str,
        sender: Participant,
        recipients: Iterable[Participant],
    ) -> Dict[str, str]:
        """
        Args:
            text: The sender's original message
            sender: Authenticated sender
            recipients: Room roster as read at dispatch start (may include the sender)

        Returns:
            Dict mapping every other participant id to the text they should see

        Raises:
            GenerationError: if any required rewrite fails
        """
        translations: Dict[str, str] = {}
        pending: Dict[str, asyncio.Task] = {}

        for recipient in recipients:
            if recipient.id == sender.id or recipient.id in translations or recipient.id in pending:
                continue

            if recipient.communication_style == sender.communication_style:
                translations[recipient.id] = text
                continue

            instruction = select_instruction(sender.communication_style, recipient.communication_style)
            pending[recipient.id] = asyncio.create_task(
                self.generation_client.generate(instruction, text),
                name=f"rewrite:{recipient.id}",
            )

        if pending:
            try:
                results = await asyncio.gather(*pending.values())
            except BaseException as exc:
                for task in pending.values():
                    if not task.done():
                        task.cancel()
                # Let cancelled tasks unwind before reporting
                await asyncio.gather(*pending.values(), return_exceptions=True)
                if isinstance(exc, GenerationError):
                    raise
                if isinstance(exc, Exception):
                    raise GenerationError(f"Rewrite failed: {exc}") from exc
                raise
            translations.update(zip(pending.keys(), results))

        logger.info(
            f"→ Dispatched message from {sender.id}: {len(translations)} recipients, {len(pending)} rewrites"
        )
        return translations
