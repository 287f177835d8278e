# backend/services/instructions.py

from __future__ import annotations

from backend.models.models import CommunicationStyle

TO_AUTISTIC_INSTRUCTION = (
    "You are a helpful assistant that translates between neurotypical and autistic "
    "communication styles. Rephrase the user's message to be more direct, literal, and "
    "unambiguous for an autistic person. Only return the translated message."
)

TO_NEUROTYPICAL_INSTRUCTION = (
    "You are a helpful assistant that translates between autistic and neurotypical "
    "communication styles. Rephrase the user's message to add social context, soften blunt "
    "statements, and explain literal meanings for a neurotypical person. Only return the "
    "translated message."
)

NEUTRAL_INSTRUCTION = "You are a helpful communication assistant. Rephrase the user's message clearly."


def _coerce(style) -> CommunicationStyle | None:
    if isinstance(style, CommunicationStyle):
        return style
    try:
        return CommunicationStyle(style)
    except ValueError:
        return None


def select_instruction(sender_style, recipient_style) -> str:
    """
    Pick the system instruction describing the rewrite direction.

    Total over any input: unknown styles (or None) fall back to the neutral
    instruction, as do matching styles.
    """
    sender = _coerce(sender_style)
    recipient = _coerce(recipient_style)

    if sender is CommunicationStyle.NEUROTYPICAL and recipient is CommunicationStyle.AUTISTIC:
        return TO_AUTISTIC_INSTRUCTION
    if sender is CommunicationStyle.AUTISTIC and recipient is CommunicationStyle.NEUROTYPICAL:
        return TO_NEUROTYPICAL_INSTRUCTION
    return NEUTRAL_INSTRUCTION
