# backend/core/errors.py

from __future__ import annotations


class ChatError(Exception):
    """Base class for every failure of a user action in the chat backend."""


class GenerationError(ChatError):
    """
    The remote rewrite call failed or returned unusable output.

    Attributes:
        status_code: HTTP status returned by the generation service, if any
        rate_limited: True when the upstream rejected the call with 429
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.rate_limited = status_code == 429


class AuthorizationDenied(ChatError):
    """The Delivery Gate rejected a send. ``reason`` is shown to the sender."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class RoomNotFound(ChatError):
    def __init__(self, room_id: str) -> None:
        super().__init__(f"Room not found: {room_id}")
        self.room_id = room_id


class PermissionDenied(ChatError):
    """Private room accessed without membership, or an owner-only action."""


class StoreError(ChatError):
    """A write or subscription against the persistent store failed."""


class SendInProgress(ChatError):
    """A second send was attempted while a dispatch is still in flight."""


class AuthenticationRequired(ChatError):
    """The request carried no usable identity (no valid token and no guest id)."""
