"""
Identity adapter - turns request credentials into an ``Identity``.

The identity provider itself (sign-in screens, OAuth dance) lives outside this
backend. What reaches us is one of:

- ``Authorization: Bearer <id token>``: a JWT signed by the provider with the
  shared ``AUTH_JWT_SECRET``. Claims used: ``sub`` (stable id), ``name``,
  ``picture``.
- a guest id generated by the client once per browsing session
  (``X-Guest-Id`` header, or ``guest_id`` query parameter on the WebSocket).

Authenticated identities are registered in the participant registry on every
resolve, so a participant exists from the first authenticated request.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from jose import jwt, JWTError

from backend.core.errors import AuthenticationRequired
from backend.core.logging import get_logger
from backend.models.models import Identity
from backend.services.participant_registry import ParticipantRegistry

logger = get_logger(__name__)

GUEST_PREFIX = "guest-"
MAX_GUEST_ID_LENGTH = 64


class AuthService:
    def __init__(
        self,
        registry: ParticipantRegistry,
        *,
        secret: str,
        algorithm: str = "HS256",
        audience: str = "",
    ) -> None:
        self.registry = registry
        self.secret = secret
        self.algorithm = algorithm
        self.audience = audience

    def decode_token(self, token: str) -> Dict[str, Any]:
        """Verify an ID token and return its claims."""
        if not self.secret:
            raise AuthenticationRequired("Token sign-in is not configured")
        options = {"verify_aud": bool(self.audience)}
        try:
            return jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience or None,
                options=options,
            )
        except JWTError as e:
            logger.warning(f"Rejected ID token: {e}")
            raise AuthenticationRequired("Invalid or expired token") from e

    async def resolve(self, authorization: Optional[str] = None, guest_id: Optional[str] = None) -> Identity:
        """
        Resolve the caller.

        Args:
            authorization: Raw ``Authorization`` header value (or bare token)
            guest_id: Client-generated session-scoped guest id

        Returns:
            Identity: authenticated identity, or a guest identity

        Raises:
            AuthenticationRequired: bad token, or neither token nor guest id
        """
        token = _bearer_token(authorization)
        if token:
            claims = self.decode_token(token)
            subject = claims.get("sub")
            if not subject:
                raise AuthenticationRequired("Token has no subject")
            identity = Identity(
                id=str(subject),
                display_name=claims.get("name") or claims.get("email") or str(subject),
                photo_url=claims.get("picture"),
            )
            participant = await self.registry.ensure(identity)
            return identity.model_copy(update={"display_name": participant.display_name})

        guest = (guest_id or "").strip()
        if guest and len(guest) <= MAX_GUEST_ID_LENGTH:
            if not guest.startswith(GUEST_PREFIX):
                guest = f"{GUEST_PREFIX}{guest}"
            return Identity(id=guest, display_name="Guest", is_guest=True)

        raise AuthenticationRequired("Not authenticated")


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        return ""
    value = authorization.strip()
    if value.lower().startswith("bearer "):
        return value[7:].strip()
    return value
