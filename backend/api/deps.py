# backend/api/deps.py

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from backend.core.errors import (
    AuthenticationRequired,
    AuthorizationDenied,
    ChatError,
    GenerationError,
    PermissionDenied,
    RoomNotFound,
    SendInProgress,
    StoreError,
)
from backend.core.state import AppState
from backend.models.models import Identity


def get_state(request: Request) -> AppState:
    return request.app.state.chat


async def get_identity(
    state: AppState = Depends(get_state),
    authorization: Optional[str] = Header(default=None),
    x_guest_id: Optional[str] = Header(default=None),
) -> Identity:
    """Resolve the caller from a Bearer token or the X-Guest-Id header."""
    try:
        return await state.auth_service.resolve(authorization, x_guest_id)
    except AuthenticationRequired as e:
        raise HTTPException(status_code=401, detail=str(e))


def http_error(exc: ChatError, restored_text: Optional[str] = None) -> HTTPException:
    """Map a domain error onto the HTTP status the client expects."""
    if isinstance(exc, RoomNotFound):
        return HTTPException(status_code=404, detail="Room not found")
    if isinstance(exc, AuthorizationDenied):
        return HTTPException(status_code=403, detail={"reason": exc.reason})
    if isinstance(exc, PermissionDenied):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, SendInProgress):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, GenerationError):
        return HTTPException(
            status_code=502,
            detail={"error": "Translation failed, please try again", "restored_text": restored_text},
        )
    if isinstance(exc, StoreError):
        return HTTPException(status_code=503, detail="Storage is unavailable")
    if isinstance(exc, AuthenticationRequired):
        return HTTPException(status_code=401, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))
