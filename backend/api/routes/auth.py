# backend/api/routes/auth.py

from typing import Optional

from fastapi import APIRouter, Depends, Header

from backend.api.deps import get_state
from backend.core.errors import AuthenticationRequired
from backend.core.state import AppState

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.get("/session")
async def check_session(
    state: AppState = Depends(get_state),
    authorization: Optional[str] = Header(default=None),
    x_guest_id: Optional[str] = Header(default=None),
):
    """Report who the presented credentials resolve to (never raises 401)."""
    try:
        identity = await state.auth_service.resolve(authorization, x_guest_id)
    except AuthenticationRequired:
        return {"authenticated": False, "user": None}

    return {
        "authenticated": not identity.is_guest,
        "user": identity.model_dump(),
    }
