# backend/api/routes/participants.py

from fastapi import APIRouter, Depends

from backend.api.deps import get_identity, get_state, http_error
from backend.core.errors import ChatError
from backend.core.state import AppState
from backend.models.models import Identity, Participant, UpdateParticipantRequest

router = APIRouter(prefix="/participants", tags=["Participants"])


@router.get("/me", response_model=Participant)
async def get_me(state: AppState = Depends(get_state), identity: Identity = Depends(get_identity)):
    try:
        return await state.chat_service.profile(identity)
    except ChatError as e:
        raise http_error(e)


@router.patch("/me", response_model=Participant)
async def update_me(
    request: UpdateParticipantRequest,
    state: AppState = Depends(get_state),
    identity: Identity = Depends(get_identity),
):
    """
    Change the caller's communication style and/or display name.

    Only messages sent after the change use the new style.
    """
    try:
        return await state.chat_service.update_profile(
            identity,
            communication_style=request.communication_style,
            display_name=request.display_name,
        )
    except ChatError as e:
        raise http_error(e)
