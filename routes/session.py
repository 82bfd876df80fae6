# routes/session.py
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from .auth import get_optional_user
from .views import ViewEvent, ViewState, dispatch, landing_view

router = APIRouter(prefix="/api/session", tags=["session"])


class DispatchRequest(BaseModel):
    state: ViewState
    event: ViewEvent


@router.get("/view")
async def get_landing_view(current_user=Depends(get_optional_user)):
    role = current_user.role if current_user else None
    return landing_view(role).model_dump()


@router.post("/dispatch")
async def dispatch_view(request: DispatchRequest, current_user=Depends(get_optional_user)):
    role = current_user.role if current_user else None
    return dispatch(request.state, request.event, role).model_dump()
