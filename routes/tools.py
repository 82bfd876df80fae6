# routes/tools.py
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from models.user import User
from .auth import get_current_user
from .calculator import evaluate
from .scientific_text import parse_scientific_text

router = APIRouter(prefix="/api/tools", tags=["tools"])


class CalculateRequest(BaseModel):
    expression: str


class RenderRequest(BaseModel):
    text: str


@router.post("/calculate")
async def calculate(request: CalculateRequest, current_user: User = Depends(get_current_user)):
    return {"expression": request.expression, "result": evaluate(request.expression)}


@router.post("/render")
async def render_text(request: RenderRequest, current_user: User = Depends(get_current_user)):
    return {"segments": [s.model_dump() for s in parse_scientific_text(request.text)]}
