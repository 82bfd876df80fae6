# models/exam_session.py
from pydantic import BaseModel, Field
from typing import Dict, List, Literal, Optional

ExamPhase = Literal["lobby", "testing", "finished"]


class ExamSession(BaseModel):
    """Server-side state of one attempt in progress."""

    id: str
    userId: str
    userName: str = ""
    testId: str
    phase: ExamPhase = "lobby"
    activeSectionIndex: Optional[int] = None
    currentQuestionIndex: int = Field(0, ge=0)
    answers: Dict[str, int] = {}
    completedSections: List[int] = []
    startedAt: Optional[float] = None  # epoch seconds; None while the timer is dormant
    durationSeconds: int = Field(..., ge=0)
    resultId: Optional[str] = None
    createdAt: Optional[str] = None
