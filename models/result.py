# models/result.py
from pydantic import BaseModel
from typing import Dict, List, Literal, Optional

ResultStatus = Literal["completed", "abandoned", "auto-submitted"]


class SectionScore(BaseModel):
    sectionName: str
    score: float
    total: float


class ExamResult(BaseModel):
    id: str
    userId: str
    userName: str = ""
    testId: str
    testName: str = ""
    score: float
    maxScore: float
    completedAt: str  # ISO-8601; kept as text so bad timestamps survive decoding
    status: ResultStatus
    userAnswers: Dict[str, int] = {}
    sectionBreakdown: List[SectionScore] = []
    scoreRecalculatedAt: Optional[str] = None
