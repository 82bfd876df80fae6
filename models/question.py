# models/question.py
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional

OPTION_COUNT = 4


class QuestionBase(BaseModel):
    subject: str
    topic: str
    text: str
    options: List[str] = Field(..., min_length=OPTION_COUNT, max_length=OPTION_COUNT)
    correctAnswerIndex: int = Field(..., ge=0, lt=OPTION_COUNT)
    explanation: Optional[str] = None

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Question text must not be empty")
        return value


class Question(QuestionBase):
    id: str
    normalizedText: Optional[str] = None
    createdBy: str = ""
    createdAt: str  # ISO-8601, UTC
