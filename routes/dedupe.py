# routes/dedupe.py
from typing import List, Sequence, Tuple
import re

from models.question import Question
from .timestamps import get_ms

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    return _WHITESPACE.sub(" ", (text or "").lower()).strip()


def _created_ms(question: Question) -> float:
    return get_ms(question.createdAt) or 0


def find_duplicates(questions: Sequence[Question]) -> Tuple[List[Question], List[Question]]:
    """Split questions into (kept, duplicates) by normalized prompt text.

    Oldest first; the first occurrence of each text is kept.
    """
    seen = set()
    kept, duplicates = [], []
    for question in sorted(questions, key=_created_ms):
        key = normalize_text(question.text)
        if key in seen:
            duplicates.append(question)
        else:
            seen.add(key)
            kept.append(question)
    return kept, duplicates
