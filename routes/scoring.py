# routes/scoring.py
import math
from typing import Dict, List, Mapping, Tuple

from models.mock_test import MockTest
from models.question import Question
from models.result import SectionScore


def percentage(score: float, max_score: float) -> int:
    """Whole-number percentage, rounding halves up. 0 when max_score is 0."""
    if not max_score:
        return 0
    return int(math.floor(100 * score / max_score + 0.5))


def safe_pct(num: float, den: float) -> float:
    return (num / den) * 100 if den > 0 else 0.0


def score_attempt(
    test: MockTest,
    questions: Mapping[str, Question],
    answers: Mapping[str, int],
) -> Tuple[List[SectionScore], float, float]:
    """Score every section of ``test`` against the answer key in ``questions``.

    Questions missing from the lookup score zero but still count toward the
    section total.
    """
    breakdown = []
    for section in test.sections:
        section_score = 0
        for qid in section.questionIds:
            question = questions.get(qid)
            if question is not None and answers.get(qid) == question.correctAnswerIndex:
                section_score += section.marksPerQuestion
        breakdown.append(SectionScore(
            sectionName=section.name,
            score=section_score,
            total=section.total,
        ))

    score = sum(s.score for s in breakdown)
    max_score = sum(s.total for s in breakdown)
    return breakdown, score, max_score


def history_stats(results) -> Dict[str, int]:
    """Average and best percentage over a user's past results."""
    if not results:
        return {"avgScore": 0, "highestScore": 0, "totalTaken": 0}
    scores = [safe_pct(r.score, r.maxScore) for r in results]
    return {
        "avgScore": percentage(sum(scores), 100 * len(scores)),
        "highestScore": percentage(max(scores), 100),
        "totalTaken": len(results),
    }
