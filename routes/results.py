# routes/results.py
from fastapi import APIRouter, HTTPException, Depends
from fastapi.responses import StreamingResponse
from typing import List
import logging

from database import DocumentDecodeError, decode, decode_many, get_db
from models.result import ExamResult
from models.user import ADMIN_ROLES, User
from .analytics_aggregator import leaderboard
from .auth import get_current_user
from .mock_tests import get_test_or_404
from .questions import load_question_map
from .scientific_text import parse_scientific_text
from .scoring import history_stats, percentage
from .subscriptions import Subscription, sse_stream

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/results", tags=["results"])


async def _get_result_or_404(db, result_id: str, current_user: User) -> ExamResult:
    doc = await db.results.find_one({"id": result_id})
    if not doc or (doc.get("userId") != current_user.id and current_user.role not in ADMIN_ROLES):
        raise HTTPException(status_code=404, detail="Result not found")
    try:
        return decode(ExamResult, doc, "results")
    except DocumentDecodeError as e:
        logger.error(str(e))
        raise HTTPException(status_code=500, detail=str(e))


def _with_percentage(result: ExamResult) -> dict:
    data = result.model_dump()
    data["percentage"] = percentage(result.score, result.maxScore)
    return data


@router.get("/mine")
async def get_my_results(current_user: User = Depends(get_current_user), db=Depends(get_db)):
    docs = await db.results.find({"userId": current_user.id}).sort("completedAt", -1).to_list(None)
    return [_with_percentage(r) for r in decode_many(ExamResult, docs, "results", skip_invalid=True)]


@router.get("/mine/stats")
async def get_my_stats(current_user: User = Depends(get_current_user), db=Depends(get_db)):
    docs = await db.results.find({"userId": current_user.id}).to_list(None)
    return history_stats(decode_many(ExamResult, docs, "results", skip_invalid=True))


@router.get("/stream")
async def stream_my_results(current_user: User = Depends(get_current_user), db=Depends(get_db)):
    subscription = Subscription(db.results, {"userId": current_user.id}, sort=[("completedAt", -1)])

    def encode(docs):
        return [_with_percentage(r) for r in decode_many(ExamResult, docs, "results", skip_invalid=True)]

    return StreamingResponse(sse_stream(subscription, encode), media_type="text/event-stream")


@router.get("/leaderboard/{test_id}")
async def get_leaderboard(test_id: str, current_user: User = Depends(get_current_user), db=Depends(get_db)):
    test = await get_test_or_404(db, test_id, current_user)
    docs = await db.results.find({"testId": test_id}).to_list(None)
    rows = leaderboard(decode_many(ExamResult, docs, "results", skip_invalid=True), test_id)
    return {"testId": test.id, "testName": test.name, "rows": rows}


@router.get("/{id}/", response_model=ExamResult)
async def get_result(id: str, current_user: User = Depends(get_current_user), db=Depends(get_db)):
    return await _get_result_or_404(db, id, current_user)


def _review_item(number: int, qid: str, question, chosen) -> dict:
    if question is None:
        return {"number": number, "questionId": qid, "missing": True, "chosen": chosen, "isCorrect": False}
    return {
        "number": number,
        "questionId": qid,
        "subject": question.subject,
        "topic": question.topic,
        "textSegments": [s.model_dump() for s in parse_scientific_text(question.text)],
        "options": question.options,
        "optionSegments": [[s.model_dump() for s in parse_scientific_text(o)] for o in question.options],
        "chosen": chosen,
        "correctAnswerIndex": question.correctAnswerIndex,
        "isCorrect": chosen == question.correctAnswerIndex,
        "explanation": question.explanation,
    }


@router.get("/{id}/review")
async def review_result(id: str, current_user: User = Depends(get_current_user), db=Depends(get_db)):
    result = await _get_result_or_404(db, id, current_user)
    try:
        test = await get_test_or_404(db, result.testId)
        layout = [(section.name, section.questionIds) for section in test.sections]
    except HTTPException as e:
        if e.status_code != 404:
            raise
        # The test was deleted after the attempt; review what the result itself recorded.
        logger.warning(f"Test {result.testId} for result {result.id} no longer exists, reviewing stored answers")
        test = None
        layout = [("Answered questions", list(result.userAnswers))]

    questions = await load_question_map(db, [qid for _, qids in layout for qid in qids])

    sections: List[dict] = []
    for name, question_ids in layout:
        items = [
            _review_item(number, qid, questions.get(qid), result.userAnswers.get(qid))
            for number, qid in enumerate(question_ids, start=1)
        ]
        sections.append({"name": name, "questions": items})

    return {"result": _with_percentage(result), "sections": sections, "testMissing": test is None}
