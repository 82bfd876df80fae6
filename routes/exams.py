# routes/exams.py
from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel
import logging
import time

from database import DocumentDecodeError, decode, get_db, to_document
from models.exam_session import ExamSession
from models.result import ExamResult
from models.user import ADMIN_ROLES, User
from .auth import get_current_user
from .exam_engine import ExamEngine, new_session
from .mock_tests import get_test_or_404
from .questions import load_question_map
from .scientific_text import parse_scientific_text

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/exams", tags=["exams"])


class NavigateRequest(BaseModel):
    questionIndex: int


class AnswerRequest(BaseModel):
    questionId: str
    optionIndex: int


class ConfirmRequest(BaseModel):
    confirm: bool = False


def get_clock():
    return time.time


async def persist_result(db, result: ExamResult, clock) -> dict:
    """Save a finished attempt. On failure the caller still gets the score under a temporary id."""
    try:
        await db.results.insert_one(to_document(result))
    except Exception as e:
        temp_id = f"temp-{int(clock() * 1000)}"
        logger.error(f"Failed to save result {result.id}, returning as {temp_id}: {str(e)}", exc_info=True)
        data = to_document(result.model_copy(update={"id": temp_id}))
        data["persisted"] = False
        return data
    logger.info(f"Saved result {result.id} for user {result.userId}: {result.score}/{result.maxScore} ({result.status})")
    data = to_document(result)
    data["persisted"] = True
    return data


async def _load_engine(db, session_id: str, current_user: User, clock) -> ExamEngine:
    doc = await db.exam_sessions.find_one({"id": session_id})
    if not doc or doc.get("userId") != current_user.id:
        raise HTTPException(status_code=404, detail="Exam session not found")
    try:
        session = decode(ExamSession, doc, "exam_sessions")
    except DocumentDecodeError as e:
        logger.error(str(e))
        raise HTTPException(status_code=500, detail=str(e))
    test = await get_test_or_404(db, session.testId)
    questions = await load_question_map(db, test.question_ids())
    return ExamEngine(session, test, questions, clock=clock)


async def _save(db, engine: ExamEngine, clock) -> dict:
    """Write back the session and, if the attempt just finished, its result."""
    saved_result = None
    if engine.result is not None:
        saved_result = await persist_result(db, engine.result, clock)
        engine.session.resultId = saved_result["id"]
    await db.exam_sessions.update_one({"id": engine.session.id}, {"$set": to_document(engine.session)})
    return _session_view(engine, clock(), saved_result)


def _public_question(engine: ExamEngine):
    qid = engine.current_question_id()
    if qid is None:
        return None
    question = engine.questions.get(qid)
    if question is None:
        return {"id": qid, "missing": True}
    return {
        "id": question.id,
        "subject": question.subject,
        "topic": question.topic,
        "text": question.text,
        "options": question.options,
        "textSegments": [s.model_dump() for s in parse_scientific_text(question.text)],
        "optionSegments": [[s.model_dump() for s in parse_scientific_text(o)] for o in question.options],
        "selectedOption": engine.session.answers.get(qid),
    }


def _session_view(engine: ExamEngine, now: float, result=None) -> dict:
    session = engine.session
    return {
        "session": to_document(session),
        "testName": engine.test.name,
        "sections": [
            {
                "index": i,
                "name": s.name,
                "questionCount": len(s.questionIds),
                "submitted": engine.is_section_submitted(i),
            }
            for i, s in enumerate(engine.test.sections)
        ],
        "timeRemaining": engine.time_remaining(now),
        "palette": engine.palette(),
        "question": _public_question(engine),
        "result": result,
    }


async def _apply(db, engine: ExamEngine, clock, ok: bool) -> dict:
    # A timeout hit during the action finishes the attempt; report that instead of a conflict
    if not ok and engine.result is None:
        raise HTTPException(status_code=409, detail="Action not allowed in the current exam state")
    return await _save(db, engine, clock)


@router.post("/{test_id}/sessions")
async def start_session(test_id: str, current_user: User = Depends(get_current_user), db=Depends(get_db), clock=Depends(get_clock)):
    test = await get_test_or_404(db, test_id)
    if current_user.role not in ADMIN_ROLES and (not test.isApproved or test.isPaused):
        raise HTTPException(status_code=404, detail="Test not found")
    if not test.sections:
        raise HTTPException(status_code=400, detail="Test has no sections")

    existing = await db.exam_sessions.find_one({"testId": test_id, "userId": current_user.id, "phase": {"$in": ["lobby", "testing"]}})
    if existing:
        logger.info(f"Resuming session {existing['id']} for user {current_user.id}")
        engine = await _load_engine(db, existing["id"], current_user, clock)
        engine.check_timeout()
        return await _save(db, engine, clock)

    attempts = await db.results.count_documents({"testId": test_id, "userId": current_user.id})
    if attempts and not test.allowRetake:
        raise HTTPException(status_code=409, detail="Retakes are not allowed for this test")
    if test.maxAttempts is not None and attempts >= test.maxAttempts:
        raise HTTPException(status_code=409, detail=f"Maximum attempts ({test.maxAttempts}) reached")

    session = new_session(test, current_user.id, current_user.name, now=clock())
    await db.exam_sessions.insert_one(to_document(session))
    logger.info(f"Started session {session.id} on test {test_id} for user {current_user.id}")
    questions = await load_question_map(db, test.question_ids())
    return _session_view(ExamEngine(session, test, questions, clock=clock), clock())


@router.get("/sessions/{id}")
async def get_session(id: str, current_user: User = Depends(get_current_user), db=Depends(get_db), clock=Depends(get_clock)):
    engine = await _load_engine(db, id, current_user, clock)
    if engine.check_timeout() is not None:
        return await _save(db, engine, clock)
    return _session_view(engine, clock())


@router.post("/sessions/{id}/sections/{index}/enter")
async def enter_section(id: str, index: int, current_user: User = Depends(get_current_user), db=Depends(get_db), clock=Depends(get_clock)):
    engine = await _load_engine(db, id, current_user, clock)
    return await _apply(db, engine, clock, engine.enter_section(index))


@router.post("/sessions/{id}/navigate")
async def navigate(id: str, request: NavigateRequest, current_user: User = Depends(get_current_user), db=Depends(get_db), clock=Depends(get_clock)):
    engine = await _load_engine(db, id, current_user, clock)
    return await _apply(db, engine, clock, engine.go_to(request.questionIndex))


@router.put("/sessions/{id}/answers")
async def answer_question(id: str, request: AnswerRequest, current_user: User = Depends(get_current_user), db=Depends(get_db), clock=Depends(get_clock)):
    engine = await _load_engine(db, id, current_user, clock)
    return await _apply(db, engine, clock, engine.choose(request.questionId, request.optionIndex))


@router.post("/sessions/{id}/lobby")
async def return_to_lobby(id: str, current_user: User = Depends(get_current_user), db=Depends(get_db), clock=Depends(get_clock)):
    engine = await _load_engine(db, id, current_user, clock)
    return await _apply(db, engine, clock, engine.return_to_lobby())


@router.post("/sessions/{id}/sections/submit")
async def submit_section(id: str, request: ConfirmRequest, current_user: User = Depends(get_current_user), db=Depends(get_db), clock=Depends(get_clock)):
    if not request.confirm:
        raise HTTPException(status_code=400, detail="Section submission must be confirmed")
    engine = await _load_engine(db, id, current_user, clock)
    return await _apply(db, engine, clock, engine.submit_section())


@router.post("/sessions/{id}/submit")
async def final_submit(id: str, request: ConfirmRequest, current_user: User = Depends(get_current_user), db=Depends(get_db), clock=Depends(get_clock)):
    if not request.confirm:
        raise HTTPException(status_code=400, detail="Final submission must be confirmed")
    engine = await _load_engine(db, id, current_user, clock)
    return await _apply(db, engine, clock, engine.final_submit() is not None)


@router.delete("/sessions/{id}")
async def abandon_session(id: str, confirm: bool = False, current_user: User = Depends(get_current_user), db=Depends(get_db), clock=Depends(get_clock)):
    if not confirm:
        raise HTTPException(status_code=400, detail="Exiting the exam must be confirmed")
    engine = await _load_engine(db, id, current_user, clock)
    if engine.check_timeout() is not None:
        await _save(db, engine, clock)
        raise HTTPException(status_code=409, detail="Attempt already auto-submitted")
    if engine.is_finished:
        raise HTTPException(status_code=409, detail="Attempt already finished")

    engine.abandon()
    await db.exam_sessions.delete_one({"id": id})
    logger.info(f"Session {id} abandoned by user {current_user.id}, no result recorded")
    return {"message": "Attempt abandoned"}
