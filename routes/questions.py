# routes/questions.py
from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel
from typing import List, Optional
import logging
import re
import uuid

from database import DocumentDecodeError, decode, decode_many, get_db, to_document
from models.question import Question, QuestionBase
from models.user import User
from .auth import get_current_user, require_admin
from .dedupe import find_duplicates, normalize_text
from .scientific_text import parse_scientific_text
from .timestamps import utc_now_iso

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/questions", tags=["questions"])


class DedupeRequest(BaseModel):
    confirm: bool = False


def render_question(question: Question) -> dict:
    data = to_document(question)
    data["textSegments"] = [s.model_dump() for s in parse_scientific_text(question.text)]
    data["optionSegments"] = [[s.model_dump() for s in parse_scientific_text(o)] for o in question.options]
    return data


async def load_questions(db, query: Optional[dict] = None, skip_invalid: bool = False) -> List[Question]:
    docs = await db.questions.find(query or {}).to_list(None)
    return decode_many(Question, docs, "questions", skip_invalid=skip_invalid)


async def load_question_map(db, question_ids) -> dict:
    ids = list(dict.fromkeys(question_ids))
    if not ids:
        return {}
    questions = await load_questions(db, {"id": {"$in": ids}}, skip_invalid=True)
    return {q.id: q for q in questions}


async def _get_question_or_404(db, question_id: str) -> Question:
    doc = await db.questions.find_one({"id": question_id})
    if not doc:
        raise HTTPException(status_code=404, detail="Question not found")
    try:
        return decode(Question, doc, "questions")
    except DocumentDecodeError as e:
        logger.error(str(e))
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/", response_model=Question)
async def add_question(question: QuestionBase, current_user: User = Depends(get_current_user), db=Depends(get_db)):
    logger.info(f"Adding question for subject={question.subject}, topic={question.topic}, by={current_user.id}")
    new_question = Question(
        **question.model_dump(),
        id=str(uuid.uuid4()),
        normalizedText=normalize_text(question.text),
        createdBy=current_user.id,
        createdAt=utc_now_iso(),
    )
    try:
        await db.questions.insert_one(to_document(new_question))
    except Exception as e:
        logger.error(f"Question insert failed: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to save question: {str(e)}")
    return new_question


@router.get("/", response_model=List[Question])
async def get_questions(
    search: str = None,
    subject: str = None,
    current_user: User = Depends(require_admin),
    db=Depends(get_db),
):
    query = {}
    if subject:
        query["subject"] = subject
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"subject": {"$regex": pattern, "$options": "i"}},
            {"topic": {"$regex": pattern, "$options": "i"}},
        ]
    docs = await db.questions.find(query).sort("createdAt", -1).to_list(None)
    try:
        return decode_many(Question, docs, "questions")
    except DocumentDecodeError as e:
        logger.error(str(e))
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/mine", response_model=List[Question])
async def get_my_questions(current_user: User = Depends(get_current_user), db=Depends(get_db)):
    docs = await db.questions.find({"createdBy": current_user.id}).sort("createdAt", -1).to_list(None)
    return decode_many(Question, docs, "questions", skip_invalid=True)


@router.post("/dedupe")
async def dedupe_questions(request: DedupeRequest, current_user: User = Depends(require_admin), db=Depends(get_db)):
    questions = await load_questions(db, skip_invalid=True)
    kept, duplicates = find_duplicates(questions)
    duplicate_ids = [q.id for q in duplicates]
    logger.info(f"Dedupe by {current_user.id}: {len(duplicate_ids)} duplicates out of {len(questions)}")

    if not request.confirm:
        return {"confirmed": False, "duplicateIds": duplicate_ids, "kept": len(kept), "removed": 0}
    if not duplicate_ids:
        return {"confirmed": True, "duplicateIds": [], "kept": len(kept), "removed": 0}

    try:
        outcome = await db.questions.delete_many({"id": {"$in": duplicate_ids}})
    except Exception as e:
        logger.error(f"Dedupe delete failed: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to remove duplicates: {str(e)}")
    return {"confirmed": True, "duplicateIds": duplicate_ids, "kept": len(kept), "removed": outcome.deleted_count}


@router.get("/{id}/")
async def get_question_by_id(id: str, current_user: User = Depends(require_admin), db=Depends(get_db)):
    return render_question(await _get_question_or_404(db, id))


@router.put("/{id}/", response_model=Question)
async def update_question(id: str, update: QuestionBase, current_user: User = Depends(require_admin), db=Depends(get_db)):
    # In-place edit: past results are reviewed against the current answer key
    existing = await _get_question_or_404(db, id)
    update_dict = update.model_dump()
    update_dict["normalizedText"] = normalize_text(update.text)
    logger.info(f"Updating question {id} by {current_user.id}")

    await db.questions.update_one({"id": id}, {"$set": update_dict})
    return existing.model_copy(update=update_dict)


@router.delete("/{id}/")
async def delete_question(id: str, current_user: User = Depends(require_admin), db=Depends(get_db)):
    result = await db.questions.delete_one({"id": id})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Question not found")
    logger.info(f"Deleted question {id} by {current_user.id}")
    return {"message": "Question deleted"}
