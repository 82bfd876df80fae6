# routes/import_questions.py
from fastapi import APIRouter, HTTPException, Depends, File, UploadFile
from pydantic import BaseModel
from pymongo.errors import BulkWriteError
from typing import List
import logging
import uuid

from database import get_db, to_document
from models.question import Question, QuestionBase
from models.user import User
from .auth import require_admin
from .dedupe import normalize_text
from . import question_extractor
from .timestamps import utc_now_iso

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/import", tags=["import"])


class CommitRequest(BaseModel):
    questions: List[QuestionBase]


@router.post("/extract")
async def extract(file: UploadFile = File(...), current_user: User = Depends(require_admin)):
    """Stage questions from a PDF. Nothing is written until commit."""
    if file.content_type and file.content_type != "application/pdf":
        raise HTTPException(status_code=400, detail="Upload a PDF document")
    pdf_bytes = await file.read()
    try:
        staged = await question_extractor.extract_questions(pdf_bytes, file.filename or "questions.pdf")
    except question_extractor.ExtractionError as e:
        logger.error(f"Extraction failed for {file.filename} by {current_user.id}: {str(e)}")
        raise HTTPException(status_code=502, detail=str(e))
    logger.info(f"Staged {len(staged)} questions from {file.filename} for {current_user.id}")
    return {"questions": [q.model_dump() for q in staged], "count": len(staged)}


@router.post("/commit")
async def commit(request: CommitRequest, current_user: User = Depends(require_admin), db=Depends(get_db)):
    if not request.questions:
        raise HTTPException(status_code=400, detail="Nothing to import")

    created_at = utc_now_iso()
    new_questions = [
        Question(
            **q.model_dump(),
            id=str(uuid.uuid4()),
            normalizedText=normalize_text(q.text),
            createdBy=current_user.id,
            createdAt=created_at,
        )
        for q in request.questions
    ]
    try:
        await db.questions.insert_many([to_document(q) for q in new_questions])
    except BulkWriteError as e:
        logger.error(f"Bulk import failed: {e.details}")
        raise HTTPException(status_code=500, detail="Failed to import questions")
    logger.info(f"Imported {len(new_questions)} questions by {current_user.id}")
    return {"imported": len(new_questions), "ids": [q.id for q in new_questions]}
