# routes/analytics.py
from fastapi import APIRouter, Depends
import logging
import time

import config
from database import decode_many, get_db
from models.mock_test import MockTest
from models.question import Question
from models.result import ExamResult
from models.user import User
from .analytics_aggregator import AnalyticsFilters, build_report
from .auth import require_admin

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("")
async def get_analytics(filters: AnalyticsFilters = Depends(), current_user: User = Depends(require_admin), db=Depends(get_db)):
    results = await db.results.find({}).sort("completedAt", -1).limit(config.ANALYTICS_RESULT_LIMIT).to_list(None)
    tests = await db.tests.find({}).limit(config.ANALYTICS_TEST_LIMIT).to_list(None)
    questions = await db.questions.find({}).limit(config.ANALYTICS_QUESTION_LIMIT).to_list(None)
    logger.info(f"Analytics for {current_user.id}: {len(results)} results, {len(tests)} tests, {len(questions)} questions")

    return build_report(
        decode_many(ExamResult, results, "results", skip_invalid=True),
        decode_many(MockTest, tests, "tests", skip_invalid=True),
        decode_many(Question, questions, "questions", skip_invalid=True),
        filters,
        now_ms=time.time() * 1000,
    )
