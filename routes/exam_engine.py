# routes/exam_engine.py
"""
Timed multi-section exam state machine.

    lobby --enter_section--> testing --submit_section--> lobby
    lobby --final_submit (all sections submitted)--> finished
    any   --countdown reaches zero--> finished (auto-submitted)

The countdown is shared by all sections and starts on the first section entry.
The engine works on an ExamSession model so a session can be saved between
requests and rebuilt later with the same clock semantics.
"""
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional
import logging
import time
import uuid

from models.exam_session import ExamSession
from models.mock_test import MockTest
from models.question import OPTION_COUNT, Question
from models.result import ExamResult, ResultStatus
from .scoring import score_attempt

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def new_session(test: MockTest, user_id: str, user_name: str = "", now: Optional[float] = None) -> ExamSession:
    now = time.time() if now is None else now
    return ExamSession(
        id=str(uuid.uuid4()),
        userId=user_id,
        userName=user_name,
        testId=test.id,
        durationSeconds=test.totalDurationSeconds,
        createdAt=datetime.fromtimestamp(now, timezone.utc).isoformat(),
    )


class ExamEngine:
    def __init__(
        self,
        session: ExamSession,
        test: MockTest,
        questions: Mapping[str, Question],
        clock: Callable[[], float] = time.time,
    ):
        self.session = session
        self.test = test
        self.questions = questions
        self.clock = clock
        self.result: Optional[ExamResult] = None

    # -- timer ---------------------------------------------------------------

    @property
    def has_started(self) -> bool:
        return self.session.startedAt is not None

    def time_remaining(self, now: Optional[float] = None) -> int:
        if not self.has_started:
            return self.session.durationSeconds
        now = self.clock() if now is None else now
        elapsed = int(now - self.session.startedAt)
        return max(0, self.session.durationSeconds - elapsed)

    def check_timeout(self, now: Optional[float] = None) -> Optional[ExamResult]:
        """Force-score the attempt once the shared countdown has run out."""
        if self.is_finished or not self.has_started:
            return None
        if self.time_remaining(now) > 0:
            return None
        logger.info(f"Session {self.session.id} timed out, auto-submitting")
        return self._finish("auto-submitted")

    # -- state ---------------------------------------------------------------

    @property
    def phase(self) -> str:
        return self.session.phase

    @property
    def is_finished(self) -> bool:
        return self.session.phase == "finished"

    @property
    def active_section(self):
        idx = self.session.activeSectionIndex
        if idx is None or self.session.phase != "testing":
            return None
        return self.test.sections[idx]

    def current_question_id(self) -> Optional[str]:
        section = self.active_section
        if section is None or not section.questionIds:
            return None
        return section.questionIds[self.session.currentQuestionIndex]

    def is_section_submitted(self, index: int) -> bool:
        return index in self.session.completedSections

    def all_sections_submitted(self) -> bool:
        return len(self.session.completedSections) >= len(self.test.sections)

    def palette(self) -> List[Dict]:
        section = self.active_section
        if section is None:
            return []
        return [
            {
                "index": i,
                "questionId": qid,
                "answered": qid in self.session.answers,
                "current": i == self.session.currentQuestionIndex,
            }
            for i, qid in enumerate(section.questionIds)
        ]

    # -- transitions ---------------------------------------------------------

    def _live(self) -> bool:
        if self.is_finished:
            return False
        return self.check_timeout() is None

    def enter_section(self, index: int) -> bool:
        if not self._live() or self.session.phase != "lobby":
            return False
        if index < 0 or index >= len(self.test.sections) or self.is_section_submitted(index):
            return False
        if not self.has_started:
            self.session.startedAt = self.clock()
        self.session.phase = "testing"
        self.session.activeSectionIndex = index
        self.session.currentQuestionIndex = 0
        return True

    def go_to(self, question_index: int) -> bool:
        section = self.active_section
        if not self._live() or section is None or not section.questionIds:
            return False
        self.session.currentQuestionIndex = min(max(question_index, 0), len(section.questionIds) - 1)
        return True

    def next_question(self) -> bool:
        return self.go_to(self.session.currentQuestionIndex + 1)

    def previous_question(self) -> bool:
        return self.go_to(self.session.currentQuestionIndex - 1)

    def choose(self, question_id: str, option_index: int) -> bool:
        section = self.active_section
        if not self._live() or section is None:
            return False
        if question_id not in section.questionIds:
            return False
        if option_index < 0 or option_index >= OPTION_COUNT:
            return False
        self.session.answers[question_id] = option_index
        return True

    def return_to_lobby(self) -> bool:
        if not self._live() or self.session.phase != "testing":
            return False
        self.session.phase = "lobby"
        self.session.activeSectionIndex = None
        return True

    def submit_section(self) -> bool:
        if not self._live() or self.session.phase != "testing":
            return False
        self.session.completedSections.append(self.session.activeSectionIndex)
        self.session.phase = "lobby"
        self.session.activeSectionIndex = None
        return True

    def final_submit(self) -> Optional[ExamResult]:
        if not self._live() or self.session.phase != "lobby":
            return None
        if not self.all_sections_submitted():
            return None
        return self._finish("completed")

    def abandon(self) -> None:
        """Discard the attempt. No result is produced."""
        self.session.phase = "finished"
        self.session.activeSectionIndex = None

    # -- scoring -------------------------------------------------------------

    def _finish(self, status: ResultStatus) -> ExamResult:
        breakdown, score, max_score = score_attempt(self.test, self.questions, self.session.answers)
        completed = self.clock()
        if status == "auto-submitted" and self.session.startedAt is not None:
            # Timeouts are noticed late; stamp the attempt at its deadline.
            completed = min(completed, self.session.startedAt + self.session.durationSeconds)
        self.result = ExamResult(
            id=str(uuid.uuid4()),
            userId=self.session.userId,
            userName=self.session.userName,
            testId=self.test.id,
            testName=self.test.name,
            score=score,
            maxScore=max_score,
            completedAt=datetime.fromtimestamp(completed, timezone.utc).isoformat(),
            status=status,
            userAnswers=dict(self.session.answers),
            sectionBreakdown=breakdown,
        )
        self.session.phase = "finished"
        self.session.activeSectionIndex = None
        self.session.resultId = self.result.id
        return self.result
