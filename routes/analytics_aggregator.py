# routes/analytics_aggregator.py
"""
Aggregations behind the admin analytics screen and the test leaderboard.

Everything here is a pure function over already loaded results, tests and
questions, so a refresh is just another call with fresh lists.
"""
from collections import defaultdict
from typing import Dict, Iterable, List, Literal, Mapping, Optional, Sequence, Set
import time

from pydantic import BaseModel

from models.mock_test import MockTest
from models.question import OPTION_COUNT, Question
from models.result import ExamResult
from .scoring import safe_pct
from .timestamps import get_ms, start_of_utc_day

DAY_MS = 24 * 60 * 60 * 1000
RANGE_DAYS = {"7d": 7, "30d": 30, "90d": 90, "all": None}

PASS_PCT = 50
EXCELLENT_PCT = 70
MIN_QUESTION_ATTEMPTS = 3
QUESTION_LIST_SIZE = 8
TOP_STUDENTS_SIZE = 10
LEADERBOARD_SIZE = 10


class AnalyticsFilters(BaseModel):
    range: Literal["7d", "30d", "90d", "all"] = "30d"
    status: str = "all"
    testId: str = "all"
    userId: str = "all"
    subject: str = "all"


def result_pct(result: ExamResult) -> float:
    return safe_pct(result.score, result.maxScore or 1)


def subject_of(question: Optional[Question]) -> str:
    if question is None:
        return "General"
    return (question.subject or "").strip() or "General"


def topic_of(question: Question) -> str:
    return (question.topic or "").strip() or "General"


def index_by_id(items: Iterable) -> Dict[str, object]:
    return {item.id: item for item in items}


def subjects_by_test(tests: Sequence[MockTest], questions_by_id: Mapping[str, Question]) -> Dict[str, Set[str]]:
    mapping = {}
    for test in tests:
        mapping[test.id] = {subject_of(questions_by_id.get(qid)) for qid in test.question_ids()}
    return mapping


def filter_results(
    results: Sequence[ExamResult],
    filters: AnalyticsFilters,
    test_subjects: Mapping[str, Set[str]],
    now_ms: Optional[float] = None,
) -> List[ExamResult]:
    now_ms = time.time() * 1000 if now_ms is None else now_ms
    days = RANGE_DAYS[filters.range]
    min_ms = now_ms - days * DAY_MS if days else None

    selected = []
    for result in results:
        completed_ms = get_ms(result.completedAt)
        if completed_ms is None:
            continue
        if min_ms is not None and completed_ms < min_ms:
            continue
        if filters.status != "all" and result.status != filters.status:
            continue
        if filters.testId != "all" and result.testId != filters.testId:
            continue
        if filters.userId != "all" and result.userId != filters.userId:
            continue
        if filters.subject != "all" and filters.subject not in test_subjects.get(result.testId, set()):
            continue
        selected.append(result)
    return selected


def compute_kpis(results: Sequence[ExamResult]) -> Dict[str, float]:
    attempts = len(results)
    pcts = [result_pct(r) for r in results]
    return {
        "attempts": attempts,
        "uniqueCandidates": len({r.userId for r in results}),
        "avgScorePct": sum(pcts) / attempts if attempts else 0,
        "passRate": safe_pct(sum(1 for p in pcts if p >= PASS_PCT), attempts),
        "excellentRate": safe_pct(sum(1 for p in pcts if p >= EXCELLENT_PCT), attempts),
        "autoSubmitRate": safe_pct(sum(1 for r in results if r.status == "auto-submitted"), attempts),
        "abandonmentRate": safe_pct(sum(1 for r in results if r.status == "abandoned"), attempts),
    }


def trend_rows(results: Sequence[ExamResult]) -> List[Dict]:
    grouped = defaultdict(lambda: {"attempts": 0, "pass": 0, "totalPct": 0.0})
    for result in results:
        bucket = grouped[start_of_utc_day(result.completedAt)]
        pct = result_pct(result)
        bucket["attempts"] += 1
        bucket["totalPct"] += pct
        if pct >= PASS_PCT:
            bucket["pass"] += 1

    return [
        {
            "date": day,
            "attempts": item["attempts"],
            "avgScore": item["totalPct"] / item["attempts"] if item["attempts"] else 0,
            "passRate": safe_pct(item["pass"], item["attempts"]),
        }
        for day, item in sorted(grouped.items())
    ]


def per_test_rows(results: Sequence[ExamResult], tests_by_id: Mapping[str, MockTest]) -> List[Dict]:
    grouped = defaultdict(list)
    for result in results:
        grouped[result.testId].append(result)

    rows = []
    for test_id, items in grouped.items():
        attempts_by_user = defaultdict(int)
        for item in items:
            attempts_by_user[item.userId] += 1
        unique_users = len(attempts_by_user)
        retake_users = sum(1 for count in attempts_by_user.values() if count > 1)
        last = max(items, key=lambda item: get_ms(item.completedAt) or 0)
        test = tests_by_id.get(test_id)

        rows.append({
            "testId": test_id,
            "testName": (test.name if test else None) or items[0].testName or "Unknown test",
            "attempts": len(items),
            "uniqueUsers": unique_users,
            "avgScore": sum(result_pct(i) for i in items) / len(items),
            "passRate": safe_pct(sum(1 for i in items if result_pct(i) >= PASS_PCT), len(items)),
            "retakeRate": safe_pct(retake_users, unique_users or 1),
            "lastActivity": last.completedAt,
        })
    rows.sort(key=lambda row: row["attempts"], reverse=True)
    return rows


def section_rows(results: Sequence[ExamResult]) -> List[Dict]:
    grouped = defaultdict(lambda: {"totalPct": 0.0, "count": 0})
    for result in results:
        for section in result.sectionBreakdown:
            bucket = grouped[section.sectionName or "Untitled Section"]
            bucket["totalPct"] += safe_pct(section.score, section.total or 1)
            bucket["count"] += 1
    rows = [
        {"name": name, "attempts": v["count"], "avgPct": v["totalPct"] / v["count"] if v["count"] else 0}
        for name, v in grouped.items()
    ]
    rows.sort(key=lambda row: row["avgPct"])
    return rows


def question_rows(
    results: Sequence[ExamResult],
    tests_by_id: Mapping[str, MockTest],
    questions_by_id: Mapping[str, Question],
    subject: str = "all",
) -> List[Dict]:
    grouped = {}
    for result in results:
        test = tests_by_id.get(result.testId)
        if test is None:
            continue
        for qid in test.question_ids():
            question = questions_by_id.get(qid)
            if question is None:
                continue
            if subject != "all" and subject_of(question) != subject:
                continue

            row = grouped.get(qid)
            if row is None:
                row = grouped[qid] = {
                    "id": qid,
                    "prompt": question.text,
                    "subject": subject_of(question),
                    "attempts": 0,
                    "correct": 0,
                    "unattempted": 0,
                    "optionCounts": [0] * OPTION_COUNT,
                }

            selected = result.userAnswers.get(qid)
            row["attempts"] += 1
            if selected is None:
                row["unattempted"] += 1
                continue
            if 0 <= selected < OPTION_COUNT:
                row["optionCounts"][selected] += 1
            if selected == question.correctAnswerIndex:
                row["correct"] += 1

    return [
        {
            "id": row["id"],
            "prompt": row["prompt"],
            "subject": row["subject"],
            "attempts": row["attempts"],
            "correctRate": safe_pct(row["correct"], row["attempts"]),
            "unattemptedRate": safe_pct(row["unattempted"], row["attempts"]),
            "optionCounts": row["optionCounts"],
        }
        for row in grouped.values()
    ]


def hardest_questions(rows: Sequence[Dict], size: int = QUESTION_LIST_SIZE) -> List[Dict]:
    eligible = [row for row in rows if row["attempts"] >= MIN_QUESTION_ATTEMPTS]
    return sorted(eligible, key=lambda row: row["correctRate"])[:size]


def most_skipped_questions(rows: Sequence[Dict], size: int = QUESTION_LIST_SIZE) -> List[Dict]:
    eligible = [row for row in rows if row["attempts"] >= MIN_QUESTION_ATTEMPTS]
    return sorted(eligible, key=lambda row: row["unattemptedRate"], reverse=True)[:size]


def top_students(results: Sequence[ExamResult], size: int = TOP_STUDENTS_SIZE) -> List[Dict]:
    by_user = defaultdict(list)
    for result in results:
        by_user[result.userId].append(result)

    rows = []
    for user_id, items in by_user.items():
        ordered = sorted(items, key=lambda item: get_ms(item.completedAt) or 0)
        first, last = result_pct(ordered[0]), result_pct(ordered[-1])
        rows.append({
            "userId": user_id,
            "name": ordered[0].userName,
            "attempts": len(ordered),
            "best": max(result_pct(item) for item in ordered),
            "first": first,
            "delta": last - first,
        })
    rows.sort(key=lambda row: row["best"], reverse=True)
    return rows[:size]


def _top_counts(counts: Mapping[str, int], size: int = 6) -> List[Dict]:
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [{"name": name, "count": count} for name, count in ranked[:size]]


def operational_stats(
    results: Sequence[ExamResult],
    tests: Sequence[MockTest],
    questions: Sequence[Question],
    now_ms: Optional[float] = None,
) -> Dict:
    now_ms = time.time() * 1000 if now_ms is None else now_ms
    by_subject = defaultdict(int)
    by_topic = defaultdict(int)
    recent = 0
    for question in questions:
        by_subject[subject_of(question)] += 1
        by_topic[topic_of(question)] += 1
        created = get_ms(question.createdAt)
        if created is not None and created >= now_ms - 30 * DAY_MS:
            recent += 1

    return {
        "activeTests": sum(1 for t in tests if not t.isPaused),
        "pausedTests": sum(1 for t in tests if t.isPaused),
        "approvedTests": sum(1 for t in tests if t.isApproved),
        "topSubjects": _top_counts(by_subject),
        "topTopics": _top_counts(by_topic),
        "recalculated": sum(1 for r in results if r.scoreRecalculatedAt),
        "questionsLast30d": recent,
    }


def user_options(results: Sequence[ExamResult]) -> List[Dict]:
    names = {}
    for result in results:
        names.setdefault(result.userId, result.userName or "Unknown")
    options = [{"id": uid, "name": name} for uid, name in names.items()]
    options.sort(key=lambda option: option["name"].lower())
    return options


def subject_options(questions: Sequence[Question]) -> List[str]:
    return sorted({subject_of(q) for q in questions}, key=str.lower)


def build_report(
    results: Sequence[ExamResult],
    tests: Sequence[MockTest],
    questions: Sequence[Question],
    filters: AnalyticsFilters,
    now_ms: Optional[float] = None,
) -> Dict:
    questions_by_id = index_by_id(questions)
    tests_by_id = index_by_id(tests)
    filtered = filter_results(results, filters, subjects_by_test(tests, questions_by_id), now_ms)
    q_rows = question_rows(filtered, tests_by_id, questions_by_id, filters.subject)

    return {
        "filters": filters.model_dump(),
        "kpis": compute_kpis(filtered),
        "trend": trend_rows(filtered),
        "tests": per_test_rows(filtered, tests_by_id),
        "sections": section_rows(filtered)[:10],
        "questions": q_rows,
        "hardestQuestions": hardest_questions(q_rows),
        "mostSkippedQuestions": most_skipped_questions(q_rows),
        "topStudents": top_students(filtered),
        "operational": operational_stats(results, tests, questions, now_ms),
        "userOptions": user_options(results),
        "subjectOptions": subject_options(questions),
    }


def leaderboard(results: Sequence[ExamResult], test_id: str, size: int = LEADERBOARD_SIZE) -> List[Dict]:
    """Rank each candidate's first attempt at ``test_id`` by raw score."""
    # Unreadable completion times never count as a first attempt.
    attempts = [r for r in results if r.testId == test_id and get_ms(r.completedAt) is not None]
    attempts.sort(key=lambda r: get_ms(r.completedAt))

    first_attempts = {}
    for result in attempts:
        first_attempts.setdefault(result.userId, result)

    ranked = sorted(first_attempts.values(), key=lambda r: r.score, reverse=True)
    return [
        {
            "rank": position,
            "userId": r.userId,
            "userName": r.userName,
            "score": r.score,
            "maxScore": r.maxScore,
            "completedAt": r.completedAt,
        }
        for position, r in enumerate(ranked[:size], start=1)
    ]
