import pytest

from conftest import mock_test_doc, question_doc

from models.mock_test import MockTest
from models.question import Question
from models.result import ExamResult
from routes.analytics_aggregator import (
    AnalyticsFilters,
    build_report,
    compute_kpis,
    filter_results,
    hardest_questions,
    leaderboard,
    most_skipped_questions,
    per_test_rows,
    question_rows,
    subjects_by_test,
    top_students,
    trend_rows,
)
from routes.timestamps import get_ms

NOW = "2024-05-31T12:00:00+00:00"


def _result(rid, score, max_score=10, user="u1", test="t1", completed="2024-05-30T09:00:00+00:00", status="completed", answers=None):
    return ExamResult(
        id=rid, userId=user, userName=user.upper(), testId=test, testName="Mock", score=score,
        maxScore=max_score, completedAt=completed, status=status, userAnswers=answers or {},
    )


@pytest.fixture
def now_ms():
    return get_ms(NOW)


def test_kpis_pass_rate_and_mean():
    results = [_result("a", 8), _result("b", 3), _result("c", 5), _result("d", 10)]
    kpis = compute_kpis(results)
    assert kpis["passRate"] == 75
    assert kpis["avgScorePct"] == pytest.approx(65)
    assert kpis["excellentRate"] == 50
    assert kpis["attempts"] == 4


def test_kpis_empty_set_is_all_zero():
    kpis = compute_kpis([])
    assert kpis == {
        "attempts": 0, "uniqueCandidates": 0, "avgScorePct": 0, "passRate": 0,
        "excellentRate": 0, "autoSubmitRate": 0, "abandonmentRate": 0,
    }


def test_zero_max_score_does_not_crash():
    assert compute_kpis([_result("z", 0, max_score=0)])["avgScorePct"] == 0


def test_filter_drops_bad_timestamps_and_old_results(now_ms):
    results = [
        _result("recent", 5),
        _result("old", 5, completed="2024-01-01T00:00:00+00:00"),
        _result("broken", 5, completed="yesterday-ish"),
    ]
    selected = filter_results(results, AnalyticsFilters(range="30d"), {}, now_ms)
    assert [r.id for r in selected] == ["recent"]

    everything = filter_results(results, AnalyticsFilters(range="all"), {}, now_ms)
    assert [r.id for r in everything] == ["recent", "old"]


def test_filter_by_subject_traces_test_questions(now_ms):
    tests = [
        MockTest.model_validate(mock_test_doc("bio", [("S", ["q1"], 1)])),
        MockTest.model_validate(mock_test_doc("phy", [("S", ["q2"], 1)])),
    ]
    questions = {
        "q1": Question.model_validate(question_doc("q1", subject="Biology")),
        "q2": Question.model_validate(question_doc("q2", subject="Physics")),
    }
    results = [_result("r1", 5, test="bio"), _result("r2", 5, test="phy")]

    selected = filter_results(results, AnalyticsFilters(subject="Physics"), subjects_by_test(tests, questions), now_ms)
    assert [r.id for r in selected] == ["r2"]


def test_trend_groups_by_utc_day():
    results = [
        _result("a", 8, completed="2024-05-01T23:30:00-02:00"),
        _result("b", 4, completed="2024-05-02T10:00:00+00:00"),
        _result("c", 6, completed="2024-05-01T08:00:00+00:00"),
    ]
    rows = trend_rows(results)
    assert [(r["date"], r["attempts"]) for r in rows] == [("2024-05-01", 1), ("2024-05-02", 2)]
    assert rows[1]["avgScore"] == pytest.approx(60)
    assert rows[1]["passRate"] == 50


def test_per_test_rollup_retake_rate():
    results = [
        _result("a", 5, user="u1", completed="2024-05-01T00:00:00Z"),
        _result("b", 7, user="u1", completed="2024-05-03T00:00:00Z"),
        _result("c", 2, user="u2", completed="2024-05-02T00:00:00Z"),
        _result("d", 9, user="u3", test="t2"),
    ]
    rows = per_test_rows(results, {})
    assert rows[0]["testId"] == "t1"
    assert rows[0]["attempts"] == 3
    assert rows[0]["uniqueUsers"] == 2
    assert rows[0]["retakeRate"] == 50
    assert rows[0]["lastActivity"] == "2024-05-03T00:00:00Z"


def test_question_rollup_and_rankings():
    test = MockTest.model_validate(mock_test_doc("t1", [("S", ["easy", "hard", "rare"], 1)]))
    questions = {
        "easy": Question.model_validate(question_doc("easy", correct=0)),
        "hard": Question.model_validate(question_doc("hard", correct=3)),
        "rare": Question.model_validate(question_doc("rare", correct=1)),
    }
    results = [
        _result("a", 1, answers={"easy": 0, "hard": 1}),
        _result("b", 1, answers={"easy": 0, "hard": 2}),
        _result("c", 1, answers={"easy": 0}),
    ]

    rows = {r["id"]: r for r in question_rows(results, {"t1": test}, questions)}

    assert rows["easy"]["correctRate"] == 100
    assert rows["hard"]["correctRate"] == 0
    assert rows["hard"]["optionCounts"] == [0, 1, 1, 0]
    assert rows["rare"]["unattemptedRate"] == 100
    assert [r["id"] for r in hardest_questions(list(rows.values()))][:2] == ["hard", "rare"]
    assert most_skipped_questions(list(rows.values()))[0]["id"] == "rare"


def test_questions_below_minimum_attempts_are_not_ranked():
    test = MockTest.model_validate(mock_test_doc("t1", [("S", ["q"], 1)]))
    questions = {"q": Question.model_validate(question_doc("q"))}
    rows = question_rows([_result("a", 0), _result("b", 0)], {"t1": test}, questions)
    assert hardest_questions(rows) == []
    assert most_skipped_questions(rows) == []


def test_top_students_tracks_improvement():
    results = [
        _result("a", 4, user="u1", completed="2024-05-01T00:00:00Z"),
        _result("b", 9, user="u1", completed="2024-05-02T00:00:00Z"),
        _result("c", 6, user="u2"),
    ]
    rows = top_students(results)
    assert rows[0]["userId"] == "u1"
    assert rows[0]["best"] == pytest.approx(90)
    assert rows[0]["delta"] == pytest.approx(50)


def test_leaderboard_uses_first_attempt_per_user():
    results = [
        _result("a", 5, user="user1", completed="2024-05-01T00:00:01Z"),
        _result("b", 9, user="user1", completed="2024-05-01T00:00:02Z"),
        _result("c", 7, user="user2", completed="2024-05-01T00:00:03Z"),
    ]
    rows = leaderboard(results, "t1")
    assert [(r["userId"], r["score"], r["rank"]) for r in rows] == [("user2", 7, 1), ("user1", 5, 2)]


def test_leaderboard_keeps_tie_order_and_caps_size():
    results = [
        _result(f"r{i}", 5, user=f"u{i}", completed=f"2024-05-01T00:00:{i:02d}Z")
        for i in range(12)
    ]
    rows = leaderboard(results, "t1")
    assert len(rows) == 10
    assert [r["userId"] for r in rows[:3]] == ["u0", "u1", "u2"]


def test_leaderboard_ignores_unreadable_completion_times():
    results = [
        _result("bad", 10, user="user1", completed="not-a-date"),
        _result("a", 4, user="user1", completed="2024-05-01T00:00:01Z"),
        _result("c", 2, user="user2", completed="2024-05-01T00:00:03Z"),
    ]
    rows = leaderboard(results, "t1")
    assert [(r["userId"], r["score"]) for r in rows] == [("user1", 4), ("user2", 2)]


def test_build_report_shape(now_ms):
    test = MockTest.model_validate(mock_test_doc("t1", [("S", ["q1"], 1)]))
    question = Question.model_validate(question_doc("q1", created_at="2024-05-20T00:00:00Z"))
    report = build_report([_result("a", 8)], [test], [question], AnalyticsFilters(), now_ms)

    assert report["kpis"]["attempts"] == 1
    assert report["operational"]["questionsLast30d"] == 1
    assert report["operational"]["approvedTests"] == 1
    assert report["subjectOptions"] == ["Biology"]
    assert report["userOptions"] == [{"id": "u1", "name": "U1"}]
    assert [(r["date"], r["attempts"]) for r in report["trend"]] == [("2024-05-30", 1)]
