# routes/views.py
"""
Top-level navigation as an explicit state union.

A client holds one ViewState and moves between views only through
``dispatch(state, event, role)``. Events that make no sense for the current
state or role leave the state unchanged.
"""
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from models.user import ADMIN_ROLES


class AuthView(BaseModel):
    kind: Literal["auth"] = "auth"


class DashboardView(BaseModel):
    kind: Literal["dashboard"] = "dashboard"


class AdminView(BaseModel):
    kind: Literal["admin"] = "admin"
    tab: Literal["questions", "tests", "import", "analytics"] = "questions"


class RootAdminView(BaseModel):
    kind: Literal["root-admin"] = "root-admin"


class ExamView(BaseModel):
    kind: Literal["exam"] = "exam"
    testId: str


class ResultsView(BaseModel):
    kind: Literal["results"] = "results"
    resultId: str


class ReviewView(BaseModel):
    kind: Literal["review"] = "review"
    resultId: str


ViewState = Annotated[
    Union[AuthView, DashboardView, AdminView, RootAdminView, ExamView, ResultsView, ReviewView],
    Field(discriminator="kind"),
]


class SignedIn(BaseModel):
    type: Literal["signed-in"] = "signed-in"


class SignedOut(BaseModel):
    type: Literal["signed-out"] = "signed-out"


class StartTest(BaseModel):
    type: Literal["start-test"] = "start-test"
    testId: str


class ExamFinished(BaseModel):
    type: Literal["exam-finished"] = "exam-finished"
    resultId: str


class ExitExam(BaseModel):
    type: Literal["exit-exam"] = "exit-exam"


class ReviewResult(BaseModel):
    type: Literal["review-result"] = "review-result"
    resultId: str


class BackToDashboard(BaseModel):
    type: Literal["back-to-dashboard"] = "back-to-dashboard"


class OpenAdmin(BaseModel):
    type: Literal["open-admin"] = "open-admin"
    tab: Optional[str] = None


ViewEvent = Annotated[
    Union[SignedIn, SignedOut, StartTest, ExamFinished, ExitExam, ReviewResult, BackToDashboard, OpenAdmin],
    Field(discriminator="type"),
]


def landing_view(role: Optional[str]):
    if role == "root-admin":
        return RootAdminView()
    if role == "admin":
        return AdminView()
    if role == "student":
        return DashboardView()
    return AuthView()


def dispatch(state, event, role: Optional[str]):
    if isinstance(event, SignedOut) or role is None:
        return AuthView()
    if isinstance(event, SignedIn):
        return landing_view(role)

    if isinstance(state, AuthView):
        return state

    if isinstance(event, StartTest) and isinstance(state, DashboardView):
        return ExamView(testId=event.testId)
    if isinstance(event, ExamFinished) and isinstance(state, ExamView):
        return ResultsView(resultId=event.resultId)
    if isinstance(event, ExitExam) and isinstance(state, ExamView):
        return DashboardView()
    if isinstance(event, ReviewResult) and isinstance(state, (DashboardView, ResultsView)):
        return ReviewView(resultId=event.resultId)
    if isinstance(event, BackToDashboard) and not isinstance(state, ExamView):
        return DashboardView()
    if isinstance(event, OpenAdmin) and role in ADMIN_ROLES and not isinstance(state, ExamView):
        if event.tab is None and role == "root-admin":
            return RootAdminView()
        return AdminView(tab=event.tab or "questions")
    return state
