"""REST API routes for activity tracking and progress reports."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request

from interview_progress.errors import InterviewNotFoundOrIncompleteError, InvalidGoalTransitionError
from interview_progress.models.activity import CamelModel, Goal, GoalStatus, QuizQuestion
from interview_progress.models.assessment import Assessment
from interview_progress.services.integration import TrackingIntegrationService

logger = structlog.get_logger()
router = APIRouter(prefix="/api")


def get_tracking(request: Request) -> TrackingIntegrationService:
    return request.app.state.tracking


Tracking = Annotated[TrackingIntegrationService, Depends(get_tracking)]


class QuizSubmission(CamelModel):
    questions: list[QuizQuestion]
    correct_answers: int
    time_spent: float


class PracticeSubmission(CamelModel):
    topic: str
    duration: float
    score: float | None = None


class AssessmentSubmission(CamelModel):
    assessment: Assessment
    external_id: str | None = None


class GoalStatusUpdate(CamelModel):
    status: GoalStatus


TRACKED = {"status": "tracked"}


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/users/{user_id}/progress")
async def get_progress(user_id: str, tracking: Tracking) -> dict:
    report = await tracking.get_progress_overview(user_id)
    return report.to_document()


@router.post("/users/{user_id}/interviews/{interview_id}")
async def track_interview(user_id: str, interview_id: str, tracking: Tracking) -> dict:
    try:
        await tracking.track_interview_completion(user_id, interview_id)
    except InterviewNotFoundOrIncompleteError as e:
        raise HTTPException(status_code=404, detail=e.message)
    return TRACKED


@router.post("/users/{user_id}/quizzes")
async def track_quiz(user_id: str, body: QuizSubmission, tracking: Tracking) -> dict:
    await tracking.track_quiz_completion(user_id, body.questions, body.correct_answers, body.time_spent)
    return TRACKED


@router.post("/users/{user_id}/practice")
async def track_practice(user_id: str, body: PracticeSubmission, tracking: Tracking) -> dict:
    await tracking.track_practice_session(user_id, body.topic, body.duration, body.score)
    return TRACKED


@router.post("/users/{user_id}/assessments")
async def track_assessment(user_id: str, body: AssessmentSubmission, tracking: Tracking) -> dict:
    await tracking.track_assessment_completion(user_id, body.assessment, body.external_id)
    return TRACKED


@router.post("/users/{user_id}/learning")
async def track_learning(user_id: str, tracking: Tracking) -> dict:
    await tracking.track_learning_access(user_id)
    return TRACKED


@router.post("/users/{user_id}/goals")
async def add_goal(user_id: str, goal: Goal, tracking: Tracking) -> dict:
    saved = await tracking.add_goal(user_id, goal)
    if saved is None:
        raise HTTPException(status_code=404, detail="User not found")
    return saved.to_document()


@router.patch("/users/{user_id}/goals/{goal_id}")
async def update_goal(user_id: str, goal_id: str, body: GoalStatusUpdate, tracking: Tracking) -> dict:
    try:
        goal = await tracking.track_goal_progress(user_id, goal_id, body.status)
    except InvalidGoalTransitionError as e:
        raise HTTPException(status_code=409, detail=e.message)
    if goal is None:
        raise HTTPException(status_code=404, detail="Goal not found")
    return goal.to_document()
