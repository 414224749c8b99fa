"""Single entry point for route handlers and other event producers."""

import structlog

from interview_progress.config import Settings, get_settings
from interview_progress.models.activity import (
    Activity,
    ActivityType,
    Goal,
    GoalStatus,
    QuizQuestion,
)
from interview_progress.models.assessment import EqAssessment, TechnicalAssessment
from interview_progress.models.report import ProgressReport, new_user_report
from interview_progress.services.activity_tracking import ActivityTrackingService
from interview_progress.services.assessment_tracking import AssessmentTrackingAdapter
from interview_progress.services.best_effort import BestEffortSteps
from interview_progress.services.interview_tracking import InterviewTrackingAdapter
from interview_progress.storage.activity_store import (
    ActivityStore,
    InMemoryActivityStore,
    JsonActivityStore,
)

logger = structlog.get_logger()


class TrackingIntegrationService:
    """Facade over activity tracking and its assessment/interview adapters."""

    def __init__(
        self,
        activity_service: ActivityTrackingService,
        assessments: AssessmentTrackingAdapter | None = None,
        interviews: InterviewTrackingAdapter | None = None,
    ):
        self.activity = activity_service
        self.assessments = assessments or AssessmentTrackingAdapter(
            activity_service, activity_service.directory, activity_service.settings
        )
        self.interviews = interviews or InterviewTrackingAdapter(activity_service)

    async def track_interview_completion(self, user_id: str, interview_id: str) -> None:
        """Raises InterviewNotFoundOrIncompleteError for unknown or unfinished interviews."""
        await self.interviews.track_interview_completion(user_id, interview_id)

    async def track_quiz_completion(
        self,
        user_id: str,
        questions: list[QuizQuestion],
        correct_answers: int,
        time_spent: float,
    ) -> None:
        score = correct_answers / len(questions) * 100 if questions else 0.0
        topics = list(dict.fromkeys(topic for q in questions for topic in q.topics))
        activity = Activity(
            type=ActivityType.QUIZ,
            score=score,
            duration=time_spent,
            timestamp=self.activity.clock(),
        )

        steps = BestEffortSteps("track_quiz_completion", user_id=user_id)
        steps.add("add_activity", lambda: self.activity.add_activity(user_id, activity))
        for topic in topics:
            steps.add(
                f"update_skill:{topic}",
                lambda topic=topic: self.activity.update_skill(user_id, topic, score),
            )
        steps.add("update_learning_stats", lambda: self.activity.update_learning_stats(user_id))
        await steps.run()

    async def track_practice_session(
        self,
        user_id: str,
        topic: str,
        duration: float,
        score: float | None = None,
    ) -> None:
        try:
            await self.activity.track_practice_session(user_id, topic, duration, score)
        except Exception:
            logger.exception("practice_tracking_failed", user_id=user_id, topic=topic)

    async def track_learning_access(self, user_id: str) -> None:
        try:
            await self.activity.add_activity(
                user_id, Activity(type=ActivityType.LEARNING, timestamp=self.activity.clock())
            )
        except Exception:
            logger.exception("learning_tracking_failed", user_id=user_id)

    async def track_assessment_completion(
        self,
        user_id: str,
        assessment: TechnicalAssessment | EqAssessment,
        external_id: str | None = None,
    ) -> None:
        try:
            await self.assessments.track_assessment_completion(user_id, assessment, external_id)
        except Exception:
            logger.exception("assessment_tracking_failed", user_id=user_id, assessment_id=assessment.id)

    async def add_goal(self, user_id: str, goal: Goal) -> Goal | None:
        return await self.activity.add_goal(user_id, goal)

    async def track_goal_progress(self, user_id: str, goal_id: str, status: GoalStatus) -> Goal | None:
        return await self.activity.track_goal_progress(user_id, goal_id, status)

    async def get_progress_overview(self, user_id: str) -> ProgressReport:
        """Always a complete report, even if report assembly itself fails."""
        try:
            return await self.activity.get_progress_report(user_id)
        except Exception:
            logger.exception("progress_overview_failed", user_id=user_id)
            return new_user_report()


def create_activity_store(settings: Settings) -> ActivityStore:
    if settings.store_backend == "memory":
        return InMemoryActivityStore()
    return JsonActivityStore(settings.activity_dir)


def build_tracking_service(
    directory,
    settings: Settings | None = None,
    store: ActivityStore | None = None,
) -> TrackingIntegrationService:
    settings = settings or get_settings()
    activity_service = ActivityTrackingService(
        store or create_activity_store(settings), directory, settings
    )
    return TrackingIntegrationService(activity_service)
