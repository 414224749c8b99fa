"""Translate completed tests and EQ evaluations into activities and skills."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

import structlog

from interview_progress.config import Settings, get_settings
from interview_progress.models.activity import Activity
from interview_progress.models.assessment import EqAssessment, TechnicalAssessment
from interview_progress.models.entities import Position, User
from interview_progress.services.activity_tracking import ActivityTrackingService
from interview_progress.services.aggregator import is_number
from interview_progress.services.best_effort import BestEffortSteps, StepReport

logger = structlog.get_logger()

T = TypeVar("T")

# Keys in a test's score map that summarize the whole test rather than a skill.
AGGREGATE_SCORE_FIELDS = frozenset({"finalScore", "totalCorrect", "totalQuestions", "timeSpent"})

EQ_DIMENSIONS = ("emotionalAwareness", "conflictResolution", "communication", "overall")

DEFAULT_TEST_SKILL = "Technical Test"
DEFAULT_EQ_SKILL = "Emotional Intelligence"


def extract_score(assessment: TechnicalAssessment | EqAssessment) -> float:
    """Overall 0-100 score of an assessment; 0 when it cannot be determined.

    Tests report ``finalScore`` directly. EQ evaluations are the mean of
    every numeric dimension in ``final_scores``.
    """
    if isinstance(assessment, TechnicalAssessment):
        value = (assessment.real_time_scores or {}).get("finalScore")
        return float(value) if is_number(value) else 0.0
    if isinstance(assessment, EqAssessment):
        values = [float(v) for v in (assessment.final_scores or {}).values() if is_number(v)]
        return sum(values) / len(values) if values else 0.0
    return 0.0


def extract_skill_scores(assessment: TechnicalAssessment | EqAssessment) -> dict[str, float] | None:
    """Per-skill scores, or None when the assessment carries none.

    For tests, aggregate fields are dropped; a test with only a
    ``finalScore`` yields ``{"overall": finalScore}``. EQ evaluations
    always report the four fixed dimensions (missing ones as 0).
    """
    if isinstance(assessment, TechnicalAssessment):
        scores = assessment.real_time_scores
        if not scores:
            return None
        skill_scores = {
            key: float(value)
            for key, value in scores.items()
            if key not in AGGREGATE_SCORE_FIELDS and is_number(value)
        }
        if not skill_scores and is_number(scores.get("finalScore")):
            skill_scores["overall"] = float(scores["finalScore"])
        return skill_scores or None
    if isinstance(assessment, EqAssessment):
        scores = assessment.final_scores
        if not scores:
            return None
        return {
            dimension: float(scores[dimension]) if is_number(scores.get(dimension)) else 0.0
            for dimension in EQ_DIMENSIONS
        }
    return None


class AssessmentTrackingAdapter:
    """Records completed assessments without ever failing the caller.

    Args:
        activity_service: Core tracking service to write through.
        directory: Lookup for users (by id or external id) and positions.
        settings: Supplies the existence-check timeout.
    """

    def __init__(
        self,
        activity_service: ActivityTrackingService,
        directory,
        settings: Settings | None = None,
    ):
        self.activity = activity_service
        self.directory = directory
        self.settings = settings or get_settings()

    async def _bounded(self, awaitable: Awaitable[T], check: str, **context) -> T | None:
        """Await a lookup, treating timeout or error as "not found"."""
        try:
            return await asyncio.wait_for(
                awaitable, timeout=self.settings.existence_check_timeout_seconds
            )
        except TimeoutError:
            logger.warning("existence_check_timed_out", check=check, **context)
        except Exception:
            logger.exception("existence_check_failed", check=check, **context)
        return None

    async def resolve_user(self, user_id: str, external_id: str | None = None) -> str | None:
        """Canonical user id, trying the external auth id as a fallback."""
        user: User | None = await self._bounded(
            self.directory.get_user(user_id), "user", user_id=user_id
        )
        if user is not None:
            return user.id

        logger.warning("assessment_user_not_found", user_id=user_id, external_id=external_id)
        if external_id:
            user = await self._bounded(
                self.directory.get_user_by_external_id(external_id),
                "user_by_external_id",
                external_id=external_id,
            )
            if user is not None:
                logger.info("assessment_user_resolved_by_external_id", user_id=user.id, external_id=external_id)
                return user.id
        return None

    async def _skill_target(self, assessment: TechnicalAssessment | EqAssessment) -> tuple[str, str | None]:
        if isinstance(assessment, EqAssessment):
            return assessment.selected_category or DEFAULT_EQ_SKILL, None

        name, category = DEFAULT_TEST_SKILL, None
        if assessment.position_id:
            position: Position | None = await self.directory.get_position(assessment.position_id)
            if position is not None:
                name, category = position.position_name, position.level
        topic = (assessment.real_time_scores or {}).get("topic")
        if isinstance(topic, str) and topic:
            name = f"{name}: {topic}"
        return name, category

    async def update_skill_from_assessment(
        self, user_id: str, assessment: TechnicalAssessment | EqAssessment, score: float
    ) -> None:
        name, category = await self._skill_target(assessment)
        await self.activity.update_skill(user_id, name, score, category=category)

    async def track_assessment_completion(
        self,
        user_id: str,
        assessment: TechnicalAssessment | EqAssessment,
        external_id: str | None = None,
    ) -> StepReport | None:
        """Record an assessment as an activity plus a skill update.

        Returns the per-step outcome, or None when the user could not be
        resolved and nothing was persisted.
        """
        score = extract_score(assessment)
        resolved = await self.resolve_user(user_id, external_id)
        if resolved is None:
            logger.info(
                "assessment_tracked_in_memory_only",
                user_id=user_id,
                external_id=external_id,
                assessment_id=assessment.id,
                type=assessment.type,
                score=score,
            )
            return None

        record = await self._bounded(
            self.activity.get_user_activity(resolved), "activity_record", user_id=resolved
        )
        if record is None:
            try:
                record = await self.activity.initialize_user_activity(resolved)
            except Exception:
                logger.exception("activity_init_failed", user_id=resolved)
            if record is None:
                logger.warning("activity_record_unavailable", user_id=resolved)

        activity = Activity(
            type=assessment.activity_type,
            reference_id=assessment.id,
            score=score,
            duration=assessment.duration or 0,
            timestamp=self.activity.clock(),
            skill_scores=extract_skill_scores(assessment),
        )

        steps = BestEffortSteps(
            "track_assessment_completion",
            user_id=resolved,
            assessment_id=assessment.id,
            type=assessment.type,
        )
        steps.add("add_activity", lambda: self.activity.add_activity(resolved, activity))
        steps.add(
            "update_skill",
            lambda: self.update_skill_from_assessment(resolved, assessment, score),
        )
        steps.add("update_learning_stats", lambda: self.activity.update_learning_stats(resolved))
        steps.add("generate_recommendations", lambda: self.activity.generate_recommendations(resolved))
        return await steps.run()
