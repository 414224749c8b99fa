"""Translate completed mock interviews into activities and skill updates."""

import math
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from interview_progress.models.activity import Activity, ActivityType
from interview_progress.models.entities import Interview, InterviewEvaluation
from interview_progress.services.aggregator import backfill_score
from interview_progress.services.best_effort import BestEffortSteps, StepReport

if TYPE_CHECKING:
    from interview_progress.services.activity_tracking import ActivityTrackingService

logger = structlog.get_logger()


def interview_duration_minutes(seconds: float) -> int:
    """Seconds to whole minutes, rounded up, at least 1."""
    return max(1, math.ceil((seconds or 0) / 60))


def interview_skill_updates(evaluation: InterviewEvaluation) -> list[tuple[str, float]]:
    return [
        ("Technical", evaluation.technical_score),
        ("Communication", evaluation.communication_score),
        ("Problem Solving", evaluation.problem_solving_score),
    ]


def interview_activity(interview: Interview, now: datetime) -> Activity:
    evaluation = interview.evaluation or InterviewEvaluation()
    return backfill_score(
        Activity(
            type=ActivityType.INTERVIEW,
            reference_id=interview.id,
            score=evaluation.overall_rating,
            duration=interview_duration_minutes(interview.duration),
            timestamp=now,
            skill_scores=interview.skill_assessment or None,
        )
    )


class InterviewTrackingAdapter:
    """Records a completed interview and refreshes derived bookkeeping.

    The interview write itself may raise (unknown or unfinished interview)
    and already refreshes study time and the streak; the follow-up
    recommendation refresh never raises.
    """

    def __init__(self, activity_service: "ActivityTrackingService"):
        self.activity = activity_service

    async def track_interview_completion(self, user_id: str, interview_id: str) -> StepReport | None:
        activity = await self.activity.track_interview_activity(user_id, interview_id)
        if activity is None:
            return None

        steps = BestEffortSteps(
            "track_interview_completion", user_id=user_id, interview_id=interview_id
        )
        steps.add("generate_recommendations", lambda: self.activity.generate_recommendations(user_id))
        return await steps.run()
