"""Core orchestrator for the per-user activity record.

Every write is a read-modify-write of the whole document. With
``optimistic_concurrency`` off, concurrent writers for the same user race
and the last one wins; with it on, writes carry the version they read and
are retried on conflict.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any, NamedTuple, Protocol

import structlog

from interview_progress.config import Settings, get_settings
from interview_progress.errors import (
    GoalNotFoundError,
    InterviewNotFoundOrIncompleteError,
    InvalidGoalTransitionError,
    VersionConflictError,
)
from interview_progress.models.activity import (
    Activity,
    ActivityType,
    Goal,
    GoalStatus,
    LearningStats,
    Skill,
    UserActivityRecord,
    utcnow,
)
from interview_progress.models.entities import (
    Interview,
    InterviewEvaluation,
    InterviewStatus,
    User,
)
from interview_progress.models.report import (
    ONBOARDING_RECOMMENDATIONS,
    Milestone,
    ProgressReport,
    ReportStats,
    SkillProgress,
    SkillProgressPoint,
    UserSummary,
    new_user_report,
)
from interview_progress.services.aggregator import (
    backfill_score,
    derive_insights,
    refresh_learning_stats,
    resolve_timezone,
    upsert_skill,
)
from interview_progress.services.interview_tracking import (
    interview_activity,
    interview_skill_updates,
)
from interview_progress.storage.activity_store import ActivityStore

logger = structlog.get_logger()


class EntityDirectory(Protocol):
    async def get_user(self, user_id: str) -> User | None: ...

    async def get_interview(self, interview_id: str) -> Interview | None: ...


class Mutation(NamedTuple):
    record: UserActivityRecord
    result: Any


class ActivityTrackingService:
    """Maintains activities, skills, goals and learning stats per user.

    Args:
        store: Document store holding one ``UserActivityRecord`` per user.
        directory: Lookup for canonical users and interviews.
        settings: Tracking thresholds and concurrency options.
        clock: Source of "now"; injectable for tests.
    """

    def __init__(
        self,
        store: ActivityStore,
        directory: EntityDirectory,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.directory = directory
        self.settings = settings or get_settings()
        self.clock = clock
        self.tz = resolve_timezone(self.settings.calendar_timezone)

    async def initialize_user_activity(self, user_id: str) -> UserActivityRecord | None:
        """Create the user's record if absent.

        Returns None (without raising) when the user does not exist in the
        canonical store; returns the existing record unchanged otherwise.
        """
        user = await self.directory.get_user(user_id)
        if user is None:
            logger.warning("activity_init_unknown_user", user_id=user_id)
            return None

        existing = await self.store.find_one(user_id)
        if existing is not None:
            return existing

        record = UserActivityRecord(
            user_id=user_id,
            learning_stats=LearningStats(last_study_date=self.clock()),
        )
        created = await self.store.create(record)
        logger.info("activity_record_initialized", user_id=user_id)
        return created

    async def get_user_activity(self, user_id: str) -> UserActivityRecord | None:
        return await self.store.find_one(user_id)

    async def _mutate(
        self,
        user_id: str,
        operation: str,
        apply: Callable[[UserActivityRecord], Any],
    ) -> Mutation | None:
        """Read, apply ``apply`` and write back the user's record.

        Returns None when the record is absent and cannot be initialized.
        """
        optimistic = self.settings.optimistic_concurrency
        attempts = self.settings.max_write_retries + 1 if optimistic else 1
        attempt = 0
        while True:
            attempt += 1
            record = await self.store.find_one(user_id)
            if record is None:
                record = await self.initialize_user_activity(user_id)
                if record is None:
                    return None

            result = apply(record)
            expected = record.version if optimistic else None
            try:
                saved = await self.store.update(record, expected_version=expected)
            except VersionConflictError:
                if attempt >= attempts:
                    raise
                logger.warning(
                    "activity_write_conflict",
                    user_id=user_id,
                    operation=operation,
                    attempt=attempt,
                )
                continue
            return Mutation(saved, result)

    def _refreshed_stats(self, record: UserActivityRecord, now: datetime) -> LearningStats:
        return refresh_learning_stats(
            record.learning_stats,
            record.activities,
            now,
            tz=self.tz,
            weekly_days=self.settings.weekly_window_days,
            monthly_days=self.settings.monthly_window_days,
        )

    async def add_activity(self, user_id: str, activity: Activity) -> Activity | None:
        """Append one activity, creating the record first if needed."""
        activity = backfill_score(activity)
        outcome = await self._mutate(
            user_id, "add_activity", lambda record: record.activities.append(activity)
        )
        if outcome is None:
            logger.warning("activity_dropped_unknown_user", user_id=user_id, type=activity.type.value)
            return None
        logger.info(
            "activity_added",
            user_id=user_id,
            type=activity.type.value,
            score=activity.score,
            duration=activity.duration,
        )
        return activity

    async def update_skill(
        self,
        user_id: str,
        name: str,
        score: float,
        category: str | None = None,
        last_assessed: datetime | None = None,
    ) -> Skill | None:
        """Upsert a skill by name, recomputing its level from the score."""
        assessed_at = last_assessed or self.clock()
        outcome = await self._mutate(
            user_id,
            "update_skill",
            lambda record: upsert_skill(record.skills, name, score, assessed_at, category).model_copy(),
        )
        if outcome is None:
            logger.warning("skill_update_unknown_user", user_id=user_id, skill=name)
            return None
        skill: Skill = outcome.result
        logger.info("skill_updated", user_id=user_id, skill=name, score=skill.score, level=skill.level.value)
        return skill

    async def update_learning_stats(self, user_id: str) -> LearningStats | None:
        """Advance the streak and refresh the rolling study-time windows."""
        now = self.clock()

        def apply(record: UserActivityRecord) -> LearningStats:
            record.learning_stats = self._refreshed_stats(record, now)
            return record.learning_stats

        outcome = await self._mutate(user_id, "update_learning_stats", apply)
        if outcome is None:
            logger.warning("learning_stats_unknown_user", user_id=user_id)
            return None
        stats: LearningStats = outcome.result
        logger.debug("learning_stats_updated", user_id=user_id, streak=stats.streak)
        return stats

    def _refresh_insights(self, record: UserActivityRecord) -> list[str]:
        if not record.activities and not record.skills:
            recommendations = list(ONBOARDING_RECOMMENDATIONS)
            weaknesses: list[str] = []
            strengths: list[str] = []
        else:
            weaknesses, strengths, recommendations = derive_insights(
                record.skills,
                record.learning_stats.streak,
                weak_threshold=self.settings.weak_skill_threshold,
                strength_threshold=self.settings.strength_threshold,
                consistency_threshold=self.settings.streak_consistency_threshold,
            )
        record.weaknesses = weaknesses
        record.strengths = strengths
        record.recommendations = recommendations
        return list(recommendations)

    async def generate_recommendations(self, user_id: str) -> list[str]:
        """Recompute weaknesses, strengths and recommendations.

        Never returns an empty list: unknown users and internal errors get
        the onboarding defaults.
        """
        try:
            outcome = await self._mutate(user_id, "generate_recommendations", self._refresh_insights)
        except Exception:
            logger.exception("recommendations_failed", user_id=user_id)
            return list(ONBOARDING_RECOMMENDATIONS)
        if outcome is None:
            return list(ONBOARDING_RECOMMENDATIONS)
        return outcome.result

    async def track_interview_activity(self, user_id: str, interview_id: str) -> Activity | None:
        """Record a completed interview in a single document write.

        Appends the activity, recomputes study time and streak with it
        included, and upserts the Technical, Communication and Problem
        Solving skills.

        Raises:
            InterviewNotFoundOrIncompleteError: Unknown or unfinished interview.
        """
        interview = await self.directory.get_interview(interview_id)
        if interview is None:
            raise InterviewNotFoundOrIncompleteError(interview_id)
        if interview.status != InterviewStatus.COMPLETED:
            raise InterviewNotFoundOrIncompleteError(interview_id, interview.status.value)

        now = self.clock()
        activity = interview_activity(interview, now)
        evaluation = interview.evaluation or InterviewEvaluation()

        def apply(record: UserActivityRecord) -> None:
            record.activities.append(activity)
            record.learning_stats = self._refreshed_stats(record, now)
            for name, score in interview_skill_updates(evaluation):
                upsert_skill(record.skills, name, score, now)

        outcome = await self._mutate(user_id, "track_interview_activity", apply)
        if outcome is None:
            logger.warning("interview_tracking_unknown_user", user_id=user_id, interview_id=interview_id)
            return None
        logger.info(
            "interview_activity_tracked",
            user_id=user_id,
            interview_id=interview_id,
            score=activity.score,
            duration=activity.duration,
            streak=outcome.record.learning_stats.streak,
        )
        return activity

    async def track_practice_session(
        self,
        user_id: str,
        topic: str,
        duration: float,
        score: float | None = None,
    ) -> None:
        now = self.clock()
        await self.add_activity(
            user_id,
            Activity(type=ActivityType.PRACTICE, score=score, duration=duration, timestamp=now),
        )
        if score is not None:
            await self.update_skill(user_id, topic, score, last_assessed=now)
        await self.update_learning_stats(user_id)

    async def add_goal(self, user_id: str, goal: Goal) -> Goal | None:
        """Insert a goal, or replace the goal with the same id."""

        def apply(record: UserActivityRecord) -> Goal:
            record.goals = [g for g in record.goals if g.id != goal.id]
            record.goals.append(goal)
            return goal

        outcome = await self._mutate(user_id, "add_goal", apply)
        if outcome is None:
            return None
        logger.info("goal_added", user_id=user_id, goal_id=goal.id, status=goal.status.value)
        return goal

    async def update_goal_status(self, user_id: str, goal_id: str, status: GoalStatus) -> Goal | None:
        """Set a goal's status. Returns None if the goal is unknown.

        Backward moves (e.g. completed to not_started) are allowed and
        logged unless ``enforce_forward_goal_transitions`` is set.

        Raises:
            InvalidGoalTransitionError: Backward move with enforcement on.
        """
        now = self.clock()

        def apply(record: UserActivityRecord) -> Goal:
            goal = record.find_goal(goal_id)
            if goal is None:
                raise GoalNotFoundError(user_id, goal_id)
            if status.rank < goal.status.rank:
                if self.settings.enforce_forward_goal_transitions:
                    raise InvalidGoalTransitionError(goal_id, goal.status.value, status.value)
                logger.warning(
                    "goal_status_moved_backwards",
                    user_id=user_id,
                    goal_id=goal_id,
                    previous=goal.status.value,
                    status=status.value,
                )
            goal.status = status
            goal.completed_date = now if status == GoalStatus.COMPLETED else None
            return goal.model_copy()

        try:
            outcome = await self._mutate(user_id, "update_goal_status", apply)
        except GoalNotFoundError:
            logger.warning("goal_not_found", user_id=user_id, goal_id=goal_id)
            return None
        if outcome is None:
            return None
        return outcome.result

    async def track_goal_progress(self, user_id: str, goal_id: str, status: GoalStatus) -> Goal | None:
        goal = await self.update_goal_status(user_id, goal_id, status)
        if goal is None:
            return None

        if status == GoalStatus.COMPLETED:
            await self.add_activity(
                user_id,
                Activity(type=ActivityType.GOAL_COMPLETED, reference_id=goal_id, timestamp=self.clock()),
            )
            await self.generate_recommendations(user_id)
        elif status == GoalStatus.IN_PROGRESS:
            await self.add_activity(
                user_id,
                Activity(type=ActivityType.GOAL_STARTED, reference_id=goal_id, timestamp=self.clock()),
            )

        await self.update_learning_stats(user_id)
        return goal

    async def get_progress_report(self, user_id: str) -> ProgressReport:
        """Assemble the dashboard report. Never raises."""
        try:
            return await self._build_progress_report(user_id)
        except Exception:
            logger.exception("progress_report_failed", user_id=user_id)
            return new_user_report(self.clock())

    async def _build_progress_report(self, user_id: str) -> ProgressReport:
        user = await self.directory.get_user(user_id)
        summary = UserSummary(id=user.id, name=user.name, email=user.email) if user else None

        record = await self.store.find_one(user_id)
        if record is None:
            await self.initialize_user_activity(user_id)
            return new_user_report(self.clock(), user=summary)
        if not record.activities and not record.skills and not record.goals:
            return new_user_report(self.clock(), user=summary)

        activities = record.activities
        total_interviews = sum(1 for a in activities if a.type == ActivityType.INTERVIEW)
        average_score = (
            sum(a.score or 0 for a in activities) / len(activities) if activities else 0
        )
        recent = sorted(activities, key=lambda a: a.timestamp, reverse=True)
        stats = record.learning_stats

        skill_progress = [
            SkillProgress(
                name=skill.name,
                level=skill.level.value,
                score=skill.score,
                progress=[
                    SkillProgressPoint(date=snapshot.date, score=snapshot.skill_scores[skill.name])
                    for snapshot in record.progress_history
                    if skill.name in snapshot.skill_scores
                ],
            )
            for skill in record.skills
        ]
        open_goals = sorted(
            (g for g in record.goals if g.status != GoalStatus.COMPLETED and g.target_date),
            key=lambda g: g.target_date,
        )

        return ProgressReport(
            user=summary,
            stats=ReportStats(
                total_interviews=total_interviews,
                average_score=round(average_score, 1),
                study_streak=stats.streak,
                total_study_time=stats.total_study_time,
                weekly_study_time=stats.weekly_study_time,
                monthly_study_time=stats.monthly_study_time,
            ),
            recent_activities=recent[: self.settings.recent_activity_limit],
            skill_progress=skill_progress,
            goals=record.goals,
            strengths=record.strengths,
            weaknesses=record.weaknesses,
            recommendations=record.recommendations or list(ONBOARDING_RECOMMENDATIONS),
            current_focus=list(record.weaknesses),
            next_milestones=[Milestone(goal=g.title, target_date=g.target_date) for g in open_goals],
        )
