"""Per-user activity record and its parts.

Field names serialize in camelCase: the stored document layout
(``activities``, ``learningStats.lastStudyDate``, ``skillScores`` ...) is
shared with other readers of the store and must not drift.
"""

import uuid
from datetime import datetime, timezone
from enum import StrEnum
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# Naive datetimes are taken to be UTC so stored timestamps stay comparable.
UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class CamelModel(BaseModel):
    """Base model reading and writing camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ActivityType(StrEnum):
    """Kinds of recorded learning events."""

    INTERVIEW = "interview"
    QUIZ = "quiz"
    PRACTICE = "practice"
    EQ = "eq"
    TEST = "test"
    GOAL_COMPLETED = "goal_completed"
    GOAL_STARTED = "goal_started"
    LEARNING = "learning"


class SkillLevel(StrEnum):
    """Qualitative skill level derived from a 0-100 score."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"

    @classmethod
    def from_score(cls, score: float) -> "SkillLevel":
        """Determine skill level from 0-100 score."""
        if score < 60:
            return cls.BEGINNER
        elif score < 75:
            return cls.INTERMEDIATE
        elif score < 90:
            return cls.ADVANCED
        else:
            return cls.EXPERT


class GoalStatus(StrEnum):
    """Goal lifecycle states."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return list(GoalStatus).index(self)


class Activity(CamelModel):
    """One recorded learning event. ``duration`` is in minutes."""

    type: ActivityType
    reference_id: str | None = None
    score: float | None = None
    duration: float = 0
    timestamp: UtcDatetime = Field(default_factory=utcnow)
    skill_scores: dict[str, float] | None = None


class Skill(CamelModel):
    """A named competency. ``level`` always follows ``score``."""

    name: str
    score: float = Field(ge=0, le=100)
    level: SkillLevel = SkillLevel.BEGINNER
    category: str | None = None
    last_assessed: UtcDatetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _level_follows_score(self) -> "Skill":
        self.level = SkillLevel.from_score(self.score)
        return self

    def rescore(self, score: float, assessed_at: datetime, category: str | None = None) -> None:
        """Set score, level and assessment time together."""
        self.score = score
        self.level = SkillLevel.from_score(score)
        self.last_assessed = assessed_at
        if category is not None:
            self.category = category


class Goal(CamelModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    title: str
    description: str | None = None
    target_date: UtcDatetime | None = None
    status: GoalStatus = GoalStatus.NOT_STARTED
    type: str = "skill"
    completed_date: UtcDatetime | None = None


class LearningStats(CamelModel):
    """Derived study-time totals (minutes) and the daily streak."""

    total_study_time: float = 0
    weekly_study_time: float = 0
    monthly_study_time: float = 0
    streak: int = Field(default=0, ge=0)
    last_study_date: UtcDatetime = Field(default_factory=utcnow)


class ProgressSnapshot(CamelModel):
    date: UtcDatetime
    overall_score: float
    skill_scores: dict[str, float] = Field(default_factory=dict)


class UserActivityRecord(CamelModel):
    """The per-user document. ``version`` increments on every write."""

    user_id: str
    activities: list[Activity] = Field(default_factory=list)
    skills: list[Skill] = Field(default_factory=list)
    goals: list[Goal] = Field(default_factory=list)
    learning_stats: LearningStats = Field(default_factory=LearningStats)
    progress_history: list[ProgressSnapshot] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    last_active: UtcDatetime = Field(default_factory=utcnow)
    version: int = 0

    def find_skill(self, name: str) -> Skill | None:
        return next((s for s in self.skills if s.name == name), None)

    def find_goal(self, goal_id: str) -> Goal | None:
        return next((g for g in self.goals if g.id == goal_id), None)


class QuizQuestion(CamelModel):
    """The part of a quiz question tracking cares about."""

    topics: list[str] = Field(default_factory=list)
