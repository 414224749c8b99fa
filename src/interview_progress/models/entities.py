"""Read-only views of canonical entities owned by the relational store."""

from enum import StrEnum

from pydantic import Field

from interview_progress.models.activity import CamelModel


class User(CamelModel):
    id: str
    external_id: str | None = None
    name: str | None = None
    email: str | None = None


class Position(CamelModel):
    id: str
    position_name: str
    level: str | None = None


class InterviewStatus(StrEnum):
    """Interview lifecycle as stored in the canonical interviews table."""

    IN_PROGRESS = "in-progress"
    INTERRUPTED = "interrupted"
    COMPLETED = "completed"


class InterviewEvaluation(CamelModel):
    """Scores produced by the interview evaluator (0-100 each)."""

    technical_score: float = 0
    communication_score: float = 0
    problem_solving_score: float = 0
    overall_rating: float = 0
    recommendations: list[str] = Field(default_factory=list)


class Interview(CamelModel):
    """A mock interview. ``duration`` is in seconds."""

    id: str
    user_id: str | None = None
    status: InterviewStatus = InterviewStatus.IN_PROGRESS
    duration: float = 0
    evaluation: InterviewEvaluation | None = None
    skill_assessment: dict[str, float] | None = None
