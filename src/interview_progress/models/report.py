"""Progress report returned to the dashboard."""

from datetime import datetime, timedelta

from pydantic import Field

from interview_progress.models.activity import Activity, CamelModel, Goal, utcnow

ONBOARDING_RECOMMENDATIONS: list[str] = [
    "Start with a practice interview to assess your current level",
    "Set up your learning goals in the dashboard",
    "Review available learning resources",
]


class UserSummary(CamelModel):
    id: str
    name: str | None = None
    email: str | None = None


class ReportStats(CamelModel):
    total_interviews: int = 0
    average_score: float = 0
    study_streak: int = 0
    total_study_time: float = 0
    weekly_study_time: float = 0
    monthly_study_time: float = 0


class SkillProgressPoint(CamelModel):
    date: datetime
    score: float


class SkillProgress(CamelModel):
    name: str
    level: str
    score: float
    progress: list[SkillProgressPoint] = Field(default_factory=list)


class Milestone(CamelModel):
    goal: str
    target_date: datetime


class ProgressReport(CamelModel):
    user: UserSummary | None = None
    stats: ReportStats = Field(default_factory=ReportStats)
    recent_activities: list[Activity] = Field(default_factory=list)
    skill_progress: list[SkillProgress] = Field(default_factory=list)
    goals: list[Goal] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=lambda: list(ONBOARDING_RECOMMENDATIONS))
    current_focus: list[str] = Field(default_factory=list)
    next_milestones: list[Milestone] = Field(default_factory=list)


def new_user_report(now: datetime | None = None, user: UserSummary | None = None) -> ProgressReport:
    """Canonical report for a user without tracked activity."""
    now = now or utcnow()
    return ProgressReport(
        user=user,
        current_focus=["Complete your first interview practice"],
        next_milestones=[
            Milestone(goal="Complete first interview practice", target_date=now + timedelta(days=7)),
        ],
    )
