"""Pure folds from activities and skills to learning stats and insights."""

import math
from collections.abc import Iterable, Mapping
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import NamedTuple
from zoneinfo import ZoneInfo

from interview_progress.models.activity import (
    Activity,
    LearningStats,
    Skill,
    SkillLevel,
)

CONSISTENCY_RECOMMENDATIONS = [
    "Try to maintain a consistent practice schedule",
    "Set daily learning goals to build momentum",
]

EXPLORATION_RECOMMENDATIONS = [
    "Explore more advanced topics to keep challenging yourself",
    "Try a mock interview for a more senior position",
]


class Insights(NamedTuple):
    weaknesses: list[str]
    strengths: list[str]
    recommendations: list[str]


def resolve_timezone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def is_number(value: object) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def clamp_score(score: float) -> float:
    return max(0.0, min(100.0, float(score)))


def mean_score(skill_scores: Mapping[str, object]) -> float | None:
    """Mean of the numeric values, or None when there are none."""
    values = [float(v) for v in skill_scores.values() if is_number(v)]
    if not values:
        return None
    return sum(values) / len(values)


def backfill_score(activity: Activity) -> Activity:
    """Fill a missing or zero score from the mean of ``skill_scores``."""
    if activity.score or not activity.skill_scores:
        return activity
    mean = mean_score(activity.skill_scores)
    if mean is None:
        return activity
    return activity.model_copy(update={"score": float(round_half_up(mean))})


def calendar_day(moment: datetime, tz: tzinfo = timezone.utc) -> date:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz).date()


def next_streak(streak: int, last_study_date: datetime, now: datetime, tz: tzinfo = timezone.utc) -> int:
    """Advance the streak by calendar days, not 24-hour windows.

    A gap of exactly one day extends the streak, a longer gap restarts it
    at 1, and same-day activity keeps it (floored at 1).
    """
    gap = (calendar_day(now, tz) - calendar_day(last_study_date, tz)).days
    if gap == 1:
        return streak + 1
    if gap > 1:
        return 1
    return max(streak, 1)


def rolling_study_time(activities: Iterable[Activity], now: datetime, days: int) -> float:
    """Minutes of activity with a timestamp in the last ``days`` days."""
    cutoff = now - timedelta(days=days)
    return sum(a.duration for a in activities if a.timestamp >= cutoff)


def refresh_learning_stats(
    stats: LearningStats,
    activities: list[Activity],
    now: datetime,
    tz: tzinfo = timezone.utc,
    weekly_days: int = 7,
    monthly_days: int = 30,
) -> LearningStats:
    """Recompute study-time totals from the log and advance the streak."""
    return LearningStats(
        total_study_time=sum(a.duration for a in activities),
        weekly_study_time=rolling_study_time(activities, now, weekly_days),
        monthly_study_time=rolling_study_time(activities, now, monthly_days),
        streak=next_streak(stats.streak, stats.last_study_date, now, tz),
        last_study_date=now,
    )


def upsert_skill(
    skills: list[Skill],
    name: str,
    score: float,
    assessed_at: datetime,
    category: str | None = None,
) -> Skill:
    """Update the skill called ``name`` in place, or append it."""
    score = clamp_score(score)
    for skill in skills:
        if skill.name == name:
            skill.rescore(score, assessed_at, category)
            return skill
    skill = Skill(
        name=name,
        score=score,
        level=SkillLevel.from_score(score),
        category=category,
        last_assessed=assessed_at,
    )
    skills.append(skill)
    return skill


def derive_insights(
    skills: list[Skill],
    streak: int,
    weak_threshold: float = 70,
    strength_threshold: float = 75,
    consistency_threshold: int = 3,
) -> Insights:
    weaknesses = [s.name for s in skills if s.score < weak_threshold]
    strengths = [s.name for s in skills if s.score >= strength_threshold]

    recommendations: list[str] = []
    if weaknesses:
        recommendations.append(f"Focus on improving: {', '.join(weaknesses)}")
        recommendations.append("Schedule more practice interviews in these areas")
    if streak < consistency_threshold:
        recommendations.extend(CONSISTENCY_RECOMMENDATIONS)
    if not recommendations:
        recommendations.extend(EXPLORATION_RECOMMENDATIONS)
    return Insights(weaknesses, strengths, recommendations)
