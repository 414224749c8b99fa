"""Tests for the pure aggregation helpers."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from interview_progress.models.activity import (
    Activity,
    ActivityType,
    LearningStats,
    Skill,
    SkillLevel,
)
from interview_progress.models.entities import Interview, InterviewEvaluation, InterviewStatus
from interview_progress.services.aggregator import (
    CONSISTENCY_RECOMMENDATIONS,
    EXPLORATION_RECOMMENDATIONS,
    backfill_score,
    calendar_day,
    clamp_score,
    derive_insights,
    mean_score,
    next_streak,
    refresh_learning_stats,
    rolling_study_time,
    upsert_skill,
)
from interview_progress.services.interview_tracking import (
    interview_activity,
    interview_duration_minutes,
    interview_skill_updates,
)

NOW = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


class TestStreak:
    def test_next_day_extends(self):
        assert next_streak(3, NOW - timedelta(days=1), NOW) == 4

    def test_calendar_day_not_24h_window(self):
        last = datetime(2026, 3, 9, 23, 50, tzinfo=timezone.utc)
        now = datetime(2026, 3, 10, 0, 5, tzinfo=timezone.utc)
        assert next_streak(2, last, now) == 3

    def test_gap_resets_to_one(self):
        assert next_streak(7, NOW - timedelta(days=2), NOW) == 1

    def test_same_day_unchanged(self):
        assert next_streak(5, NOW - timedelta(hours=3), NOW) == 5

    def test_same_day_floored_at_one(self):
        assert next_streak(0, NOW, NOW) == 1

    def test_consecutive_days_count_up(self):
        streak, last = 0, NOW
        for day in range(1, 11):
            now = NOW + timedelta(days=day)
            streak = next_streak(streak, last, now)
            last = now
        assert streak == 10

    def test_repeated_same_day_is_stable(self):
        streak = 4
        for minutes in range(0, 300, 30):
            streak = next_streak(streak, NOW, NOW + timedelta(minutes=minutes))
        assert streak == 4

    def test_timezone_shifts_calendar_day(self):
        tokyo = ZoneInfo("Asia/Tokyo")
        last = datetime(2026, 3, 9, 14, 0, tzinfo=timezone.utc)  # 23:00 in Tokyo
        now = datetime(2026, 3, 9, 16, 0, tzinfo=timezone.utc)  # 01:00 next day in Tokyo
        assert next_streak(1, last, now, timezone.utc) == 1
        assert next_streak(1, last, now, tokyo) == 2

    def test_calendar_day_treats_naive_as_utc(self):
        assert calendar_day(datetime(2026, 3, 9, 23, 0)) == datetime(2026, 3, 9).date()


class TestStudyTime:
    def _activities(self):
        return [
            Activity(type=ActivityType.QUIZ, duration=10, timestamp=NOW - timedelta(days=1)),
            Activity(type=ActivityType.PRACTICE, duration=20, timestamp=NOW - timedelta(days=6)),
            Activity(type=ActivityType.INTERVIEW, duration=30, timestamp=NOW - timedelta(days=12)),
            Activity(type=ActivityType.TEST, duration=40, timestamp=NOW - timedelta(days=45)),
        ]

    def test_rolling_windows(self):
        activities = self._activities()
        assert rolling_study_time(activities, NOW, 7) == 30
        assert rolling_study_time(activities, NOW, 30) == 60

    def test_refresh_learning_stats(self):
        stats = LearningStats(streak=2, last_study_date=NOW - timedelta(days=1))
        refreshed = refresh_learning_stats(stats, self._activities(), NOW)
        assert refreshed.total_study_time == 100
        assert refreshed.weekly_study_time == 30
        assert refreshed.monthly_study_time == 60
        assert refreshed.streak == 3
        assert refreshed.last_study_date == NOW


class TestScores:
    def test_clamp(self):
        assert clamp_score(-5) == 0
        assert clamp_score(140) == 100
        assert clamp_score(55.5) == 55.5

    def test_mean_ignores_non_numeric(self):
        assert mean_score({"a": 80, "b": 60, "topic": "js", "flag": True}) == 70
        assert mean_score({"topic": "js"}) is None

    def test_backfill_from_skill_scores(self):
        activity = Activity(type=ActivityType.TEST, skill_scores={"a": 80, "b": 65})
        assert backfill_score(activity).score == 73  # 72.5 rounds half up

    def test_backfill_replaces_zero_score(self):
        activity = Activity(type=ActivityType.TEST, score=0, skill_scores={"a": 50})
        assert backfill_score(activity).score == 50

    def test_backfill_keeps_explicit_score(self):
        activity = Activity(type=ActivityType.TEST, score=42, skill_scores={"a": 90})
        assert backfill_score(activity).score == 42

    def test_backfill_without_skill_scores(self):
        activity = Activity(type=ActivityType.QUIZ)
        assert backfill_score(activity).score is None

    def test_backfill_is_pure(self):
        skill_scores = {"a": 81, "b": 77, "c": 64}
        first = backfill_score(Activity(type=ActivityType.EQ, skill_scores=skill_scores))
        second = backfill_score(Activity(type=ActivityType.EQ, skill_scores=skill_scores))
        assert first.score == second.score == 74


class TestUpsertSkill:
    def test_appends_new_skill(self):
        skills: list[Skill] = []
        skill = upsert_skill(skills, "React Hooks", 82, NOW)
        assert skills == [skill]
        assert skill.level == SkillLevel.ADVANCED

    def test_updates_existing_in_place(self):
        skills = [Skill(name="SQL", score=50, last_assessed=NOW - timedelta(days=3))]
        upsert_skill(skills, "SQL", 91, NOW, category="backend")
        assert len(skills) == 1
        assert skills[0].score == 91
        assert skills[0].level == SkillLevel.EXPERT
        assert skills[0].last_assessed == NOW
        assert skills[0].category == "backend"

    def test_clamps_score(self):
        skills: list[Skill] = []
        upsert_skill(skills, "SQL", 120, NOW)
        assert skills[0].score == 100
        assert skills[0].level == SkillLevel.EXPERT

    @pytest.mark.parametrize("score", [0, 45, 60, 70, 75, 89, 90, 100])
    def test_level_consistent_after_any_update(self, score):
        skills = [Skill(name="Go", score=95)]
        upsert_skill(skills, "Go", score, NOW)
        assert skills[0].level == SkillLevel.from_score(skills[0].score)


class TestInsights:
    def test_weak_skills_and_low_streak(self):
        skills = [Skill(name="SQL", score=55), Skill(name="React", score=88)]
        insights = derive_insights(skills, streak=1)
        assert insights.weaknesses == ["SQL"]
        assert insights.strengths == ["React"]
        assert insights.recommendations[0] == "Focus on improving: SQL"
        assert insights.recommendations[-2:] == CONSISTENCY_RECOMMENDATIONS

    def test_strong_and_consistent_gets_exploration(self):
        insights = derive_insights([Skill(name="React", score=92)], streak=5)
        assert insights.weaknesses == []
        assert insights.recommendations == EXPLORATION_RECOMMENDATIONS

    def test_never_empty(self):
        assert derive_insights([], streak=0).recommendations
        assert derive_insights([], streak=10).recommendations


class TestInterviewHelpers:
    @pytest.mark.parametrize(
        "seconds,minutes",
        [(0, 1), (30, 1), (60, 1), (61, 2), (1799, 30), (1800, 30)],
    )
    def test_duration_minutes(self, seconds, minutes):
        assert interview_duration_minutes(seconds) == minutes

    def test_three_fixed_skills(self):
        evaluation = InterviewEvaluation(
            technical_score=80, communication_score=65, problem_solving_score=92
        )
        assert interview_skill_updates(evaluation) == [
            ("Technical", 80),
            ("Communication", 65),
            ("Problem Solving", 92),
        ]

    def test_interview_activity(self):
        interview = Interview(
            id="iv-1",
            status=InterviewStatus.COMPLETED,
            duration=125,
            evaluation=InterviewEvaluation(overall_rating=78),
            skill_assessment={"system design": 70},
        )
        activity = interview_activity(interview, NOW)
        assert activity.type == ActivityType.INTERVIEW
        assert activity.reference_id == "iv-1"
        assert activity.score == 78
        assert activity.duration == 3
        assert activity.skill_scores == {"system design": 70}
