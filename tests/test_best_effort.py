"""Tests for BestEffortSteps."""

from unittest.mock import AsyncMock

from interview_progress.services.best_effort import BestEffortSteps, StepReport


class TestBestEffortSteps:
    async def test_runs_all_steps_in_order(self):
        calls = []

        async def step(name):
            calls.append(name)

        steps = BestEffortSteps("demo", user_id="u1")
        steps.add("first", lambda: step("first")).add("second", lambda: step("second"))
        report = await steps.run()

        assert calls == ["first", "second"]
        assert report.succeeded == ["first", "second"]
        assert report.ok

    async def test_failure_does_not_stop_later_steps(self):
        later = AsyncMock()
        steps = BestEffortSteps("demo")
        steps.add("broken", AsyncMock(side_effect=ValueError("bad input")))
        steps.add("later", later)
        report = await steps.run()

        later.assert_awaited_once()
        assert report.failed == ["broken"]
        assert report.succeeded == ["later"]
        assert report.errors == {"broken": "bad input"}
        assert not report.ok

    async def test_no_steps(self):
        assert await BestEffortSteps("empty").run() == StepReport()
