"""Exceptions raised by the tracking core."""

from typing import Any


class TrackingError(Exception):
    """Base exception for activity tracking."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": type(self).__name__, "message": self.message, "details": self.details}


class InterviewNotFoundOrIncompleteError(TrackingError):
    """Interview does not exist or has not reached ``completed``."""

    def __init__(self, interview_id: str, status: str | None = None):
        reason = "not found" if status is None else f"status is {status!r}"
        super().__init__(
            f"Interview {interview_id} cannot be tracked: {reason}",
            {"interview_id": interview_id, "status": status},
        )
        self.interview_id = interview_id
        self.status = status


class GoalNotFoundError(TrackingError):
    def __init__(self, user_id: str, goal_id: str):
        super().__init__(
            f"Goal {goal_id} not found for user {user_id}",
            {"user_id": user_id, "goal_id": goal_id},
        )


class InvalidGoalTransitionError(TrackingError):
    def __init__(self, goal_id: str, current: str, requested: str):
        super().__init__(
            f"Goal {goal_id} cannot move from {current} to {requested}",
            {"goal_id": goal_id, "current": current, "requested": requested},
        )


class VersionConflictError(TrackingError):
    """Stored record changed between read and write."""

    def __init__(self, user_id: str, expected: int, actual: int):
        super().__init__(
            f"Activity record for {user_id} is at version {actual}, expected {expected}",
            {"user_id": user_id, "expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual
