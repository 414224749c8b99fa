"""Completed assessment payloads (technical tests and EQ evaluations)."""

from typing import Annotated, Any, Literal

from pydantic import Field, TypeAdapter

from interview_progress.models.activity import ActivityType, CamelModel


class TechnicalAssessment(CamelModel):
    """A completed technical test.

    ``real_time_scores`` is loosely shaped: aggregate fields such as
    ``finalScore`` sit next to per-skill scores and free-form metadata
    like ``topic``.
    """

    type: Literal["test"] = "test"
    id: str
    duration: float | None = None
    real_time_scores: dict[str, Any] | None = None
    position_id: str | None = None

    @property
    def activity_type(self) -> ActivityType:
        return ActivityType(self.type)


class EqAssessment(CamelModel):
    """A completed EQ evaluation scored per dimension in ``final_scores``."""

    type: Literal["eq"] = "eq"
    id: str
    duration: float | None = None
    final_scores: dict[str, Any] | None = None
    selected_category: str | None = None

    @property
    def activity_type(self) -> ActivityType:
        return ActivityType(self.type)


Assessment = Annotated[TechnicalAssessment | EqAssessment, Field(discriminator="type")]

_assessment_adapter: TypeAdapter[Assessment] = TypeAdapter(Assessment)


def parse_assessment(data: dict[str, Any]) -> TechnicalAssessment | EqAssessment:
    """Validate a raw assessment payload into the matching model."""
    return _assessment_adapter.validate_python(data)
