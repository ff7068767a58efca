"""Progression view and request models (HTTP and renderer facing)."""

from typing import List

from pydantic import BaseModel, ConfigDict, Field

from brainjourney.models.progression import DayState


class ProgressionView(BaseModel):
    """Everything the rendering surface needs after a transition."""

    model_config = ConfigDict(frozen=True)

    current_day: int
    status: DayState
    phase: DayState = Field(description="status, or not_started before the first check-in")
    button_label: str
    check_in_enabled: bool
    unlocked_units: List[int]
    selected_units: List[int]
    completed_days: List[int]
    way: int
    streak_days: int
    max_day_reached: int
    label: str
    missed_days: int = 0
    journey_finished: bool = False
    new_units: List[int] = Field(default_factory=list)
    events: List[dict] = Field(default_factory=list)


class SetWayRequest(BaseModel):
    # Range checks happen in the session so invalid ways are rejected without mutation
    way: int


class SetLabelRequest(BaseModel):
    label: str = Field(max_length=200)

