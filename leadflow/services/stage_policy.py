"""
Stage policy - pure rules for how a lead's (stage, temperature) pair moves.

No I/O. The progression table is injected at construction so alternate
pipelines can be exercised in tests; the default is

    new → contacted → site_visit → negotiation → token → completed

with closed and lost as absorbing terminal states. An explicit caller-supplied
stage always wins over a derived one. Rating thresholds are inclusive.
"""
from types import MappingProxyType
from typing import Mapping, Optional

from leadflow.errors import EventValidationError
from leadflow.schemas.events import (
    CallbackRequested,
    NotConnected,
    NotInterested,
    PositiveConnect,
    RatingEdited,
    VisitCompleted,
    VisitScheduled,
)
from leadflow.vocabulary import Stage, Temperature


DEFAULT_PROGRESSION: Mapping[str, str] = MappingProxyType({
    Stage.NEW: Stage.CONTACTED,
    Stage.CONTACTED: Stage.SITE_VISIT,
    Stage.SITE_VISIT: Stage.NEGOTIATION,
    Stage.NEGOTIATION: Stage.TOKEN,
    Stage.TOKEN: Stage.COMPLETED,
})

DEFAULT_LOST_REASON = "Not Interested"

# Temperature implied by a visit-outcome override; None means "derive from rating"
_OVERRIDE_TEMPERATURE = {
    Stage.NEGOTIATION: Temperature.HOT,
    Stage.TOKEN: Temperature.HOT,
    Stage.LOST: Temperature.COLD,
    Stage.COMPLETED: None,
    Stage.CLOSED: None,
}


class LeadState:
    """The slice of a lead the policy reads and writes."""

    def __init__(self, stage: str, temperature: str, lost_reason: Optional[str] = None):
        self.stage = stage
        self.temperature = temperature
        self.lost_reason = lost_reason

    @classmethod
    def of(cls, lead) -> "LeadState":
        return cls(lead.stage, lead.temperature, lead.lost_reason)

    def replace(self, **changes) -> "LeadState":
        values = {
            "stage": self.stage,
            "temperature": self.temperature,
            "lost_reason": self.lost_reason,
        }
        values.update(changes)
        return LeadState(**values)

    def __eq__(self, other) -> bool:
        if not isinstance(other, LeadState):
            return NotImplemented
        return (self.stage, self.temperature, self.lost_reason) == (
            other.stage, other.temperature, other.lost_reason,
        )

    def __repr__(self) -> str:
        return f"<LeadState stage={self.stage} temperature={self.temperature}>"


def temperature_for_rating(rating: int, hot_threshold: int = 4, warm_threshold: int = 3) -> str:
    if rating >= hot_threshold:
        return Temperature.HOT
    if rating >= warm_threshold:
        return Temperature.WARM
    return Temperature.COLD


def validate_stage(stage: str) -> str:
    """Reject anything that is not a lead stage (e.g. the visit-only 'rescheduled')."""
    if stage not in Stage.ALL:
        raise EventValidationError(f"Unknown lead stage: {stage!r}")
    return stage


def validate_outcome_stage(stage: str) -> str:
    """Stage a visit outcome may move the lead to: any lead stage except new."""
    validate_stage(stage)
    if stage == Stage.NEW:
        raise EventValidationError("A site visit outcome cannot move a lead back to 'new'")
    return stage


class StagePolicy:
    """Computes the next LeadState for a lifecycle event."""

    def __init__(
        self,
        progression: Optional[Mapping[str, str]] = None,
        hot_threshold: int = 4,
        warm_threshold: int = 3,
    ):
        if progression is None:
            progression = DEFAULT_PROGRESSION
        self.progression = MappingProxyType(dict(progression))
        self.hot_threshold = hot_threshold
        self.warm_threshold = warm_threshold

    @classmethod
    def from_settings(cls, settings) -> "StagePolicy":
        return cls(
            hot_threshold=settings.hot_rating_threshold,
            warm_threshold=settings.warm_rating_threshold,
        )

    def temperature_for(self, rating: int) -> str:
        return temperature_for_rating(rating, self.hot_threshold, self.warm_threshold)

    def next_state(self, current: LeadState, event) -> LeadState:
        if isinstance(event, PositiveConnect):
            return self._positive_connect(current)
        if isinstance(event, CallbackRequested):
            if current.stage == Stage.NEW:
                return current.replace(stage=Stage.CONTACTED)
            return current
        if isinstance(event, NotConnected):
            return current
        if isinstance(event, NotInterested):
            reason = (event.rejection_reason or "").strip() or DEFAULT_LOST_REASON
            return current.replace(stage=Stage.CLOSED, lost_reason=reason)
        if isinstance(event, VisitScheduled):
            return self._visit_scheduled(current)
        if isinstance(event, VisitCompleted):
            return self._visit_completed(current, event)
        if isinstance(event, RatingEdited):
            state = current.replace(temperature=self.temperature_for(event.rating))
            if event.next_stage:
                state = state.replace(stage=validate_outcome_stage(event.next_stage))
            return state
        raise EventValidationError(f"Unsupported lifecycle event: {type(event).__name__}")

    def _positive_connect(self, current: LeadState) -> LeadState:
        if current.stage in Stage.TERMINAL:
            next_stage = current.stage
        else:
            next_stage = self.progression.get(current.stage, current.stage)
        return current.replace(stage=next_stage, temperature=Temperature.HOT)

    def _visit_scheduled(self, current: LeadState) -> LeadState:
        if current.stage not in (Stage.NEW, Stage.CONTACTED):
            return current
        temperature = current.temperature
        if temperature == Temperature.COLD:
            temperature = Temperature.WARM
        return current.replace(stage=Stage.SITE_VISIT, temperature=temperature)

    def _visit_completed(self, current: LeadState, event: VisitCompleted) -> LeadState:
        if event.next_stage:
            stage = validate_outcome_stage(event.next_stage)
            if stage in _OVERRIDE_TEMPERATURE:
                temperature = _OVERRIDE_TEMPERATURE[stage]
                if temperature is None:
                    temperature = (
                        self.temperature_for(event.rating)
                        if event.rating is not None
                        else current.temperature
                    )
            else:
                temperature = Temperature.WARM
            return current.replace(stage=stage, temperature=temperature)

        if event.rating is not None:
            return current.replace(
                stage=Stage.COMPLETED, temperature=self.temperature_for(event.rating)
            )
        return current.replace(stage=Stage.COMPLETED)
