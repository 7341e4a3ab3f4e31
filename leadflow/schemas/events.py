"""
Lifecycle events - the closed set of things that can happen to a lead.

Each event is its own pydantic model carrying exactly the fields it needs, so
an invalid combination (a rejection reason on a positive connect, a rating on
a scheduled visit) cannot be constructed. The `kind` literal is the tag.
"""
from datetime import datetime
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

from leadflow.errors import EventValidationError
from leadflow.vocabulary import CallOutcome


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    occurred_at: datetime


class PositiveConnect(_Event):
    kind: Literal["positive_connect"] = "positive_connect"


class CallbackRequested(_Event):
    kind: Literal["callback_requested"] = "callback_requested"
    callback_at: Optional[datetime] = None
    notes: Optional[str] = None


class NotConnected(_Event):
    kind: Literal["not_connected"] = "not_connected"


class NotInterested(_Event):
    kind: Literal["not_interested"] = "not_interested"
    rejection_reason: Optional[str] = None


class VisitScheduled(_Event):
    kind: Literal["visit_scheduled"] = "visit_scheduled"
    scheduled_at: datetime


class VisitCompleted(_Event):
    kind: Literal["visit_completed"] = "visit_completed"
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    next_stage: Optional[str] = None


class RatingEdited(_Event):
    kind: Literal["rating_edited"] = "rating_edited"
    rating: int = Field(ge=1, le=5)
    next_stage: Optional[str] = None


CallEvent = Union[PositiveConnect, CallbackRequested, NotConnected, NotInterested]

LifecycleEvent = Annotated[
    Union[
        PositiveConnect,
        CallbackRequested,
        NotConnected,
        NotInterested,
        VisitScheduled,
        VisitCompleted,
        RatingEdited,
    ],
    Field(discriminator="kind"),
]


def event_for_call(
    outcome: str,
    occurred_at: datetime,
    callback_at: Optional[datetime] = None,
    rejection_reason: Optional[str] = None,
    notes: Optional[str] = None,
) -> CallEvent:
    """Build the lifecycle event for a call outcome.

    Raises EventValidationError for an outcome outside CallOutcome.ALL.
    """
    if outcome == CallOutcome.CONNECTED_POSITIVE:
        return PositiveConnect(occurred_at=occurred_at)
    if outcome == CallOutcome.CONNECTED_CALLBACK:
        return CallbackRequested(occurred_at=occurred_at, callback_at=callback_at, notes=notes)
    if outcome == CallOutcome.NOT_CONNECTED:
        return NotConnected(occurred_at=occurred_at)
    if outcome == CallOutcome.NOT_INTERESTED:
        return NotInterested(occurred_at=occurred_at, rejection_reason=rejection_reason)
    raise EventValidationError(f"Unknown call status: {outcome!r}")
