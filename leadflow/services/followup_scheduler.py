"""
Follow-up scheduler - decides the derivative work a lifecycle event creates.

Pure: returns a FollowupPlan, the orchestrator persists it. Tasks are data
only; the reminder service polls pending rows by scheduled_at.

Rules:
- callback requested with a time → callback task at that time, next_followup_at = time
- not connected → retry_call task at occurred_at + retry delay (2h), next_followup_at = same
- positive connect → no task, last_contacted_at touched
- anything else → no task, next_followup_at untouched
"""
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from leadflow.schemas.events import CallbackRequested, NotConnected, PositiveConnect
from leadflow.vocabulary import TaskType


DEFAULT_RETRY_DELAY = timedelta(hours=2)
CALLBACK_NOTE = "Callback requested"
RETRY_NOTE = "Auto-scheduled retry call"
FEEDBACK_TIMESTAMP_FORMAT = "%d/%m/%Y, %I:%M:%S %p"


class NewFollowupTask:
    """A follow-up task to be inserted alongside the triggering call log."""

    def __init__(self, task_type: str, scheduled_at: datetime, notes: str):
        self.task_type = task_type
        self.scheduled_at = scheduled_at
        self.notes = notes

    def __repr__(self) -> str:
        return f"<NewFollowupTask {self.task_type} at={self.scheduled_at}>"


class FollowupPlan:
    """Follow-up effects of one event."""

    def __init__(
        self,
        task: Optional[NewFollowupTask] = None,
        next_followup_at: Optional[datetime] = None,
        update_next_followup: bool = False,
        touch_last_contacted: bool = False,
    ):
        self.task = task
        self.next_followup_at = next_followup_at
        self.update_next_followup = update_next_followup
        self.touch_last_contacted = touch_last_contacted

    def __repr__(self) -> str:
        return (
            f"<FollowupPlan task={self.task} next_followup_at={self.next_followup_at} "
            f"touch_last_contacted={self.touch_last_contacted}>"
        )


class FollowupScheduler:
    def __init__(self, retry_delay: timedelta = DEFAULT_RETRY_DELAY):
        self.retry_delay = retry_delay

    @classmethod
    def from_settings(cls, settings) -> "FollowupScheduler":
        return cls(retry_delay=timedelta(hours=settings.retry_call_delay_hours))

    def schedule(self, event) -> FollowupPlan:
        if isinstance(event, CallbackRequested):
            if event.callback_at is None:
                return FollowupPlan()
            task = NewFollowupTask(
                TaskType.CALLBACK, event.callback_at, event.notes or CALLBACK_NOTE
            )
            return FollowupPlan(
                task=task, next_followup_at=event.callback_at, update_next_followup=True
            )

        if isinstance(event, NotConnected):
            retry_at = event.occurred_at + self.retry_delay
            task = NewFollowupTask(TaskType.RETRY_CALL, retry_at, RETRY_NOTE)
            return FollowupPlan(task=task, next_followup_at=retry_at, update_next_followup=True)

        if isinstance(event, PositiveConnect):
            return FollowupPlan(touch_last_contacted=True)

        return FollowupPlan()


def format_feedback_timestamp(at: datetime, tz: str = "Asia/Kolkata") -> str:
    return at.astimezone(ZoneInfo(tz)).strftime(FEEDBACK_TIMESTAMP_FORMAT)


def append_visit_feedback(
    history: Optional[str], note: str, at: datetime, tz: str = "Asia/Kolkata"
) -> str:
    """
    Append a completion block to a visit's feedback history.

    Prior history is kept verbatim and separated from the new block by a blank line:

        --- COMPLETED [18/10/2026, 03:04:05 PM] ---
        Outcome: Liked the view
    """
    block = f"--- COMPLETED [{format_feedback_timestamp(at, tz)}] ---\nOutcome: {note}"
    if history:
        return f"{history}\n\n{block}"
    return block
