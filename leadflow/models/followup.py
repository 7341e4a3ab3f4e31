"""
Follow-up task model - scheduled reminders for an agent to re-engage a lead.
Types: callback (lead asked to be called at a time), retry_call (auto-scheduled
after an unanswered call).

Created only by the follow-up scheduler as a side effect of a call log.
Nothing in this service executes them: the reminder collaborator polls
pending rows by scheduled_at.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from leadflow.database import Base


class FollowupTask(Base):
    __tablename__ = "followup_tasks"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    lead_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("leads.id", ondelete="CASCADE"), nullable=False
    )
    agent_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    source_call_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("call_logs.id", ondelete="SET NULL")
    )

    task_type: Mapped[str] = mapped_column(
        String(30), nullable=False
    )  # callback, retry_call
    scheduled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    notes: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(
        String(20), default="pending"
    )  # pending, done, cancelled

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    lead: Mapped["Lead"] = relationship(back_populates="followup_tasks")

    __table_args__ = (
        Index("ix_followup_scheduled_at", "scheduled_at"),
        Index("ix_followup_lead_id", "lead_id"),
        Index("ix_followup_pending", "status", "scheduled_at"),
        Index("ix_followup_agent_id", "agent_id"),
    )

    def __repr__(self) -> str:
        return f"<FollowupTask {self.task_type} at={self.scheduled_at} status={self.status}>"
