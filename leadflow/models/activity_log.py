"""
Activity log model - audit trail for every lifecycle action.
Written in the same transaction as the mutation it describes, so a rolled-back
action never leaves an activity row behind.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column
from leadflow.database import Base


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    # Null for system-originated actions (telephony webhook)
    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    lead_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))

    action: Mapped[str] = mapped_column(
        String(100), nullable=False
    )  # call_logged, site_visit_scheduled, site_visit_completed, lead_updated, etc.
    entity_type: Mapped[str] = mapped_column(String(30), nullable=False)
    entity_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))

    details: Mapped[Optional[dict]] = mapped_column(JSONB)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index("ix_activity_lead_id", "lead_id"),
        Index("ix_activity_actor_id", "actor_id"),
        Index("ix_activity_action", "action"),
        Index("ix_activity_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ActivityLog {self.action} {self.entity_type}>"
