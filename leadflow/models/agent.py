"""
Agent model - CRM users (admins, sales managers, sales agents).
Only the fields the lifecycle engine reads: role for access checks and phone
for telephony matching / outbound dialing.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Boolean, DateTime, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, validates
from leadflow.database import Base
from leadflow.utils.phone import phone_match_key


class Agent(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20))
    phone_key: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default="sales_agent"
    )  # admin, sales_manager, sales_agent
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index("ix_users_phone_key", "phone_key"),
        Index("ix_users_role", "role"),
    )

    @validates("phone")
    def _sync_phone_key(self, key, value):
        self.phone_key = phone_match_key(value)
        return value

    def __repr__(self) -> str:
        return f"<Agent {self.full_name} role={self.role}>"
