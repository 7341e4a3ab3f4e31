"""Initial schema - CRM pipeline tables for leadflow.

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users (agents, managers, admins)
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("phone", sa.String(20)),
        sa.Column("phone_key", sa.String(20), nullable=False, server_default=""),
        sa.Column("role", sa.String(20), nullable=False, server_default="sales_agent"),
        sa.Column("is_active", sa.Boolean, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_phone_key", "users", ["phone_key"])
    op.create_index("ix_users_role", "users", ["role"])

    # Leads
    op.create_table(
        "leads",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("phone", sa.String(20), nullable=False),
        sa.Column("phone_key", sa.String(20), nullable=False, server_default=""),
        sa.Column("email", sa.String(255)),
        sa.Column("source", sa.String(50), nullable=False, server_default="manual"),
        sa.Column("stage", sa.String(30), nullable=False, server_default="new"),
        sa.Column("temperature", sa.String(10), nullable=False, server_default="warm"),
        sa.Column("lost_reason", sa.Text),
        sa.Column("is_priority", sa.Boolean, server_default=sa.false()),
        sa.Column("budget_min", sa.Float),
        sa.Column("budget_max", sa.Float),
        sa.Column("preferred_location", sa.String(255)),
        sa.Column("notes", sa.Text),
        sa.Column("assigned_to_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id")),
        sa.Column("next_followup_at", sa.DateTime(timezone=True)),
        sa.Column("last_contacted_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_leads_phone_key", "leads", ["phone_key"])
    op.create_index("ix_leads_stage", "leads", ["stage"])
    op.create_index("ix_leads_assigned_to", "leads", ["assigned_to_id"])
    op.create_index("ix_leads_created_at", "leads", ["created_at"])
    op.create_index("ix_leads_next_followup", "leads", ["next_followup_at"])

    # Call logs
    op.create_table(
        "call_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("lead_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("leads.id", ondelete="CASCADE"), nullable=False),
        sa.Column("agent_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("call_status", sa.String(30), nullable=False),
        sa.Column("call_date", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("duration_seconds", sa.Integer),
        sa.Column("notes", sa.Text),
        sa.Column("callback_scheduled_at", sa.DateTime(timezone=True)),
        sa.Column("rejection_reason", sa.Text),
        sa.Column("provider_call_id", sa.String(100)),
        sa.Column("recording_url", sa.Text),
        sa.Column("lifecycle", sa.String(20), nullable=False, server_default="active"),
        sa.Column("lifecycle_changed_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_call_logs_lead_id", "call_logs", ["lead_id"])
    op.create_index("ix_call_logs_agent_date", "call_logs", ["agent_id", "call_date"])
    op.create_index("ix_call_logs_status", "call_logs", ["call_status"])
    op.create_index("ix_call_logs_lifecycle", "call_logs", ["lifecycle"])
    op.create_index("ix_call_logs_provider_call_id", "call_logs", ["provider_call_id"])

    # Site visits
    op.create_table(
        "site_visits",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("lead_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("leads.id", ondelete="CASCADE"), nullable=False),
        sa.Column("conducted_by", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id")),
        sa.Column("property_id", sa.String(64)),
        sa.Column("project_id", sa.String(64)),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="scheduled"),
        sa.Column("rating", sa.Integer),
        sa.Column("feedback", sa.Text),
        sa.Column("latest_feedback", sa.Text),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("rating IS NULL OR rating BETWEEN 1 AND 5", name="ck_site_visits_rating"),
    )
    op.create_index("ix_site_visits_lead_id", "site_visits", ["lead_id"])
    op.create_index("ix_site_visits_conducted_by", "site_visits", ["conducted_by"])
    op.create_index("ix_site_visits_status_scheduled", "site_visits", ["status", "scheduled_at"])

    # Follow-up tasks
    op.create_table(
        "followup_tasks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("lead_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("leads.id", ondelete="CASCADE"), nullable=False),
        sa.Column("agent_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("source_call_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("call_logs.id", ondelete="SET NULL")),
        sa.Column("task_type", sa.String(30), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.Text),
        sa.Column("status", sa.String(20), server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_followup_scheduled_at", "followup_tasks", ["scheduled_at"])
    op.create_index("ix_followup_lead_id", "followup_tasks", ["lead_id"])
    op.create_index("ix_followup_pending", "followup_tasks", ["status", "scheduled_at"])
    op.create_index("ix_followup_agent_id", "followup_tasks", ["agent_id"])

    # Activity log (no FK on lead_id: entries outlive deleted leads)
    op.create_table(
        "activity_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id")),
        sa.Column("lead_id", postgresql.UUID(as_uuid=True)),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(30), nullable=False),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True)),
        sa.Column("details", postgresql.JSONB),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_activity_lead_id", "activity_logs", ["lead_id"])
    op.create_index("ix_activity_actor_id", "activity_logs", ["actor_id"])
    op.create_index("ix_activity_action", "activity_logs", ["action"])
    op.create_index("ix_activity_created_at", "activity_logs", ["created_at"])

    # Webhook events (telephony audit trail + idempotency ledger)
    op.create_table(
        "webhook_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("source", sa.String(50), nullable=False),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("payload_hash", sa.String(64), nullable=False),
        sa.Column("provider_call_id", sa.String(100)),
        sa.Column("raw_payload", postgresql.JSONB, nullable=False),
        sa.Column("call_log_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("call_logs.id", ondelete="SET NULL")),
        sa.Column("processing_status", sa.String(20), nullable=False, server_default="received"),
        sa.Column("error_message", sa.Text),
        sa.Column("processed_at", sa.DateTime(timezone=True)),
        sa.Column("correlation_id", sa.String(64)),
    )
    op.create_index(
        "ix_webhook_events_dedupe_call", "webhook_events",
        ["source", "provider_call_id", "processing_status"],
    )
    op.create_index(
        "ix_webhook_events_dedupe_hash", "webhook_events",
        ["source", "payload_hash", "processing_status"],
    )
    op.create_index("ix_webhook_events_received_at", "webhook_events", ["received_at"])


def downgrade() -> None:
    op.drop_table("webhook_events")
    op.drop_table("activity_logs")
    op.drop_table("followup_tasks")
    op.drop_table("site_visits")
    op.drop_table("call_logs")
    op.drop_table("leads")
    op.drop_table("users")
