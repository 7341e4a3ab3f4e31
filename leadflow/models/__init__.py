"""
Database models - import all models here so Alembic can discover them.
"""
from leadflow.models.agent import Agent
from leadflow.models.lead import Lead
from leadflow.models.call_log import CallLog
from leadflow.models.site_visit import SiteVisit
from leadflow.models.followup import FollowupTask
from leadflow.models.activity_log import ActivityLog
from leadflow.models.webhook_event import WebhookEvent

__all__ = [
    "Agent",
    "Lead",
    "CallLog",
    "SiteVisit",
    "FollowupTask",
    "ActivityLog",
    "WebhookEvent",
]
