"""
API router - aggregates all route modules.
"""
from fastapi import APIRouter
from leadflow.api.webhooks import router as webhooks_router
from leadflow.api.leads import router as leads_router
from leadflow.api.call_logs import router as call_logs_router
from leadflow.api.site_visits import router as site_visits_router
from leadflow.api.followups import router as followups_router
from leadflow.api.activity import router as activity_router
from leadflow.api.health import router as health_router

api_router = APIRouter()
api_router.include_router(webhooks_router)
api_router.include_router(leads_router)
api_router.include_router(call_logs_router)
api_router.include_router(site_visits_router)
api_router.include_router(followups_router)
api_router.include_router(activity_router)
api_router.include_router(health_router)
