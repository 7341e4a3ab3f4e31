"""
Seed a demo sales team and a handful of leads, then print a bearer token per agent.

Usage:
    python scripts/seed_demo_team.py
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone

import jwt
from sqlalchemy import select

from leadflow.config import get_settings
from leadflow.database import async_session_factory
from leadflow.models.agent import Agent
from leadflow.models.lead import Lead

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_TEAM = [
    {"full_name": "Priya Sharma", "email": "priya@leadflow.test", "phone": "+919810000001", "role": "admin"},
    {"full_name": "Rahul Mehta", "email": "rahul@leadflow.test", "phone": "+919810000002", "role": "sales_manager"},
    {"full_name": "Anita Rao", "email": "anita@leadflow.test", "phone": "+919810000003", "role": "sales_agent"},
    {"full_name": "Vikram Singh", "email": "vikram@leadflow.test", "phone": "+919810000004", "role": "sales_agent"},
]

DEMO_LEADS = [
    {"name": "Karan Kapoor", "phone": "+919876500001", "source": "website", "stage": "new", "temperature": "warm",
     "preferred_location": "Whitefield", "budget_min": 6000000, "budget_max": 8000000},
    {"name": "Meera Iyer", "phone": "+919876500002", "source": "referral", "stage": "contacted", "temperature": "hot",
     "preferred_location": "Koramangala", "budget_min": 12000000, "budget_max": 15000000},
    {"name": "Arjun Nair", "phone": "+919876500003", "source": "walk_in", "stage": "site_visit", "temperature": "warm",
     "preferred_location": "HSR Layout"},
    {"name": "Sneha Desai", "phone": "+919876500004", "source": "campaign", "stage": "negotiation", "temperature": "hot"},
]


def _token(agent: Agent, settings) -> str:
    claims = {
        "sub": str(agent.id),
        "role": agent.role,
        "exp": datetime.now(timezone.utc) + timedelta(days=7),
    }
    return jwt.encode(claims, settings.jwt_secret or settings.app_secret_key, algorithm=settings.jwt_algorithm)


async def seed():
    settings = get_settings()

    async with async_session_factory() as session:
        agents = []
        for member in DEMO_TEAM:
            result = await session.execute(select(Agent).where(Agent.email == member["email"]))
            agent = result.scalar_one_or_none()
            if agent:
                logger.info("Agent %s already exists (id=%s). Skipping.", agent.full_name, agent.id)
            else:
                agent = Agent(**member)
                session.add(agent)
                logger.info("Seeding agent %s (%s)", member["full_name"], member["role"])
            agents.append(agent)
        await session.commit()

        field_agents = [a for a in agents if a.role == "sales_agent"]
        existing = (await session.execute(select(Lead.id).limit(1))).first()
        if existing:
            logger.info("Leads already exist. Skipping lead seed.")
        else:
            for i, values in enumerate(DEMO_LEADS):
                session.add(Lead(assigned_to_id=field_agents[i % len(field_agents)].id, **values))
            await session.commit()
            logger.info("Seeded %d demo leads.", len(DEMO_LEADS))

    for agent in agents:
        logger.info("%s (%s): Bearer %s", agent.full_name, agent.role, _token(agent, settings))


if __name__ == "__main__":
    asyncio.run(seed())
