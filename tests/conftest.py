"""
Test configuration and fixtures.
Uses SQLite in-memory for fast tests. No external services are called.
"""
import itertools
import uuid

import httpx
import jwt
import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.dialects.postgresql import JSONB

from leadflow.config import get_settings
from leadflow.database import Base, get_db
from leadflow.models import Agent, Lead
from leadflow.services.access import Actor

_phone_counter = itertools.count(1)


# Register JSONB as JSON for SQLite compatibility in tests
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"


@pytest.fixture
async def db():
    """In-memory SQLite database for tests."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()


def unique_phone(prefix: str = "+9198") -> str:
    """A distinct, valid-looking Indian mobile number per call."""
    return f"{prefix}{next(_phone_counter):08d}"


@pytest.fixture
def make_agent(db):
    """Factory for persisted agents."""
    async def _make(role: str = "sales_agent", phone: str | None = "auto", **kwargs) -> Agent:
        if phone == "auto":
            phone = unique_phone("+9181")
        agent = Agent(
            full_name=kwargs.pop("full_name", f"Agent {uuid.uuid4().hex[:6]}"),
            email=kwargs.pop("email", f"{uuid.uuid4().hex[:10]}@leadflow.test"),
            phone=phone,
            role=role,
            **kwargs,
        )
        db.add(agent)
        await db.commit()
        return agent
    return _make


@pytest.fixture
def make_lead(db):
    """Factory for persisted leads."""
    async def _make(assigned_to: Agent | None = None, **kwargs) -> Lead:
        lead = Lead(
            name=kwargs.pop("name", "Test Lead"),
            phone=kwargs.pop("phone", None) or unique_phone(),
            stage=kwargs.pop("stage", "new"),
            temperature=kwargs.pop("temperature", "warm"),
            assigned_to_id=assigned_to.id if assigned_to else None,
            **kwargs,
        )
        db.add(lead)
        await db.commit()
        return lead
    return _make


def actor_for(agent: Agent) -> Actor:
    return Actor(agent_id=agent.id, role=agent.role)


@pytest.fixture
def as_actor():
    return actor_for


def bearer_token(agent_id, role: str, secret: str | None = None) -> str:
    settings = get_settings()
    key = secret or settings.jwt_secret or settings.app_secret_key
    return jwt.encode({"sub": str(agent_id), "role": role}, key, algorithm=settings.jwt_algorithm)


@pytest.fixture
def auth_headers():
    """Build Authorization headers for an agent."""
    def _headers(agent: Agent) -> dict:
        return {"Authorization": f"Bearer {bearer_token(agent.id, agent.role)}"}
    return _headers


@pytest.fixture
async def client(db):
    """HTTP client against the app, sharing the test database session."""
    from leadflow.main import create_app

    app = create_app()

    async def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


@pytest.fixture
def make_token():
    """Sign arbitrary claims, e.g. to test rejected tokens."""
    return bearer_token
