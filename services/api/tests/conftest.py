import json
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.compiler import compiles

from nosh.main import app
from nosh.db import Base, get_db
from nosh.settings import settings
from nosh.core.ai_client import GenerationResult, TokenUsage
from nosh.routers.extract import limiter

# --- Test Database Setup ---

@compiles(JSONB, 'sqlite')
def compile_jsonb(element, compiler, **kw):
    return "JSON"


SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool  # in-memory DB shared across sessions/threads
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

OPERATOR_KEY = "test-operator-key"
OPERATOR_HEADERS = {"X-Operator-Key": OPERATOR_KEY}


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def operator_keys(monkeypatch):
    monkeypatch.setattr(settings, "operator_api_keys", [OPERATOR_KEY])
    limiter.reset()
    yield


@pytest.fixture
def client():
    """Test client with DB override."""
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def db_session():
    """Direct database session for setup."""
    session = TestingSessionLocal()
    yield session
    session.close()


import fakeredis
import fakeredis.aioredis
from nosh.infra import redis_client

@pytest.fixture(autouse=True)
def mock_redis(monkeypatch):
    server = fakeredis.FakeServer()
    # Create fake clients sharing the same server
    async_redis = fakeredis.aioredis.FakeRedis(server=server, decode_responses=True)
    sync_redis = fakeredis.FakeRedis(server=server, decode_responses=True)

    redis_client.set_clients(async_redis, sync_redis)

    yield sync_redis

    redis_client.set_clients(None, None)


# --- Generation capability doubles ---

def generation(payload, model="gemini-2.5-flash", total_tokens=1234) -> GenerationResult:
    content = payload if isinstance(payload, str) else json.dumps(payload)
    return GenerationResult(
        content=content,
        model=model,
        usage=TokenUsage(input_tokens=1000, output_tokens=total_tokens - 1000, total_tokens=total_tokens),
    )


def fake_ai(*results) -> MagicMock:
    """A stand-in ai_client whose chat() returns (or raises) the given results in order."""
    fake = MagicMock()
    fake.mode = "gemini"
    fake.chat.side_effect = list(results)
    return fake
