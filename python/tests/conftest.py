"""Pytest configuration and fixtures for Insights tests.

Test isolation strategy:
- Every test that touches the database gets its own SQLite file under
  tmp_path, created from the ORM metadata. No external database needed.
- Sessions come from a factory bound to that engine; factories commit, so
  separate sessions (ledger, role loader) see the same rows.
- API tests use the real app factory with MockJwtVerifier.
"""

import os
import sys
from collections.abc import Generator
from pathlib import Path

# Settings are read lazily; these defaults make create_app() usable in tests
os.environ.setdefault("INSIGHTS_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPABASE_JWKS_URL", "http://localhost:54321/auth/v1/.well-known/jwks.json")
os.environ.setdefault("SUPABASE_ISSUER", "test-issuer")
os.environ.setdefault("SUPABASE_AUDIENCES", "test-audience")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")

# Add repo root to sys.path for importing top-level packages (e.g., apps)
_repo_root = Path(__file__).parent.parent.parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from insights.config import clear_settings_cache
from insights.db.engine import create_db_engine
from insights.db.models import Base
from insights.db.session import create_session_factory
from insights.policy import PolicyEngine
from insights.registry import InMemorySubjectRegistry, SqlSubjectRegistry
from tests.support.mock_verifier import MockJwtVerifier


@pytest.fixture
def engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """Per-test SQLite database with the full schema."""
    engine = create_db_engine(
        f"sqlite:///{tmp_path / 'insights.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def memory_registry() -> InMemorySubjectRegistry:
    return InMemorySubjectRegistry()


@pytest.fixture
def memory_engine(memory_registry: InMemorySubjectRegistry) -> PolicyEngine:
    """Policy engine over the default table and an in-memory registry."""
    return PolicyEngine(memory_registry)


@pytest.fixture
def sql_engine(db_session: Session) -> PolicyEngine:
    """Policy engine over the default table and the SQL registry."""
    return PolicyEngine(SqlSubjectRegistry(db_session))


@pytest.fixture
def test_verifier() -> MockJwtVerifier:
    return MockJwtVerifier()


@pytest.fixture
def app(engine: Engine, test_verifier: MockJwtVerifier):
    """Full app: request-id + auth middleware, mock verifier, SQLite engine."""
    from insights.app import create_app

    return create_app(token_verifier=test_verifier, db_engine=engine, log_requests=False)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as client:
        yield client


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset the settings cache before each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
