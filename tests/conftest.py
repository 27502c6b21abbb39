"""Pytest configuration and fixtures for domain verification tests."""
import os
import threading

# The app builds its engine at import time; keep it off Postgres under test.
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from app.db.base_class import Base
from app.services.verification_checker import (
    CheckResult,
    ProbeOutcome,
    ProbeResult,
    VerificationTarget,
)

# --- DB URL ---

def _build_test_db_url(tmp_path) -> str:
    """TEST_DATABASE_URL if set, otherwise a throwaway SQLite file per test."""
    env_url = os.getenv("TEST_DATABASE_URL")
    if env_url:
        return env_url
    return f"sqlite:///{tmp_path / 'test.db'}"


# --- Fakes ---

class StubChecker:
    """
    Stands in for VerificationChecker.

    ``present`` holds the tokens currently "deployed"; ``raise_for`` makes
    the check blow up for specific domains.
    """

    def __init__(self, verified=False):
        self.verified = verified
        self.present = set()
        self.raise_for = set()
        self.calls = []
        self._lock = threading.Lock()

    def check(self, target: VerificationTarget, method: str = "file") -> CheckResult:
        with self._lock:
            self.calls.append((target, method))
        if target.domain in self.raise_for:
            raise RuntimeError(f"probe exploded for {target.domain}")
        if self.verified or target.token in self.present:
            return CheckResult([ProbeResult("http_file", ProbeOutcome.MATCH, "Verification file found")])
        return CheckResult([
            ProbeResult("http_file", ProbeOutcome.NOT_FOUND, "Verification file not found (HTTP 404)"),
            ProbeResult("dns_txt", ProbeOutcome.NOT_FOUND, "TXT record not found"),
        ])


# --- Per-test fixtures ---

@pytest.fixture
def test_engine(tmp_path):
    """Fresh tables for every test (create_all / drop_all)."""
    import app.models  # noqa: F401  (register every table on Base.metadata)

    url = _build_test_db_url(tmp_path)
    kwargs = {"connect_args": {"check_same_thread": False}} if url.startswith("sqlite") else {}
    engine = create_engine(url, **kwargs)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def stub_checker():
    return StubChecker()


@pytest.fixture
async def client(session_factory, stub_checker):
    """
    Async HTTP client against the app with:
      - get_db overridden to use the test database
      - the network checker replaced by ``stub_checker``
    """
    from app.main import app as fastapi_app
    from app.api import deps

    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    fastapi_app.dependency_overrides[deps.get_db] = _override_get_db
    fastapi_app.dependency_overrides[deps.get_verification_checker] = lambda: stub_checker

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()


# --- Helpers ---

def create_company(db, domain="acmecorp.com", name="Acme Corp"):
    """Helper: insert a company claiming ``domain`` and return it."""
    from app.models.company import Company

    company = Company(name=name, verified_domain=domain)
    db.add(company)
    db.commit()
    db.refresh(company)
    return company
