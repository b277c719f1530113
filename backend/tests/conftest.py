from __future__ import annotations

import os
from datetime import timedelta
from uuid import uuid4

os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("LOGIN_KEY_PEPPER", "test-pepper")
os.environ.setdefault("ALLOWED_HOSTS", "testserver,localhost")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
import sqlalchemy as sa
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from orgauth import models  # noqa: F401  (registers every table on Base.metadata)
from orgauth.api import deps
from orgauth.core.errors import InvalidAssertionError
from orgauth.core.security import TokenConfig, TokenIssuer
from orgauth.db.base import Base
from orgauth.db.session import get_db
from orgauth.main import app
from orgauth.services.auth_flow import AuthDeps
from orgauth.services.federation import FederatedIdentity
from orgauth.services.tenants import TenantStoreCache
from tests.testkit import ApiClient, IdentityFactory



class FakeIdentityVerifier:
    """Maps opaque assertion strings to identities; anything else is rejected."""

    def __init__(self):
        self.identities: dict[str, FederatedIdentity] = {}

    def register(self, assertion: str, email: str, name: str | None = None, picture_url: str | None = None):
        self.identities[assertion] = FederatedIdentity(email=email, name=name, picture_url=picture_url)

    def verify(self, assertion: str) -> FederatedIdentity:
        identity = self.identities.get(assertion)
        if identity is None:
            raise InvalidAssertionError("Invalid Google token")
        return identity


class CapturingEmailTransport:
    def __init__(self):
        self.sent: list[dict] = []
        self.fail = False

    def send(self, to: str, subject: str, text: str, html: str) -> bool:
        if self.fail:
            return False
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})
        return True

    def last_code_for(self, to: str) -> str:
        for message in reversed(self.sent):
            if message["to"] == to:
                return message["text"].split("code is: ")[1][:6]
        raise AssertionError(f"no email sent to {to}")


@pytest.fixture()
def engine():
    eng = sa.create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def token_issuer() -> TokenIssuer:
    return TokenIssuer(TokenConfig(secret="test-jwt-secret", ttl=timedelta(hours=24)))


@pytest.fixture()
def identity_verifier() -> FakeIdentityVerifier:
    return FakeIdentityVerifier()


@pytest.fixture()
def mailer() -> CapturingEmailTransport:
    return CapturingEmailTransport()


@pytest.fixture()
def auth_deps(token_issuer, identity_verifier, mailer) -> AuthDeps:
    return AuthDeps(token_issuer=token_issuer, identity_verifier=identity_verifier, email=mailer)


@pytest.fixture()
def tenant_stores():
    stores = TenantStoreCache(
        url_template="sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield stores
    stores.dispose()


@pytest.fixture()
def client(session_factory, token_issuer, auth_deps, tenant_stores):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[deps.get_token_issuer] = lambda: token_issuer
    app.dependency_overrides[deps.get_auth_deps] = lambda: auth_deps
    app.dependency_overrides[deps.get_tenant_stores] = lambda: tenant_stores
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(scope="session")
def api() -> ApiClient:
    if os.getenv("RUN_API_INTEGRATION", "0") != "1":
        pytest.skip("Integration tests disabled. Set RUN_API_INTEGRATION=1.")

    base_url = os.getenv("TEST_API_BASE_URL", "http://localhost:8000")
    client = ApiClient(base_url)
    try:
        health = client.call("GET", "/health")
    except Exception as exc:  # pragma: no cover - guard rail
        pytest.fail(f"API not reachable at {base_url}: {exc}")
    if not isinstance(health, dict) or not health.get("ok"):
        pytest.fail(f"Invalid health check at {base_url}: {health}")
    return client


@pytest.fixture(scope="session")
def identity_factory() -> IdentityFactory:
    return IdentityFactory(seed=uuid4().hex[:8])
