from __future__ import annotations

from datetime import timedelta

import pytest
from jose import jwt

from orgauth.core.errors import TokenExpiredError, TokenInvalidError
from orgauth.core.security import (
    TokenConfig,
    TokenIssuer,
    hash_password,
    login_key_hash,
    session_token_hash,
    verify_password,
)
from orgauth.services.principals import SuperadminPrincipal, TenantAdminPrincipal
from orgauth.services.tenants import SYSTEM_TENANT, TenantInfo

ADMIN = TenantAdminPrincipal(
    id="admin-1",
    email="admin@example.com",
    name="Ada",
    password_hash=None,
    is_active=True,
    organization_id="org-1",
)
TENANT = TenantInfo(
    id="org-1",
    name="Acme",
    db_handle="org_abc",
    status="active",
    subscription_plan="free",
    enabled_modules=["basic"],
)


def test_mint_then_verify_carries_tenant_binding(token_issuer):
    token = token_issuer.mint(ADMIN, TENANT, "password")
    claims = token_issuer.verify(token)

    assert claims.user_id == "admin-1"
    assert claims.role == "admin"
    assert claims.organization_id == "org-1"
    assert claims.organization_db == "org_abc"
    assert claims.method == "password"
    assert claims.expires_at - claims.issued_at == timedelta(hours=24)


def test_superadmin_tokens_bind_to_the_system_tenant(token_issuer):
    root = SuperadminPrincipal(id="su-1", email="root@example.com", name=None, password_hash=None, is_active=True)
    claims = token_issuer.verify(token_issuer.mint(root, SYSTEM_TENANT, "otp"))

    assert claims.role == "superadmin"
    assert claims.organization_id == "system"
    assert claims.organization_db == "system"


def test_each_token_is_unique(token_issuer):
    assert token_issuer.mint(ADMIN, TENANT, "password") != token_issuer.mint(ADMIN, TENANT, "password")


def test_expired_token_is_rejected():
    issuer = TokenIssuer(TokenConfig(secret="s", ttl=timedelta(seconds=-5)))
    with pytest.raises(TokenExpiredError):
        issuer.verify(issuer.mint(ADMIN, TENANT, "password"))


def test_tampered_token_is_rejected(token_issuer):
    header, _, signature = token_issuer.mint(ADMIN, TENANT, "password").split(".")
    _, other_payload, _ = token_issuer.mint(ADMIN, TENANT, "otp").split(".")
    with pytest.raises(TokenInvalidError):
        token_issuer.verify(".".join([header, other_payload, signature]))


def test_foreign_secret_is_rejected(token_issuer):
    forged = TokenIssuer(TokenConfig(secret="someone-else")).mint(ADMIN, TENANT, "password")
    with pytest.raises(TokenInvalidError):
        token_issuer.verify(forged)


def test_previous_secret_still_verifies_during_rotation():
    old = TokenIssuer(TokenConfig(secret="old-secret"))
    rotated = TokenIssuer(TokenConfig(secret="new-secret", previous_secrets=("old-secret",)))

    claims = rotated.verify(old.mint(ADMIN, TENANT, "federated"))
    assert claims.method == "federated"


def test_token_missing_claims_is_rejected():
    payload = {"sub": "x", "iss": "orgauth", "exp": 4102444800, "iat": 0}
    token = jwt.encode(payload, "s", algorithm="HS256")
    with pytest.raises(TokenInvalidError):
        TokenIssuer(TokenConfig(secret="s")).verify(token)


def test_wrong_issuer_is_rejected():
    other = TokenIssuer(TokenConfig(secret="s", issuer="someone-else"))
    with pytest.raises(TokenInvalidError):
        TokenIssuer(TokenConfig(secret="s")).verify(other.mint(ADMIN, TENANT, "password"))


def test_password_hashing():
    hashed = hash_password("Correct-Horse-9")
    assert verify_password("Correct-Horse-9", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("Correct-Horse-9", "not-a-bcrypt-hash")


def test_stored_hashes_hide_their_input():
    assert "admin@example.com" not in login_key_hash("admin@example.com")
    assert session_token_hash("abc") != session_token_hash("abd")
