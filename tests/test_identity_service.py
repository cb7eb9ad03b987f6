"""
Tests for IdentityService claim mapping and key lookup.
"""

from unittest.mock import AsyncMock, patch

import pytest

from prosets.exceptions import UnauthorizedError
from prosets.services.identity_service import IdentityService


@pytest.fixture
def identity():
    return IdentityService(domain="tenant.eu.auth0.com", audience="https://api.prosets.test")


def test_issuer_and_jwks_url(identity):
    assert identity.issuer == "https://tenant.eu.auth0.com/"
    assert identity.jwks_url == "https://tenant.eu.auth0.com/.well-known/jwks.json"


def test_profile_from_standard_claims(identity):
    profile = identity.profile_from_claims(
        {"sub": "auth0|abc", "email": "a@example.com", "name": "Ada"}
    )
    assert profile.subject_id == "auth0|abc"
    assert profile.email == "a@example.com"
    assert profile.name == "Ada"


def test_profile_from_namespaced_claims(identity):
    profile = identity.profile_from_claims({
        "sub": "auth0|abc",
        "https://api.prosets.test/email": "ns@example.com",
        "https://api.prosets.test/name": "Namespaced",
    })
    assert profile.email == "ns@example.com"
    assert profile.name == "Namespaced"


def test_profile_without_email_is_rejected(identity):
    with pytest.raises(UnauthorizedError):
        identity.profile_from_claims({"sub": "auth0|abc"})


@pytest.mark.asyncio
async def test_garbage_token_is_rejected(identity):
    with pytest.raises(UnauthorizedError):
        await identity.verify("not-a-jwt")


@pytest.mark.asyncio
async def test_unknown_kid_refetches_once_then_rejects(identity):
    fetch = AsyncMock(return_value=[{"kid": "other"}])
    with patch.object(IdentityService, "_get_signing_keys", fetch):
        with pytest.raises(UnauthorizedError):
            await identity._find_key("missing")

    assert fetch.await_count == 2
    assert fetch.await_args_list[1].kwargs == {"force": True}
