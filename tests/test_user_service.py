"""
Tests for UserService.
"""

import pytest
from sqlalchemy import select, func

from prosets.fsm.states import UserRole
from prosets.models.user import User
from prosets.services.identity_service import IdentityProfile
from prosets.services.user_service import UserService


@pytest.mark.asyncio
async def test_get_or_create_user_new(db):
    """First verified login creates a CLIENT user."""
    service = UserService(db)
    profile = IdentityProfile(subject_id="auth0|new", email="new@example.com", name="New")

    user = await service.get_or_create_from_identity(profile)

    assert user.id is not None
    assert user.auth0_id == "auth0|new"
    assert user.role == UserRole.CLIENT.value

    result = await db.execute(select(User).where(User.auth0_id == "auth0|new"))
    assert result.scalar_one().id == user.id


@pytest.mark.asyncio
async def test_get_or_create_user_existing(db):
    """Repeat logins reuse the row."""
    service = UserService(db)
    profile = IdentityProfile(subject_id="auth0|repeat", email="r@example.com")

    created = await service.get_or_create_from_identity(profile)
    retrieved = await service.get_or_create_from_identity(profile)

    assert retrieved.id == created.id
    count = await db.execute(select(func.count(User.id)))
    assert count.scalar_one() == 1


@pytest.mark.asyncio
async def test_profile_changes_are_refreshed(db):
    service = UserService(db)
    await service.get_or_create_from_identity(
        IdentityProfile(subject_id="auth0|moved", email="old@example.com", name="Old")
    )

    user = await service.get_or_create_from_identity(
        IdentityProfile(subject_id="auth0|moved", email="new@example.com", name="New")
    )

    assert user.email == "new@example.com"
    assert user.name == "New"
