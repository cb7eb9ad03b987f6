"""
User Service - upsert-on-login.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from prosets.fsm.states import UserRole
from prosets.models.user import User
from prosets.services.identity_service import IdentityProfile

logger = logging.getLogger(__name__)


class UserService:
    """Service for mapping identity-provider subjects to users."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_or_create_from_identity(self, profile: IdentityProfile) -> User:
        """Get existing user or create new one, refreshing email/name."""
        result = await self.db.execute(
            select(User).where(User.auth0_id == profile.subject_id).with_for_update()
        )
        user = result.scalar_one_or_none()

        if user:
            if user.email != profile.email or (profile.name and user.name != profile.name):
                user.email = profile.email
                user.name = profile.name or user.name
                logger.info(f"User updated: {user.id}")
            return user

        user = User(
            auth0_id=profile.subject_id,
            email=profile.email,
            name=profile.name,
            role=UserRole.CLIENT.value,
        )
        self.db.add(user)
        await self.db.flush()

        logger.info(f"New user created: {user.id} ({profile.email})")
        return user

