"""
Shared API dependencies: bearer authentication and capability checks.
"""

import logging
from typing import Callable, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from prosets.database import get_db
from prosets.exceptions import ForbiddenError, UnauthorizedError
from prosets.fsm.states import Permission
from prosets.models.user import User
from prosets.services.identity_service import IdentityService
from prosets.services.user_service import UserService
from prosets.services.storage_service import StorageService
from prosets.services.stripe_service import StripeService

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_identity_service() -> IdentityService:
    return IdentityService()


def get_storage_service() -> StorageService:
    return StorageService()


def get_stripe_service() -> StripeService:
    return StripeService()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    identity: IdentityService = Depends(get_identity_service),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Verify the bearer token and return the matching user,
    creating it on first sight.
    """
    if not credentials or not credentials.credentials:
        raise UnauthorizedError("Missing bearer token")

    profile = await identity.verify(credentials.credentials)
    return await UserService(db).get_or_create_from_identity(profile)


def require_permission(permission: Permission) -> Callable:
    """Dependency factory: the current user must hold the given capability."""

    async def checker(user: User = Depends(get_current_user)) -> User:
        if not user.has_permission(permission):
            logger.info(f"User {user.id} lacks {permission.value}")
            raise ForbiddenError("Insufficient permissions")
        return user

    return checker
