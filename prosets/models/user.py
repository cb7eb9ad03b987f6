"""User model - identity-provider subject mapped to a marketplace account."""

import uuid
from datetime import datetime, timezone
from typing import FrozenSet, Optional

from sqlalchemy import String, DateTime
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from prosets.database import Base
from prosets.fsm.states import Permission, UserRole, permissions_for


class User(Base):
    """
    One row per Auth0 subject.
    Created on first verified login, never hard-deleted.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # Identity-provider subject ("auth0|...")
    auth0_id: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Display name, shown as the vendor on asset summaries
    name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )

    role: Mapped[str] = mapped_column(
        String(20),
        default=UserRole.CLIENT.value,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<User {self.email} role={self.role}>"

    @property
    def permissions(self) -> FrozenSet[Permission]:
        return permissions_for(self.role)

    def has_permission(self, permission: Permission) -> bool:
        return permission in self.permissions
