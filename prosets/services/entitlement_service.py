"""
Entitlement Service - ownership checks backed by PAID orders.
"""

import uuid
import logging
from typing import Optional

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from prosets.exceptions import ForbiddenError
from prosets.fsm.states import OrderStatus
from prosets.models.order import Order

logger = logging.getLogger(__name__)


class EntitlementService:
    """A user owns an asset iff at least one PAID order exists for the pair."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def is_entitled(self, user_id: uuid.UUID, asset_id: uuid.UUID) -> bool:
        """Soft gate: yes/no, no side effects."""
        result = await self.db.execute(
            select(Order.id)
            .where(Order.user_id == user_id)
            .where(Order.asset_id == asset_id)
            .where(Order.status == OrderStatus.PAID.value)
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def get_latest_order(
        self,
        user_id: uuid.UUID,
        asset_id: uuid.UUID,
    ) -> Optional[Order]:
        """Most recent order for the pair, regardless of status."""
        result = await self.db.execute(
            select(Order)
            .where(Order.user_id == user_id)
            .where(Order.asset_id == asset_id)
            .order_by(desc(Order.created_at))
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def require_entitlement(self, user_id: uuid.UUID, asset_id: uuid.UUID) -> None:
        """
        Hard gate used before issuing a download.

        Any PAID order grants access, even when a newer attempt is still
        pending or failed. Without one, the latest order only decides
        which message the buyer sees.
        """
        if await self.is_entitled(user_id, asset_id):
            return

        order = await self.get_latest_order(user_id, asset_id)

        if not order:
            raise ForbiddenError("You do not own this asset")

        if order.status == OrderStatus.PENDING.value:
            raise ForbiddenError(
                "Payment not confirmed yet. Please wait for payment confirmation."
            )

        if order.status == OrderStatus.FAILED.value:
            raise ForbiddenError("Payment failed. Please purchase the asset again.")

        raise ForbiddenError("You do not have access to download this asset")
