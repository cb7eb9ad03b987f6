"""
Checkout Service - creates PENDING orders and hosted Stripe checkout sessions.
"""

import uuid
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from prosets.config import settings
from prosets.exceptions import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from prosets.fsm.states import AssetStatus, OrderStatus, Permission
from prosets.models.asset import Asset
from prosets.models.order import Order
from prosets.models.payment import Payment
from prosets.models.user import User
from prosets.services.entitlement_service import EntitlementService
from prosets.services.stripe_service import StripeService

logger = logging.getLogger(__name__)


class CheckoutService:
    """Service for starting purchases and reading their settlement records."""

    def __init__(self, db: AsyncSession, stripe_service: Optional[StripeService] = None):
        self.db = db
        self.stripe = stripe_service or StripeService()
        self.entitlements = EntitlementService(db)

    async def _get_purchasable_asset(self, asset_id: uuid.UUID) -> Asset:
        result = await self.db.execute(
            select(Asset).where(Asset.id == asset_id)
        )
        asset = result.scalar_one_or_none()

        if not asset or asset.is_deleted:
            raise NotFoundError("Asset not found")

        return asset

    async def _recent_pending_order(
        self,
        user_id: uuid.UUID,
        asset_id: uuid.UUID,
    ) -> Optional[Order]:
        window_start = datetime.now(timezone.utc) - timedelta(
            minutes=settings.checkout_pending_window_minutes
        )
        result = await self.db.execute(
            select(Order)
            .where(Order.user_id == user_id)
            .where(Order.asset_id == asset_id)
            .where(Order.status == OrderStatus.PENDING.value)
            .where(Order.created_at >= window_start)
            .order_by(desc(Order.created_at))
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_checkout(self, user: User, asset_id: uuid.UUID) -> Dict[str, str]:
        """
        Validate the purchase, record a PENDING order and open a checkout session.

        The order is committed before Stripe is called. If session creation
        fails it simply stays PENDING and the gateway error propagates.
        """
        asset = await self._get_purchasable_asset(asset_id)

        # Checked before status so the answer does not depend on it
        if asset.vendor_id == user.id:
            raise BadRequestError("Cannot purchase own asset")

        if asset.status != AssetStatus.ACTIVE.value:
            raise BadRequestError("Asset is not available for purchase")

        if await self.entitlements.is_entitled(user.id, asset.id):
            raise ConflictError("Asset already owned")

        pending = await self._recent_pending_order(user.id, asset.id)
        if pending:
            logger.warning(
                f"User {user.id} already has pending order {pending.id} "
                f"for asset {asset.id}, creating a new one"
            )

        order = Order(
            user_id=user.id,
            asset_id=asset.id,
            total_amount=asset.price,
            status=OrderStatus.PENDING.value,
        )
        self.db.add(order)
        await self.db.flush()
        await self.db.commit()

        logger.info(
            f"Order created: {order.id} for asset {asset.id} by user {user.id}",
            extra={"order_id": order.id, "asset_id": asset.id, "user_id": user.id},
        )

        session = await self.stripe.create_checkout_session(
            order_id=order.id,
            user_id=user.id,
            asset_id=asset.id,
            asset_title=asset.title,
            amount=order.total_amount,
            customer_email=user.email,
        )

        order.stripe_session_id = session["session_id"]
        await self.db.flush()

        return {
            "sessionId": session["session_id"],
            "url": session["url"],
            "orderId": str(order.id),
        }

    async def get_order(self, order_id: uuid.UUID) -> Order:
        result = await self.db.execute(
            select(Order).where(Order.id == order_id)
        )
        order = result.scalar_one_or_none()
        if not order:
            raise NotFoundError("Order not found")
        return order

    async def get_order_payments(self, user: User, order_id: uuid.UUID) -> List[Dict[str, Any]]:
        """Payments recorded for an order; visible to its buyer and administrators."""
        order = await self.get_order(order_id)

        if order.user_id != user.id and not user.has_permission(Permission.CAN_ADMINISTER):
            raise ForbiddenError("You do not have access to this order")

        result = await self.db.execute(
            select(Payment)
            .where(Payment.order_id == order.id)
            .order_by(Payment.created_at)
        )

        return [
            {
                "id": str(payment.id),
                "orderId": str(payment.order_id),
                "stripePaymentId": payment.stripe_payment_id,
                "amount": float(payment.amount),
                "status": payment.status,
                "createdAt": payment.created_at.isoformat(),
            }
            for payment in result.scalars().all()
        ]
