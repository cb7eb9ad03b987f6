"""
Refund Service - administrator-initiated refunds.

Only asks Stripe to refund. The order moves to REFUNDED when the
charge.refunded webhook arrives.
"""

import uuid
import logging
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from prosets.exceptions import ConflictError, NotFoundError
from prosets.fsm.states import OrderStatus, PaymentStatus
from prosets.models.order import Order
from prosets.models.payment import Payment
from prosets.services.stripe_service import StripeService

logger = logging.getLogger(__name__)


class RefundService:
    """Service for asking the processor to refund a paid order."""

    def __init__(self, db: AsyncSession, stripe_service: Optional[StripeService] = None):
        self.db = db
        self.stripe = stripe_service or StripeService()

    async def request_refund(self, order_id: uuid.UUID) -> Dict[str, str]:
        result = await self.db.execute(
            select(Order).where(Order.id == order_id)
        )
        order = result.scalar_one_or_none()
        if not order:
            raise NotFoundError("Order not found")

        if order.status != OrderStatus.PAID.value:
            raise ConflictError(f"Only paid orders can be refunded (order is {order.status})")

        result = await self.db.execute(
            select(Payment)
            .where(Payment.order_id == order.id)
            .where(Payment.status == PaymentStatus.SUCCEEDED.value)
        )
        payment = result.scalar_one_or_none()
        if not payment or not payment.stripe_payment_id:
            raise ConflictError("No captured payment recorded for this order")

        refund = await self.stripe.create_refund(payment.stripe_payment_id)

        logger.info(f"Refund {refund['refund_id']} requested for order {order.id}")
        return {
            "refundId": refund["refund_id"],
            "status": refund["status"],
            "orderId": str(order.id),
        }
