"""
Payment Webhook Service - settles orders from Stripe events.

Signature verification is the only step allowed to reject a delivery.
Everything after it acknowledges, so Stripe stops retrying events the
marketplace has already seen or cannot use.
"""

import uuid
import logging
from typing import Any, Dict, Optional

from redis.asyncio.client import Redis
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from prosets.fsm.machine import OrderStateMachine
from prosets.fsm.states import OrderStatus, PaymentStatus, StripeEventType
from prosets.models.order import Order
from prosets.models.payment import Payment
from prosets.services.stripe_service import StripeService, from_minor_units

logger = logging.getLogger(__name__)

ACKNOWLEDGED = {"received": True}

# Stripe retries for up to three days; a day covers the bursts
PROCESSED_EVENT_TTL_SECONDS = 24 * 60 * 60


class PaymentWebhookService:
    """Verifies, de-duplicates and dispatches Stripe webhook events."""

    def __init__(
        self,
        db: AsyncSession,
        stripe_service: Optional[StripeService] = None,
        redis: Optional[Redis] = None,
    ):
        self.db = db
        self.stripe = stripe_service or StripeService()
        self.redis = redis

    @staticmethod
    def _event_key(event_id: str) -> str:
        return f"webhook:stripe:{event_id}"

    async def is_duplicate_event(self, event_id: Optional[str]) -> bool:
        """Fast path only; the order row is the real idempotency gate."""
        if not event_id or self.redis is None:
            return False
        try:
            return bool(await self.redis.exists(self._event_key(event_id)))
        except RedisError as e:
            logger.warning(f"Redis unavailable for webhook dedupe: {e}")
            return False

    async def mark_event_processed(self, event_id: Optional[str]) -> None:
        if not event_id or self.redis is None:
            return
        try:
            await self.redis.setex(self._event_key(event_id), PROCESSED_EVENT_TTL_SECONDS, "1")
        except RedisError as e:
            logger.warning(f"Could not record processed webhook {event_id}: {e}")

    async def handle_event(self, raw_payload: bytes, signature: str) -> Dict[str, bool]:
        """
        Process one delivery.
        Raises WebhookSignatureError on a bad signature; otherwise always
        returns the acknowledgement.
        """
        event = self.stripe.construct_webhook_event(raw_payload, signature)

        event_id = event.get("id")
        event_type = event.get("type")
        data = (event.get("data") or {}).get("object") or {}

        logger.info(
            f"Stripe webhook received: {event_type} ({event_id})",
            extra={"event_id": event_id, "event_type": event_type},
        )

        if await self.is_duplicate_event(event_id):
            logger.info(f"Duplicate event {event_id} ignored")
            return ACKNOWLEDGED

        try:
            if event_type == StripeEventType.CHECKOUT_SESSION_COMPLETED.value:
                await self.handle_checkout_completed(data)
            elif event_type == StripeEventType.PAYMENT_INTENT_FAILED.value:
                await self.handle_payment_failed(data)
            elif event_type == StripeEventType.PAYMENT_INTENT_SUCCEEDED.value:
                logger.info(f"Payment intent succeeded: {data.get('id')}")
            elif event_type == StripeEventType.CHARGE_REFUNDED.value:
                await self.handle_charge_refunded(data)
            else:
                logger.info(f"Unhandled Stripe event: {event_type}")

            await self.db.commit()

        except IntegrityError:
            # Lost the race against a concurrent delivery of the same event
            await self.db.rollback()
            logger.info(f"Concurrent settlement detected for event {event_id}, ignored")

        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error processing Stripe webhook {event_id}: {e}", exc_info=True)
            return ACKNOWLEDGED

        await self.mark_event_processed(event_id)
        return ACKNOWLEDGED

    @staticmethod
    def _order_id_from(data: Dict[str, Any]) -> Optional[uuid.UUID]:
        raw = (data.get("metadata") or {}).get("orderId")
        if not raw:
            return None
        try:
            return uuid.UUID(str(raw))
        except ValueError:
            logger.warning(f"Malformed orderId in webhook metadata: {raw}")
            return None

    async def _lock_order(self, order_id: uuid.UUID) -> Optional[Order]:
        """Re-read the order under a row lock, bypassing the identity map."""
        result = await self.db.execute(
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def handle_checkout_completed(self, session: Dict[str, Any]) -> None:
        order_id = self._order_id_from(session)
        if not order_id:
            logger.error(f"Checkout session {session.get('id')} has no orderId metadata")
            return

        order = await self._lock_order(order_id)
        if not order:
            logger.error(f"Order {order_id} not found for checkout session {session.get('id')}")
            return

        machine = OrderStateMachine(order)
        if machine.state.is_settled:
            logger.info(f"Order {order.id} already {order.status}, checkout completion ignored")
            return

        machine.transition(OrderStatus.PAID)

        self.db.add(Payment(
            order_id=order.id,
            stripe_payment_id=session.get("payment_intent"),
            amount=order.total_amount,
            status=PaymentStatus.SUCCEEDED.value,
        ))
        await self.db.flush()

        logger.info(f"Payment succeeded for order {order.id}", extra={"order_id": order.id})

    async def handle_payment_failed(self, intent: Dict[str, Any]) -> None:
        order_id = self._order_id_from(intent)
        if not order_id:
            logger.error(f"Payment intent {intent.get('id')} has no orderId metadata")
            return

        order = await self._lock_order(order_id)
        if not order:
            logger.error(f"Order {order_id} not found for failed payment {intent.get('id')}")
            return

        machine = OrderStateMachine(order)
        if machine.state != OrderStatus.PENDING:
            logger.info(f"Order {order.id} already {order.status}, payment failure ignored")
            return

        machine.transition(OrderStatus.FAILED)

        self.db.add(Payment(
            order_id=order.id,
            stripe_payment_id=intent.get("id"),
            amount=from_minor_units(intent.get("amount")),
            status=PaymentStatus.FAILED.value,
        ))
        await self.db.flush()

        logger.warning(f"Payment failed for order {order.id}", extra={"order_id": order.id})

    async def _order_id_for_charge(self, charge: Dict[str, Any]) -> Optional[uuid.UUID]:
        order_id = self._order_id_from(charge)
        if order_id or not charge.get("payment_intent"):
            return order_id

        # Charges created outside checkout may lack metadata
        result = await self.db.execute(
            select(Payment.order_id)
            .where(Payment.stripe_payment_id == charge["payment_intent"])
            .where(Payment.status == PaymentStatus.SUCCEEDED.value)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def handle_charge_refunded(self, charge: Dict[str, Any]) -> None:
        order_id = await self._order_id_for_charge(charge)
        if not order_id:
            logger.error(f"Refunded charge {charge.get('id')} cannot be matched to an order")
            return

        order = await self._lock_order(order_id)
        if not order:
            logger.error(f"Order {order_id} not found for refunded charge {charge.get('id')}")
            return

        machine = OrderStateMachine(order)
        if machine.state != OrderStatus.PAID:
            logger.info(f"Order {order.id} is {order.status}, refund ignored")
            return

        machine.transition(OrderStatus.REFUNDED)

        self.db.add(Payment(
            order_id=order.id,
            stripe_payment_id=charge.get("payment_intent"),
            amount=from_minor_units(charge.get("amount_refunded")),
            status=PaymentStatus.REFUNDED.value,
        ))
        await self.db.flush()

        logger.info(f"Order {order.id} refunded", extra={"order_id": order.id})
