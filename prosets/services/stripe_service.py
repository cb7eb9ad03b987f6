"""
Stripe Service - checkout sessions, webhook verification and refunds.
"""

import json
import logging
import uuid
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

import stripe

from prosets.config import settings
from prosets.exceptions import ExternalServiceError, WebhookSignatureError
from prosets.services.external import call_external

logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """Convert a decimal amount to Stripe's integer cents."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: Optional[int]) -> Decimal:
    """Convert Stripe's integer cents back to a 2-place decimal."""
    return (Decimal(amount or 0) / 100).quantize(Decimal("0.01"))


class StripeService:
    """Thin wrapper over the stripe SDK used by checkout and the webhook."""

    # Stripe's own default tolerance for signed timestamps
    SIGNATURE_TOLERANCE_SECONDS = 300

    def __init__(
        self,
        api_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.stripe_secret_key
        self.webhook_secret = (
            webhook_secret if webhook_secret is not None else settings.stripe_webhook_secret
        )
        self.currency = settings.stripe_currency

    async def create_checkout_session(
        self,
        order_id: uuid.UUID,
        user_id: uuid.UUID,
        asset_id: uuid.UUID,
        asset_title: str,
        amount: Decimal,
        customer_email: Optional[str] = None,
    ) -> Dict[str, str]:
        """
        Create a one-off payment Checkout Session for a single asset.

        The order/user/asset ids ride along as metadata on both the session
        and its payment intent so every later webhook can be correlated.
        """
        metadata = {
            "orderId": str(order_id),
            "userId": str(user_id),
            "assetId": str(asset_id),
        }

        try:
            session = await call_external(
                "Stripe",
                stripe.checkout.Session.create,
                api_key=self.api_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=[{
                    "price_data": {
                        "currency": self.currency,
                        "product_data": {
                            "name": asset_title,
                            "description": f"Purchase of digital asset: {asset_title}",
                        },
                        "unit_amount": to_minor_units(amount),
                    },
                    "quantity": 1,
                }],
                success_url=f"{settings.frontend_url}/success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{settings.frontend_url}/cancel",
                customer_email=customer_email,
                metadata=metadata,
                payment_intent_data={"metadata": metadata},
                idempotency_key=f"checkout_{order_id}",
            )
        except stripe.StripeError as e:
            logger.error(f"Failed to create Stripe checkout session for order {order_id}: {e}")
            raise ExternalServiceError("Failed to create checkout session")

        logger.info(f"Stripe checkout session created: {session.id} for order {order_id}")
        return {"session_id": session.id, "url": session.url}

    def construct_webhook_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        """
        Verify the Stripe-Signature header over the exact raw body and
        return the decoded event.
        """
        try:
            payload_str = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        except UnicodeDecodeError:
            logger.error("Webhook payload is not valid UTF-8")
            raise WebhookSignatureError("Invalid webhook payload")

        if not self.webhook_secret:
            if settings.is_production:
                logger.error("Stripe webhook secret not configured")
                raise WebhookSignatureError("Webhook secret not configured")
            logger.warning("Webhook secret not configured, skipping signature verification")
        else:
            if not signature:
                raise WebhookSignatureError("Missing webhook signature")
            try:
                stripe.WebhookSignature.verify_header(
                    payload_str,
                    signature,
                    self.webhook_secret,
                    self.SIGNATURE_TOLERANCE_SECONDS,
                )
            except stripe.SignatureVerificationError as e:
                logger.error(f"Webhook signature verification failed: {e}")
                raise WebhookSignatureError()

        try:
            event = json.loads(payload_str)
        except ValueError:
            raise WebhookSignatureError("Invalid webhook payload")

        if not isinstance(event, dict) or "type" not in event:
            raise WebhookSignatureError("Invalid webhook payload")

        return event

    async def create_refund(
        self,
        payment_intent_id: str,
        amount: Optional[Decimal] = None,
    ) -> Dict[str, str]:
        """Ask Stripe to refund a payment intent, fully or partially."""
        params: Dict[str, Any] = {"payment_intent": payment_intent_id}
        if amount is not None:
            params["amount"] = to_minor_units(amount)

        try:
            refund = await call_external(
                "Stripe",
                stripe.Refund.create,
                api_key=self.api_key,
                **params,
            )
        except stripe.StripeError as e:
            logger.error(f"Failed to create refund for {payment_intent_id}: {e}")
            raise ExternalServiceError("Failed to create refund")

        logger.info(f"Refund created: {refund.id} for payment {payment_intent_id}")
        return {"refund_id": refund.id, "status": refund.status}
