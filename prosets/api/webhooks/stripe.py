"""
Stripe Webhook Handler.
Verifies the Stripe-Signature header over the raw body and settles orders.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from redis.asyncio.client import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from prosets.api.deps import get_stripe_service
from prosets.database import get_db
from prosets.redis import get_redis
from prosets.services.payment_webhook_service import PaymentWebhookService
from prosets.services.stripe_service import StripeService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
    redis: Optional[Redis] = Depends(get_redis),
):
    """
    Handle Stripe webhook events.

    Key events:
    - checkout.session.completed: order paid
    - payment_intent.payment_failed: order failed
    - charge.refunded: order refunded

    Only an invalid signature is answered with an error; everything else
    is acknowledged so Stripe does not retry.
    """
    # Exact bytes Stripe signed; never re-serialise before verification
    body = await request.body()
    signature = request.headers.get("Stripe-Signature", "")

    service = PaymentWebhookService(db, stripe_service=stripe_service, redis=redis)
    return await service.handle_event(body, signature)
