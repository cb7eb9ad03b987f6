"""
Payments API - checkout creation and payment records.
The Stripe webhook lives in prosets.api.webhooks.stripe.
"""

import uuid
import logging

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from prosets.api.deps import get_current_user, get_stripe_service
from prosets.database import get_db
from prosets.models.user import User
from prosets.services.checkout_service import CheckoutService
from prosets.services.stripe_service import StripeService

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateCheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    asset_id: uuid.UUID = Field(alias="assetId")


@router.post("/create-checkout", status_code=status.HTTP_201_CREATED)
async def create_checkout(
    request: CreateCheckoutRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
):
    """Start a purchase and return the hosted checkout URL."""
    service = CheckoutService(db, stripe_service=stripe_service)
    return await service.create_checkout(user, request.asset_id)


@router.get("/order/{order_id}")
async def get_order_payments(
    order_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
):
    service = CheckoutService(db, stripe_service=stripe_service)
    return await service.get_order_payments(user, order_id)
