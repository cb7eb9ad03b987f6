"""
Admin API - refunds.
"""

import uuid
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from prosets.api.deps import get_stripe_service, require_permission
from prosets.database import get_db
from prosets.fsm.states import Permission
from prosets.models.user import User
from prosets.services.refund_service import RefundService
from prosets.services.stripe_service import StripeService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/payments/{order_id}/refund", status_code=status.HTTP_202_ACCEPTED)
async def refund_order(
    order_id: uuid.UUID,
    admin: User = Depends(require_permission(Permission.CAN_ADMINISTER)),
    db: AsyncSession = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
):
    """
    Ask Stripe to refund a paid order.
    The order becomes REFUNDED once the charge.refunded webhook arrives.
    """
    logger.info(f"Refund of order {order_id} requested by {admin.id}")
    service = RefundService(db, stripe_service=stripe_service)
    return await service.request_refund(order_id)
