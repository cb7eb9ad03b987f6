"""
Tests for EntitlementService.
"""

from datetime import datetime, timedelta, timezone

import pytest

from prosets.exceptions import ForbiddenError
from prosets.fsm.states import OrderStatus, UserRole
from prosets.services.entitlement_service import EntitlementService

from conftest import make_asset, make_order, make_user


@pytest.mark.asyncio
async def test_no_order_means_not_entitled(db):
    vendor = await make_user(db, UserRole.VENDOR)
    buyer = await make_user(db)
    asset = await make_asset(db, vendor)
    service = EntitlementService(db)

    assert await service.is_entitled(buyer.id, asset.id) is False
    with pytest.raises(ForbiddenError, match="You do not own this asset"):
        await service.require_entitlement(buyer.id, asset.id)


@pytest.mark.asyncio
@pytest.mark.parametrize("status, message", [
    (OrderStatus.PENDING, "Payment not confirmed yet"),
    (OrderStatus.FAILED, "Payment failed"),
    (OrderStatus.REFUNDED, "You do not have access"),
])
async def test_latest_order_selects_message(db, status, message):
    vendor = await make_user(db, UserRole.VENDOR)
    buyer = await make_user(db)
    asset = await make_asset(db, vendor)
    await make_order(db, buyer, asset, status)

    with pytest.raises(ForbiddenError, match=message):
        await EntitlementService(db).require_entitlement(buyer.id, asset.id)


@pytest.mark.asyncio
async def test_paid_order_wins_over_newer_failed_attempt(db):
    """Any PAID order grants access regardless of later attempts."""
    vendor = await make_user(db, UserRole.VENDOR)
    buyer = await make_user(db)
    asset = await make_asset(db, vendor)

    paid = await make_order(db, buyer, asset, OrderStatus.PAID)
    paid.created_at = datetime.now(timezone.utc) - timedelta(days=2)
    await make_order(db, buyer, asset, OrderStatus.FAILED)
    await db.commit()

    service = EntitlementService(db)
    assert await service.is_entitled(buyer.id, asset.id) is True
    await service.require_entitlement(buyer.id, asset.id)


@pytest.mark.asyncio
async def test_entitlement_is_per_user_and_asset(db):
    vendor = await make_user(db, UserRole.VENDOR)
    buyer = await make_user(db)
    other = await make_user(db)
    asset = await make_asset(db, vendor)
    other_asset = await make_asset(db, vendor, title="Other")
    await make_order(db, buyer, asset, OrderStatus.PAID)

    service = EntitlementService(db)
    assert await service.is_entitled(other.id, asset.id) is False
    assert await service.is_entitled(buyer.id, other_asset.id) is False
