"""
Pytest configuration and fixtures.
"""

import sys
import os
import hashlib
import hmac
import json
import time
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root to path
sys.path.append(os.getcwd())

from prosets.database import Base
from prosets.fsm.states import AssetStatus, OrderStatus, UserRole
from prosets.models import Asset, Order, User
from prosets.services.identity_service import IdentityProfile
from prosets.services.storage_service import StorageService
from prosets.services.stripe_service import StripeService

# Use in-memory SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

WEBHOOK_SECRET = "whsec_test_secret"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Fresh schema per test; StaticPool keeps the in-memory database alive."""
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for a test."""
    async_session = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------------------------
# Factories. Rows are committed so service-level rollbacks keep them.
# ---------------------------------------------------------------------------

async def make_user(
    db: AsyncSession,
    role: UserRole = UserRole.CLIENT,
    auth0_id: Optional[str] = None,
    name: str = "Test User",
) -> User:
    auth0_id = auth0_id or f"auth0|{uuid.uuid4().hex[:12]}"
    user = User(
        auth0_id=auth0_id,
        email=f"{auth0_id.split('|')[-1]}@example.com",
        name=name,
        role=role.value,
    )
    db.add(user)
    await db.commit()
    return user


async def make_asset(
    db: AsyncSession,
    vendor: User,
    price: str = "49.99",
    status: AssetStatus = AssetStatus.ACTIVE,
    title: str = "Sci-Fi Corridor Kit",
    deleted: bool = False,
) -> Asset:
    asset = Asset(
        vendor_id=vendor.id,
        title=title,
        description="Modular corridor pieces",
        price=Decimal(price),
        category="environments",
        preview_urls=[],
        source_file_key=f"{vendor.id}/corridor.zip",
        status=status.value,
    )
    if deleted:
        asset.deleted_at = datetime.now(timezone.utc)
    db.add(asset)
    await db.commit()
    return asset


async def make_order(
    db: AsyncSession,
    user: User,
    asset: Asset,
    status: OrderStatus = OrderStatus.PENDING,
) -> Order:
    order = Order(
        user_id=user.id,
        asset_id=asset.id,
        total_amount=asset.price,
        status=status.value,
    )
    db.add(order)
    await db.commit()
    return order


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------

class FakeS3Client:
    """Records calls the way boto3's S3 client would receive them."""

    def __init__(self):
        self.presign_calls = []
        self.uploads = []
        self.deletes = []

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        self.presign_calls.append((operation, Params, ExpiresIn))
        return (
            f"https://{Params['Bucket']}.s3.amazonaws.com/{Params['Key']}"
            f"?X-Amz-Expires={ExpiresIn}&X-Amz-Signature=fake"
        )

    def upload_fileobj(self, fileobj, bucket, key, ExtraArgs=None):
        self.uploads.append((bucket, key, ExtraArgs, fileobj.read()))

    def delete_object(self, Bucket, Key):
        self.deletes.append((Bucket, Key))


class FakeStripeService(StripeService):
    """Real webhook verification, canned checkout and refund responses."""

    def __init__(self):
        super().__init__(api_key="sk_test_fake", webhook_secret=WEBHOOK_SECRET)
        self.sessions = []
        self.refunds = []

    async def create_checkout_session(self, order_id, user_id, asset_id, asset_title,
                                      amount, customer_email=None):
        session_id = f"cs_test_{len(self.sessions) + 1}"
        self.sessions.append({
            "session_id": session_id,
            "order_id": order_id,
            "user_id": user_id,
            "asset_id": asset_id,
            "amount": amount,
        })
        return {"session_id": session_id, "url": f"https://checkout.stripe.com/c/pay/{session_id}"}

    async def create_refund(self, payment_intent_id, amount=None):
        refund_id = f"re_test_{len(self.refunds) + 1}"
        self.refunds.append((payment_intent_id, amount))
        return {"refund_id": refund_id, "status": "pending"}


class FakeIdentityService:
    """Treats the bearer token as the identity-provider subject."""

    async def verify(self, token: str) -> IdentityProfile:
        return IdentityProfile(
            subject_id=token,
            email=f"{token.split('|')[-1]}@example.com",
            name=token.split("|")[-1],
        )


def make_fake_storage() -> StorageService:
    return StorageService(client=FakeS3Client())


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header for payload."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def stripe_event(event_type: str, data_object: dict, event_id: Optional[str] = None) -> bytes:
    return json.dumps({
        "id": event_id or f"evt_{uuid.uuid4().hex[:16]}",
        "object": "event",
        "type": event_type,
        "data": {"object": data_object},
    }).encode("utf-8")
