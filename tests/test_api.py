"""
End-to-end tests through the HTTP layer.
"""

import uuid

import httpx
import pytest
import pytest_asyncio

from prosets.api.deps import get_identity_service, get_storage_service, get_stripe_service
from prosets.database import get_db
from prosets.fsm.states import UserRole
from prosets.main import app
from prosets.redis import get_redis
from prosets.services.storage_service import StorageService

from conftest import (
    FakeIdentityService,
    FakeS3Client,
    FakeStripeService,
    make_asset,
    make_user,
    sign_payload,
    stripe_event,
)

BUYER = "auth0|buyer"
VENDOR = "auth0|vendor"
ADMIN = "auth0|admin"


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def stripe_service():
    return FakeStripeService()


@pytest_asyncio.fixture
async def s3():
    return FakeS3Client()


@pytest_asyncio.fixture
async def client(db, stripe_service, s3):
    async def override_get_db():
        yield db

    async def override_get_redis():
        return None

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_identity_service] = lambda: FakeIdentityService()
    app.dependency_overrides[get_storage_service] = lambda: StorageService(client=s3)
    app.dependency_overrides[get_stripe_service] = lambda: stripe_service

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def listed_asset(db):
    vendor = await make_user(db, UserRole.VENDOR, auth0_id=VENDOR, name="Studio Nine")
    return await make_asset(db, vendor, price="49.99")


async def _webhook(client, event_type, data_object):
    payload = stripe_event(event_type, data_object)
    return await client.post(
        "/api/payments/webhook",
        content=payload,
        headers={"Stripe-Signature": sign_payload(payload), "Content-Type": "application/json"},
    )


async def _checkout(client, asset_id):
    response = await client.post(
        "/api/payments/create-checkout",
        json={"assetId": str(asset_id)},
        headers=auth(BUYER),
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["redis"] == "disabled"


@pytest.mark.asyncio
async def test_missing_token_is_unauthorized(client, listed_asset):
    response = await client.post(f"/api/downloads/generate/{listed_asset.id}")

    assert response.status_code == 401
    assert response.json()["status"] == "error"


@pytest.mark.asyncio
async def test_purchase_then_download_scenario(client, listed_asset):
    checkout = await _checkout(client, listed_asset.id)
    assert checkout["sessionId"].startswith("cs_test_")

    can = await client.get(f"/api/downloads/can-download/{listed_asset.id}", headers=auth(BUYER))
    assert can.json() == {"canDownload": False, "assetId": str(listed_asset.id)}

    early = await client.post(f"/api/downloads/generate/{listed_asset.id}", headers=auth(BUYER))
    assert early.status_code == 403
    assert "Payment not confirmed yet" in early.json()["message"]

    paid = await _webhook(client, "checkout.session.completed", {
        "id": checkout["sessionId"],
        "payment_intent": "pi_scenario",
        "metadata": {"orderId": checkout["orderId"]},
    })
    assert paid.status_code == 200
    assert paid.json() == {"received": True}

    for _ in range(5):
        response = await client.post(
            f"/api/downloads/generate/{listed_asset.id}",
            json={"expirationSeconds": 600},
            headers=auth(BUYER),
        )
        assert response.status_code == 201
        body = response.json()
        assert body["expiresIn"] == 600
        assert body["asset"]["vendor"] == "Studio Nine"

    limited = await client.post(f"/api/downloads/generate/{listed_asset.id}", headers=auth(BUYER))
    assert limited.status_code == 409

    history = await client.get("/api/downloads/history", headers=auth(BUYER))
    assert history.json()["meta"]["total"] == 1
    assert history.json()["data"][0]["downloadCount"] == 5

    payments = await client.get(f"/api/payments/order/{checkout['orderId']}", headers=auth(BUYER))
    assert [p["status"] for p in payments.json()] == ["SUCCEEDED"]


@pytest.mark.asyncio
async def test_failed_payment_scenario(client, listed_asset):
    checkout = await _checkout(client, listed_asset.id)

    await _webhook(client, "payment_intent.payment_failed", {
        "id": "pi_failed",
        "amount": 4999,
        "metadata": {"orderId": checkout["orderId"]},
    })

    response = await client.post(f"/api/downloads/generate/{listed_asset.id}", headers=auth(BUYER))
    assert response.status_code == 403
    assert response.json()["message"] == "Payment failed. Please purchase the asset again."


@pytest.mark.asyncio
async def test_bad_webhook_signature_returns_400(client):
    payload = stripe_event("checkout.session.completed", {"metadata": {}})

    response = await client.post(
        "/api/payments/webhook",
        content=payload,
        headers={"Stripe-Signature": "t=1,v1=deadbeef"},
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_non_utf8_webhook_body_returns_400(client):
    response = await client.post(
        "/api/payments/webhook",
        content=b"\xff\xfe{}",
        headers={"Stripe-Signature": "t=1,v1=abc"},
    )

    assert response.status_code == 400
    assert response.json()["status"] == "error"


@pytest.mark.asyncio
async def test_declined_card_then_retry_grants_download(client, listed_asset):
    checkout = await _checkout(client, listed_asset.id)
    await _webhook(client, "payment_intent.payment_failed", {
        "id": "pi_retry",
        "amount": 4999,
        "metadata": {"orderId": checkout["orderId"]},
    })

    await _webhook(client, "checkout.session.completed", {
        "id": checkout["sessionId"],
        "payment_intent": "pi_retry",
        "metadata": {"orderId": checkout["orderId"]},
    })

    response = await client.post(f"/api/downloads/generate/{listed_asset.id}", headers=auth(BUYER))
    assert response.status_code == 201
    payments = await client.get(f"/api/payments/order/{checkout['orderId']}", headers=auth(BUYER))
    assert sorted(p["status"] for p in payments.json()) == ["FAILED", "SUCCEEDED"]


@pytest.mark.asyncio
async def test_vendor_cannot_buy_own_asset(client, listed_asset):
    response = await client.post(
        "/api/payments/create-checkout",
        json={"assetId": str(listed_asset.id)},
        headers=auth(VENDOR),
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Cannot purchase own asset"


@pytest.mark.asyncio
async def test_admin_refund_requires_capability(client, db, listed_asset, stripe_service):
    await make_user(db, UserRole.ADMIN, auth0_id=ADMIN)
    checkout = await _checkout(client, listed_asset.id)
    await _webhook(client, "checkout.session.completed", {
        "payment_intent": "pi_refund_me",
        "metadata": {"orderId": checkout["orderId"]},
    })
    url = f"/api/admin/payments/{checkout['orderId']}/refund"

    forbidden = await client.post(url, headers=auth(BUYER))
    assert forbidden.status_code == 403

    accepted = await client.post(url, headers=auth(ADMIN))
    assert accepted.status_code == 202
    assert accepted.json() == {
        "refundId": "re_test_1",
        "status": "pending",
        "orderId": checkout["orderId"],
    }
    assert stripe_service.refunds == [("pi_refund_me", None)]


@pytest.mark.asyncio
async def test_refund_of_unknown_order_is_404(client, db):
    await make_user(db, UserRole.ADMIN, auth0_id=ADMIN)

    response = await client.post(f"/api/admin/payments/{uuid.uuid4()}/refund", headers=auth(ADMIN))

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_vendor_uploads_source_file(client, db, s3):
    vendor = await make_user(db, UserRole.VENDOR, auth0_id=VENDOR)

    response = await client.post(
        "/api/storage/upload-source",
        files={"file": ("corridor kit.zip", b"PK\x03\x04data", "application/zip")},
        data={"fileType": "zip"},
        headers=auth(VENDOR),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["key"].startswith(f"{vendor.id}/")
    assert body["key"].endswith("-corridor_kit.zip")
    bucket, key, extra_args, content = s3.uploads[0]
    assert extra_args["ServerSideEncryption"] == "AES256"
    assert content == b"PK\x03\x04data"


@pytest.mark.asyncio
async def test_client_cannot_upload(client):
    response = await client.post(
        "/api/storage/upload-source",
        files={"file": ("x.zip", b"PK", "application/zip")},
        data={"fileType": "zip"},
        headers=auth(BUYER),
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_preview_rejects_source_types(client, db):
    await make_user(db, UserRole.VENDOR, auth0_id=VENDOR)

    response = await client.post(
        "/api/storage/upload-preview",
        files={"file": ("model.blend", b"BLENDER", "application/octet-stream")},
        data={"fileType": "blend"},
        headers=auth(VENDOR),
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_vendor_cannot_delete_foreign_key(client, db, s3):
    vendor = await make_user(db, UserRole.VENDOR, auth0_id=VENDOR)

    foreign = await client.delete(f"/api/storage/{uuid.uuid4()}/file.zip", headers=auth(VENDOR))
    assert foreign.status_code == 403

    own = await client.delete(f"/api/storage/{vendor.id}/file.zip", headers=auth(VENDOR))
    assert own.status_code == 200
    assert s3.deletes == [("prosets-source", f"{vendor.id}/file.zip")]
