"""
Download Service - signed URL issuance for owned assets, history and
download counter reconciliation.
"""

import math
import uuid
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import select, func, update, desc
from sqlalchemy.ext.asyncio import AsyncSession

from prosets.config import settings
from prosets.exceptions import BadRequestError, NotFoundError, RateLimitExceededError
from prosets.fsm.states import OrderStatus
from prosets.models.asset import Asset
from prosets.models.download import Download
from prosets.models.order import Order
from prosets.models.user import User
from prosets.services.entitlement_service import EntitlementService
from prosets.services.rate_limiter import RateLimiter
from prosets.services.storage_service import StorageService

logger = logging.getLogger(__name__)


class DownloadService:
    """Service orchestrating entitlement, rate limiting and URL signing."""

    def __init__(self, db: AsyncSession, storage: Optional[StorageService] = None):
        self.db = db
        self.storage = storage or StorageService()
        self.entitlements = EntitlementService(db)
        self.rate_limiter = RateLimiter(db)

    async def _get_asset_with_vendor(self, asset_id: uuid.UUID, lock: bool = False):
        """Load an asset and its vendor's display name; deleted assets are hidden."""
        query = (
            select(Asset, User.name)
            .join(User, Asset.vendor_id == User.id)
            .where(Asset.id == asset_id)
            .execution_options(populate_existing=True)
        )
        if lock:
            query = query.with_for_update(of=Asset)

        row = (await self.db.execute(query)).one_or_none()

        # Deleted and missing assets must look identical to the caller
        if row is None or row[0].is_deleted:
            raise NotFoundError("Asset not found")

        return row[0], row[1]

    def validate_expiration(self, expiration_seconds: Optional[int]) -> int:
        """Apply the default and enforce the [min, max] window."""
        if expiration_seconds is None:
            return settings.download_default_expiration

        if expiration_seconds < settings.download_min_expiration:
            raise BadRequestError(
                f"Expiration must be at least {settings.download_min_expiration} seconds"
            )

        if expiration_seconds > settings.download_max_expiration:
            raise BadRequestError(
                f"Expiration cannot exceed {settings.download_max_expiration} seconds "
                f"({settings.download_max_expiration // 60} minutes)"
            )

        return expiration_seconds

    async def issue_download_url(
        self,
        user: User,
        asset_id: uuid.UUID,
        expiration_seconds: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Generate a presigned URL for an owned asset.

        Steps run in order and the first failure short-circuits:
        asset lookup, soft-delete check, entitlement, rate limit, expiry
        validation, signing, download log, counter increment.
        """
        # Row lock serialises concurrent issuances for the same asset so the
        # rate-limit count and the download insert below see each other.
        asset, vendor_name = await self._get_asset_with_vendor(asset_id, lock=True)

        await self.entitlements.require_entitlement(user.id, asset.id)

        limit = settings.download_rate_limit
        window = settings.download_rate_window_seconds
        check = await self.rate_limiter.check_and_count(user.id, asset.id, window, limit)
        if not check.allowed:
            raise RateLimitExceededError(
                f"Download limit exceeded. You can download this asset {limit} times "
                f"per {window // 60} minutes. Please try again later.",
                current_count=check.current_count,
                limit=limit,
            )

        expiration = self.validate_expiration(expiration_seconds)

        url = await self.storage.get_presigned_url(asset.source_file_key, expiration)
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=expiration)

        self.db.add(Download(user_id=user.id, asset_id=asset.id))

        # Atomic increment, no read-modify-write on the counter
        await self.db.execute(
            update(Asset)
            .where(Asset.id == asset.id)
            .values(downloads=Asset.downloads + 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()

        logger.info(
            f"Download URL generated for user {user.email} - Asset: {asset.title} ({asset.id})",
            extra={"asset_id": asset.id, "user_id": user.id},
        )

        return {
            "url": url,
            "expiresAt": expires_at.isoformat(),
            "expiresIn": expiration,
            "asset": {
                "id": str(asset.id),
                "title": asset.title,
                "category": asset.category,
                "vendor": vendor_name,
            },
        }

    async def can_download(self, user: User, asset_id: uuid.UUID) -> bool:
        return await self.entitlements.is_entitled(user.id, asset_id)

    async def get_download_history(
        self,
        user: User,
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        """Distinct downloaded assets, most recently downloaded first."""
        page = max(page, 1)
        limit = max(min(limit, 100), 1)
        offset = (page - 1) * limit

        last_download = func.max(Download.created_at).label("last_download_at")
        download_count = func.count(Download.id).label("download_count")

        grouped = await self.db.execute(
            select(Download.asset_id, download_count, last_download)
            .where(Download.user_id == user.id)
            .group_by(Download.asset_id)
            .order_by(desc(last_download))
            .offset(offset)
            .limit(limit)
        )
        rows = grouped.all()

        total_result = await self.db.execute(
            select(func.count(func.distinct(Download.asset_id)))
            .where(Download.user_id == user.id)
        )
        total = total_result.scalar_one()

        asset_ids = [row.asset_id for row in rows]
        assets = {}
        purchases = {}
        if asset_ids:
            asset_result = await self.db.execute(
                select(Asset).where(Asset.id.in_(asset_ids))
            )
            assets = {asset.id: asset for asset in asset_result.scalars().all()}

            order_result = await self.db.execute(
                select(Order.asset_id, func.min(Order.created_at))
                .where(Order.user_id == user.id)
                .where(Order.asset_id.in_(asset_ids))
                .where(Order.status == OrderStatus.PAID.value)
                .group_by(Order.asset_id)
            )
            purchases = {asset_id: created for asset_id, created in order_result.all()}

        data = []
        for row in rows:
            asset = assets.get(row.asset_id)
            purchased_at = purchases.get(row.asset_id)
            data.append({
                "assetId": str(row.asset_id),
                "assetTitle": asset.title if asset else "Unknown",
                "assetCategory": asset.category if asset else "Unknown",
                "price": float(asset.price) if asset else 0.0,
                "purchaseDate": purchased_at.isoformat() if purchased_at else None,
                "downloadCount": row.download_count,
                "lastDownloadAt": row.last_download_at.isoformat() if row.last_download_at else None,
            })

        return {
            "data": data,
            "meta": {
                "total": total,
                "page": page,
                "limit": limit,
                "totalPages": math.ceil(total / limit) if total else 0,
            },
        }

    async def reconcile_download_counters(self) -> int:
        """
        Recompute Asset.downloads from the downloads log.
        Returns the number of assets whose counter was corrected.
        """
        counts_result = await self.db.execute(
            select(Download.asset_id, func.count(Download.id))
            .group_by(Download.asset_id)
        )
        counts = {asset_id: count for asset_id, count in counts_result.all()}

        assets_result = await self.db.execute(select(Asset.id, Asset.downloads))
        corrected = 0
        for asset_id, stored in assets_result.all():
            actual = counts.get(asset_id, 0)
            if stored != actual:
                await self.db.execute(
                    update(Asset)
                    .where(Asset.id == asset_id)
                    .values(downloads=actual)
                    .execution_options(synchronize_session=False)
                )
                corrected += 1

        await self.db.flush()
        logger.info(f"Reconciled download counters: {corrected} assets corrected")
        return corrected
