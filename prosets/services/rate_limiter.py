"""
Rate Limiter - sliding-window download limits from the downloads log.
"""

import uuid
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from prosets.models.download import Download

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    current_count: int


class RateLimiter:
    """
    Counts download rows for (user, asset) inside a rolling window ending now.

    A row exactly window_seconds old has left the window. Callers that
    need the count and the following insert to be atomic must hold a lock
    covering the pair (DownloadService locks the asset row).
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def check_and_count(
        self,
        user_id: uuid.UUID,
        asset_id: uuid.UUID,
        window_seconds: int,
        max_count: int,
        now: Optional[datetime] = None,
    ) -> RateLimitResult:
        now = now or datetime.now(timezone.utc)
        window_start = now - timedelta(seconds=window_seconds)

        result = await self.db.execute(
            select(func.count(Download.id))
            .where(Download.user_id == user_id)
            .where(Download.asset_id == asset_id)
            .where(Download.created_at > window_start)
        )
        current_count = result.scalar_one()

        allowed = current_count < max_count
        if not allowed:
            logger.info(
                f"Rate limit hit for user {user_id} asset {asset_id}: "
                f"{current_count}/{max_count} in {window_seconds}s"
            )

        return RateLimitResult(allowed=allowed, current_count=current_count)
