"""
Download counter reconciliation.
Issuance increments assets.downloads atomically; this job repairs any
drift against the append-only downloads log.
"""

import asyncio
import logging

from prosets.workers.celery_app import celery_app
from prosets.database import get_db_context
from prosets.services.download_service import DownloadService

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3)
def reconcile_download_counters(self):
    """Celery task wrapping the async reconciliation."""
    try:
        corrected = asyncio.run(_reconcile_download_counters())
        return {"status": "success", "corrected": corrected}
    except Exception as e:
        logger.error(f"Download counter reconciliation failed: {e}", exc_info=True)
        raise self.retry(exc=e, countdown=60)


async def _reconcile_download_counters() -> int:
    async with get_db_context() as db:
        return await DownloadService(db).reconcile_download_counters()
