"""
Download API - signed URL issuance, history and ownership checks.
"""

import uuid
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from prosets.api.deps import get_current_user, get_storage_service
from prosets.database import get_db
from prosets.models.user import User
from prosets.services.download_service import DownloadService
from prosets.services.storage_service import StorageService

router = APIRouter()
logger = logging.getLogger(__name__)


class GenerateDownloadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    expiration_seconds: Optional[int] = Field(default=None, alias="expirationSeconds")


@router.post("/generate/{asset_id}", status_code=status.HTTP_201_CREATED)
async def generate_download_url(
    asset_id: uuid.UUID,
    request: Optional[GenerateDownloadRequest] = Body(default=None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    """Issue a short-lived URL for an owned asset's source file."""
    service = DownloadService(db, storage=storage)
    return await service.issue_download_url(
        user,
        asset_id,
        request.expiration_seconds if request else None,
    )


@router.get("/history")
async def get_download_history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    service = DownloadService(db, storage=storage)
    return await service.get_download_history(user, page=page, limit=limit)


@router.get("/can-download/{asset_id}")
async def can_download(
    asset_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    service = DownloadService(db, storage=storage)
    allowed = await service.can_download(user, asset_id)
    return {"canDownload": allowed, "assetId": str(asset_id)}
