"""
Storage API - vendor uploads of source files and previews.
"""

import os
import logging

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from prosets.api.deps import get_storage_service, require_permission
from prosets.exceptions import BadRequestError, ForbiddenError
from prosets.fsm.states import Permission
from prosets.models.user import User
from prosets.services.storage_service import StorageService

router = APIRouter()
logger = logging.getLogger(__name__)


async def _upload(
    file: UploadFile,
    file_type: str,
    user: User,
    storage: StorageService,
    public: bool,
) -> dict:
    if not file or not file.filename:
        raise BadRequestError("No file uploaded")

    content_type = file.content_type or "application/octet-stream"
    storage.validate_upload(file_type, content_type, file.size or 0, public)

    original_name = os.path.splitext(file.filename)[0]
    key = storage.generate_file_key(user.id, file_type, original_name)
    uploaded = await storage.upload_file(file.file, key, content_type, public=public)

    return {
        "key": uploaded["key"],
        "bucket": uploaded["bucket"],
        "size": file.size,
        "contentType": content_type,
        "originalName": file.filename,
    }


@router.post("/upload-source", status_code=status.HTTP_201_CREATED)
async def upload_source(
    file: UploadFile = File(...),
    file_type: str = Form(..., alias="fileType"),
    user: User = Depends(require_permission(Permission.CAN_SELL)),
    storage: StorageService = Depends(get_storage_service),
):
    """Upload an asset source file to the private bucket."""
    return await _upload(file, file_type, user, storage, public=False)


@router.post("/upload-preview", status_code=status.HTTP_201_CREATED)
async def upload_preview(
    file: UploadFile = File(...),
    file_type: str = Form(..., alias="fileType"),
    user: User = Depends(require_permission(Permission.CAN_SELL)),
    storage: StorageService = Depends(get_storage_service),
):
    """Upload a preview image or video to the public bucket."""
    return await _upload(file, file_type, user, storage, public=True)


@router.delete("/{key:path}")
async def delete_file(
    key: str,
    public: bool = Query(False, alias="isPublic"),
    user: User = Depends(require_permission(Permission.CAN_SELL)),
    storage: StorageService = Depends(get_storage_service),
):
    """Delete an object; vendors may only touch keys under their own prefix."""
    owns_key = key.startswith(f"{user.id}/")
    if not owns_key and not user.has_permission(Permission.CAN_ADMINISTER):
        raise ForbiddenError("You can only delete your own files")

    await storage.delete_file(key, public=public)
    return {"message": "File deleted successfully", "key": key}
