"""
Storage Service - S3 object store gateway.
Private bucket for source files, public bucket for previews.
"""

import logging
import re
import time
import uuid
from typing import Any, BinaryIO, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from prosets.config import settings
from prosets.exceptions import BadRequestError, ExternalServiceError
from prosets.services.external import call_external

logger = logging.getLogger(__name__)


# Bytes
FILE_SIZE_LIMITS = {
    "source": 500 * 1024 * 1024,
    "preview": 10 * 1024 * 1024,
}

ALLOWED_CONTENT_TYPES = {
    "blend": {"application/x-blender", "application/octet-stream"},
    "fbx": {"application/octet-stream"},
    "obj": {"text/plain", "application/octet-stream"},
    "gltf": {"model/gltf+json"},
    "glb": {"model/gltf-binary"},
    "zip": {"application/zip"},
    "rar": {"application/x-rar-compressed"},
    "png": {"image/png"},
    "jpg": {"image/jpeg"},
    "jpeg": {"image/jpeg"},
    "webp": {"image/webp"},
    "mp4": {"video/mp4"},
    "webm": {"video/webm"},
}

PREVIEW_EXTENSIONS = {"png", "jpg", "jpeg", "webp", "mp4", "webm"}


class StorageService:
    """Wraps the boto3 S3 client used for signed URLs, uploads and deletes."""

    def __init__(self, client: Optional[Any] = None):
        self.private_bucket = settings.s3_bucket_private
        self.public_bucket = settings.s3_bucket_public
        self.s3 = client or boto3.client(
            "s3",
            region_name=settings.aws_region,
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.aws_access_key_id or None,
            aws_secret_access_key=settings.aws_secret_access_key or None,
            config=Config(
                signature_version="s3v4",
                connect_timeout=settings.external_timeout_seconds,
                read_timeout=settings.external_timeout_seconds,
                retries={"max_attempts": 1},
            ),
        )

    def _bucket(self, public: bool) -> str:
        return self.public_bucket if public else self.private_bucket

    async def get_presigned_url(self, key: str, expires_in: int = 3600) -> str:
        """Sign a time-limited GET URL for an object in the private bucket."""
        try:
            url = await call_external(
                "S3",
                self.s3.generate_presigned_url,
                "get_object",
                Params={"Bucket": self.private_bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to generate presigned URL for {key}: {e}")
            raise ExternalServiceError("Failed to generate download URL")

        return url

    @staticmethod
    def validate_upload(extension: str, content_type: str, size: int, public: bool) -> None:
        """Reject unknown file types and oversize files before touching S3."""
        allowed = ALLOWED_CONTENT_TYPES.get(extension.lower())
        if not allowed:
            raise BadRequestError(f"Unsupported file type: {extension}")
        if public and extension.lower() not in PREVIEW_EXTENSIONS:
            raise BadRequestError(
                f"Invalid preview file type. Allowed: {', '.join(sorted(PREVIEW_EXTENSIONS))}"
            )
        if content_type not in allowed:
            raise BadRequestError(
                f"Invalid content type for {extension}: {content_type}"
            )

        limit = FILE_SIZE_LIMITS["preview" if public else "source"]
        if size > limit:
            raise BadRequestError(
                f"File size exceeds {limit // (1024 * 1024)}MB limit"
            )

    @staticmethod
    def generate_file_key(
        user_id: uuid.UUID,
        extension: str,
        original_name: Optional[str] = None,
    ) -> str:
        """Build a collision-free key namespaced by the uploading user."""
        safe_name = re.sub(r"[^a-zA-Z0-9.-]", "_", original_name) if original_name else "file"
        return f"{user_id}/{int(time.time() * 1000)}-{uuid.uuid4()}-{safe_name}.{extension.lower()}"

    async def upload_file(
        self,
        fileobj: BinaryIO,
        key: str,
        content_type: str,
        public: bool = False,
    ) -> Dict[str, str]:
        """Single-part upload; source files are encrypted at rest."""
        bucket = self._bucket(public)
        extra_args = {"ContentType": content_type}
        if not public:
            extra_args["ServerSideEncryption"] = "AES256"

        try:
            await call_external(
                "S3",
                self.s3.upload_fileobj,
                fileobj,
                bucket,
                key,
                ExtraArgs=extra_args,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Upload of {key} to {bucket} failed: {e}")
            raise ExternalServiceError("Failed to upload file")

        logger.info(f"File uploaded: {key} to {bucket}")
        return {"key": key, "bucket": bucket}

    async def delete_file(self, key: str, public: bool = False) -> None:
        bucket = self._bucket(public)
        try:
            await call_external(
                "S3",
                self.s3.delete_object,
                Bucket=bucket,
                Key=key,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Delete of {key} from {bucket} failed: {e}")
            raise ExternalServiceError("Failed to delete file")

        logger.info(f"File deleted: {key} from {bucket}")
