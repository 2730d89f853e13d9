"""Object-store access for document blobs.

Clients upload and download directly against presigned URLs; the API only
ever hands out signatures and, on permanent deletion, removes the object.
"""

import logging
import re
import uuid
from urllib.parse import quote

import boto3
from botocore.config import Config

from app.config import settings

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_file_name(file_name: str) -> str:
    return _UNSAFE_KEY_CHARS.sub("_", file_name).strip("_") or "file"


def _attachment_disposition(file_name: str) -> str:
    fallback = file_name.encode("ascii", "ignore").decode().replace('"', "")
    return f"attachment; filename=\"{fallback or 'download'}\"; filename*=UTF-8''{quote(file_name)}"


class BlobStorage:
    @staticmethod
    def is_configured() -> bool:
        return bool(
            settings.s3_endpoint_url
            and settings.s3_access_key
            and settings.s3_secret_key
        )

    @staticmethod
    def _client():
        if not BlobStorage.is_configured():
            raise RuntimeError(
                "S3 storage is not configured. "
                "Set S3_ENDPOINT_URL, S3_ACCESS_KEY, and S3_SECRET_KEY."
            )
        return boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            config=Config(signature_version="s3v4"),
        )

    @staticmethod
    def _presign(operation: str, **params) -> str:
        params["Bucket"] = settings.s3_bucket_name
        url: str = BlobStorage._client().generate_presigned_url(
            operation, Params=params, ExpiresIn=settings.s3_presigned_url_expiry
        )
        return url

    @staticmethod
    def generate_storage_key(owner_id, file_name: str) -> str:
        """Keys are namespaced by uploader since no document row exists yet."""
        return f"uploads/{owner_id}/{uuid.uuid4().hex}/{_safe_file_name(file_name)}"

    @staticmethod
    def generate_upload_url(storage_key: str, mime_type: str) -> str:
        return BlobStorage._presign("put_object", Key=storage_key, ContentType=mime_type)

    @staticmethod
    def generate_download_url(storage_key: str, file_name: str | None = None) -> str:
        if file_name:
            return BlobStorage._presign(
                "get_object",
                Key=storage_key,
                ResponseContentDisposition=_attachment_disposition(file_name),
            )
        return BlobStorage._presign("get_object", Key=storage_key)

    @staticmethod
    def delete_object(storage_key: str) -> None:
        BlobStorage._client().delete_object(Bucket=settings.s3_bucket_name, Key=storage_key)
        logger.info("Deleted blob %s", storage_key)


storage = BlobStorage()
