"""
MinIO (S3-compatible) client for clinical images.

Case photos, avatars and clinic logos are stored as objects; the database
keeps only the object key. Feed responses carry pre-signed URLs so the
client streams images directly from MinIO.
"""
import logging
from typing import Optional

import boto3
from botocore.client import Config

from network32.config import settings

logger = logging.getLogger(__name__)

_s3 = None


def init_minio() -> None:
    """Create the S3 client and ensure the media bucket exists."""
    global _s3
    _s3 = boto3.client(
        "s3",
        endpoint_url=f"http://{settings.minio_endpoint}",
        aws_access_key_id=settings.minio_access_key,
        aws_secret_access_key=settings.minio_secret_key,
        config=Config(signature_version="s3v4"),
        region_name="us-east-1",
    )

    existing = [b["Name"] for b in _s3.list_buckets().get("Buckets", [])]
    if settings.minio_bucket not in existing:
        _s3.create_bucket(Bucket=settings.minio_bucket)
        logger.info("Created MinIO bucket '%s'", settings.minio_bucket)
    else:
        logger.info("MinIO bucket '%s' already exists", settings.minio_bucket)


def get_s3():
    if _s3 is None:
        raise RuntimeError("MinIO client not initialised — call init_minio() at startup")
    return _s3


def get_presigned_url(media_key: Optional[str], expires_in: Optional[int] = None) -> Optional[str]:
    """
    Temporary GET URL for an object key.

    Absolute http(s) URLs (externally hosted images) are returned unchanged.
    """
    if not media_key:
        return None
    if media_key.startswith(("http://", "https://")):
        return media_key
    s3 = get_s3()
    try:
        return s3.generate_presigned_url(
            "get_object",
            Params={"Bucket": settings.minio_bucket, "Key": media_key},
            ExpiresIn=expires_in or settings.media_url_ttl,
        )
    except Exception as exc:
        logger.warning("Failed to generate presigned URL for %s: %s", media_key, exc)
        return None
