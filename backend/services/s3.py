import asyncio
import logging

import boto3
from botocore.exceptions import ClientError
from typing import Optional
from config import get_settings

logger = logging.getLogger(__name__)


def get_s3_client():
    """Get S3 client with configured credentials."""
    settings = get_settings()
    if not settings.aws_access_key_id or not settings.aws_secret_access_key:
        return None

    return boto3.client(
        "s3",
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        region_name=settings.aws_region,
    )


def is_configured() -> bool:
    settings = get_settings()
    return bool(settings.aws_access_key_id and settings.aws_secret_access_key and settings.aws_s3_bucket)


async def generate_presigned_url(s3_key: str, expiration: int = 3600) -> Optional[str]:
    """Generate a presigned download URL for an S3 object."""
    client = get_s3_client()
    if not client:
        return None

    try:
        return client.generate_presigned_url(
            "get_object",
            Params={"Bucket": get_settings().aws_s3_bucket, "Key": s3_key},
            ExpiresIn=expiration,
        )
    except ClientError as e:
        logger.error(f"Error generating presigned URL: {e}")
        return None


async def download_file(s3_key: str, local_path: str, bucket: Optional[str] = None) -> bool:
    """Download a file from S3 to local path."""
    client = get_s3_client()
    if not client:
        return False

    try:
        await asyncio.to_thread(client.download_file, bucket or get_settings().aws_s3_bucket, s3_key, local_path)
        return True
    except ClientError as e:
        logger.error(f"Error downloading from S3: {e}")
        return False


async def upload_local_file(local_path: str, s3_key: str, content_type: str = "video/mp4") -> bool:
    """Upload a local file to S3."""
    client = get_s3_client()
    if not client:
        return False

    try:
        await asyncio.to_thread(
            client.upload_file,
            local_path,
            get_settings().aws_s3_bucket,
            s3_key,
            ExtraArgs={"ContentType": content_type},
        )
        return True
    except ClientError as e:
        logger.error(f"Error uploading to S3: {e}")
        return False


class S3Service:
    """S3 service wrapper for the export pipeline."""

    def is_configured(self) -> bool:
        return is_configured()

    async def download_file(self, s3_key: str, local_path: str, bucket: Optional[str] = None) -> bool:
        return await download_file(s3_key, local_path, bucket)

    async def upload_file(self, local_path: str, s3_key: str, content_type: str = "video/mp4") -> bool:
        return await upload_local_file(local_path, s3_key, content_type)

    async def get_download_url(self, s3_key: str, expiration: Optional[int] = None) -> Optional[str]:
        if expiration is None:
            expiration = get_settings().presigned_url_expiration
        return await generate_presigned_url(s3_key, expiration)


s3_service = S3Service()
