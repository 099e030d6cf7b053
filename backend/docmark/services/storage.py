from __future__ import annotations
import asyncio
import logging
import uuid
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..config import MAX_IMAGE_MB, StorageConfig
from ..errors import ConfigurationError, InputValidationError, RemoteCapabilityError

logger = logging.getLogger(__name__)

CAPABILITY = "Image upload"


def extension_for(content_type: str) -> str:
    subtype = content_type.split("/", 1)[1] if "/" in content_type else ""
    # image/svg+xml -> svg
    subtype = subtype.split("+", 1)[0].split(";", 1)[0].strip()
    return subtype or "jpg"


def object_key(content_type: str, config: StorageConfig) -> str:
    prefix = f"{config.prefix.strip('/')}/" if config.prefix else ""
    return f"{prefix}{uuid.uuid4().hex}.{extension_for(content_type)}"


def public_url(key: str, config: StorageConfig) -> str:
    """
    Custom base URL wins, then the configured endpoint in path or virtual-hosted
    style, then the default AWS S3 hostname.
    """
    if config.public_url:
        return f"{config.public_url.rstrip('/')}/{key}"
    if config.endpoint:
        if config.force_path_style:
            return f"https://{config.endpoint}/{config.bucket}/{key}"
        return f"https://{config.bucket}.{config.endpoint}/{key}"
    return f"https://{config.bucket}.s3.{config.region}.amazonaws.com/{key}"


def make_client(config: StorageConfig) -> Any:
    return boto3.client(
        "s3",
        region_name=config.region,
        aws_access_key_id=config.access_key_id,
        aws_secret_access_key=config.secret_access_key,
        endpoint_url=f"https://{config.endpoint}" if config.endpoint else None,
        config=Config(s3={"addressing_style": "path" if config.force_path_style else "auto"}),
    )


def validate_image(content: bytes, content_type: Optional[str]) -> str:
    if not content:
        raise InputValidationError("No file provided")
    if not content_type or not content_type.startswith("image/"):
        raise InputValidationError("File must be an image")
    if len(content) > MAX_IMAGE_MB * 1024 * 1024:
        raise InputValidationError(f"Image exceeds the {MAX_IMAGE_MB} MB limit")
    return content_type


async def upload_image(
    content: bytes,
    content_type: Optional[str],
    config: Optional[StorageConfig] = None,
    client: Any = None,
) -> str:
    """
    Store the image under a fresh key and return its public URL.
    Every call gets a new key, identical bytes included.
    """
    content_type = validate_image(content, content_type)
    config = config or StorageConfig.from_env()
    if not config.is_complete:
        raise ConfigurationError("Server configuration error: Missing S3 credentials or bucket name")

    key = object_key(content_type, config)
    client = client or make_client(config)
    try:
        await asyncio.to_thread(
            client.put_object,
            Bucket=config.bucket,
            Key=key,
            Body=content,
            ContentType=content_type,
        )
    except (BotoCoreError, ClientError) as exc:
        logger.error("Upload of %s to bucket %s failed: %s", key, config.bucket, exc)
        raise RemoteCapabilityError(CAPABILITY, str(exc)) from exc

    url = public_url(key, config)
    logger.info("Uploaded image %s (%d bytes)", key, len(content))
    return url
