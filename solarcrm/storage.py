# solarcrm/storage.py
from __future__ import annotations

import logging
import secrets
import time
from pathlib import Path
from typing import Optional
from urllib.parse import quote, unquote, urlsplit

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from solarcrm.config import settings

logger = logging.getLogger(__name__)

# --------------------------------------------------------------------------------------
# Local uploads
# --------------------------------------------------------------------------------------

LOCAL_PREFIX = "/uploads/"


def uploads_dir() -> Path:
    path = Path(settings.UPLOADS_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def unique_filename(ext: str) -> str:
    """<epoch ms>-<random>.<ext>, the naming used for both PDFs and images."""
    ext = ext if ext.startswith(".") else f".{ext}"
    return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{ext}"


def save_local(filename: str, data: bytes) -> str:
    """Write bytes under the uploads dir and return the served path (/uploads/<name>)."""
    (uploads_dir() / filename).write_bytes(data)
    return f"{LOCAL_PREFIX}{filename}"


def local_path_for(url: str) -> Optional[Path]:
    if not url or not url.startswith(LOCAL_PREFIX):
        return None
    name = url[len(LOCAL_PREFIX):]
    # stay inside the uploads dir
    if not name or "/" in name or "\\" in name or name in (".", ".."):
        return None
    return uploads_dir() / name


def delete_local(url: str) -> bool:
    path = local_path_for(url)
    if path is None:
        return False
    try:
        if path.exists():
            path.unlink()
            return True
    except OSError as e:
        logger.warning("[uploads] failed to remove local file %s: %r", path, e)
    return False


# --------------------------------------------------------------------------------------
# S3
# --------------------------------------------------------------------------------------

def bucket_enabled() -> bool:
    return bool(settings.AWS_S3_BUCKET)


def _s3_client():
    return boto3.client("s3", region_name=settings.AWS_REGION)


def build_public_url(key: str) -> str:
    # virtual-hosted style; the key is fully percent-encoded, "/" included
    return f"https://{settings.AWS_S3_BUCKET}.s3.{settings.AWS_REGION}.amazonaws.com/{quote(key, safe='')}"


def key_from_url(url: str) -> Optional[str]:
    """
    Return the object key if `url` points into the configured bucket, else None.
    """
    bucket = settings.AWS_S3_BUCKET
    if not bucket or not url or not isinstance(url, str):
        return None
    try:
        parts = urlsplit(url if url.startswith("http") else f"https://dummy{url}")
    except ValueError:
        return None
    if f"{bucket}.s3." not in parts.netloc:
        return None
    key = unquote(parts.path.lstrip("/"))
    return key or None


def put_object(key: str, data: bytes, content_type: str) -> str:
    """Upload bytes to the bucket and return the object's public URL. Errors propagate."""
    _s3_client().put_object(
        Bucket=settings.AWS_S3_BUCKET,
        Key=key,
        Body=data,
        ContentType=content_type or "application/octet-stream",
    )
    logger.info("[s3] uploaded %s (%d bytes)", key, len(data))
    return build_public_url(key)


def delete_object(key: str) -> bool:
    try:
        _s3_client().delete_object(Bucket=settings.AWS_S3_BUCKET, Key=key)
        return True
    except (BotoCoreError, ClientError) as e:
        logger.warning("[s3] failed to remove object %s: %r", key, e)
        return False


def sign_if_bucket_url(url):
    """
    Presign a GET for URLs in our bucket (1 hour by default). Anything else,
    or any signing failure, returns the URL unchanged.
    """
    if not isinstance(url, str) or not url:
        return url
    key = key_from_url(url)
    if not key:
        return url
    try:
        return _s3_client().generate_presigned_url(
            "get_object",
            Params={"Bucket": settings.AWS_S3_BUCKET, "Key": key},
            ExpiresIn=settings.SIGNED_URL_TTL_SECONDS,
        )
    except Exception as e:
        logger.warning("[s3] failed to sign url for %s: %r", key, e)
        return url


def store_file(prefix: str, filename: str, data: bytes, content_type: str) -> str:
    """
    Store an upload in S3 under <prefix>/<filename> when a bucket is configured,
    otherwise on local disk. Returns the URL to persist.
    """
    if bucket_enabled():
        return put_object(f"{prefix}/{filename}", data, content_type)
    return save_local(filename, data)


def remove_file(url: str) -> bool:
    """Best-effort delete of a stored file: S3 object first, then local path."""
    key = key_from_url(url)
    if key and bucket_enabled() and delete_object(key):
        return True
    return delete_local(url)
