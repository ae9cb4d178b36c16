"""Helpers for creating storage clients."""

from __future__ import annotations

from urllib.parse import urlparse

import boto3
from botocore.client import BaseClient
from botocore.config import Config


DEFAULT_S3_REGION = "eu-central-1"


def _normalize_endpoint(endpoint_url: str | None) -> str | None:
    if endpoint_url:
        return endpoint_url.rstrip("/")
    return None


def _is_gcs_compat_endpoint(endpoint_url: str | None) -> bool:
    if not endpoint_url:
        return False
    hostname = (urlparse(endpoint_url).hostname or "").lower()
    return hostname == "storage.googleapis.com" or hostname.endswith(".storage.googleapis.com")


def _resolve_region(region: str | None, endpoint_url: str | None) -> str:
    selected = region or DEFAULT_S3_REGION
    if _is_gcs_compat_endpoint(endpoint_url) and selected == "us-east-1":
        # GCS XML API expects region "auto" for SigV4 signing.
        return "auto"
    return selected


def _build_s3_config(use_path_style: bool) -> Config | None:
    if use_path_style:
        return Config(s3={"addressing_style": "path"})
    return None


def get_s3_client(
    *,
    access_key: str | None = None,
    secret_key: str | None = None,
    region: str | None = None,
    endpoint_url: str | None = None,
    use_path_style: bool = False,
) -> BaseClient:
    """Return a configured S3 client (supports S3-compatible endpoints)."""
    normalized_endpoint = _normalize_endpoint(endpoint_url)
    return boto3.client(
        "s3",
        region_name=_resolve_region(region, normalized_endpoint),
        aws_access_key_id=access_key or None,
        aws_secret_access_key=secret_key or None,
        endpoint_url=normalized_endpoint,
        config=_build_s3_config(use_path_style),
    )


def get_backup_s3_client(s3_config: dict) -> BaseClient:
    """Return an S3 client for the backup settings group (unprefixed keys)."""
    return get_s3_client(
        access_key=s3_config.get("key"),
        secret_key=s3_config.get("secret"),
        region=s3_config.get("region"),
        endpoint_url=s3_config.get("endpoint"),
        use_path_style=bool(s3_config.get("use_path_style")),
    )
