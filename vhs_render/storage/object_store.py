"""S3-compatible object storage (Cloudflare R2 in production)."""

import logging
import re
import time
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig

from vhs_render.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class ObjectStore:
    """Uploads rendered files and builds their public URLs."""

    def __init__(self, config: Optional[Settings] = None, client=None):
        self._config = config or default_settings
        self._client = client
        if self._client is None and self._has_credentials():
            self._client = self._build_client()
        elif self._client is None:
            logger.warning("Object storage credentials not configured; uploads disabled")

    def _has_credentials(self) -> bool:
        c = self._config
        return bool(
            c.storage_endpoint_url
            and c.storage_access_key_id
            and c.storage_secret_access_key
            and c.storage_bucket
        )

    def _build_client(self):
        session = boto3.session.Session(
            aws_access_key_id=self._config.storage_access_key_id,
            aws_secret_access_key=self._config.storage_secret_access_key,
            region_name=self._config.storage_region,
        )
        return session.client(
            "s3",
            endpoint_url=self._config.storage_endpoint_url,
            config=BotoConfig(signature_version="s3v4"),
        )

    def is_configured(self) -> bool:
        return self._client is not None

    @staticmethod
    def generate_key(prefix: str, filename: str) -> str:
        """``<prefix>/<epoch ms>-<filename>`` with unsafe characters replaced."""
        sanitized = re.sub(r"[^a-zA-Z0-9.-]", "_", filename)
        return f"{prefix}/{int(time.time() * 1000)}-{sanitized}"

    def public_url(self, key: str) -> str:
        base = self._config.storage_public_base_url.rstrip("/")
        return f"{base}/{key}"

    def upload_file(self, local_path: str, key: str, content_type: Optional[str] = None) -> str:
        """Upload a file and return its public URL."""
        if not self.is_configured():
            raise RuntimeError("Object storage not configured for upload")
        extra = {"ContentType": content_type} if content_type else None
        self._client.upload_file(
            str(local_path), self._config.storage_bucket, key, ExtraArgs=extra
        )
        logger.info("Uploaded %s to bucket %s", key, self._config.storage_bucket)
        return self.public_url(key)
