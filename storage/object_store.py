import logging
from urllib.parse import quote

import requests

from errors import ExternalServiceError

logger = logging.getLogger(__name__)


class ObjectStore:
    """Client for a Supabase-compatible storage REST API."""

    def __init__(self, base_url: str, api_key: str, bucket: str, timeout: float = 30):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key
        self.bucket = bucket
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.bucket)

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}", "apikey": self.api_key}

    def _require_config(self):
        if not self.is_configured:
            raise ExternalServiceError("Object storage is not configured")

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        self._require_config()
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{quote(path)}"
        headers = {**self._headers(), "Content-Type": content_type or "application/octet-stream"}
        try:
            response = requests.post(url, data=data, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ExternalServiceError(f"Upload of {path} failed: {e}") from e
        logger.info("Uploaded %s (%d bytes) to bucket %s", path, len(data), self.bucket)
        return path

    def public_url(self, path: str) -> str:
        self._require_config()
        if not path:
            raise ExternalServiceError("Empty storage path")
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{quote(path)}"

    def delete(self, path: str):
        self._require_config()
        url = f"{self.base_url}/storage/v1/object/{self.bucket}"
        try:
            response = requests.delete(
                url, json={"prefixes": [path]}, headers=self._headers(), timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise ExternalServiceError(f"Delete of {path} failed: {e}") from e
        logger.info("Deleted %s from bucket %s", path, self.bucket)
