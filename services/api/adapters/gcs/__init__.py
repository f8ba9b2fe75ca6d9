# services/api/adapters/gcs/__init__.py
from __future__ import annotations

import json
import logging
from datetime import timedelta
from typing import Optional

from google.api_core import exceptions as gcloud_exceptions
from google.cloud import storage
from google.oauth2 import service_account
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

logger = logging.getLogger(__name__)


def _credentials_from_json_or_path(google_sa_json: Optional[str]):
    """
    Accepts either:
      - absolute/relative path to a service-account JSON file, OR
      - a literal JSON string, OR
      - nothing (application default credentials).
    """
    if not google_sa_json:
        return None
    try:
        parsed = json.loads(google_sa_json)
        return service_account.Credentials.from_service_account_info(parsed)
    except json.JSONDecodeError:
        return service_account.Credentials.from_service_account_file(google_sa_json)


# ========== Retry decorator for Cloud Storage calls ==========
def retry_gcs_api(func):
    """Retry transient Cloud Storage errors with exponential backoff."""
    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(
            (gcloud_exceptions.ServerError, gcloud_exceptions.TooManyRequests)
        ),
        reraise=True,
    )
    def wrapper(*args, **kwargs):
        return func(*args, **kwargs)

    return wrapper


class GcsBlobStore:
    """Google Cloud Storage bucket as the blob store (same bucket Firebase uses)."""

    def __init__(self, bucket_name: str, google_sa_json: Optional[str] = None, client=None) -> None:
        if not bucket_name:
            raise ValueError("GcsBlobStore requires GCS_BUCKET")

        if client is None:
            creds = _credentials_from_json_or_path(google_sa_json)
            project = getattr(creds, "project_id", None)
            client = storage.Client(project=project, credentials=creds)
        self.client = client
        self.bucket = client.bucket(bucket_name)

    @retry_gcs_api
    def put_bytes(self, path: str, data: bytes, content_type: str) -> None:
        blob = self.bucket.blob(path)
        blob.upload_from_string(data, content_type=content_type)
        logger.info("Uploaded gs://%s/%s (%s bytes)", self.bucket.name, path, len(data))

    @retry_gcs_api
    def get_bytes(self, path: str) -> bytes:
        try:
            return self.bucket.blob(path).download_as_bytes()
        except gcloud_exceptions.NotFound as e:
            raise FileNotFoundError(path) from e

    def signed_url(self, path: str, ttl_seconds: int) -> str:
        blob = self.bucket.blob(path)
        return blob.generate_signed_url(
            version="v4",
            expiration=timedelta(seconds=ttl_seconds),
            method="GET",
        )
