# services/api/core/converter.py
"""
PDF -> DOCX conversion through the document server's conversion API.

The API has no separate status call: re-POSTing the same request with the
same key returns the in-flight job's status instead of starting a new job.
ConverterClient.submit_or_poll wraps one such POST; ConversionPoller owns the
retry budget and the sleeps between attempts.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

import httpx
from fastapi.concurrency import run_in_threadpool

from adapters.base import BlobStore, DocumentRecordStore
from core.errors import ConversionError, ConversionTimeoutError
from core.file_store import write_latest
from core.session_keys import conversion_key
from core.webhook_auth import sign_payload
from models import ConversionJob, ConversionStatus, DocumentRecord, JobStatus

logger = logging.getLogger(__name__)


class ConversionBackend(Protocol):
    async def submit_or_poll(self, job: ConversionJob) -> JobStatus:
        ...


class ConverterClient:
    """One HTTP round-trip to <document_server>/converter."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        converter_url: str,
        jwt_secret: Optional[str] = None,
    ):
        self.http = http_client
        self.converter_url = converter_url
        self.jwt_secret = jwt_secret or None

    async def submit_or_poll(self, job: ConversionJob) -> JobStatus:
        """
        Raises:
            ConversionError: non-2xx HTTP status or a numeric error code.
        """
        payload: Dict[str, Any] = job.to_request()
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.jwt_secret:
            token = sign_payload(payload, self.jwt_secret)
            payload = {**payload, "token": token}
            headers["Authorization"] = f"Bearer {token}"

        resp = await self.http.post(self.converter_url, json=payload, headers=headers)

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if not resp.is_success:
            logger.error("converter http error: %s %s", resp.status_code, data)
            raise ConversionError(
                f"Converter HTTP {resp.status_code}",
                http_status=resp.status_code,
                details=data,
            )

        try:
            status = JobStatus.from_response(data)
        except (TypeError, ValueError) as e:
            raise ConversionError(f"Unreadable converter response: {e}", details=data) from e
        if status.error is not None:
            raise ConversionError(
                f"Conversion error code: {status.error}",
                code=status.error,
                details=data,
            )
        return status


class ConversionPoller:
    def __init__(
        self,
        backend: ConversionBackend,
        *,
        record_store: DocumentRecordStore,
        blob_store: BlobStore,
        http_client: httpx.AsyncClient,
        max_attempts: int = 40,
        poll_interval: float = 1.5,
        signed_url_ttl_seconds: int = 60 * 60 * 24 * 7,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.backend = backend
        self.record_store = record_store
        self.blob_store = blob_store
        self.http = http_client
        self.max_attempts = max_attempts
        self.poll_interval = poll_interval
        self.signed_url_ttl_seconds = signed_url_ttl_seconds
        self._sleep = sleep

    async def wait_for(self, job: ConversionJob) -> str:
        """
        Re-submit `job` until it finishes. Exactly `max_attempts` submissions
        at most, with a sleep between consecutive ones (never after the last).

        Returns the result URL.

        Raises:
            ConversionError, ConversionTimeoutError
        """
        for attempt in range(1, self.max_attempts + 1):
            job.attempts = attempt
            try:
                status = await self.backend.submit_or_poll(job)
            except ConversionError as e:
                job.status = ConversionStatus.FAILED
                job.error_code = e.code
                logger.error("Conversion %s failed on attempt %s: %s", job.key, attempt, e)
                raise

            if status.end_convert and status.file_url:
                job.status = ConversionStatus.SUCCEEDED
                job.result_url = status.file_url
                logger.info("Conversion %s finished after %s attempt(s)", job.key, attempt)
                return status.file_url
            if status.end_convert:
                job.status = ConversionStatus.FAILED
                logger.error("Conversion %s ended without a fileUrl", job.key)
                raise ConversionError(f"Conversion {job.key} finished without a result URL")

            job.status = ConversionStatus.POLLING
            logger.debug("Conversion %s at %s%% (attempt %s)", job.key, status.percent, attempt)
            if attempt < self.max_attempts:
                await self._sleep(self.poll_interval)

        job.status = ConversionStatus.TIMED_OUT
        logger.warning("Conversion %s timed out after %s attempts", job.key, self.max_attempts)
        raise ConversionTimeoutError(job.key, self.max_attempts)

    async def convert_and_store(
        self,
        doc_id: str,
        source_url: str,
        title: Optional[str] = None,
        *,
        owner_id: Optional[str] = None,
    ) -> tuple[ConversionJob, DocumentRecord]:
        """
        Convert `source_url` to DOCX and make it the document's current file.

        Not transactional: a crash between the blob write and the record
        update leaves them out of sync. Re-running is safe because the blob
        path is fixed.
        """
        job = ConversionJob(
            key=conversion_key(doc_id),
            document_id=doc_id,
            source_url=source_url,
            title=title or "source.pdf",
        )
        logger.info("Submitting conversion %s for doc_id=%s", job.key, doc_id)

        result_url = await self.wait_for(job)

        resp = await self.http.get(result_url)
        if resp.status_code != 200:
            raise ConversionError(
                f"Failed to download converted DOCX (HTTP {resp.status_code})",
                http_status=resp.status_code,
            )

        updates = await write_latest(
            self.blob_store,
            doc_id,
            resp.content,
            ttl_seconds=self.signed_url_ttl_seconds,
        )
        record = await run_in_threadpool(
            lambda: self.record_store.materialize_file(
                doc_id,
                updates,
                title=title,
                owner_id=owner_id,
                provenance={"source_conversion_ref": job.key, "source_url": source_url},
            )
        )
        logger.info("Stored conversion %s for doc_id=%s at version %s", job.key, doc_id, record.version)
        return job, record
