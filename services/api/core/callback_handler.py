# services/api/core/callback_handler.py
"""
Save callback (webhook) handling for the document server.

Flow per callback:
  1. authenticate (shared JWT secret, if configured)
  2. acknowledge ({"error": 0}); the router decides whether persistence runs
     before the ack ("sync") or after it as a background task ("background")
  3. act only on MUST_SAVE / MUST_FORCE_SAVE
  4. correlate the key back to a document id
  5. download the edited file, overwrite the document's latest path, re-sign
  6. atomically bump the record's version
"""
from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any, Deque, Dict, List, Optional

import httpx
from fastapi.concurrency import run_in_threadpool

from adapters.base import BlobStore, DocumentRecordStore
from core.file_store import utc_iso, write_latest
from core.session_keys import parse_session_key
from core.webhook_auth import verify_callback_token
from models import DocumentRecord
from schemas.onlyoffice import CallbackPayload

logger = logging.getLogger(__name__)


@dataclass
class FailedSave:
    doc_id: Optional[str]
    key: Optional[str]
    status: int
    error: str
    failed_at: str


class FailedSaveLog:
    """
    Bounded, thread-safe record of saves that failed after the ack was sent.

    The document server never learns about these, so this (plus the ERROR
    log line) is the only place they show up.
    """

    def __init__(self, maxlen: int = 200):
        self._items: Deque[FailedSave] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def record(self, item: FailedSave) -> None:
        with self._lock:
            self._items.append(item)

    def list(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [asdict(i) for i in reversed(self._items)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class CallbackHandler:
    def __init__(
        self,
        *,
        record_store: DocumentRecordStore,
        blob_store: BlobStore,
        http_client: httpx.AsyncClient,
        jwt_secret: Optional[str] = None,
        signed_url_ttl_seconds: int = 60 * 60 * 24 * 7,
        failed_saves: Optional[FailedSaveLog] = None,
    ):
        self.record_store = record_store
        self.blob_store = blob_store
        self.http = http_client
        self.jwt_secret = jwt_secret or None
        self.signed_url_ttl_seconds = signed_url_ttl_seconds
        self.failed_saves = failed_saves if failed_saves is not None else FailedSaveLog()

    def authenticate(self, body: Dict[str, Any], auth_header: Optional[str]) -> CallbackPayload:
        """
        Verify the caller and parse the payload.

        Raises:
            Unauthorized: secret configured and credential missing/invalid.
        """
        data = verify_callback_token(body, auth_header, self.jwt_secret)
        return CallbackPayload.model_validate(data)

    @staticmethod
    def needs_persist(payload: CallbackPayload) -> bool:
        if not payload.status.requires_save:
            logger.debug("Callback status %s ignored (key=%s)", payload.status.name, payload.key)
            return False
        if not payload.url or not payload.key:
            logger.info("Callback status %s without url/key, nothing to save", payload.status.name)
            return False
        return True

    async def persist(self, payload: CallbackPayload) -> DocumentRecord:
        """
        Fetch the edited bytes and apply them. Raises on any failure.

        Version policy is last-write-wins: a callback whose key names an
        older version is still applied, with a warning.
        """
        doc_id, key_version = parse_session_key(payload.key)

        resp = await self.http.get(payload.url)
        if resp.status_code != 200:
            raise RuntimeError(f"Failed to download updated file: HTTP {resp.status_code}")
        data = resp.content

        updates = await write_latest(
            self.blob_store,
            doc_id,
            data,
            ttl_seconds=self.signed_url_ttl_seconds,
        )
        record = await run_in_threadpool(self.record_store.increment_version, doc_id, updates)

        if key_version is not None and key_version != record.version - 1:
            logger.warning(
                "Applied stale callback doc_id=%s key=%s (record was at v%s); last write wins",
                doc_id,
                payload.key,
                record.version - 1,
            )

        logger.info(
            "Saved doc_id=%s status=%s bytes=%s -> version %s",
            doc_id,
            payload.status.name,
            len(data),
            record.version,
        )
        return record

    async def persist_supervised(self, payload: CallbackPayload) -> bool:
        """
        persist() for code paths that must not raise (background tasks, and
        the sync path that maps failure to {"error": 1}).

        Returns True on success; failures are logged and recorded.
        """
        try:
            await self.persist(payload)
            return True
        except Exception as e:
            doc_id = None
            try:
                doc_id = parse_session_key(payload.key)[0]
            except ValueError:
                pass
            logger.exception("callback save failed doc_id=%s key=%s: %s", doc_id, payload.key, e)
            self.failed_saves.record(
                FailedSave(
                    doc_id=doc_id,
                    key=payload.key,
                    status=int(payload.status),
                    error=str(e) or e.__class__.__name__,
                    failed_at=utc_iso(),
                )
            )
            return False
