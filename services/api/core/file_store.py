# services/api/core/file_store.py
from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi.concurrency import run_in_threadpool

from adapters.base import BlobStore
from models import DocumentRecord

DOCX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def utc_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def latest_path(doc_id: str) -> str:
    """
    Fixed blob path for a document's current file.

    The path never changes per version; saves overwrite it in place and only
    the record's version counter moves.
    """
    return f"onlyoffice/{doc_id}/latest.docx"


async def write_latest(
    blob_store: BlobStore,
    doc_id: str,
    data: bytes,
    *,
    ttl_seconds: int,
    content_type: str = DOCX_CONTENT_TYPE,
) -> Dict[str, Any]:
    """
    Overwrite the document's latest file and sign a fresh URL for it.

    Returns the record fields to merge. Blocking store calls run in the
    threadpool so the event loop keeps serving other requests.
    """
    path = latest_path(doc_id)
    await run_in_threadpool(blob_store.put_bytes, path, data, content_type)
    url = await run_in_threadpool(blob_store.signed_url, path, ttl_seconds)
    return {
        "current_file_path": path,
        "current_file_signed_url": url,
        "signed_url_issued_at": utc_iso(),
    }


def signed_url_is_stale(record: DocumentRecord, max_age_seconds: int, now: Optional[datetime] = None) -> bool:
    if not record.current_file_path:
        return False
    if not record.current_file_signed_url or not record.signed_url_issued_at:
        return True
    try:
        issued = datetime.fromisoformat(record.signed_url_issued_at.replace("Z", "+00:00"))
    except ValueError:
        return True
    if issued.tzinfo is None:
        issued = issued.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return (now - issued).total_seconds() >= max_age_seconds
