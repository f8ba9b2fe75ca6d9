# services/api/routers/documents.py
from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, HTTPException, status
from fastapi.concurrency import run_in_threadpool

from core.errors import DocumentExistsError, NotFoundError
from core.file_store import signed_url_is_stale, utc_iso
from models import DocumentRecord
from routers.deps import AppSettings, Blobs, RecordStore
from schemas.document import DocumentCreate, DocumentOut, DocumentUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])


def _out(record: DocumentRecord) -> DocumentOut:
    return DocumentOut(**record.to_api())


@router.post("", response_model=DocumentOut, status_code=status.HTTP_201_CREATED)
async def create_document(body: DocumentCreate, store: RecordStore) -> DocumentOut:
    """
    Create an empty document record (version 0, no file).

    A file is attached later by /onlyoffice/create-blank or
    /onlyoffice/convert/pdf-to-docx, which move it to version 1.
    """
    doc_id = body.id or str(uuid.uuid4())
    try:
        record = await run_in_threadpool(store.create_document, doc_id, body.title, body.owner_id)
    except DocumentExistsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    logger.info("Created document %s", doc_id)
    return _out(record)


@router.get("/{doc_id}", response_model=DocumentOut)
async def get_document(doc_id: str, store: RecordStore, blobs: Blobs, settings: AppSettings) -> DocumentOut:
    """
    Fetch a document record.

    If the stored signed URL is old enough that it may have expired, a new
    one is issued for the same path and merged back.
    """
    record = await run_in_threadpool(store.get_document, doc_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"DOCUMENT_NOT_FOUND: {doc_id}")

    if signed_url_is_stale(record, settings.signed_url_refresh_seconds):
        url = await run_in_threadpool(
            blobs.signed_url, record.current_file_path, settings.signed_url_ttl_seconds
        )
        try:
            record = await run_in_threadpool(
                store.update_document,
                doc_id,
                {"current_file_signed_url": url, "signed_url_issued_at": utc_iso()},
            )
        except NotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"DOCUMENT_NOT_FOUND: {doc_id}")
        logger.info("Refreshed signed URL for %s", doc_id)

    return _out(record)


@router.patch("/{doc_id}", response_model=DocumentOut)
async def update_document(doc_id: str, body: DocumentUpdate, store: RecordStore) -> DocumentOut:
    """Rename a document. The version (and so the session key) is untouched."""
    try:
        record = await run_in_threadpool(store.update_document, doc_id, {"title": body.title})
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return _out(record)
