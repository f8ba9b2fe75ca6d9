# services/api/routers/onlyoffice.py
from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from core.blank_docx import blank_docx_bytes
from core.editor_config import build_config
from core.errors import (
    ConversionError,
    ConversionTimeoutError,
    NoFileError,
    NotFoundError,
    Unauthorized,
)
from core.file_store import write_latest
from routers.deps import AppSettings, Blobs, Callbacks, Poller, RecordStore
from schemas.onlyoffice import (
    CallbackAck,
    ConfigRequest,
    ConvertRequest,
    CreateBlankRequest,
    FailedSaveOut,
    StoredFileOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/onlyoffice", tags=["onlyoffice"])


@router.post("/config")
async def editor_config(body: ConfigRequest, store: RecordStore, settings: AppSettings) -> Dict[str, Any]:
    """
    Build the DocsAPI.DocEditor config for a document.

    The file URL, title and version come from the stored record, never from
    the client, so the key always matches what was last persisted.
    """
    user = body.user
    try:
        return await run_in_threadpool(
            lambda: build_config(
                store,
                body.doc_id,
                callback_url=settings.callback_url,
                user_id=user.id if user else None,
                user_name=user.name if user else None,
                jwt_secret=settings.document_server_jwt_secret,
            )
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except NoFileError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/create-blank", response_model=StoredFileOut, response_model_by_alias=True)
async def create_blank(
    body: CreateBlankRequest,
    store: RecordStore,
    blobs: Blobs,
    settings: AppSettings,
) -> StoredFileOut:
    """
    Write a blank DOCX to onlyoffice/{docId}/latest.docx and point the record at it.

    New document -> version 1. A document that already has a file is
    overwritten and its version bumped, never reset.
    """
    data = blank_docx_bytes(body.title or "Untitled")
    updates = await write_latest(
        blobs,
        body.doc_id,
        data,
        ttl_seconds=settings.signed_url_ttl_seconds,
    )
    record = await run_in_threadpool(
        lambda: store.materialize_file(
            body.doc_id,
            updates,
            title=body.title,
            owner_id=body.owner_id,
        )
    )
    logger.info("Created blank docx for doc_id=%s (version %s)", body.doc_id, record.version)
    return StoredFileOut(
        docx_path=record.current_file_path,
        docx_url=record.current_file_signed_url,
        version=record.version,
    )


@router.post("/convert/pdf-to-docx", response_model=StoredFileOut, response_model_by_alias=True)
async def convert_pdf_to_docx(body: ConvertRequest, poller: Poller) -> StoredFileOut:
    """
    Convert a PDF to DOCX via the document server and store it as the
    document's current file. Blocks this request (not the server) until the
    conversion finishes or the attempt budget runs out.
    """
    try:
        job, record = await poller.convert_and_store(
            body.doc_id, body.pdf_url, body.title, owner_id=body.owner_id
        )
    except ConversionTimeoutError as e:
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail={"error": "Conversion timeout (try again)", "key": e.key, "attempts": e.attempts},
        )
    except ConversionError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": str(e), "code": e.code, "http_status": e.http_status, "details": e.details},
        )

    return StoredFileOut(
        docx_path=record.current_file_path,
        docx_url=record.current_file_signed_url,
        version=record.version,
        conversion_key=job.key,
    )


@router.post("/callback", response_model=CallbackAck)
async def callback(
    request: Request,
    background_tasks: BackgroundTasks,
    handler: Callbacks,
    settings: AppSettings,
):
    """
    Save webhook called by the document server.

    Must answer fast: {"error": 0} means "got it"; anything else makes the
    editor retry or show a save error to the user.
    """
    try:
        body = await request.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    try:
        payload = handler.authenticate(body, request.headers.get(settings.jwt_header))
    except Unauthorized as e:
        logger.warning("callback rejected: %s", e)
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"error": 1})
    except ValidationError as e:
        logger.warning("callback body not understood, acknowledged without action: %s", e)
        return CallbackAck(error=0)

    logger.info("callback status=%s key=%s", payload.status.name, payload.key)

    if not handler.needs_persist(payload):
        return CallbackAck(error=0)

    if settings.callback_persist_mode == "sync":
        ok = await handler.persist_supervised(payload)
        return CallbackAck(error=0 if ok else 1)

    # Ack goes out first; Starlette runs the task after the response is sent
    background_tasks.add_task(handler.persist_supervised, payload)
    return CallbackAck(error=0)


@router.get("/failed-saves", response_model=List[FailedSaveOut])
async def failed_saves(handler: Callbacks) -> List[Dict[str, Any]]:
    """Saves that failed after the document server was already told "ok"."""
    return handler.failed_saves.list()
