# services/api/routers/files.py
from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, Response, status
from fastapi.concurrency import run_in_threadpool

from adapters.local import LocalBlobStore
from core.file_store import DOCX_CONTENT_TYPE
from routers.deps import Blobs

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{path:path}")
async def get_file(path: str, blobs: Blobs, token: str = Query(..., min_length=1)):
    """
    Serve a file from the local blob store to whoever holds a signed URL
    (in practice the document server fetching the file to open).
    With BLOB_BACKEND=gcs the bucket serves its own signed URLs and this
    route always 404s.
    """
    if not isinstance(blobs, LocalBlobStore):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    if not blobs.verify(path, token):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired file token")

    try:
        data = await run_in_threadpool(blobs.get_bytes, path)
    except (FileNotFoundError, ValueError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    media_type = DOCX_CONTENT_TYPE if path.endswith(".docx") else "application/octet-stream"
    return Response(
        content=data,
        media_type=media_type,
        headers={"Cache-Control": "no-store"},
    )
