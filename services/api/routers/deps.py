# services/api/routers/deps.py
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from adapters.base import BlobStore, DocumentRecordStore
from core.callback_handler import CallbackHandler
from core.converter import ConversionPoller
from settings import Settings


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{name} not initialized",
        )
    return value


def get_record_store(request: Request) -> DocumentRecordStore:
    return _state(request, "record_store")


def get_blob_store(request: Request) -> BlobStore:
    return _state(request, "blob_store")


def get_app_settings(request: Request) -> Settings:
    return _state(request, "settings")


def get_callback_handler(request: Request) -> CallbackHandler:
    return _state(request, "callback_handler")


def get_conversion_poller(request: Request) -> ConversionPoller:
    return _state(request, "conversion_poller")


# ---- DI aliases ----
RecordStore = Annotated[DocumentRecordStore, Depends(get_record_store)]
Blobs = Annotated[BlobStore, Depends(get_blob_store)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Callbacks = Annotated[CallbackHandler, Depends(get_callback_handler)]
Poller = Annotated[ConversionPoller, Depends(get_conversion_poller)]
