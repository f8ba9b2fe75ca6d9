"""
Pydantic schemas for API request/response validation.
"""
from .document import DocumentCreate, DocumentOut, DocumentUpdate
from .onlyoffice import (
    CallbackAck,
    CallbackPayload,
    ConfigRequest,
    ConvertRequest,
    CreateBlankRequest,
    EditorUser,
    FailedSaveOut,
    StoredFileOut,
)

__all__ = [
    "CallbackAck",
    "CallbackPayload",
    "ConfigRequest",
    "ConvertRequest",
    "CreateBlankRequest",
    "DocumentCreate",
    "DocumentOut",
    "DocumentUpdate",
    "EditorUser",
    "FailedSaveOut",
    "StoredFileOut",
]
