# services/api/core/editor_config.py
from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import Any, Dict, Optional

from adapters.base import DocumentRecordStore
from core.errors import NoFileError, NotFoundError
from core.session_keys import session_key
from core.webhook_auth import sign_payload

logger = logging.getLogger(__name__)

DEFAULT_PERMISSIONS = {
    "edit": True,
    "download": True,
    "print": True,
    "review": True,
    "comment": True,
    "fillForms": True,
    "copy": True,
}

_DOCUMENT_TYPES = {
    "word": {"doc", "docm", "docx", "dot", "dotx", "odt", "ott", "rtf", "txt", "html", "epub"},
    "cell": {"xls", "xlsx", "xlsm", "ods", "ots", "csv"},
    "slide": {"ppt", "pptx", "pptm", "odp", "otp"},
    "pdf": {"pdf", "djvu", "oxps", "xps"},
}


def file_type_for(path: Optional[str], default: str = "docx") -> str:
    suffix = PurePosixPath(path or "").suffix.lstrip(".").lower()
    return suffix or default


def document_type_for(file_type: str) -> str:
    for doc_type, extensions in _DOCUMENT_TYPES.items():
        if file_type in extensions:
            return doc_type
    return "word"


def build_config(
    store: DocumentRecordStore,
    doc_id: str,
    *,
    callback_url: str,
    user_id: Optional[str] = None,
    user_name: Optional[str] = None,
    jwt_secret: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the DocsAPI.DocEditor config for the document's current file.

    Pure read: calling it twice without a save in between returns the same
    key, because the key is derived from the persisted version only.

    Raises:
        NotFoundError: no such document.
        NoFileError: the document has no file/URL yet.
    """
    record = store.get_document(doc_id)
    if record is None:
        raise NotFoundError(doc_id)
    if not record.has_file:
        raise NoFileError(doc_id)

    file_type = file_type_for(record.current_file_path)
    key = session_key(record.id, record.version)

    config: Dict[str, Any] = {
        "documentType": document_type_for(file_type),
        "document": {
            "fileType": file_type,
            "key": key,
            "title": record.title or "Document",
            "url": record.current_file_signed_url,
            "permissions": dict(DEFAULT_PERMISSIONS),
        },
        "editorConfig": {
            "mode": "edit",
            "callbackUrl": callback_url,
            "user": {
                "id": str(user_id or "1"),
                "name": str(user_name or "User"),
            },
            "customization": {
                "forcesave": True,
            },
        },
    }

    # The document server refuses unsigned configs once its JWT is enabled
    if jwt_secret:
        config["token"] = sign_payload(config, jwt_secret)

    logger.info("Built editor config doc_id=%s key=%s", doc_id, key)
    return config
