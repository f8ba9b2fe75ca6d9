"""
Error taxonomy for the document session protocol.

Routers map these to HTTP responses; core code never raises HTTPException.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class SessionError(Exception):
    """Base class for every protocol-level error."""


class NotFoundError(SessionError):
    def __init__(self, doc_id: str):
        super().__init__(f"DOCUMENT_NOT_FOUND: {doc_id}")
        self.doc_id = doc_id


class NoFileError(SessionError):
    """The document exists but has no editable file yet."""

    def __init__(self, doc_id: str):
        super().__init__(f"NO_FILE: document {doc_id} has no file yet; create or convert one first")
        self.doc_id = doc_id


class DocumentExistsError(SessionError):
    def __init__(self, doc_id: str):
        super().__init__(f"DOCUMENT_EXISTS: {doc_id}")
        self.doc_id = doc_id


class Unauthorized(SessionError):
    """Webhook credential missing or not signed with the shared secret."""


class ConversionError(SessionError):
    """
    The document server refused or failed the conversion.

    `code` is the server's numeric error code, or None when the failure was
    an HTTP status (kept in `http_status`).
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[int] = None,
        http_status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.http_status = http_status
        self.details = details or {}


class ConversionTimeoutError(SessionError, TimeoutError):
    def __init__(self, key: str, attempts: int):
        super().__init__(f"Conversion {key} did not finish after {attempts} attempts")
        self.key = key
        self.attempts = attempts
