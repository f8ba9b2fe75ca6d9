"""
Storage adapter interfaces for the document session API.
Defines the contracts that record stores and blob stores must implement.
"""

from typing import Protocol, Dict, Any, Optional

from models import DocumentRecord


class DocumentRecordStore(Protocol):
    """
    Protocol defining the interface for document record stores.

    This allows swapping between SQLite, a JSON file, or a hosted database
    without changing the router or session protocol code.

    NOTE:
    - `increment_version` and `materialize_file` MUST be atomic at the store.
      Save callbacks can arrive concurrently (force-save + auto-save) and a
      lost increment means two editor sessions share one key.
    - Every other write is a plain merge.
    """

    def ping(self) -> None:
        """Cheap connectivity check used by /readyz. Raises on failure."""
        ...

    def get_document(self, doc_id: str) -> Optional[DocumentRecord]:
        """
        Fetch a document record by id.

        Returns:
            DocumentRecord, or None if not found.
        """
        ...

    def create_document(
        self,
        doc_id: str,
        title: str,
        owner_id: Optional[str] = None,
    ) -> DocumentRecord:
        """
        Create an empty record (version 0, no file).

        Raises:
            DocumentExistsError if the id is already taken.
        """
        ...

    def update_document(self, doc_id: str, updates: Dict[str, Any]) -> DocumentRecord:
        """
        Merge fields into a record.

        Implementations should:
            - overwrite only the provided keys
            - never touch `version`, `id`, `owner_id` or `created_at`
            - update 'updated_at' internally

        Raises:
            NotFoundError if the record does not exist.
        """
        ...

    def increment_version(self, doc_id: str, updates: Dict[str, Any]) -> DocumentRecord:
        """
        Atomically do `version = version + 1` and merge `updates`.

        Returns:
            The record as it is after the increment.

        Raises:
            NotFoundError if the record does not exist.
        """
        ...

    def materialize_file(
        self,
        doc_id: str,
        updates: Dict[str, Any],
        *,
        title: Optional[str] = None,
        owner_id: Optional[str] = None,
        provenance: Optional[Dict[str, Any]] = None,
    ) -> DocumentRecord:
        """
        Record that a freshly produced file (blank or converted) now lives at
        the document's path. Atomic; the version never goes down:

            - record missing      -> create it with version 1 (+ provenance)
            - record at version 0 -> version 1 (+ provenance)
            - record with a file  -> version + 1 (source_conversion_ref untouched)

        `source_url` is overwritten whenever provenance carries one.
        """
        ...


class BlobStore(Protocol):
    """
    Opaque path-addressed byte storage.

    Paths are logical ("onlyoffice/<doc_id>/latest.docx"); writes to the same
    path overwrite in place.
    """

    def put_bytes(self, path: str, data: bytes, content_type: str) -> None:
        ...

    def get_bytes(self, path: str) -> bytes:
        """Raises FileNotFoundError if nothing is stored at `path`."""
        ...

    def signed_url(self, path: str, ttl_seconds: int) -> str:
        """Time-limited URL the document server can GET the file from."""
        ...
