"""
JSON file storage adapter for document records.
Simple file-based storage for local demos and tests.
Atomicity comes from one process-wide lock around every read-modify-write,
so it is only safe with a single API process.
"""
import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.errors import DocumentExistsError, NotFoundError
from models import DocumentRecord

MERGE_FIELDS = {"title", "current_file_path", "current_file_signed_url", "signed_url_issued_at"}


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class JsonAdapter:
    """
    JSON file-based document record store.
    Stores all records in documents.json under the data directory.
    """

    def __init__(self, data_dir: str = "data"):
        """
        Initialize the JSON adapter.

        Args:
            data_dir: Directory to store JSON files
        """
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.documents_file = self.data_dir / "documents.json"
        self._lock = threading.Lock()

        if not self.documents_file.exists():
            self._write_file([])

    def _read_file(self) -> List[Dict[str, Any]]:
        """Read and parse the documents file."""
        try:
            with open(self.documents_file, "r", encoding="utf-8") as f:
                return json.load(f)
        except (FileNotFoundError, json.JSONDecodeError):
            return []

    def _write_file(self, data: List[Dict[str, Any]]) -> None:
        """Write data to the documents file atomically."""
        tmp_file = self.documents_file.with_suffix(".tmp")
        with open(tmp_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=str)

        # Atomic rename
        tmp_file.replace(self.documents_file)

    @staticmethod
    def _find(rows: List[Dict[str, Any]], doc_id: str) -> Optional[Dict[str, Any]]:
        return next((r for r in rows if r["doc_id"] == doc_id), None)

    def ping(self) -> None:
        self._read_file()

    def get_document(self, doc_id: str) -> Optional[DocumentRecord]:
        with self._lock:
            row = self._find(self._read_file(), doc_id)
        return DocumentRecord.from_storage(row) if row else None

    def create_document(
        self,
        doc_id: str,
        title: str,
        owner_id: Optional[str] = None,
    ) -> DocumentRecord:
        with self._lock:
            rows = self._read_file()
            if self._find(rows, doc_id):
                raise DocumentExistsError(doc_id)
            row = self._new_row(doc_id, title, owner_id, version=0)
            rows.append(row)
            self._write_file(rows)
        return DocumentRecord.from_storage(row)

    def update_document(self, doc_id: str, updates: Dict[str, Any]) -> DocumentRecord:
        with self._lock:
            rows = self._read_file()
            row = self._find(rows, doc_id)
            if not row:
                raise NotFoundError(doc_id)
            self._merge(row, updates)
            self._write_file(rows)
        return DocumentRecord.from_storage(row)

    def increment_version(self, doc_id: str, updates: Dict[str, Any]) -> DocumentRecord:
        with self._lock:
            rows = self._read_file()
            row = self._find(rows, doc_id)
            if not row:
                raise NotFoundError(doc_id)
            self._merge(row, updates)
            row["version"] = int(row.get("version") or 0) + 1
            self._write_file(rows)
        return DocumentRecord.from_storage(row)

    def materialize_file(
        self,
        doc_id: str,
        updates: Dict[str, Any],
        *,
        title: Optional[str] = None,
        owner_id: Optional[str] = None,
        provenance: Optional[Dict[str, Any]] = None,
    ) -> DocumentRecord:
        provenance = provenance or {}
        file_updates = {k: v for k, v in updates.items() if k != "title"}
        with self._lock:
            rows = self._read_file()
            row = self._find(rows, doc_id)
            if row is None:
                row = self._new_row(doc_id, title, owner_id, version=0)
                rows.append(row)

            if int(row.get("version") or 0) < 1:
                row["version"] = 1
                if provenance.get("source_conversion_ref"):
                    row["source_conversion_ref"] = provenance["source_conversion_ref"]
            else:
                row["version"] = int(row["version"]) + 1
            if provenance.get("source_url"):
                row["source_url"] = provenance["source_url"]

            self._merge(row, file_updates)
            self._write_file(rows)
        return DocumentRecord.from_storage(row)

    @staticmethod
    def _new_row(doc_id: str, title: Optional[str], owner_id: Optional[str], version: int) -> Dict[str, Any]:
        now = _now()
        return {
            "doc_id": doc_id,
            "title": title or "Document",
            "owner_id": owner_id or None,
            "current_file_path": None,
            "current_file_signed_url": None,
            "signed_url_issued_at": None,
            "version": version,
            "source_conversion_ref": None,
            "source_url": None,
            "created_at": now,
            "updated_at": now,
        }

    @staticmethod
    def _merge(row: Dict[str, Any], updates: Dict[str, Any]) -> None:
        for k, v in updates.items():
            if k in MERGE_FIELDS:
                row[k] = v
        row["updated_at"] = _now()
