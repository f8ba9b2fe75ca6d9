from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


def _safe_int(v: Any, default: int = 0) -> int:
    try:
        if v is None:
            return default
        s = str(v).strip()
        if s == "":
            return default
        return int(float(s))
    except (TypeError, ValueError):
        return default


@dataclass
class DocumentRecord:
    """
    Domain model for one editable document.

    `version` is 0 while the document has no file, becomes 1 when the first
    file is materialized (blank creation or conversion) and only moves up
    afterwards. The session key handed to the editor is derived from
    (id, version), so this counter is what scopes editing sessions.
    """
    id: str
    title: str = "Document"
    owner_id: Optional[str] = None

    current_file_path: Optional[str] = None
    current_file_signed_url: Optional[str] = None
    signed_url_issued_at: Optional[str] = None

    version: int = 0

    source_conversion_ref: Optional[str] = None
    source_url: Optional[str] = None

    created_at: str = ""
    updated_at: str = ""

    @property
    def has_file(self) -> bool:
        return bool(self.current_file_path and self.current_file_signed_url)

    # --------------------
    # Conversions – storage layer
    # --------------------
    @classmethod
    def from_storage(cls, row: Dict[str, Any]) -> "DocumentRecord":
        return cls(
            id=str(row.get("doc_id") or row.get("id") or ""),
            title=row.get("title") or "Document",
            owner_id=row.get("owner_id") or None,
            current_file_path=row.get("current_file_path") or None,
            current_file_signed_url=row.get("current_file_signed_url") or None,
            signed_url_issued_at=_as_str(row.get("signed_url_issued_at")),
            version=_safe_int(row.get("version")),
            source_conversion_ref=row.get("source_conversion_ref") or None,
            source_url=row.get("source_url") or None,
            created_at=_as_str(row.get("created_at")) or "",
            updated_at=_as_str(row.get("updated_at")) or "",
        )

    def to_api(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "owner_id": self.owner_id,
            "current_file_path": self.current_file_path,
            "current_file_signed_url": self.current_file_signed_url,
            "version": self.version,
            "source_conversion_ref": self.source_conversion_ref,
            "source_url": self.source_url,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


def _as_str(v: Any) -> Optional[str]:
    if v is None or v == "":
        return None
    if hasattr(v, "isoformat"):
        return v.isoformat()
    return str(v)
