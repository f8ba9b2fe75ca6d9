# services/api/adapters/sqlite/__init__.py
from __future__ import annotations

import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    CheckConstraint,
    case,
    create_engine,
    select,
    insert,
    update,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.errors import DocumentExistsError, NotFoundError
from models import DocumentRecord

# Fields a plain merge may touch. version/id/owner/provenance are managed
# by the dedicated methods below.
MERGE_FIELDS = {"title", "current_file_path", "current_file_signed_url", "signed_url_issued_at"}

# ---- Engine (SQLite) with WAL & pragmas -------------------------------------

def _ensure_dir(path: str):
    d = os.path.dirname(path)
    if d and not os.path.isdir(d):
        os.makedirs(d, exist_ok=True)

def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)

def make_engine(db_url: str) -> Engine:
    # Create data dir if sqlite file
    if db_url.startswith("sqlite:///"):
        file_path = db_url.replace("sqlite:///", "", 1)
        _ensure_dir(file_path)

    engine = create_engine(db_url, future=True, pool_pre_ping=True)

    # Apply pragmas per-connection
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):  # type: ignore
        if isinstance(dbapi_connection, sqlite3.Connection):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA synchronous=NORMAL;")
            cursor.execute("PRAGMA busy_timeout=5000;")
            cursor.close()

    return engine

# ---- Schema via SQLAlchemy Core ---------------------------------------------

metadata = MetaData()

documents = Table(
    "documents",
    metadata,
    Column("doc_id", String, primary_key=True),
    Column("title", String, nullable=False, default="Document"),
    Column("owner_id", String),
    Column("current_file_path", Text),
    Column("current_file_signed_url", Text),
    Column("signed_url_issued_at", String),
    Column("version", Integer, nullable=False, default=0),
    Column("source_conversion_ref", String),
    Column("source_url", Text),
    Column("created_at", DateTime, nullable=False, default=_now),
    Column("updated_at", DateTime, nullable=False, default=_now),
    CheckConstraint("version >= 0", name="ck_version_non_negative"),
)

# ---- Adapter implementation --------------------------------------------------

@dataclass(frozen=True)
class SqliteAdapter:
    engine: Engine

    @classmethod
    def from_url(cls, db_url: str = "sqlite:///data/documents.db") -> "SqliteAdapter":
        eng = make_engine(db_url)
        metadata.create_all(eng)
        return cls(engine=eng)

    def ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(select(1)).first()

    def get_document(self, doc_id: str) -> Optional[DocumentRecord]:
        with self.engine.begin() as conn:
            row = conn.execute(
                select(documents).where(documents.c.doc_id == doc_id)
            ).mappings().first()
            return DocumentRecord.from_storage(dict(row)) if row else None

    def create_document(
        self,
        doc_id: str,
        title: str,
        owner_id: Optional[str] = None,
    ) -> DocumentRecord:
        now = _now()
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    insert(documents).values(
                        doc_id=doc_id,
                        title=title or "Document",
                        owner_id=owner_id or None,
                        version=0,
                        created_at=now,
                        updated_at=now,
                    )
                )
        except IntegrityError as e:
            raise DocumentExistsError(doc_id) from e
        return self.get_document(doc_id)

    def update_document(self, doc_id: str, updates: Dict[str, Any]) -> DocumentRecord:
        allowed = {k: v for k, v in updates.items() if k in MERGE_FIELDS}
        return self._update_returning(doc_id, {**allowed, "updated_at": _now()})

    # Single UPDATE ... SET version = version + 1: atomic at the database,
    # no read-modify-write in Python.
    def increment_version(self, doc_id: str, updates: Dict[str, Any]) -> DocumentRecord:
        allowed = {k: v for k, v in updates.items() if k in MERGE_FIELDS}
        return self._update_returning(
            doc_id,
            {**allowed, "version": documents.c.version + 1, "updated_at": _now()},
        )

    def materialize_file(
        self,
        doc_id: str,
        updates: Dict[str, Any],
        *,
        title: Optional[str] = None,
        owner_id: Optional[str] = None,
        provenance: Optional[Dict[str, Any]] = None,
    ) -> DocumentRecord:
        allowed = {k: v for k, v in updates.items() if k in MERGE_FIELDS and k != "title"}
        provenance = provenance or {}
        first_file = documents.c.version < 1

        values: Dict[str, Any] = {
            **allowed,
            # SET expressions see the pre-update row, so `first_file` is
            # evaluated against the old version for every column.
            "version": case((first_file, 1), else_=documents.c.version + 1),
            "updated_at": _now(),
        }
        # conversion ref is set once; the source URL follows the latest conversion
        if provenance.get("source_conversion_ref"):
            values["source_conversion_ref"] = case(
                (first_file, provenance["source_conversion_ref"]),
                else_=documents.c.source_conversion_ref,
            )
        if provenance.get("source_url"):
            values["source_url"] = provenance["source_url"]

        for _ in range(2):
            try:
                return self._update_returning(doc_id, values)
            except NotFoundError:
                pass

            now = _now()
            try:
                with self.engine.begin() as conn:
                    conn.execute(
                        insert(documents).values(
                            doc_id=doc_id,
                            title=title or "Document",
                            owner_id=owner_id or None,
                            version=1,
                            source_conversion_ref=provenance.get("source_conversion_ref"),
                            source_url=provenance.get("source_url"),
                            created_at=now,
                            updated_at=now,
                            **allowed,
                        )
                    )
                return self.get_document(doc_id)
            except IntegrityError:
                # Someone created it between our UPDATE and INSERT; the
                # UPDATE path handles it now.
                continue

        raise RuntimeError(f"could not materialize document {doc_id}")

    def _update_returning(self, doc_id: str, values: Dict[str, Any]) -> DocumentRecord:
        with self.engine.begin() as conn:
            row = conn.execute(
                update(documents)
                .where(documents.c.doc_id == doc_id)
                .values(**values)
                .returning(*documents.c)
            ).mappings().first()
            if not row:
                raise NotFoundError(doc_id)
            return DocumentRecord.from_storage(dict(row))
