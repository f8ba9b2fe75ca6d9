# services/api/core/session_keys.py
from __future__ import annotations

import time
from typing import Optional, Tuple

VERSION_SEP = ":v"


def session_key(doc_id: str, version: int) -> str:
    """
    Key the document server uses to scope one editing session.

    Must depend only on persisted state. Two tabs opening the same unchanged
    document must get the same key, or the server treats them as unrelated
    documents and its own locking breaks.
    """
    return f"{doc_id}{VERSION_SEP}{int(version)}"


def parse_session_key(key: str) -> Tuple[str, Optional[int]]:
    """
    Split a session key back into (doc_id, version).

    Splits on the LAST ":v" so ids containing colons survive. Keys minted
    before versions were tracked ("<doc_id>:<anything>") return version=None.
    """
    key = str(key or "").strip()
    if not key:
        raise ValueError("empty session key")

    head, sep, tail = key.rpartition(VERSION_SEP)
    if sep and head and tail.isdigit():
        return head, int(tail)

    return key.split(":", 1)[0], None


def conversion_key(doc_id: str, now_ms: Optional[int] = None) -> str:
    """
    Per-attempt key for the conversion API.

    Lives in a different namespace than session keys (never contains ":v"),
    so a conversion can never be confused with an editing session.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    safe_id = doc_id.replace(":", "_")
    return f"{safe_id}-pdf2docx-{now_ms}"
