"""
Local filesystem blob store for development.

Files live under a base directory; "signed" URLs point back at this API's
/files route and carry a short HS256 token binding the path and expiry.
"""
from __future__ import annotations

import logging
import time
from pathlib import Path
from urllib.parse import quote

import jwt

logger = logging.getLogger(__name__)


class LocalBlobStore:
    def __init__(self, base_dir: str, public_base_url: str, signing_key: str) -> None:
        if not signing_key:
            raise ValueError("LocalBlobStore requires LOCAL_BLOB_SIGNING_KEY")
        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")
        self.signing_key = signing_key

    def _resolve(self, path: str) -> Path:
        target = (self.base_dir / path.lstrip("/")).resolve()
        if target != self.base_dir and self.base_dir not in target.parents:
            raise ValueError(f"path escapes blob directory: {path}")
        return target

    def put_bytes(self, path: str, data: bytes, content_type: str) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(target.name + ".tmp")
        tmp.write_bytes(data)
        tmp.replace(target)
        logger.info("Wrote %s (%s bytes, %s)", path, len(data), content_type)

    def get_bytes(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise FileNotFoundError(path)
        return target.read_bytes()

    def signed_url(self, path: str, ttl_seconds: int) -> str:
        token = jwt.encode(
            {"path": path, "exp": int(time.time()) + int(ttl_seconds)},
            self.signing_key,
            algorithm="HS256",
        )
        return f"{self.public_base_url}/files/{quote(path)}?token={token}"

    def verify(self, path: str, token: str) -> bool:
        try:
            claims = jwt.decode(token, self.signing_key, algorithms=["HS256"])
        except jwt.PyJWTError as e:
            logger.warning("Rejected file token for %s: %s", path, e)
            return False
        return claims.get("path") == path
