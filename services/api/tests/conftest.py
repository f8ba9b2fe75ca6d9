"""
Shared fixtures: a real SQLite record store in tmp_path, an in-memory blob
store, and a fake document server behind httpx.MockTransport.
"""
import json
import os
import sys
import threading
from typing import Dict, List

import httpx
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from adapters.sqlite import SqliteAdapter
from settings import Settings


class MemoryBlobStore:
    """BlobStore fake. Signed URLs embed a counter so each one is distinct."""

    def __init__(self):
        self.blobs: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.put_calls: List[str] = []
        self._lock = threading.Lock()
        self._signed = 0

    def put_bytes(self, path: str, data: bytes, content_type: str) -> None:
        with self._lock:
            self.blobs[path] = data
            self.content_types[path] = content_type
            self.put_calls.append(path)

    def get_bytes(self, path: str) -> bytes:
        if path not in self.blobs:
            raise FileNotFoundError(path)
        return self.blobs[path]

    def signed_url(self, path: str, ttl_seconds: int) -> str:
        with self._lock:
            self._signed += 1
            return f"https://blobs.test/{path}?sig={self._signed}&ttl={ttl_seconds}"


class FakeDocumentServer:
    """
    Stands in for everything reached over HTTP: the document server's
    /converter endpoint and the short-lived download URLs it hands out.
    """

    def __init__(self):
        self.files: Dict[str, bytes] = {}
        self.download_status: Dict[str, int] = {}
        # Converter behaviour: list of JSON bodies returned in order; the
        # last one repeats once the list is exhausted.
        self.converter_responses: List[dict] = [{"endConvert": False, "percent": 0}]
        self.converter_status_code = 200
        self.converter_requests: List[dict] = []
        self.converter_headers: List[httpx.Headers] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if request.method == "POST" and request.url.path.endswith("/converter"):
            self.converter_requests.append(json.loads(request.content))
            self.converter_headers.append(request.headers)
            idx = min(len(self.converter_requests) - 1, len(self.converter_responses) - 1)
            return httpx.Response(self.converter_status_code, json=self.converter_responses[idx])

        if request.method == "GET":
            if url in self.download_status:
                return httpx.Response(self.download_status[url])
            if url in self.files:
                return httpx.Response(200, content=self.files[url])
        return httpx.Response(404)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        public_base_url="https://api.test",
        document_server_url="https://docs.test/",
        document_server_jwt_secret="",
        record_backend="sqlite",
        db_url=f"sqlite:///{tmp_path / 'documents.db'}",
        blob_backend="local",
        local_blob_dir=str(tmp_path / "blobs"),
        conversion_max_attempts=5,
        conversion_poll_interval=0,
    )


@pytest.fixture
def store(settings) -> SqliteAdapter:
    return SqliteAdapter.from_url(settings.db_url)


@pytest.fixture
def blobs() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def docserver() -> FakeDocumentServer:
    return FakeDocumentServer()
