"""
Document Session API - ONLYOFFICE integration backend
FastAPI service that hands out editor configs, receives save callbacks from
the document server and runs PDF -> DOCX conversions.

Run server:
uvicorn main:create_app --factory --host 0.0.0.0 --port 8000
"""

from contextlib import asynccontextmanager
import contextvars
import logging
import os
import time
import uuid
from typing import Optional

import httpx
from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from adapters.base import BlobStore, DocumentRecordStore
from core.callback_handler import CallbackHandler, FailedSaveLog
from core.converter import ConversionBackend, ConversionPoller, ConverterClient
from settings import Settings, get_settings

# ========== Request Context for Tracing ==========
request_id_var = contextvars.ContextVar('request_id', default=None)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

APP_VERSION = "1.0"

# ============================================================================
# STORAGE ADAPTER INITIALIZATION
# ============================================================================

def make_record_store(settings: Settings) -> DocumentRecordStore:
    backend = settings.record_backend.lower()
    if backend == "sqlite":
        from adapters.sqlite import SqliteAdapter

        logger.info(f"Initializing SQLite record store ({settings.db_url.split('://')[0]})")
        return SqliteAdapter.from_url(settings.db_url)
    if backend == "json":
        from adapters.json import JsonAdapter

        logger.info(f"Initializing JSON record store in {settings.json_data_dir}")
        return JsonAdapter(settings.json_data_dir)
    raise ValueError(f"Unknown RECORD_BACKEND: {settings.record_backend}")


def make_blob_store(settings: Settings) -> BlobStore:
    backend = settings.blob_backend.lower()
    if backend == "gcs":
        from adapters.gcs import GcsBlobStore

        logger.info(f"Initializing Cloud Storage blob store (bucket={settings.gcs_bucket})")
        return GcsBlobStore(settings.gcs_bucket, settings.resolved_google_sa_json())
    if backend == "local":
        from adapters.local import LocalBlobStore

        logger.info(f"Initializing local blob store in {settings.local_blob_dir}")
        return LocalBlobStore(
            settings.local_blob_dir,
            public_base_url=settings.public_base_url,
            signing_key=settings.local_blob_signing_key,
        )
    raise ValueError(f"Unknown BLOB_BACKEND: {settings.blob_backend}")


# ============================================================================
# FASTAPI APP
# ============================================================================

def create_app(
    settings: Optional[Settings] = None,
    *,
    record_store: Optional[DocumentRecordStore] = None,
    blob_store: Optional[BlobStore] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    converter: Optional[ConversionBackend] = None,
) -> FastAPI:
    """
    Wire adapters, protocol components and routers into an app.

    Every collaborator can be injected (tests pass fakes); anything not
    given is built from settings.
    """
    settings = settings or get_settings()
    if settings.callback_persist_mode not in ("background", "sync"):
        raise ValueError(f"Unknown CALLBACK_PERSIST_MODE: {settings.callback_persist_mode}")

    record_store = record_store or make_record_store(settings)
    blob_store = blob_store or make_blob_store(settings)
    owns_http_client = http_client is None
    http_client = http_client or httpx.AsyncClient(
        timeout=settings.http_timeout_seconds,
        follow_redirects=True,
    )
    converter = converter or ConverterClient(
        http_client,
        settings.converter_url,
        jwt_secret=settings.document_server_jwt_secret,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Document Session API starting up...")
        logger.info(f"Record store: {settings.record_backend.upper()}, blob store: {settings.blob_backend.upper()}")
        logger.info(f"Callback URL: {settings.callback_url}")
        logger.info(f"Document server: {settings.document_server_url}")
        if not settings.document_server_jwt_secret:
            logger.warning("DOCUMENT_SERVER_JWT_SECRET is empty: callbacks are NOT authenticated")
        yield
        logger.info("Document Session API shutting down...")
        if owns_http_client:
            await http_client.aclose()

    app = FastAPI(
        title="Document Session API",
        description="Editor configs, save callbacks and conversions for ONLYOFFICE Document Server",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.record_store = record_store
    app.state.blob_store = blob_store
    app.state.http_client = http_client
    app.state.callback_handler = CallbackHandler(
        record_store=record_store,
        blob_store=blob_store,
        http_client=http_client,
        jwt_secret=settings.document_server_jwt_secret,
        signed_url_ttl_seconds=settings.signed_url_ttl_seconds,
        failed_saves=FailedSaveLog(settings.failed_save_log_size),
    )
    app.state.conversion_poller = ConversionPoller(
        converter,
        record_store=record_store,
        blob_store=blob_store,
        http_client=http_client,
        max_attempts=settings.conversion_max_attempts,
        poll_interval=settings.conversion_poll_interval,
        signed_url_ttl_seconds=settings.signed_url_ttl_seconds,
    )

    # ========== Request Tracing Middleware ==========
    @app.middleware("http")
    async def request_tracing_middleware(request, call_next):
        """Add request_id and timing to all requests."""
        request_id = str(uuid.uuid4())[:8]
        request_id_var.set(request_id)
        started = time.time()

        response = await call_next(request)

        latency = time.time() - started
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"({round(latency * 1000, 2)} ms) [{request_id}]"
        )
        response.headers["X-Request-ID"] = request_id
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"}
        )

    # ========================================================================
    # ENDPOINTS
    # ========================================================================
    @app.get("/health")
    async def health_check():
        """Health check endpoint (same shape the frontend already polls)."""
        return {"ok": True}

    @app.get("/healthz")
    async def healthz():
        """
        Kubernetes-style liveness probe.
        Returns 200 if the application is running.
        """
        return {
            "status": "ok",
            "timestamp": time.time(),
            "version": APP_VERSION,
        }

    @app.get("/readyz")
    async def readyz():
        """
        Kubernetes-style readiness probe.
        Checks the record store is reachable. Returns 200 if ready, 503 if not.
        """
        try:
            record_store.ping()
            return {
                "status": "ready",
                "record_backend": settings.record_backend,
                "blob_backend": settings.blob_backend,
                "timestamp": time.time(),
            }
        except Exception as e:
            logger.error(f"Readiness check failed: {str(e)}")
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={
                    "status": "not_ready",
                    "record_backend": settings.record_backend,
                    "error": str(e),
                    "timestamp": time.time(),
                },
            )

    from routers import documents as documents_router
    app.include_router(documents_router.router)

    from routers import onlyoffice as onlyoffice_router
    app.include_router(onlyoffice_router.router)

    from routers import files as files_router
    app.include_router(files_router.router)

    return app


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run("main:create_app", factory=True, host="0.0.0.0", port=port)
