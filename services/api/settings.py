# services/api/settings.py
from pydantic_settings import BaseSettings
from pydantic import ConfigDict, Field
import base64
from typing import List, Optional
from pathlib import Path

class Settings(BaseSettings):
    # Public URL of this backend. The document server calls back to
    # <public_base_url>/onlyoffice/callback, so it must be reachable from there.
    public_base_url: str = "http://localhost:8000"

    # ONLYOFFICE Document Server (used for the conversion API)
    document_server_url: str = "http://localhost:8080"

    # Shared JWT secret configured on the document server.
    # Empty = callbacks are trusted without verification.
    document_server_jwt_secret: str = ""
    jwt_header: str = "Authorization"

    # "background" = ack first, persist after the response
    # "sync"       = persist first, ack with error=1 if persisting failed
    callback_persist_mode: str = "background"

    # Record store settings
    record_backend: str = "sqlite"
    db_url: str = "sqlite:///data/documents.db"
    json_data_dir: str = "data"

    # Blob store settings
    blob_backend: str = "local"
    gcs_bucket: str = ""
    google_sa_json: str = ""
    google_sa_json_base64: str = ""
    local_blob_dir: str = "data/blobs"
    local_blob_signing_key: str = "dev-only-change-me"

    # Signed URLs (7 days, like the Firebase URLs the editor was fed before)
    signed_url_ttl_seconds: int = 60 * 60 * 24 * 7
    # Re-issue a stored signed URL once it is older than this
    signed_url_refresh_seconds: int = 60 * 60 * 24 * 6

    # Conversion polling
    conversion_max_attempts: int = 40
    conversion_poll_interval: float = 1.5
    http_timeout_seconds: float = 30.0

    failed_save_log_size: int = Field(
        default=200,
        description="How many failed background saves to keep for /onlyoffice/failed-saves",
    )

    # CORS settings
    allowed_origins: str = "http://localhost:3000,http://localhost:3001"

    model_config = ConfigDict(
        # Always load .env from the same folder as this settings.py
        env_file=str(Path(__file__).resolve().parent / ".env"),
        extra="ignore",
    )

    @property
    def callback_url(self) -> str:
        return f"{self.public_base_url.rstrip('/')}/onlyoffice/callback"

    @property
    def converter_url(self) -> str:
        return f"{self.document_server_url.strip().rstrip('/')}/converter"

    def resolved_google_sa_json(self) -> Optional[str]:
        """
        Return the path to the service account JSON.
        If GOOGLE_SA_JSON_BASE64 is set, decode it to a temp file.
        Otherwise return GOOGLE_SA_JSON path (None = application default credentials).
        """
        if self.google_sa_json_base64:
            import tempfile

            decoded = base64.b64decode(self.google_sa_json_base64)
            temp_file = tempfile.NamedTemporaryFile(mode='w', delete=False, suffix='.json')
            temp_file.write(decoded.decode('utf-8'))
            temp_file.close()
            return temp_file.name

        return self.google_sa_json or None

    def get_origins_list(self) -> List[str]:
        """Parse comma-separated origins into a list."""
        if not self.allowed_origins:
            return ["*"]
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


_settings_instance = None

def get_settings() -> Settings:
    """Singleton pattern for settings."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
