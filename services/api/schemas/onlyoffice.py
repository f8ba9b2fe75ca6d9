"""
Pydantic schemas for the /onlyoffice endpoints.

Field names follow the wire format the frontend and the document server
already use (camelCase), exposed as snake_case attributes.
"""
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models import CallbackStatus


class EditorUser(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None


class ConfigRequest(BaseModel):
    """Request for an editor config. Only the id matters; the file comes from the record."""
    model_config = ConfigDict(populate_by_name=True)

    doc_id: str = Field(..., alias="docId", min_length=1)
    user: Optional[EditorUser] = None


class CreateBlankRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    doc_id: str = Field(..., alias="docId", min_length=1)
    title: Optional[str] = Field(None, max_length=300)
    owner_id: Optional[str] = Field(None, alias="ownerId")


class ConvertRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    doc_id: str = Field(..., alias="docId", min_length=1)
    pdf_url: str = Field(..., alias="pdfUrl", min_length=1)
    title: Optional[str] = None
    owner_id: Optional[str] = Field(None, alias="ownerId")


class StoredFileOut(BaseModel):
    """Response of create-blank / convert (original shape + version)."""
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    docx_path: str = Field(..., serialization_alias="docxPath")
    docx_url: str = Field(..., serialization_alias="docxUrl")
    version: int
    conversion_key: Optional[str] = Field(None, serialization_alias="conversionKey")


class CallbackPayload(BaseModel):
    """
    Body the document server POSTs to the callback URL.

    `status` is parsed into CallbackStatus; unknown codes become UNKNOWN
    instead of failing validation, so they are still acknowledged. The
    other fields are coerced the same way.
    """
    model_config = ConfigDict(extra="allow")

    status: CallbackStatus = CallbackStatus.UNKNOWN
    key: Optional[str] = None
    url: Optional[str] = None
    users: List[Any] = Field(default_factory=list)
    forcesavetype: Optional[int] = None

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v: Any) -> CallbackStatus:
        return CallbackStatus.parse(v)

    @field_validator("key", "url", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        s = str(v).strip()
        return s or None

    @field_validator("users", mode="before")
    @classmethod
    def users_as_list(cls, v: Any) -> List[Any]:
        if v is None:
            return []
        if isinstance(v, (list, tuple)):
            return list(v)
        return [v]

    @field_validator("forcesavetype", mode="before")
    @classmethod
    def forcesavetype_as_int(cls, v: Any) -> Optional[int]:
        try:
            return int(v)
        except (TypeError, ValueError):
            return None


class CallbackAck(BaseModel):
    error: int = 0


class FailedSaveOut(BaseModel):
    doc_id: Optional[str] = None
    key: Optional[str] = None
    status: int
    error: str
    failed_at: str
