"""
Pydantic schemas for documents.
"""
from typing import Optional
from pydantic import BaseModel, Field


class DocumentCreate(BaseModel):
    """Schema for creating an (empty) document record via API."""
    id: Optional[str] = Field(None, min_length=1, max_length=200, description="Document id; generated when omitted")
    title: str = Field("Document", min_length=1, max_length=300, description="Display title")
    owner_id: Optional[str] = Field(None, description="Creator user id")


class DocumentUpdate(BaseModel):
    """Metadata edits. Never changes the version."""
    title: str = Field(..., min_length=1, max_length=300)


class DocumentOut(BaseModel):
    """Schema for document output."""
    id: str = Field(..., description="Document ID")
    title: str
    owner_id: Optional[str] = None
    current_file_path: Optional[str] = None
    current_file_signed_url: Optional[str] = None
    version: int = 0
    source_conversion_ref: Optional[str] = None
    source_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
