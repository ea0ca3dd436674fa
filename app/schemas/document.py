from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.document import DocumentStatus, IngestionStatus


class StoredFile(BaseModel):
    """Reference to a blob already written by the storage layer."""

    filename: str = Field(min_length=1, max_length=255)
    original_name: str = Field(min_length=1, max_length=255)
    mime_type: str = Field(min_length=1, max_length=100)
    size: int = Field(ge=0)
    file_path: str = Field(min_length=1)


class DocumentCreate(BaseModel):
    description: str | None = Field(default=None, max_length=500)
    metadata_: dict[str, Any] | None = Field(default=None, alias="metadata")

    model_config = ConfigDict(populate_by_name=True)


class DocumentUpdate(BaseModel):
    description: str | None = Field(default=None, max_length=500)
    status: DocumentStatus | None = None
    metadata_: dict[str, Any] | None = Field(default=None, alias="metadata")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("status")
    @classmethod
    def status_not_null(cls, value: DocumentStatus | None) -> DocumentStatus:
        # Omit the field to leave the status unchanged.
        if value is None:
            raise ValueError("status cannot be null")
        return value


class DocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    filename: str
    original_name: str
    mime_type: str
    size: int
    status: DocumentStatus
    description: str | None = None
    metadata_: dict[str, Any] | None = Field(
        default=None, validation_alias="metadata_", serialization_alias="metadata"
    )
    uploaded_by: UUID
    created_at: datetime
    updated_at: datetime


class DocumentListResponse(BaseModel):
    documents: list[DocumentRead]
    total: int
    pages: int


class DocumentStats(BaseModel):
    total: int
    by_status: dict[str, int]
    total_size: int
    recent_uploads: int


class IngestionProcessRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_id: UUID
    status: IngestionStatus
    triggered_by: UUID | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None
    processing_result: dict[str, Any] | None = None
    created_at: datetime
