import json

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from app.api.deps import get_current_actor, get_db, require_role
from app.errors import InvalidInputError
from app.models.document import DocumentStatus
from app.schemas.document import (
    DocumentCreate,
    DocumentListResponse,
    DocumentRead,
    DocumentStats,
    DocumentUpdate,
    IngestionProcessRead,
)
from app.services import document as doc_service
from app.services.access_policy import Actor
from app.services.storage import storage

router = APIRouter(prefix="/documents", tags=["documents"])

_editors = require_role("admin", "editor")


def _parse_metadata(raw: str | None) -> dict | None:
    if raw is None or raw == "":
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        raise InvalidInputError("metadata must be a JSON object")
    if not isinstance(value, dict):
        raise InvalidInputError("metadata must be a JSON object")
    return value


@router.post(
    "/upload", response_model=DocumentRead, status_code=status.HTTP_201_CREATED
)
def upload_document(
    file: UploadFile | None = File(default=None),
    description: str | None = Form(default=None, max_length=500),
    metadata: str | None = Form(default=None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    if file is None or not file.filename:
        raise InvalidInputError("File is required")
    # Read one byte past the limit so oversized uploads are rejected without
    # buffering the whole body.
    content = file.file.read(storage.max_size_bytes + 1)
    storage.validate_upload(file.filename, len(content))
    payload = DocumentCreate(description=description, metadata=_parse_metadata(metadata))

    stored = storage.save(content, file.filename, file.content_type)
    return doc_service.documents.create(db, stored, payload, actor)


@router.get("", response_model=DocumentListResponse)
def list_documents(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    status_filter: DocumentStatus | None = Query(default=None, alias="status"),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return doc_service.documents.list(db, actor, page, limit, status_filter)


@router.get("/stats", response_model=DocumentStats)
def document_stats(
    actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)
):
    return doc_service.documents.stats(db, actor)


@router.get("/{document_id}", response_model=DocumentRead)
def get_document(
    document_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return doc_service.documents.get(db, document_id, actor)


@router.get("/{document_id}/download")
def download_document(
    document_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    result = doc_service.documents.download(db, document_id, actor)
    return FileResponse(result["file_path"], filename=result["filename"])


@router.patch("/{document_id}", response_model=DocumentRead)
def update_document(
    document_id: str,
    payload: DocumentUpdate,
    actor: Actor = Depends(_editors),
    db: Session = Depends(get_db),
):
    return doc_service.documents.update(db, document_id, payload, actor)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    document_id: str,
    actor: Actor = Depends(_editors),
    db: Session = Depends(get_db),
):
    doc_service.documents.delete(db, document_id, actor)


# ------------------------------------------------------------------
# Ingestion sub-endpoints
# ------------------------------------------------------------------


@router.get("/{document_id}/ingestions", response_model=list[IngestionProcessRead])
def list_ingestions(
    document_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return doc_service.documents.list_ingestions(db, document_id, actor)


@router.post(
    "/{document_id}/ingestions",
    response_model=IngestionProcessRead,
    status_code=status.HTTP_202_ACCEPTED,
)
def requeue_ingestion(
    document_id: str,
    actor: Actor = Depends(_editors),
    db: Session = Depends(get_db),
):
    return doc_service.documents.requeue_ingestion(db, document_id, actor)
