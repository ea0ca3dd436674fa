from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import InvalidInputError, NotFoundError
from app.models.document import Document, DocumentStatus
from app.schemas.document import DocumentCreate, DocumentUpdate, StoredFile
from app.services.access_policy import Actor, Operation, authorize, list_scope
from app.services.common import apply_page, coerce_uuid, page_count, validate_page
from app.services.ingestion import Ingestions, enqueue_ingestion
from app.services.storage import storage

logger = logging.getLogger(__name__)

RECENT_UPLOAD_WINDOW = timedelta(days=7)


def _scoped(stmt, owner_id):
    if owner_id is not None:
        stmt = stmt.where(Document.uploaded_by == owner_id)
    return stmt


class Documents:
    @staticmethod
    def create(
        db: Session,
        stored_file: StoredFile | None,
        payload: DocumentCreate,
        actor: Actor,
    ) -> Document:
        if stored_file is None:
            raise InvalidInputError("File is required")
        authorize(actor, Operation.create)

        document = Document(
            filename=stored_file.filename,
            original_name=stored_file.original_name,
            mime_type=stored_file.mime_type,
            size=stored_file.size,
            file_path=stored_file.file_path,
            description=payload.description,
            metadata_=payload.metadata_,
            uploaded_by=actor.id,
            status=DocumentStatus.pending,
        )
        db.add(document)
        db.flush()
        db.refresh(document)
        logger.info("Created document %s for user %s", document.id, actor.id)

        if settings.ingestion_auto_queue:
            process = Ingestions.queue(db, document, triggered_by=actor.id)
            enqueue_ingestion(process.id)
        return document

    @staticmethod
    def list(
        db: Session,
        actor: Actor,
        page: int = 1,
        limit: int = 10,
        status: DocumentStatus | None = None,
    ) -> dict:
        validate_page(page, limit)
        owner_id = list_scope(actor, Operation.list)

        stmt = _scoped(select(Document), owner_id)
        if status is not None:
            stmt = stmt.where(Document.status == DocumentStatus(status))

        total = db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        stmt = stmt.order_by(Document.created_at.desc())
        documents = db.scalars(apply_page(stmt, page, limit)).all()
        return {
            "documents": documents,
            "total": total,
            "pages": page_count(total, limit),
        }

    @staticmethod
    def get(db: Session, document_id: str, actor: Actor) -> Document:
        document = db.get(Document, coerce_uuid(document_id, "Document"))
        if not document:
            raise NotFoundError("Document not found")
        authorize(actor, Operation.read, document.uploaded_by)
        return document

    @staticmethod
    def update(
        db: Session, document_id: str, payload: DocumentUpdate, actor: Actor
    ) -> Document:
        document = Documents.get(db, document_id, actor)
        authorize(actor, Operation.update, document.uploaded_by)

        data = payload.model_dump(exclude_unset=True)
        for key, value in data.items():
            setattr(document, key, value)

        db.flush()
        db.refresh(document)
        logger.info(
            "Updated document %s (%s)", document.id, ", ".join(sorted(data)) or "no changes"
        )
        return document

    @staticmethod
    def delete(db: Session, document_id: str, actor: Actor) -> None:
        document = Documents.get(db, document_id, actor)
        authorize(actor, Operation.delete, document.uploaded_by)

        # Blob first, then metadata; not atomic across the two.
        if not storage.delete(document.file_path):
            logger.warning(
                "Blob for document %s already missing at %s",
                document.id,
                document.file_path,
            )
        db.delete(document)
        db.flush()
        logger.info("Deleted document %s", document_id)

    @staticmethod
    def download(db: Session, document_id: str, actor: Actor) -> dict:
        document = Documents.get(db, document_id, actor)
        authorize(actor, Operation.download, document.uploaded_by)
        if not storage.exists(document.file_path):
            raise NotFoundError("File not found on disk")
        return {"file_path": document.file_path, "filename": document.original_name}

    @staticmethod
    def stats(db: Session, actor: Actor) -> dict:
        owner_id = list_scope(actor, Operation.stats)
        since = datetime.now(timezone.utc) - RECENT_UPLOAD_WINDOW

        total, total_size = db.execute(
            _scoped(
                select(func.count(Document.id), func.coalesce(func.sum(Document.size), 0)),
                owner_id,
            )
        ).one()
        recent_uploads = db.scalar(
            _scoped(
                select(func.count(Document.id)).where(Document.created_at >= since),
                owner_id,
            )
        )
        rows = db.execute(
            _scoped(
                select(Document.status, func.count(Document.id)).group_by(
                    Document.status
                ),
                owner_id,
            )
        ).all()
        return {
            "total": total or 0,
            "by_status": {status.value: count for status, count in rows},
            "total_size": int(total_size or 0),
            "recent_uploads": recent_uploads or 0,
        }

    @staticmethod
    def requeue_ingestion(db: Session, document_id: str, actor: Actor):
        document = Documents.get(db, document_id, actor)
        authorize(actor, Operation.update, document.uploaded_by)
        document.status = DocumentStatus.pending
        process = Ingestions.queue(db, document, triggered_by=actor.id)
        enqueue_ingestion(process.id)
        return process

    @staticmethod
    def list_ingestions(db: Session, document_id: str, actor: Actor):
        document = Documents.get(db, document_id, actor)
        return Ingestions.list_for_document(db, document.id)


documents = Documents()
