from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import InvalidInputError, NotFoundError
from app.models.document import (
    Document,
    DocumentStatus,
    IngestionProcess,
    IngestionStatus,
)
from app.services.common import coerce_uuid
from app.services.storage import storage

logger = logging.getLogger(__name__)

_FINISHED = {IngestionStatus.completed, IngestionStatus.failed}


def enqueue_ingestion(process_id) -> None:
    """Fire-and-forget dispatch of the ingestion task.

    Never raises: a document whose ingestion could not be queued stays
    ``pending`` and can be re-queued later.
    """
    try:
        from app.tasks.ingestion import process_document_ingestion

        process_document_ingestion.delay(str(process_id))
        logger.debug("Queued ingestion %s", process_id)
    except Exception as e:
        logger.exception("Failed to queue ingestion %s: %s", process_id, e)


class Ingestions:
    @staticmethod
    def queue(
        db: Session,
        document: Document,
        triggered_by=None,
        configuration: dict | None = None,
    ) -> IngestionProcess:
        process = IngestionProcess(
            document_id=document.id,
            triggered_by=coerce_uuid(triggered_by),
            configuration=configuration,
        )
        db.add(process)
        db.flush()
        db.refresh(process)
        logger.info("Queued ingestion %s for document %s", process.id, document.id)
        return process

    @staticmethod
    def get(db: Session, process_id: str) -> IngestionProcess:
        process = db.get(IngestionProcess, coerce_uuid(process_id, "Ingestion process"))
        if not process:
            raise NotFoundError("Ingestion process not found")
        return process

    @staticmethod
    def list_for_document(db: Session, document_id) -> list[IngestionProcess]:
        stmt = (
            select(IngestionProcess)
            .where(IngestionProcess.document_id == coerce_uuid(document_id))
            .order_by(IngestionProcess.created_at.desc())
        )
        return db.scalars(stmt).all()

    @staticmethod
    def start(db: Session, process_id: str) -> IngestionProcess:
        process = Ingestions.get(db, process_id)
        if process.status is not IngestionStatus.queued:
            raise InvalidInputError(
                f"Ingestion process is already {process.status.value}"
            )
        process.status = IngestionStatus.processing
        process.started_at = datetime.now(timezone.utc)
        process.document.status = DocumentStatus.processing
        db.flush()
        return process

    @staticmethod
    def complete(
        db: Session, process_id: str, result: dict | None = None
    ) -> IngestionProcess:
        process = Ingestions._finish(db, process_id, IngestionStatus.completed)
        process.processing_result = result
        process.document.status = DocumentStatus.completed
        db.flush()
        return process

    @staticmethod
    def fail(db: Session, process_id: str, message: str) -> IngestionProcess:
        process = Ingestions._finish(db, process_id, IngestionStatus.failed)
        process.error_message = message
        process.document.status = DocumentStatus.failed
        db.flush()
        logger.warning("Ingestion %s failed: %s", process.id, message)
        return process

    @staticmethod
    def _finish(
        db: Session, process_id: str, status: IngestionStatus
    ) -> IngestionProcess:
        process = Ingestions.get(db, process_id)
        if process.status in _FINISHED:
            raise InvalidInputError(
                f"Ingestion process is already {process.status.value}"
            )
        process.status = status
        process.completed_at = datetime.now(timezone.utc)
        return process

    @staticmethod
    def run(db: Session, process_id: str) -> IngestionProcess:
        """Check the stored blob against the recorded metadata.

        Content is never read; only presence and byte size are compared.
        """
        process = Ingestions.start(db, process_id)
        document = process.document
        if not storage.exists(document.file_path):
            return Ingestions.fail(db, process_id, "File not found on disk")

        actual = storage.size(document.file_path)
        if actual != document.size:
            return Ingestions.fail(
                db,
                process_id,
                f"Size mismatch: recorded {document.size} bytes, found {actual}",
            )
        return Ingestions.complete(
            db,
            process_id,
            {"size": actual, "mime_type": document.mime_type},
        )


ingestions = Ingestions()
