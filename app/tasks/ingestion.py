import logging

from app.celery_app import celery_app
from app.db import SessionLocal
from app.errors import NotFoundError
from app.services.ingestion import Ingestions

logger = logging.getLogger(__name__)


# The enqueueing request may not have committed yet when the worker picks the
# task up, so a missing process row is retried.
@celery_app.task(
    name="app.tasks.ingestion.process_document_ingestion",
    ignore_result=True,
    autoretry_for=(NotFoundError,),
    retry_backoff=True,
    max_retries=3,
)
def process_document_ingestion(process_id: str) -> None:
    """Advance a queued ingestion process and mirror its outcome on the document."""
    db = SessionLocal()
    try:
        process = Ingestions.run(db, process_id)
        db.commit()
        logger.info(
            "Ingestion %s finished with status %s", process_id, process.status.value
        )
    except Exception:
        db.rollback()
        logger.exception("Ingestion %s crashed", process_id)
        raise
    finally:
        db.close()
