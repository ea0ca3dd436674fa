import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from pydantic import ValidationError

from app.errors import ForbiddenError, InvalidInputError, NotFoundError
from app.models.document import Document, DocumentStatus, IngestionProcess
from app.models.user import UserRole
from app.schemas.document import DocumentCreate, DocumentUpdate, StoredFile
from app.services.document import Documents
from factories import actor_of, make_document, make_user


def _stored_file(upload_dir, content=b"%PDF-1.4 test"):
    path = Path(upload_dir) / f"report-{uuid.uuid4()}.pdf"
    path.write_bytes(content)
    return StoredFile(
        filename=path.name,
        original_name="report.pdf",
        mime_type="application/pdf",
        size=len(content),
        file_path=str(path),
    )


class TestDocumentsCreate:
    def test_create_document(self, db_session, viewer, upload_dir):
        payload = DocumentCreate(description="D", metadata={"k": "v"})
        doc = Documents.create(
            db_session, _stored_file(upload_dir), payload, actor_of(viewer)
        )
        assert doc.uploaded_by == viewer.id
        assert doc.status == DocumentStatus.pending
        assert doc.original_name == "report.pdf"

    def test_description_and_metadata_round_trip(self, db_session, editor, upload_dir):
        payload = DocumentCreate(description="D", metadata={"k": "v"})
        doc = Documents.create(
            db_session, _stored_file(upload_dir), payload, actor_of(editor)
        )
        db_session.commit()
        db_session.expire_all()
        found = Documents.get(db_session, str(doc.id), actor_of(editor))
        assert found.description == "D"
        assert found.metadata_ == {"k": "v"}

    def test_create_without_file(self, db_session, viewer):
        with pytest.raises(InvalidInputError) as exc:
            Documents.create(db_session, None, DocumentCreate(), actor_of(viewer))
        assert exc.value.message == "File is required"

    def test_create_queues_ingestion(
        self, db_session, viewer, upload_dir, queued_ingestions
    ):
        doc = Documents.create(
            db_session, _stored_file(upload_dir), DocumentCreate(), actor_of(viewer)
        )
        processes = db_session.query(IngestionProcess).filter_by(document_id=doc.id).all()
        assert len(processes) == 1
        assert processes[0].triggered_by == viewer.id
        queued_ingestions.assert_called_once_with(str(processes[0].id))

    def test_create_survives_broker_failure(
        self, db_session, viewer, upload_dir, queued_ingestions
    ):
        queued_ingestions.side_effect = ConnectionError("broker down")
        doc = Documents.create(
            db_session, _stored_file(upload_dir), DocumentCreate(), actor_of(viewer)
        )
        assert doc.id is not None


class TestDocumentsList:
    def test_admin_sees_everything(self, db_session, admin, editor, viewer):
        make_document(db_session, editor)
        make_document(db_session, viewer)
        result = Documents.list(db_session, actor_of(admin))
        assert result["total"] == 2

    @pytest.mark.parametrize("role", [UserRole.editor, UserRole.viewer])
    def test_non_admin_sees_only_own(self, db_session, role):
        me = make_user(db_session, role)
        other = make_user(db_session, UserRole.editor)
        mine = [make_document(db_session, me) for _ in range(3)]
        for _ in range(4):
            make_document(db_session, other)

        for page in (1, 2, 3):
            result = Documents.list(db_session, actor_of(me), page=page, limit=2)
            assert all(d.uploaded_by == me.id for d in result["documents"])
            assert result["total"] == len(mine)

        filtered = Documents.list(
            db_session, actor_of(me), status=DocumentStatus.pending
        )
        assert all(d.uploaded_by == me.id for d in filtered["documents"])

    def test_status_filter(self, db_session, admin, editor):
        make_document(db_session, editor, status=DocumentStatus.completed)
        make_document(db_session, editor, status=DocumentStatus.failed)
        result = Documents.list(
            db_session, actor_of(admin), status=DocumentStatus.completed
        )
        assert result["total"] == 1
        assert result["documents"][0].status == DocumentStatus.completed

    def test_newest_first(self, db_session, admin, editor):
        now = datetime.now(timezone.utc)
        older = make_document(db_session, editor, created_at=now - timedelta(days=1))
        newer = make_document(db_session, editor, created_at=now)
        result = Documents.list(db_session, actor_of(admin))
        assert [d.id for d in result["documents"]] == [newer.id, older.id]

    def test_page_count(self, db_session, admin, editor):
        make_document(db_session, editor)
        make_document(db_session, editor)
        result = Documents.list(db_session, actor_of(admin), page=1, limit=10)
        assert result["total"] == 2
        assert result["pages"] == 1

    def test_page_count_empty(self, db_session, admin):
        result = Documents.list(db_session, actor_of(admin))
        assert result == {"documents": [], "total": 0, "pages": 0}

    @pytest.mark.parametrize("page,limit", [(0, 10), (1, 0)])
    def test_rejects_non_positive_paging(self, db_session, admin, page, limit):
        with pytest.raises(InvalidInputError):
            Documents.list(db_session, actor_of(admin), page=page, limit=limit)


class TestDocumentsGet:
    def test_get_not_found(self, db_session, admin):
        with pytest.raises(NotFoundError) as exc:
            Documents.get(db_session, str(uuid.uuid4()), actor_of(admin))
        assert exc.value.message == "Document not found"

    def test_viewer_can_read_own(self, db_session, viewer):
        doc = make_document(db_session, viewer)
        assert Documents.get(db_session, str(doc.id), actor_of(viewer)).id == doc.id

    def test_viewer_cannot_read_others(self, db_session, viewer, editor):
        doc = make_document(db_session, editor)
        with pytest.raises(ForbiddenError) as exc:
            Documents.get(db_session, str(doc.id), actor_of(viewer))
        assert exc.value.status_code == 403

    def test_editor_can_read_others(self, db_session, viewer, editor):
        doc = make_document(db_session, viewer)
        assert Documents.get(db_session, str(doc.id), actor_of(editor)).id == doc.id


class TestDocumentsUpdate:
    def test_update_schema_rejects_null_status(self):
        with pytest.raises(ValidationError):
            DocumentUpdate(status=None)
        assert DocumentUpdate(description=None).model_dump(exclude_unset=True) == {
            "description": None
        }

    def test_owner_editor_updates(self, db_session, editor):
        doc = make_document(db_session, editor)
        updated = Documents.update(
            db_session,
            str(doc.id),
            DocumentUpdate(description="new", status=DocumentStatus.completed),
            actor_of(editor),
        )
        assert updated.description == "new"
        assert updated.status == DocumentStatus.completed

    def test_partial_update_keeps_other_fields(self, db_session, editor):
        doc = make_document(db_session, editor, description="keep", metadata_={"a": 1})
        updated = Documents.update(
            db_session,
            str(doc.id),
            DocumentUpdate(status=DocumentStatus.processing),
            actor_of(editor),
        )
        assert updated.description == "keep"
        assert updated.metadata_ == {"a": 1}

    def test_any_status_transition_accepted(self, db_session, admin, editor):
        doc = make_document(db_session, editor, status=DocumentStatus.completed)
        updated = Documents.update(
            db_session,
            str(doc.id),
            DocumentUpdate(status=DocumentStatus.pending),
            actor_of(admin),
        )
        assert updated.status == DocumentStatus.pending

    def test_admin_updates_any(self, db_session, admin, viewer):
        doc = make_document(db_session, viewer)
        updated = Documents.update(
            db_session, str(doc.id), DocumentUpdate(metadata={"x": "y"}), actor_of(admin)
        )
        assert updated.metadata_ == {"x": "y"}

    def test_owner_never_changes(self, db_session, admin, viewer):
        doc = make_document(db_session, viewer)
        updated = Documents.update(
            db_session, str(doc.id), DocumentUpdate(description="x"), actor_of(admin)
        )
        assert updated.uploaded_by == viewer.id

    @pytest.mark.parametrize("role", [UserRole.editor, UserRole.viewer])
    def test_non_admin_cannot_update_others(self, db_session, role):
        actor = make_user(db_session, role)
        owner = make_user(db_session, UserRole.editor)
        doc = make_document(db_session, owner)
        with pytest.raises(ForbiddenError):
            Documents.update(
                db_session, str(doc.id), DocumentUpdate(description="x"), actor_of(actor)
            )

    def test_viewer_cannot_update_own(self, db_session, viewer):
        doc = make_document(db_session, viewer)
        with pytest.raises(ForbiddenError) as exc:
            Documents.update(
                db_session, str(doc.id), DocumentUpdate(description="x"), actor_of(viewer)
            )
        assert exc.value.message == "Viewers cannot update documents"

    def test_update_not_found(self, db_session, admin):
        with pytest.raises(NotFoundError):
            Documents.update(
                db_session, str(uuid.uuid4()), DocumentUpdate(), actor_of(admin)
            )


class TestDocumentsDelete:
    def test_delete_removes_blob_and_record(self, db_session, editor, upload_dir):
        doc = make_document(db_session, editor, upload_dir=upload_dir)
        path = Path(doc.file_path)
        assert path.exists()
        Documents.delete(db_session, str(doc.id), actor_of(editor))
        db_session.commit()
        assert not path.exists()
        assert db_session.get(Document, doc.id) is None

    def test_delete_with_missing_blob_still_removes_record(self, db_session, editor):
        doc = make_document(db_session, editor)
        assert not Path(doc.file_path).exists()
        Documents.delete(db_session, str(doc.id), actor_of(editor))
        db_session.commit()
        assert db_session.get(Document, doc.id) is None

    @pytest.mark.parametrize("role", [UserRole.editor, UserRole.viewer])
    def test_non_admin_cannot_delete_others(self, db_session, role, upload_dir):
        actor = make_user(db_session, role)
        owner = make_user(db_session, UserRole.editor)
        doc = make_document(db_session, owner, upload_dir=upload_dir)
        with pytest.raises(ForbiddenError):
            Documents.delete(db_session, str(doc.id), actor_of(actor))
        assert Path(doc.file_path).exists()

    def test_viewer_cannot_delete_own(self, db_session, viewer):
        doc = make_document(db_session, viewer)
        with pytest.raises(ForbiddenError) as exc:
            Documents.delete(db_session, str(doc.id), actor_of(viewer))
        assert exc.value.message == "Viewers cannot delete documents"

    def test_admin_deletes_any(self, db_session, admin, viewer, upload_dir):
        doc = make_document(db_session, viewer, upload_dir=upload_dir)
        Documents.delete(db_session, str(doc.id), actor_of(admin))
        db_session.commit()
        assert db_session.get(Document, doc.id) is None


class TestDocumentsDownload:
    def test_download_returns_path_and_original_name(
        self, db_session, viewer, upload_dir
    ):
        doc = make_document(db_session, viewer, upload_dir=upload_dir)
        result = Documents.download(db_session, str(doc.id), actor_of(viewer))
        assert result == {"file_path": doc.file_path, "filename": "report.pdf"}

    def test_download_missing_blob(self, db_session, viewer):
        doc = make_document(db_session, viewer)
        with pytest.raises(NotFoundError) as exc:
            Documents.download(db_session, str(doc.id), actor_of(viewer))
        assert exc.value.message == "File not found on disk"

    def test_viewer_cannot_download_others(self, db_session, viewer, editor, upload_dir):
        doc = make_document(db_session, editor, upload_dir=upload_dir)
        with pytest.raises(ForbiddenError):
            Documents.download(db_session, str(doc.id), actor_of(viewer))


class TestDocumentsStats:
    def test_empty_stats(self, db_session, viewer):
        assert Documents.stats(db_session, actor_of(viewer)) == {
            "total": 0,
            "by_status": {},
            "total_size": 0,
            "recent_uploads": 0,
        }

    def test_stats_aggregates(self, db_session, admin, editor):
        now = datetime.now(timezone.utc)
        make_document(db_session, editor, size=100, status=DocumentStatus.completed)
        make_document(db_session, editor, size=50, status=DocumentStatus.completed)
        make_document(
            db_session,
            editor,
            size=25,
            status=DocumentStatus.failed,
            created_at=now - timedelta(days=30),
        )
        stats = Documents.stats(db_session, actor_of(admin))
        assert stats == {
            "total": 3,
            "by_status": {"completed": 2, "failed": 1},
            "total_size": 175,
            "recent_uploads": 2,
        }

    @pytest.mark.parametrize("role", [UserRole.editor, UserRole.viewer])
    def test_stats_scoped_for_non_admin(self, db_session, role):
        me = make_user(db_session, role)
        other = make_user(db_session, UserRole.editor)
        make_document(db_session, me, size=10)
        make_document(db_session, other, size=1000)
        stats = Documents.stats(db_session, actor_of(me))
        assert stats["total"] == 1
        assert stats["total_size"] == 10
        assert stats["by_status"] == {"pending": 1}
