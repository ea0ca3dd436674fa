import os
from collections.abc import Generator
from unittest.mock import MagicMock

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

import app.models  # noqa: E402,F401
from app.db import Base, get_db, get_engine  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402
from app.services.storage import storage  # noqa: E402
from factories import headers_for, make_user  # noqa: E402


@pytest.fixture()
def engine():
    engine = get_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def db_session(engine) -> Generator[Session, None, None]:
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    path = tmp_path / "uploads"
    path.mkdir()
    monkeypatch.setattr(storage, "upload_dir", str(path))
    return path


@pytest.fixture(autouse=True)
def queued_ingestions(monkeypatch):
    """Replace the Celery task so no broker is contacted; yields its delay mock."""
    task = MagicMock()
    monkeypatch.setattr("app.tasks.ingestion.process_document_ingestion", task)
    return task.delay


@pytest.fixture()
def admin(db_session) -> User:
    return make_user(db_session, UserRole.admin)


@pytest.fixture()
def editor(db_session) -> User:
    return make_user(db_session, UserRole.editor)


@pytest.fixture()
def viewer(db_session) -> User:
    return make_user(db_session, UserRole.viewer)


@pytest.fixture()
def client(engine) -> Generator[TestClient, None, None]:
    from app.main import app

    testing_session = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    def _override_get_db():
        db = testing_session()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers(admin) -> dict[str, str]:
    return headers_for(admin)
