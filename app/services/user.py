from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import ConflictError, NotFoundError
from app.models.user import User, UserRole
from app.schemas.user import UserCreate, UserUpdate
from app.services.common import apply_page, coerce_uuid, page_count, validate_page
from app.services.security import hash_password
from app.services.storage import storage

logger = logging.getLogger(__name__)

EMAIL_TAKEN = "User with this email already exists"


def _flush_unique(db: Session) -> None:
    # The unique constraint is the authority on email uniqueness; the
    # pre-checks in callers only short-circuit the common case.
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise ConflictError(EMAIL_TAKEN)


class Users:
    @staticmethod
    def get_by_email(db: Session, email: str) -> User | None:
        return db.scalar(select(User).where(User.email == email))

    @staticmethod
    def get(db: Session, user_id: str) -> User:
        user = db.get(User, coerce_uuid(user_id, "User"))
        if not user:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    def create(db: Session, payload: UserCreate) -> User:
        if Users.get_by_email(db, payload.email):
            raise ConflictError(EMAIL_TAKEN)

        user = User(
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            password_hash=hash_password(payload.password),
            role=payload.role or UserRole.viewer,
        )
        db.add(user)
        _flush_unique(db)
        db.refresh(user)
        logger.info("Created user %s with role %s", user.id, user.role.value)
        return user

    @staticmethod
    def list(db: Session, page: int = 1, limit: int = 10) -> dict:
        validate_page(page, limit)
        total = db.scalar(select(func.count()).select_from(User)) or 0
        stmt = select(User).order_by(User.created_at.desc())
        users = db.scalars(apply_page(stmt, page, limit)).all()
        return {"users": users, "total": total, "pages": page_count(total, limit)}

    @staticmethod
    def update(db: Session, user_id: str, payload: UserUpdate) -> User:
        user = Users.get(db, user_id)
        data = payload.model_dump(exclude_unset=True)

        if data.get("email") and data["email"] != user.email:
            if Users.get_by_email(db, data["email"]):
                raise ConflictError(EMAIL_TAKEN)

        for key, value in data.items():
            if value is None:
                continue
            setattr(user, key, value)

        _flush_unique(db)
        db.refresh(user)
        logger.info("Updated user %s", user.id)
        return user

    @staticmethod
    def update_role(db: Session, user_id: str, role: UserRole) -> User:
        user = Users.get(db, user_id)
        user.role = role
        db.flush()
        db.refresh(user)
        logger.info("Changed role of user %s to %s", user.id, role.value)
        return user

    @staticmethod
    def deactivate(db: Session, user_id: str) -> User:
        return Users._set_active(db, user_id, False)

    @staticmethod
    def activate(db: Session, user_id: str) -> User:
        return Users._set_active(db, user_id, True)

    @staticmethod
    def _set_active(db: Session, user_id: str, is_active: bool) -> User:
        user = Users.get(db, user_id)
        user.is_active = is_active
        db.flush()
        db.refresh(user)
        logger.info(
            "%s user %s", "Activated" if is_active else "Deactivated", user.id
        )
        return user

    @staticmethod
    def delete(db: Session, user_id: str) -> None:
        user = Users.get(db, user_id)
        # Owned documents cascade with the row; their blobs go first.
        for document in user.documents:
            if not storage.delete(document.file_path):
                logger.warning(
                    "Blob for document %s already missing at %s",
                    document.id,
                    document.file_path,
                )
        db.delete(user)
        db.flush()
        logger.info("Deleted user %s", user_id)


users = Users()
