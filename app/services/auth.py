from __future__ import annotations

import logging
import secrets

from jose import JWTError
from sqlalchemy.orm import Session

from app.errors import NotFoundError, UnauthorizedError
from app.models.user import User
from app.schemas.auth import AuthResponse, LoginRequest, RegisterRequest
from app.schemas.user import UserRead
from app.services.access_policy import Actor
from app.services.common import coerce_uuid
from app.services.security import (
    create_access_token,
    decode_token,
    hash_password,
    verify_password,
)
from app.services.user import Users

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"

_dummy_hash: str | None = None


def _burn_verification(password: str) -> None:
    # Unknown emails still pay for one hash check so response time does not
    # reveal whether an account exists.
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = hash_password(secrets.token_urlsafe(16))
    verify_password(password, _dummy_hash)


def sanitize(user: User) -> UserRead:
    return UserRead.model_validate(user)


def actor_for(user: User) -> Actor:
    return Actor(id=user.id, role=user.role)


class Auth:
    @staticmethod
    def issue_token(user: User) -> str:
        return create_access_token(
            str(user.id), claims={"email": user.email, "role": user.role.value}
        )

    @staticmethod
    def register(db: Session, payload: RegisterRequest) -> AuthResponse:
        user = Users.create(db, payload)
        logger.info("Registered user %s", user.id)
        return AuthResponse(user=sanitize(user), token=Auth.issue_token(user))

    @staticmethod
    def validate_credentials(db: Session, email: str, password: str) -> User | None:
        user = Users.get_by_email(db, email)
        if user is None:
            _burn_verification(password)
            return None
        if not verify_password(password, user.password_hash):
            return None
        if not user.is_active:
            return None
        return user

    @staticmethod
    def login(db: Session, payload: LoginRequest) -> AuthResponse:
        user = Auth.validate_credentials(db, payload.email, payload.password)
        if user is None:
            logger.info("Failed login attempt")
            raise UnauthorizedError(INVALID_CREDENTIALS)
        logger.info("User %s logged in", user.id)
        return AuthResponse(user=sanitize(user), token=Auth.issue_token(user))

    @staticmethod
    def resolve_user(db: Session, token: str | None) -> User:
        if not token:
            raise UnauthorizedError("Not authenticated")
        try:
            claims = decode_token(token)
        except JWTError:
            raise UnauthorizedError("Invalid or expired token")

        subject = claims.get("sub")
        if not subject:
            raise UnauthorizedError("Invalid or expired token")
        try:
            user_id = coerce_uuid(subject)
        except NotFoundError:
            raise UnauthorizedError("Invalid or expired token")

        user = db.get(User, user_id)
        if user is None or not user.is_active:
            raise UnauthorizedError("Invalid or expired token")
        return user


auth = Auth()
