from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.db import get_db
from app.errors import ForbiddenError
from app.models.user import User, UserRole
from app.services.access_policy import Actor, Operation, authorize
from app.services.auth import Auth, actor_for

bearer_scheme = HTTPBearer(auto_error=False)


def require_user_auth(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    token = credentials.credentials if credentials else None
    user = Auth.resolve_user(db, token)
    request.state.actor_id = str(user.id)
    return user


def get_current_actor(user: User = Depends(require_user_auth)) -> Actor:
    return actor_for(user)


def require_role(*roles: str):
    allowed = {UserRole(role) for role in roles}

    def _require_role(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed:
            raise ForbiddenError(
                "Insufficient role",
                details={"required": sorted(role.value for role in allowed)},
            )
        return actor

    return _require_role


def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    authorize(actor, Operation.manage_users)
    return actor
