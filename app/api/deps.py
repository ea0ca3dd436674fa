from app.db import get_db
from app.services.auth_dependencies import (
    get_current_actor,
    require_admin,
    require_role,
    require_user_auth,
)

__all__ = [
    "get_current_actor",
    "get_db",
    "require_admin",
    "require_role",
    "require_user_auth",
]
