from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.schemas.user import (
    UserCreate,
    UserListResponse,
    UserRead,
    UserRoleUpdate,
    UserUpdate,
)
from app.services import user as user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    return user_service.users.create(db, payload)


@router.get("", response_model=UserListResponse)
def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return user_service.users.list(db, page, limit)


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: str, db: Session = Depends(get_db)):
    return user_service.users.get(db, user_id)


@router.patch("/{user_id}", response_model=UserRead)
def update_user(user_id: str, payload: UserUpdate, db: Session = Depends(get_db)):
    return user_service.users.update(db, user_id, payload)


@router.patch("/{user_id}/role", response_model=UserRead)
def update_user_role(
    user_id: str, payload: UserRoleUpdate, db: Session = Depends(get_db)
):
    return user_service.users.update_role(db, user_id, payload.role)


@router.patch("/{user_id}/deactivate", response_model=UserRead)
def deactivate_user(user_id: str, db: Session = Depends(get_db)):
    return user_service.users.deactivate(db, user_id)


@router.patch("/{user_id}/activate", response_model=UserRead)
def activate_user(user_id: str, db: Session = Depends(get_db)):
    return user_service.users.activate(db, user_id)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: str, db: Session = Depends(get_db)):
    user_service.users.delete(db, user_id)
