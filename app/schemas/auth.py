from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from app.schemas.user import UserCreate, UserRead, validate_email_address


class RegisterRequest(UserCreate):
    pass


class LoginRequest(BaseModel):
    email: str = Field(max_length=255)
    password: str = Field(min_length=1, max_length=256)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return validate_email_address(value)


class AuthResponse(BaseModel):
    user: UserRead
    token: str
    token_type: str = "bearer"
