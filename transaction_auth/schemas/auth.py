"""
Pydantic schemas for registration, login, step-up and tokens.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from transaction_auth.models.enums import Role


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# bcrypt refuses anything longer than 72 bytes
MAX_PASSWORD_BYTES = 72


def check_password_bytes(v: str) -> str:
    if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return v


# --- Principals ---

class Principal(BaseModel):
    """Who is acting: enough to authorize and to snapshot into the audit log."""
    user_id: int
    email: str
    role: Role

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(user_id=user.id, email=user.email, role=user.role)


class TokenClaims(Principal):
    """Decoded bearer token."""
    two_factor_verified: bool = False
    issued_at: datetime
    expires_at: datetime


# --- Requests ---

class RegisterRequest(BaseModel):
    email: str = Field(min_length=5, max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6, max_length=MAX_PASSWORD_BYTES)
    role: Role = Role.USER

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return check_password_bytes(v)


class LoginRequest(BaseModel):
    email: str = Field(min_length=5, max_length=255)
    password: str = Field(min_length=1, max_length=MAX_PASSWORD_BYTES)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return check_password_bytes(v)


class StepUpCodeRequest(BaseModel):
    """A six-digit one-time code from the user's authenticator app."""
    code: str = Field(pattern=r"^\d{6}$")


# --- Responses ---

class UserResponse(BaseModel):
    id: int
    external_id: uuid.UUID
    email: str
    role: Role
    two_factor_enabled: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class LoginResponse(BaseModel):
    token: str
    requires_2fa: bool
    user: UserResponse


class TokenResponse(BaseModel):
    token: str
    expires_at: datetime


class EnrollmentResponse(BaseModel):
    """Shared secret plus an otpauth:// URI for QR rendering elsewhere."""
    secret: str
    provisioning_uri: str


class StatusResponse(BaseModel):
    ok: bool = True
