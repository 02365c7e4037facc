"""
XFound Backend — Account Request/Response Schemas
===================================================

What:  Pydantic models for the /api/auth endpoints and public user profiles.
Why:   Structural validation (presence, types, lengths) happens here and
       answers 422; business rules (passwords match, user exists) live in
       AuthService and answer 400.

Security:
    No schema in this module exposes password_hash or reset tokens.
"""

import re
import uuid
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")


class SignupRequest(BaseModel):
    """Body of POST /api/auth/signup."""
    username: str = Field(min_length=3, max_length=30)
    email: str = Field(max_length=255)
    password: str = Field(min_length=1)
    confirm_password: str = Field(min_length=1, alias="confirmPassword")

    model_config = {"populate_by_name": True}

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Username must be at least 3 characters")
        return v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Please provide a valid email")
        return v


class LoginRequest(BaseModel):
    """
    Body of POST /api/auth/login.

    Either email or username identifies the account.
    """
    email: Optional[str] = None
    username: Optional[str] = None
    password: str

    @model_validator(mode="after")
    def require_identifier(self) -> "LoginRequest":
        if not self.email and not self.username:
            raise ValueError("Provide an email or a username")
        if self.email:
            self.email = self.email.strip().lower()
        return self


class ForgotPasswordRequest(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class ResetPasswordRequest(BaseModel):
    password: str = Field(min_length=1)
    confirm_password: str = Field(min_length=1, alias="confirmPassword")

    model_config = {"populate_by_name": True}


class AuthResponse(BaseModel):
    """Returned by signup and login; `token` is a bearer access token."""
    id: uuid.UUID
    username: str
    email: str
    token: str
    message: str


class UserPublic(BaseModel):
    """Public profile, used to populate chat participants."""
    id: uuid.UUID
    username: str
    avatar: str
    location: Optional[str] = None
    bio: Optional[str] = None

    model_config = {"from_attributes": True}
