"""Authentication schemas."""

from enum import Enum

from pydantic import BaseModel, EmailStr, Field


class UserRole(str, Enum):
    """Roles a user can register with."""

    PATIENT = "patient"
    DOCTOR = "doctor"


class RegisterRequest(BaseModel):
    """User registration request."""

    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone_number: str | None = Field(None, max_length=20)
    password: str = Field(..., min_length=8, max_length=72)
    role: UserRole = UserRole.PATIENT


class LoginRequest(BaseModel):
    """Email/password login request."""

    email: EmailStr
    password: str


class Token(BaseModel):
    """JWT token response schema."""

    access_token: str
    token_type: str = "bearer"


class OtpRequest(BaseModel):
    """Request a password reset code."""

    email: EmailStr


class PasswordResetRequest(BaseModel):
    """Reset a password with a one-time code."""

    email: EmailStr
    otp: str = Field(..., min_length=6, max_length=6, pattern=r"^\d{6}$")
    new_password: str = Field(..., min_length=8, max_length=72)


class UserResponse(BaseModel):
    """User response schema."""

    id: str
    email: EmailStr
    name: str
    role: str
    is_active: bool = True

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str
