"""Authentication endpoints."""

from fastapi import APIRouter, status

from app.dependencies import CurrentUser, DatabaseSession, Notifier, Otp
from app.schemas.auth import (
    LoginRequest,
    MessageResponse,
    OtpRequest,
    PasswordResetRequest,
    RegisterRequest,
    Token,
    UserResponse,
)
from app.schemas.doctors import DoctorRegister, DoctorResponse
from app.services.auth_service import AuthService

router = APIRouter()


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Authentication"],
    summary="Register user",
)
async def register(data: RegisterRequest, db: DatabaseSession) -> UserResponse:
    """
    Create a patient or doctor account.

    Doctors then call ``/auth/register/doctor`` to publish their practice.
    """
    user = await AuthService().register(db, data)
    return UserResponse(
        id=str(user["id"]),
        email=user["email"],
        name=user["full_name"],
        role=user["role"],
        is_active=user["is_active"],
    )


@router.post(
    "/register/doctor",
    response_model=DoctorResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Authentication"],
    summary="Create doctor profile",
)
async def register_doctor(
    data: DoctorRegister,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> DoctorResponse:
    """Attach a doctor profile to the authenticated doctor account."""
    doctor = await AuthService().register_doctor(db, current_user, data)
    return DoctorResponse.model_validate(doctor)


@router.post(
    "/login",
    response_model=Token,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Login",
)
async def login(data: LoginRequest, db: DatabaseSession) -> Token:
    """Exchange email and password for an access token."""
    return await AuthService().login(db, data.email, data.password)


@router.post(
    "/otp",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Request password reset code",
)
async def send_otp(
    data: OtpRequest,
    db: DatabaseSession,
    otp_store: Otp,
    notifier: Notifier,
) -> MessageResponse:
    """Send a six digit password reset code to the account owner."""
    await AuthService(otp_store=otp_store, notifier=notifier).send_otp(db, data.email)
    return MessageResponse(message="If the email is registered, a reset code has been sent")


@router.post(
    "/password/reset",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Reset password",
)
async def reset_password(
    data: PasswordResetRequest,
    db: DatabaseSession,
    otp_store: Otp,
) -> MessageResponse:
    """Set a new password using a reset code from ``/auth/otp``."""
    await AuthService(otp_store=otp_store).reset_password(
        db, data.email, data.otp, data.new_password
    )
    return MessageResponse(message="Password updated successfully")
