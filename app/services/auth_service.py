"""Authentication service: registration, login and OTP password reset."""

from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    UnauthorizedException,
)
from app.core.redis_client import OtpStore
from app.core.security import create_access_token, get_password_hash, verify_password
from app.models.doctors import doctors
from app.models.users import users
from app.schemas.auth import RegisterRequest, Token
from app.schemas.doctors import DoctorRegister
from app.services.notification_service import NotificationService

logger = structlog.get_logger(__name__)


class AuthService:
    """Service for account authentication."""

    def __init__(
        self,
        otp_store: OtpStore | None = None,
        notifier: NotificationService | None = None,
    ):
        """Initialize service with OTP store and notice sender."""
        self.otp_store = otp_store
        self.notifier = notifier

    @staticmethod
    async def _get_user_by_email(db: AsyncSession, email: str) -> dict | None:
        result = await db.execute(
            select(users).where(func.lower(users.c.email) == email.strip().lower())
        )
        row = result.mappings().first()
        return dict(row) if row else None

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: UUID) -> dict | None:
        """Get user by internal ID."""
        result = await db.execute(select(users).where(users.c.id == user_id))
        row = result.mappings().first()
        return dict(row) if row else None

    async def register(self, db: AsyncSession, data: RegisterRequest) -> dict:
        """
        Create a user account.

        Raises:
            ConflictException: If the email is already registered
        """
        try:
            result = await db.execute(
                insert(users)
                .values(
                    email=data.email.lower(),
                    full_name=data.name,
                    phone_number=data.phone_number,
                    password_hash=get_password_hash(data.password),
                    role=data.role.value,
                )
                .returning(users)
            )
            user = dict(result.mappings().one())
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictException("Email is already registered")

        logger.info("user_registered", user_id=str(user["id"]), role=user["role"])
        return user

    async def register_doctor(self, db: AsyncSession, user: dict, data: DoctorRegister) -> dict:
        """
        Attach a doctor profile to a user with role ``doctor``.

        Raises:
            ForbiddenException: If the user is not a doctor
            ConflictException: If the user already has a doctor profile
        """
        if user["role"] != "doctor":
            raise ForbiddenException("Only doctor accounts can create a doctor profile")

        try:
            result = await db.execute(
                insert(doctors)
                .values(
                    user_id=user["id"],
                    specialization=data.specialization,
                    contact_number=data.contact_number,
                    clinic_address=data.clinic_address,
                )
                .returning(doctors)
            )
            doctor = dict(result.mappings().one())
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictException("Doctor profile already exists")

        logger.info("doctor_registered", doctor_id=str(doctor["id"]), user_id=str(user["id"]))
        doctor["full_name"] = user["full_name"]
        doctor["email"] = user["email"]
        return doctor

    async def login(self, db: AsyncSession, email: str, password: str) -> Token:
        """
        Verify credentials and issue an access token.

        Raises:
            UnauthorizedException: If the email or password is wrong
            ForbiddenException: If the account is deactivated
        """
        user = await self._get_user_by_email(db, email)

        if not user or not verify_password(password, user["password_hash"]):
            logger.info("login_failed", email=email)
            raise UnauthorizedException("Invalid email or password")

        if not user["is_active"]:
            raise ForbiddenException("User account is deactivated")

        await db.execute(
            update(users).where(users.c.id == user["id"]).values(last_login_at=datetime.now(UTC))
        )
        await db.commit()

        token = create_access_token({"sub": str(user["id"]), "role": user["role"]})
        logger.info("login_succeeded", user_id=str(user["id"]))
        return Token(access_token=token)

    async def send_otp(self, db: AsyncSession, email: str) -> None:
        """
        Issue a password reset code and deliver it to the account owner.

        Unknown emails are accepted silently so the endpoint cannot be used
        to probe for registered accounts.
        """
        user = await self._get_user_by_email(db, email)
        if not user:
            logger.info("otp_requested_unknown_email")
            return

        code = self.otp_store.issue(user["email"])
        logger.info("otp_issued", user_id=str(user["id"]))

        if self.notifier:
            await self.notifier.notify_user(
                user["id"],
                "Password reset code",
                f"Your password reset code is {code}. It expires in "
                f"{self.otp_store.ttl // 60} minutes.",
                notification_type="password_reset",
            )

    async def reset_password(
        self,
        db: AsyncSession,
        email: str,
        otp: str,
        new_password: str,
    ) -> UUID:
        """
        Replace a password after checking and consuming the reset code.

        Raises:
            BadRequestException: If the code is wrong, expired or already used
        """
        user = await self._get_user_by_email(db, email)
        if not user or not self.otp_store.consume(user["email"], otp):
            raise BadRequestException("Invalid or expired OTP")

        await db.execute(
            update(users)
            .where(users.c.id == user["id"])
            .values(password_hash=get_password_hash(new_password), updated_at=datetime.now(UTC))
        )
        await db.commit()

        logger.info("password_reset", user_id=str(user["id"]))
        return user["id"]
