"""Doctor and patient directory lookups."""

from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ForbiddenException, NotFoundException, ValidationException
from app.core.redis_client import CacheManager
from app.models.doctors import doctors
from app.models.users import users
from app.schemas.doctors import DoctorListResponse, DoctorResponse


class DirectoryService:
    """Resolves identifiers to internal doctor and patient keys."""

    # Cache TTL in seconds
    DOCTOR_CACHE_TTL = 900  # 15 minutes for individual doctors

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize service with optional cache manager."""
        self.cache = cache_manager

    @staticmethod
    def _get_doctor_cache_key(identifier: str) -> str:
        """Generate cache key for a doctor identifier."""
        return f"doctor:{identifier.lower()}"

    @staticmethod
    def _doctor_query():
        return select(
            doctors,
            users.c.full_name,
            users.c.email,
        ).join(users, users.c.id == doctors.c.user_id)

    async def resolve_doctor(self, db: AsyncSession, identifier: str | UUID) -> DoctorResponse:
        """
        Resolve a doctor identifier to the doctor record.

        Args:
            db: Database session
            identifier: Doctor ID, the doctor's user ID, or the doctor's email

        Returns:
            Doctor record

        Raises:
            ValidationException: If the identifier is empty
            NotFoundException: If no active doctor matches
        """
        key = str(identifier).strip()
        if not key:
            raise ValidationException("Doctor identifier is required")

        # Try cache first
        cache_key = self._get_doctor_cache_key(key)
        if self.cache:
            cached = self.cache.get_json(cache_key)
            if cached:
                return DoctorResponse.model_validate(cached)

        try:
            uid = UUID(key)
            condition = or_(doctors.c.id == uid, doctors.c.user_id == uid)
        except ValueError:
            condition = func.lower(users.c.email) == key.lower()

        result = await db.execute(
            self._doctor_query()
            .where(condition, users.c.is_active == True)  # noqa: E712
            .limit(1)
        )
        row = result.mappings().first()

        if not row:
            raise NotFoundException("Doctor not found")

        doctor = DoctorResponse.model_validate(dict(row))

        if self.cache:
            self.cache.set_json(
                cache_key, doctor.model_dump(mode="json"), ttl=self.DOCTOR_CACHE_TTL
            )

        return doctor

    async def get_doctor_for_user(self, db: AsyncSession, user_id: UUID) -> DoctorResponse | None:
        """Get the doctor profile owned by a user, if any."""
        result = await db.execute(self._doctor_query().where(doctors.c.user_id == user_id))
        row = result.mappings().first()
        return DoctorResponse.model_validate(dict(row)) if row else None

    async def search_doctors(
        self,
        db: AsyncSession,
        specialization: str | None = None,
        name: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> DoctorListResponse:
        """Search active doctors by specialization and name fragment."""
        conditions = [users.c.is_active == True]  # noqa: E712

        if specialization:
            conditions.append(doctors.c.specialization.ilike(f"%{specialization}%"))

        if name:
            conditions.append(users.c.full_name.ilike(f"%{name}%"))

        count_stmt = (
            select(func.count())
            .select_from(doctors.join(users, users.c.id == doctors.c.user_id))
            .where(and_(*conditions))
        )
        total = (await db.execute(count_stmt)).scalar() or 0

        stmt = (
            self._doctor_query()
            .where(and_(*conditions))
            .order_by(users.c.full_name)
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        result = await db.execute(stmt)
        items = [DoctorResponse.model_validate(dict(row)) for row in result.mappings().all()]

        return DoctorListResponse(total=total, page=page, page_size=page_size, items=items)

    @staticmethod
    async def list_doctor_ids(db: AsyncSession) -> list[UUID]:
        """Get the IDs of every doctor whose account is active."""
        result = await db.execute(
            select(doctors.c.id)
            .join(users, users.c.id == doctors.c.user_id)
            .where(users.c.is_active == True)  # noqa: E712
            .order_by(doctors.c.created_at)
        )
        return list(result.scalars().all())

    @staticmethod
    def resolve_patient(current_user: dict, patient_identifier: str | None = None) -> UUID:
        """
        Resolve the authenticated identity to a patient key.

        Args:
            current_user: Authenticated user record
            patient_identifier: Optional explicit patient ID from the request

        Returns:
            Patient user ID

        Raises:
            ForbiddenException: If the caller is not a patient or names someone else
        """
        if current_user["role"] != "patient":
            raise ForbiddenException("Only patients can book appointments")

        patient_id = current_user["id"]
        if patient_identifier and patient_identifier.strip() != str(patient_id):
            raise ForbiddenException("Patients can only book appointments for themselves")

        return patient_id
