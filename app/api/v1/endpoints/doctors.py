"""Doctor directory endpoints."""

from fastapi import APIRouter, Query, status

from app.dependencies import DatabaseSession, Directory
from app.schemas.doctors import DoctorListResponse, DoctorResponse

router = APIRouter()


@router.get(
    "/",
    response_model=DoctorListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Doctors"],
    summary="Search doctors",
)
async def search_doctors(
    db: DatabaseSession,
    directory: Directory,
    specialization: str | None = Query(None, max_length=200),
    name: str | None = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> DoctorListResponse:
    """
    Search doctors by specialization and name.

    - **specialization**: Case-insensitive fragment of the specialization
    - **name**: Case-insensitive fragment of the doctor's name
    """
    return await directory.search_doctors(
        db,
        specialization=specialization,
        name=name,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/{doctor_identifier}",
    response_model=DoctorResponse,
    status_code=status.HTTP_200_OK,
    tags=["Doctors"],
    summary="Get doctor",
)
async def get_doctor(
    doctor_identifier: str,
    db: DatabaseSession,
    directory: Directory,
) -> DoctorResponse:
    """Get a doctor by doctor ID, user ID or email."""
    return await directory.resolve_doctor(db, doctor_identifier)
