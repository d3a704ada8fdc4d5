"""Patient endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import PatientServiceDep, StaffUser
from app.schemas.patients import (
    PatientCreate,
    PatientDiagnosis,
    PatientListResponse,
    PatientResponse,
    PatientUpdate,
)

router = APIRouter(prefix="/patients", tags=["Patients"])


@router.post(
    "/",
    response_model=PatientResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register patient",
)
async def create_patient(
    data: PatientCreate,
    current_user: StaffUser,
    service: PatientServiceDep,
) -> PatientResponse:
    """
    Register a new patient.

    Args:
        data: Patient details
        current_user: Authenticated doctor or secretary
        service: Patient service

    Returns:
        Created patient
    """
    return await service.create_patient(data)


@router.get(
    "/",
    response_model=PatientListResponse,
    summary="List patients",
)
async def list_patients(
    current_user: StaffUser,
    service: PatientServiceDep,
    search: str | None = Query(None, description="Search by name or phone"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PatientListResponse:
    """List patients, optionally filtered by a name or phone fragment."""
    return await service.list_patients(search=search, page=page, page_size=page_size)


@router.get(
    "/{patient_id}",
    response_model=PatientResponse,
    summary="Get patient by ID",
)
async def get_patient(
    patient_id: UUID,
    current_user: StaffUser,
    service: PatientServiceDep,
) -> PatientResponse:
    """Get a specific patient by ID."""
    return await service.get_patient(patient_id)


@router.put(
    "/{patient_id}",
    response_model=PatientResponse,
    summary="Update patient",
)
async def update_patient(
    patient_id: UUID,
    data: PatientUpdate,
    current_user: StaffUser,
    service: PatientServiceDep,
) -> PatientResponse:
    """
    Edit a patient record.

    Args:
        patient_id: Patient ID
        data: Fields to change
        current_user: Authenticated doctor or secretary
        service: Patient service

    Returns:
        Updated patient
    """
    return await service.update_patient(patient_id, data, actor=current_user)


@router.delete(
    "/{patient_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete patient",
)
async def delete_patient(
    patient_id: UUID,
    current_user: StaffUser,
    service: PatientServiceDep,
) -> None:
    """Soft delete a patient; their appointment history is kept."""
    await service.soft_delete_patient(patient_id, actor=current_user)


@router.get(
    "/{patient_id}/diagnoses",
    response_model=list[PatientDiagnosis],
    summary="Patient diagnosis history",
)
async def list_patient_diagnoses(
    patient_id: UUID,
    current_user: StaffUser,
    service: PatientServiceDep,
) -> list[PatientDiagnosis]:
    """Diagnoses from the patient's completed consultations, newest first."""
    return await service.list_diagnoses(patient_id)
