"""Patient schemas for request/response validation."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.schemas.appointments import DiagnosisSummary


def _validate_phone(v: str | None) -> str | None:
    if v is None:
        return v
    # Remove common separators
    cleaned = v.replace("-", "").replace(" ", "").replace("(", "").replace(")", "").replace("+", "")
    if not cleaned.isdigit():
        raise ValueError("Phone number must contain only digits and separators")
    if len(cleaned) < 7:
        raise ValueError("Phone number must have at least 7 digits")
    return v


class PatientCreate(BaseModel):
    """Schema for registering a patient."""

    full_name: str = Field(..., min_length=1, max_length=200)
    phone: str | None = Field(None, min_length=7, max_length=20)
    gender: str | None = Field(None, max_length=20)
    date_of_birth: date | None = None
    notes: str | None = Field(None, max_length=2000)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        """Validate phone number format."""
        return _validate_phone(v)


class PatientUpdate(BaseModel):
    """Schema for editing a patient record; omitted fields are left as they are."""

    full_name: str | None = Field(None, min_length=1, max_length=200)
    phone: str | None = Field(None, min_length=7, max_length=20)
    gender: str | None = Field(None, max_length=20)
    date_of_birth: date | None = None
    notes: str | None = Field(None, max_length=2000)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        """Validate phone number format."""
        return _validate_phone(v)


class PatientResponse(PatientCreate):
    """Schema for patient response."""

    id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PatientListResponse(BaseModel):
    """Paginated patient list."""

    total: int
    page: int
    page_size: int
    items: list[PatientResponse]


class PatientDiagnosis(BaseModel):
    """Diagnosis recorded when one of the patient's consultations was completed."""

    appointment_id: UUID
    scheduled_date: date
    ended_at: datetime | None = None
    diagnosis: DiagnosisSummary
