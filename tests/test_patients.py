"""Tests for patient endpoints."""

from datetime import timedelta
from uuid import uuid4

import pytest
from httpx import AsyncClient

from app.core.clock import utcnow


@pytest.mark.asyncio
async def test_create_patient(client: AsyncClient, secretary_headers: dict) -> None:
    """Test registering a patient."""
    response = await client.post(
        "/api/v1/patients/",
        json={
            "full_name": "John Smith",
            "phone": "+1 (555) 987-6543",
            "gender": "male",
            "date_of_birth": "1984-07-02",
        },
        headers=secretary_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["full_name"] == "John Smith"
    assert data["date_of_birth"] == "1984-07-02"
    assert "id" in data


@pytest.mark.asyncio
async def test_create_patient_invalid_phone(client: AsyncClient, secretary_headers: dict) -> None:
    """Test phone validation."""
    response = await client.post(
        "/api/v1/patients/",
        json={"full_name": "John Smith", "phone": "call-me-maybe"},
        headers=secretary_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_patient(client: AsyncClient, doctor_headers: dict, patient: dict) -> None:
    """Test fetching a patient by ID."""
    response = await client.get(f"/api/v1/patients/{patient['id']}", headers=doctor_headers)
    assert response.status_code == 200
    assert response.json()["full_name"] == patient["full_name"]

    response = await client.get(f"/api/v1/patients/{uuid4()}", headers=doctor_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_search_patients(
    client: AsyncClient,
    secretary_headers: dict,
    patient: dict,
) -> None:
    """Test listing and searching patients."""
    await client.post(
        "/api/v1/patients/",
        json={"full_name": "Ahmed Karim", "phone": "0123456789"},
        headers=secretary_headers,
    )

    response = await client.get("/api/v1/patients/", headers=secretary_headers)
    assert response.status_code == 200
    assert response.json()["total"] == 2

    response = await client.get(
        "/api/v1/patients/",
        params={"search": "karim"},
        headers=secretary_headers,
    )
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["full_name"] == "Ahmed Karim"


@pytest.mark.asyncio
async def test_update_patient(client: AsyncClient, doctor_headers: dict, patient: dict) -> None:
    """Test editing a patient keeps the fields that were not sent."""
    response = await client.put(
        f"/api/v1/patients/{patient['id']}",
        json={"phone": "0100 200 300", "notes": "Allergic to penicillin"},
        headers=doctor_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["phone"] == "0100 200 300"
    assert data["notes"] == "Allergic to penicillin"
    assert data["full_name"] == patient["full_name"]

    response = await client.put(
        f"/api/v1/patients/{patient['id']}",
        json={"phone": "not-a-phone"},
        headers=doctor_headers,
    )
    assert response.status_code == 422

    response = await client.put(
        f"/api/v1/patients/{uuid4()}",
        json={"full_name": "Nobody"},
        headers=doctor_headers,
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_patient(
    client: AsyncClient,
    secretary_headers: dict,
    patient: dict,
    make_appointment,
    fetch_appointment,
) -> None:
    """Test deletion hides the patient but keeps their appointments."""
    entry = await make_appointment()

    response = await client.delete(f"/api/v1/patients/{patient['id']}", headers=secretary_headers)
    assert response.status_code == 204

    response = await client.get(f"/api/v1/patients/{patient['id']}", headers=secretary_headers)
    assert response.status_code == 404

    response = await client.get("/api/v1/patients/", headers=secretary_headers)
    assert response.json()["total"] == 0

    # A deleted patient cannot join the queue
    response = await client.post(
        "/api/v1/queue/walk-in",
        json={"patient_id": str(patient["id"])},
        headers=secretary_headers,
    )
    assert response.status_code == 404

    response = await client.delete(f"/api/v1/patients/{patient['id']}", headers=secretary_headers)
    assert response.status_code == 404

    row = await fetch_appointment(entry.id)
    assert row["deleted_at"] is None


@pytest.mark.asyncio
async def test_patient_diagnoses(
    client: AsyncClient,
    doctor_headers: dict,
    patient: dict,
    make_appointment,
) -> None:
    """Test the diagnosis history lists completed consultations, newest first."""
    now = utcnow()

    def completed(days_ago: int, text: str | None) -> dict:
        ended = now - timedelta(days=days_ago)
        return {
            "status": "completed",
            "scheduled_date": ended.date(),
            "checked_in_at": ended - timedelta(minutes=30),
            "started_at": ended - timedelta(minutes=15),
            "ended_at": ended,
            "diagnosis": {"text": text, "medications": [{"name": "Ibuprofen"}]} if text else None,
        }

    older = await make_appointment(**completed(30, "Sprained ankle"))
    newer = await make_appointment(**completed(2, "Seasonal flu"))
    await make_appointment(**completed(10, None))
    await make_appointment()

    response = await client.get(
        f"/api/v1/patients/{patient['id']}/diagnoses",
        headers=doctor_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert [item["appointment_id"] for item in data] == [str(newer.id), str(older.id)]
    assert data[0]["diagnosis"]["text"] == "Seasonal flu"
    assert data[1]["diagnosis"]["medications"][0]["name"] == "Ibuprofen"

    response = await client.get(f"/api/v1/patients/{uuid4()}/diagnoses", headers=doctor_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_patient_diagnoses_after_consultation(
    client: AsyncClient,
    secretary_headers: dict,
    doctor_headers: dict,
    patient: dict,
) -> None:
    """Test a diagnosis recorded on completion shows up in the history."""
    response = await client.post(
        "/api/v1/queue/walk-in",
        json={"patient_id": str(patient["id"])},
        headers=secretary_headers,
    )
    entry_id = response.json()["id"]
    await client.put(f"/api/v1/queue/{entry_id}/start", headers=doctor_headers)
    await client.put(
        f"/api/v1/queue/{entry_id}/complete",
        json={"diagnosis": {"text": "Tension headache", "treatment_plan": "Hydration"}},
        headers=doctor_headers,
    )

    response = await client.get(
        f"/api/v1/patients/{patient['id']}/diagnoses",
        headers=secretary_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["appointment_id"] == entry_id
    assert data[0]["diagnosis"]["treatment_plan"] == "Hydration"
