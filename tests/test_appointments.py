"""Tests for the appointment endpoints."""

from uuid import uuid4

import pytest

from tests.conftest import DAY, at, make_token

API = "/api/v1/appointments"


def booking(patient_id, doctor_id, start, **extra):
    return {
        "patientId": str(patient_id),
        "doctorId": str(doctor_id),
        "startTime": start.isoformat(),
        **extra,
    }


async def book(client, headers, patient_id, doctor_id, start):
    response = await client.post(API, json=booking(patient_id, doctor_id, start), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def slot_map(client, headers, doctor_id):
    response = await client.get(
        f"{API}/slots",
        params={"doctorId": str(doctor_id), "date": DAY.isoformat()},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    return {s["time"]: s["available"] for s in response.json()}


class TestBookAppointment:
    """Test POST /appointments."""

    @pytest.mark.asyncio
    async def test_book_success(self, client, patient_headers, patient_id, doctor_id):
        response = await client.post(
            API,
            json=booking(patient_id, doctor_id, at(10), notes="Follow-up"),
            headers=patient_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["patientId"] == str(patient_id)
        assert data["doctorId"] == str(doctor_id)
        assert data["startTime"] == "2030-01-14T10:00:00"
        assert data["endTime"] == "2030-01-14T10:30:00"
        assert data["status"] == "scheduled"
        assert data["notes"] == "Follow-up"

    @pytest.mark.asyncio
    async def test_overlapping_booking_conflicts(self, client, patient_headers, patient_id, doctor_id):
        await book(client, patient_headers, patient_id, doctor_id, at(10))

        response = await client.post(
            API, json=booking(patient_id, doctor_id, at(10, 15)), headers=patient_headers
        )

        assert response.status_code == 409
        assert response.json()["error"] == "ConflictException"

    @pytest.mark.asyncio
    async def test_touching_booking_succeeds(self, client, patient_headers, patient_id, doctor_id):
        await book(client, patient_headers, patient_id, doctor_id, at(10))
        data = await book(client, patient_headers, patient_id, doctor_id, at(10, 30))
        assert data["startTime"] == "2030-01-14T10:30:00"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("start", [at(8), at(17), at(7, 0, DAY.replace(day=13))])
    async def test_rejected_times(self, client, patient_headers, patient_id, doctor_id, start):
        response = await client.post(
            API, json=booking(patient_id, doctor_id, start), headers=patient_headers
        )
        assert response.status_code == 400
        assert response.json()["error"] == "ValidationException"

    @pytest.mark.asyncio
    async def test_past_start_is_rejected(self, client, patient_headers, patient_id, doctor_id):
        yesterday = at(10, 0, DAY.replace(day=13))
        response = await client.post(
            API, json=booking(patient_id, doctor_id, yesterday), headers=patient_headers
        )
        assert response.status_code == 400
        assert "future" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_unknown_doctor(self, client, patient_headers, patient_id):
        response = await client.post(
            API, json=booking(patient_id, uuid4(), at(10)), headers=patient_headers
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Doctor not found"

    @pytest.mark.asyncio
    async def test_unknown_patient(self, client, admin_headers, doctor_id):
        response = await client.post(
            API, json=booking(uuid4(), doctor_id, at(10)), headers=admin_headers
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Patient not found"

    @pytest.mark.asyncio
    async def test_unavailable_doctor(self, client, directory, patient_headers, patient_id):
        doctor_id = directory.add_doctor(available=False)

        response = await client.post(
            API, json=booking(patient_id, doctor_id, at(10)), headers=patient_headers
        )

        assert response.status_code == 400
        assert response.json()["error"] == "UnavailableException"

    @pytest.mark.asyncio
    async def test_patient_cannot_book_for_someone_else(
        self, client, directory, patient_headers, doctor_id
    ):
        other_patient = directory.add_patient()

        response = await client.post(
            API, json=booking(other_patient, doctor_id, at(10)), headers=patient_headers
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_books_for_patient(self, client, admin_headers, patient_id, doctor_id):
        data = await book(client, admin_headers, patient_id, doctor_id, at(10))
        assert data["patientId"] == str(patient_id)

    @pytest.mark.asyncio
    async def test_doctor_cannot_book(self, client, doctor_headers, patient_id, doctor_id):
        response = await client.post(
            API, json=booking(patient_id, doctor_id, at(10)), headers=doctor_headers
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_token(self, client, patient_id, doctor_id):
        response = await client.post(API, json=booking(patient_id, doctor_id, at(10)))
        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_invalid_token(self, client, patient_id, doctor_id):
        response = await client.post(
            API,
            json=booking(patient_id, doctor_id, at(10)),
            headers={"Authorization": "Bearer not-a-token"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_malformed_body(self, client, patient_headers, patient_id):
        response = await client.post(
            API,
            json={"patientId": str(patient_id), "startTime": "tomorrow"},
            headers=patient_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"
        assert response.json()["details"]


class TestSlots:
    """Test GET /appointments/slots."""

    @pytest.mark.asyncio
    async def test_full_day(self, client, patient_headers, doctor_id):
        slots = await slot_map(client, patient_headers, doctor_id)

        assert len(slots) == 16
        assert list(slots)[0] == "09:00"
        assert list(slots)[-1] == "16:30"
        assert all(slots.values())

    @pytest.mark.asyncio
    async def test_booking_closes_slot(self, client, patient_headers, patient_id, doctor_id):
        await book(client, patient_headers, patient_id, doctor_id, at(11))

        slots = await slot_map(client, patient_headers, doctor_id)

        assert slots["11:00"] is False
        assert slots["10:30"] is True
        assert slots["11:30"] is True

    @pytest.mark.asyncio
    async def test_unknown_doctor(self, client, patient_headers):
        response = await client.get(
            f"{API}/slots",
            params={"doctorId": str(uuid4()), "date": DAY.isoformat()},
            headers=patient_headers,
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_bad_date(self, client, patient_headers, doctor_id):
        response = await client.get(
            f"{API}/slots",
            params={"doctorId": str(doctor_id), "date": "14/01/2030"},
            headers=patient_headers,
        )
        assert response.status_code == 400


class TestStatusChanges:
    """Test PUT /appointments/{id}/status."""

    @pytest.mark.asyncio
    async def test_complete_creates_record(
        self, client, store, patient_headers, doctor_headers, patient_id, doctor_id
    ):
        appointment = await book(client, patient_headers, patient_id, doctor_id, at(10))

        response = await client.put(
            f"{API}/{appointment['id']}/status",
            json={"status": "completed", "diagnosis": "flu", "prescription": "rest"},
            headers=doctor_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["clinicalRecord"]["diagnosis"] == "flu"
        assert data["clinicalRecord"]["prescription"] == "rest"
        assert data["clinicalRecord"]["appointmentId"] == appointment["id"]
        assert len(store.clinical_records) == 1

        slots = await slot_map(client, patient_headers, doctor_id)
        assert slots["10:00"] is True

    @pytest.mark.asyncio
    async def test_complete_without_diagnosis(
        self, client, store, patient_headers, doctor_headers, patient_id, doctor_id
    ):
        appointment = await book(client, patient_headers, patient_id, doctor_id, at(10))

        response = await client.put(
            f"{API}/{appointment['id']}/status",
            json={"status": "completed", "diagnosis": "   "},
            headers=doctor_headers,
        )

        assert response.status_code == 400
        fetched = await client.get(f"{API}/{appointment['id']}", headers=patient_headers)
        assert fetched.json()["status"] == "scheduled"
        assert fetched.json()["clinicalRecord"] is None
        assert store.clinical_records == {}

    @pytest.mark.asyncio
    async def test_cancel_then_illegal_transition(
        self, client, admin_headers, patient_headers, patient_id, doctor_id
    ):
        appointment = await book(client, patient_headers, patient_id, doctor_id, at(10))
        url = f"{API}/{appointment['id']}/status"

        cancelled = await client.put(url, json={"status": "cancelled"}, headers=admin_headers)
        assert cancelled.status_code == 200
        assert cancelled.json()["clinicalRecord"] is None

        response = await client.put(url, json={"status": "scheduled"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "IllegalTransitionException"

    @pytest.mark.asyncio
    async def test_unknown_appointment(self, client, admin_headers):
        response = await client.put(
            f"{API}/{uuid4()}/status", json={"status": "cancelled"}, headers=admin_headers
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_status_value(
        self, client, admin_headers, patient_headers, patient_id, doctor_id
    ):
        appointment = await book(client, patient_headers, patient_id, doctor_id, at(10))

        response = await client.put(
            f"{API}/{appointment['id']}/status",
            json={"status": "confirmed"},
            headers=admin_headers,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_other_doctor_is_forbidden(
        self, client, directory, patient_headers, patient_id, doctor_id
    ):
        appointment = await book(client, patient_headers, patient_id, doctor_id, at(10))
        other_doctor = directory.add_doctor()
        headers = {"Authorization": f"Bearer {make_token(other_doctor, 'doctor')}"}

        response = await client.put(
            f"{API}/{appointment['id']}/status", json={"status": "no_show"}, headers=headers
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_patient_cannot_change_status(
        self, client, patient_headers, patient_id, doctor_id
    ):
        appointment = await book(client, patient_headers, patient_id, doctor_id, at(10))

        response = await client.put(
            f"{API}/{appointment['id']}/status",
            json={"status": "cancelled"},
            headers=patient_headers,
        )

        assert response.status_code == 403


class TestListings:
    """Test appointment read endpoints."""

    @pytest.mark.asyncio
    async def test_get_appointment_as_other_patient(
        self, client, directory, patient_headers, patient_id, doctor_id
    ):
        appointment = await book(client, patient_headers, patient_id, doctor_id, at(10))
        stranger = directory.add_patient()
        headers = {"Authorization": f"Bearer {make_token(stranger, 'patient')}"}

        response = await client.get(f"{API}/{appointment['id']}", headers=headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_schedule(self, client, admin_headers, patient_headers, patient_id, doctor_id):
        later = await book(client, patient_headers, patient_id, doctor_id, at(15))
        earlier = await book(client, patient_headers, patient_id, doctor_id, at(9, 30))

        response = await client.get(
            f"{API}/schedule",
            params={"doctorId": str(doctor_id), "date": DAY.isoformat()},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert [a["id"] for a in response.json()] == [earlier["id"], later["id"]]

    @pytest.mark.asyncio
    async def test_schedule_requires_admin(self, client, doctor_headers, doctor_id):
        response = await client.get(
            f"{API}/schedule",
            params={"doctorId": str(doctor_id), "date": DAY.isoformat()},
            headers=doctor_headers,
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_patient_and_doctor_lists(
        self, client, patient_headers, doctor_headers, patient_id, doctor_id
    ):
        await book(client, patient_headers, patient_id, doctor_id, at(10))
        await book(client, patient_headers, patient_id, doctor_id, at(11))

        mine = await client.get(f"{API}/patient", headers=patient_headers)
        assert mine.status_code == 200
        assert mine.json()["total"] == 2
        assert mine.json()["pageSize"] == 20

        theirs = await client.get(
            f"{API}/doctor", params={"status": "scheduled"}, headers=doctor_headers
        )
        assert theirs.json()["total"] == 2
        assert theirs.json()["items"][0]["startTime"] == "2030-01-14T11:00:00"

    @pytest.mark.asyncio
    async def test_admin_list_filters_by_status(
        self, client, admin_headers, patient_headers, patient_id, doctor_id
    ):
        first = await book(client, patient_headers, patient_id, doctor_id, at(10))
        await book(client, patient_headers, patient_id, doctor_id, at(11))
        await client.put(
            f"{API}/{first['id']}/status", json={"status": "cancelled"}, headers=admin_headers
        )

        response = await client.get(API, params={"status": "cancelled"}, headers=admin_headers)

        assert response.json()["total"] == 1
        assert response.json()["items"][0]["id"] == first["id"]


class TestHealth:
    """Test health endpoints."""

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Request-ID" in response.headers
        assert "X-Process-Time" in response.headers

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client):
        response = await client.get("/api/v1/ping", headers={"X-Request-ID": "abc-123"})

        assert response.json() == {"message": "pong"}
        assert response.headers["X-Request-ID"] == "abc-123"

    @pytest.mark.asyncio
    async def test_detailed_health_degraded_without_redis(self, client, monkeypatch):
        async def up():
            return True

        async def down():
            return False

        monkeypatch.setattr("app.api.v1.endpoints.health.check_database_connection", up)
        monkeypatch.setattr("app.api.v1.endpoints.health.check_redis_connection", down)

        response = await client.get("/api/v1/health/detailed")

        assert response.json()["status"] == "degraded"
        assert response.json()["database"] == "healthy"
