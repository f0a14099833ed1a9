from datetime import datetime

import pytest

from medical_scheduler.models.appointment import AppointmentStatus

# Far enough ahead that the real clock never catches up
FUTURE = "2099-03-10T10:00:00"


@pytest.fixture
def booking(client, patient, doctor):
    response = client.post("/api/v1/appointments", json={
        "patient_id": patient.id,
        "doctor_id": doctor.id,
        "appointment_date": FUTURE
    })
    assert response.status_code == 201
    return response.json()


class TestBookingEndpoints:

    def test_create_and_fetch(self, client, patient, doctor, booking):
        """Creating then fetching returns the same appointment, pending."""
        response = client.get(f"/api/v1/appointments/{booking['id']}")
        assert response.status_code == 200

        data = response.json()
        assert data["patient_id"] == patient.id
        assert data["doctor_id"] == doctor.id
        assert data["appointment_date"] == FUTURE
        assert data["status"] == "pending"
        assert data["doctor"]["last_name"] == doctor.last_name
        assert data["patient"]["first_name"] == patient.first_name

    def test_missing_fields(self, client, patient):
        response = client.post("/api/v1/appointments", json={"patient_id": patient.id})
        assert response.status_code == 400
        assert response.json()["error"] == "MissingField"

    def test_invalid_date_format(self, client, patient, doctor):
        response = client.post("/api/v1/appointments", json={
            "patient_id": patient.id,
            "doctor_id": doctor.id,
            "appointment_date": "tomorrow at ten"
        })
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidDateFormat"

    def test_past_date(self, client, patient, doctor):
        response = client.post("/api/v1/appointments", json={
            "patient_id": patient.id,
            "doctor_id": doctor.id,
            "appointment_date": "2020-01-01T10:00:00"
        })
        assert response.status_code == 400
        assert response.json()["error"] == "PastDate"

    def test_unknown_doctor(self, client, patient):
        response = client.post("/api/v1/appointments", json={
            "patient_id": patient.id,
            "doctor_id": 999,
            "appointment_date": FUTURE
        })
        assert response.status_code == 404
        assert response.json()["error"] == "DoctorNotFound"

    def test_slot_conflict(self, client, make_patient, doctor, booking):
        response = client.post("/api/v1/appointments", json={
            "patient_id": make_patient().id,
            "doctor_id": doctor.id,
            "appointment_date": FUTURE
        })
        assert response.status_code == 409
        assert response.json()["error"] == "SlotConflict"

    def test_unknown_appointment(self, client):
        response = client.get("/api/v1/appointments/4242")
        assert response.status_code == 404
        assert response.json() == {
            "error": "AppointmentNotFound",
            "message": "Appointment not found"
        }

    def test_invalid_appointment_id(self, client):
        response = client.get("/api/v1/appointments/not-an-id")
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidIdFormat"

    @pytest.mark.parametrize("bad_id", ["\u00b2", "99999999999999999999999"])
    def test_malformed_appointment_id(self, client, bad_id):
        response = client.get(f"/api/v1/appointments/{bad_id}")
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidIdFormat"


class TestSlotEndpoint:

    def test_booking_blocks_neighbouring_slots(self, client, patient, doctor, make_appointment):
        make_appointment(patient, doctor, datetime(2025, 3, 10, 10), AppointmentStatus.CONFIRMED)

        response = client.get(
            f"/api/v1/appointments/available-slots/{doctor.id}",
            params={"date": "2025-03-10"}
        )
        assert response.status_code == 200

        slots = response.json()
        formatted = [slot["formatted"] for slot in slots]
        assert len(slots) == 13
        assert slots[0] == {"time": "2025-03-10T09:00:00", "formatted": "09:00"}
        assert "11:00" in formatted
        for taken in ("09:30", "10:00", "10:30"):
            assert taken not in formatted

    def test_requires_date(self, client, doctor):
        response = client.get(f"/api/v1/appointments/available-slots/{doctor.id}")
        assert response.status_code == 400
        assert response.json()["error"] == "MissingField"

    def test_unknown_doctor(self, client):
        response = client.get("/api/v1/appointments/available-slots/77", params={"date": "2025-03-10"})
        assert response.status_code == 404
        assert response.json()["error"] == "DoctorNotFound"


class TestStatusEndpoints:

    def test_confirm_then_complete(self, client, booking):
        url = f"/api/v1/appointments/{booking['id']}/status"

        assert client.patch(url, json={"status": "confirmed"}).json()["status"] == "confirmed"
        assert client.patch(url, json={"status": "completed"}).json()["status"] == "completed"

    def test_invalid_status(self, client, booking):
        response = client.patch(
            f"/api/v1/appointments/{booking['id']}/status", json={"status": "done"}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidStatus"

    def test_cancelled_cannot_change(self, client, booking):
        url = f"/api/v1/appointments/{booking['id']}"
        cancelled = client.patch(f"{url}/status", json={"status": "cancelled", "reason": "Travel"})
        assert cancelled.json()["cancellation_reason"] == "Travel"
        assert cancelled.json()["cancelled_at"] is not None

        response = client.patch(f"{url}/status", json={"status": "confirmed"})
        assert response.status_code == 400
        assert response.json()["error"] == "CannotModifyCancelled"

        response = client.patch(f"{url}/date", json={"appointment_date": "2099-03-11T10:00:00"})
        assert response.status_code == 400
        assert response.json()["error"] == "CannotModifyCancelled"

    def test_reschedule(self, client, booking):
        response = client.patch(
            f"/api/v1/appointments/{booking['id']}/date",
            json={"appointment_date": "2099-03-11T14:30:00"}
        )
        assert response.status_code == 200
        assert response.json()["appointment_date"] == "2099-03-11T14:30:00"

    def test_reschedule_into_past(self, client, booking):
        response = client.patch(
            f"/api/v1/appointments/{booking['id']}/date",
            json={"appointment_date": "2001-01-01T10:00:00"}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "PastDate"

    def test_delete_is_soft(self, client, booking):
        response = client.delete(f"/api/v1/appointments/{booking['id']}")
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        fetched = client.get(f"/api/v1/appointments/{booking['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["status"] == "cancelled"


class TestBulkCancelEndpoint:

    def test_cancel_range(self, client, patient, doctor, make_appointment):
        make_appointment(patient, doctor, datetime(2099, 3, 10, 9))
        make_appointment(patient, doctor, datetime(2099, 3, 11, 9), AppointmentStatus.CONFIRMED)
        make_appointment(patient, doctor, datetime(2099, 3, 12, 9), AppointmentStatus.COMPLETED)

        response = client.post(
            f"/api/v1/appointments/doctor/{doctor.id}/cancel-range",
            json={
                "start_date": "2099-03-10T00:00:00",
                "end_date": "2099-03-16T23:59:59",
                "reason": "Medical leave"
            }
        )
        assert response.status_code == 200
        assert response.json() == {
            "modified_count": 2,
            "message": "Successfully cancelled 2 appointments"
        }

        cancelled = client.get(
            f"/api/v1/appointments/doctor/{doctor.id}", params={"status": "cancelled"}
        ).json()
        assert cancelled["total"] == 2
        assert {item["cancellation_reason"] for item in cancelled["items"]} == {"Medical leave"}

    def test_invalid_range(self, client, doctor):
        response = client.post(
            f"/api/v1/appointments/doctor/{doctor.id}/cancel-range",
            json={"start_date": "2099-03-16", "end_date": "2099-03-10"}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidDateRange"

    def test_unknown_doctor(self, client):
        response = client.post(
            "/api/v1/appointments/doctor/31337/cancel-range",
            json={"start_date": "2099-03-10", "end_date": "2099-03-16"}
        )
        assert response.status_code == 404
        assert response.json()["error"] == "DoctorNotFound"


class TestListingEndpoints:

    def test_list_with_filters(self, client, patient, doctor, make_doctor, make_appointment):
        make_appointment(patient, doctor, datetime(2099, 3, 10, 9))
        make_appointment(patient, doctor, datetime(2099, 3, 10, 11), AppointmentStatus.CONFIRMED)
        make_appointment(patient, make_doctor(), datetime(2099, 3, 10, 9))

        everything = client.get("/api/v1/appointments").json()
        assert everything["total"] == 3

        mine = client.get("/api/v1/appointments", params={"doctor_id": doctor.id}).json()
        assert mine["total"] == 2
        assert [item["appointment_date"] for item in mine["items"]] == [
            "2099-03-10T09:00:00", "2099-03-10T11:00:00"
        ]

        confirmed = client.get("/api/v1/appointments/status", params={"status": "confirmed"}).json()
        assert confirmed["total"] == 1

    def test_date_range(self, client, patient, doctor, make_appointment):
        make_appointment(patient, doctor, datetime(2099, 3, 10, 9))
        make_appointment(patient, doctor, datetime(2099, 3, 12, 16))

        response = client.get(
            "/api/v1/appointments/date-range",
            params={"start_date": "2099-03-10", "end_date": "2099-03-12"}
        )
        assert response.status_code == 200
        assert response.json()["total"] == 2

    def test_patient_listing(self, client, patient, booking):
        response = client.get(f"/api/v1/appointments/patient/{patient.id}")
        assert response.status_code == 200
        assert [item["id"] for item in response.json()["items"]] == [booking["id"]]

    def test_pagination_metadata(self, client, patient, doctor, make_appointment):
        for hour in (9, 10, 11):
            make_appointment(patient, doctor, datetime(2099, 3, 10, hour))

        page = client.get("/api/v1/appointments", params={"skip": 2, "limit": 2}).json()
        assert page["total"] == 3
        assert page["skip"] == 2
        assert page["limit"] == 2
        assert len(page["items"]) == 1

    def test_negative_limit_is_clamped(self, client, patient, doctor, make_appointment):
        for hour in (9, 10, 11):
            make_appointment(patient, doctor, datetime(2099, 3, 10, hour))

        page = client.get("/api/v1/appointments", params={"limit": -1}).json()
        assert page["total"] == 3
        assert page["limit"] == 1
        assert len(page["items"]) == 1


class TestServiceEndpoints:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_unknown_route(self, client):
        response = client.get("/api/v1/nowhere")
        assert response.status_code == 404
        assert response.json()["error"] == "Not Found"
