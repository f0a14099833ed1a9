import os

# Set testing environment before the application is imported
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite://"

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from medical_scheduler.main import app
from medical_scheduler.core.database import Base, get_db
from medical_scheduler.models.appointment import Appointment, AppointmentStatus
from medical_scheduler.models.doctor import Doctor
from medical_scheduler.models.patient import Patient
from medical_scheduler.models.user import User, UserRole
from medical_scheduler.services.appointment_service import AppointmentService

# Service tests run against a fixed clock so past/future checks are stable
FIXED_NOW = datetime(2025, 3, 1, 8, 0, 0)


@pytest.fixture(scope="function")
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def service(db):
    return AppointmentService(db, clock=lambda: FIXED_NOW)


@pytest.fixture
def make_doctor(db):
    counter = {"n": 0}

    def _make_doctor(active=True, first_name="Gregory", last_name="House"):
        counter["n"] += 1
        n = counter["n"]
        user = User(email=f"doctor{n}@example.com", role=UserRole.DOCTOR, is_active=active)
        doctor = Doctor(
            user=user,
            first_name=first_name,
            last_name=last_name,
            specialization="Diagnostics",
            license_number=f"LIC-{n:04d}",
        )
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
        return doctor

    return _make_doctor


@pytest.fixture
def make_patient(db):
    counter = {"n": 0}

    def _make_patient(first_name="Ana", last_name="Perez"):
        counter["n"] += 1
        n = counter["n"]
        user = User(email=f"patient{n}@example.com", role=UserRole.PATIENT)
        patient = Patient(
            user=user,
            first_name=first_name,
            last_name=last_name,
            personal_id=f"{30000000 + n}",
        )
        db.add(patient)
        db.commit()
        db.refresh(patient)
        return patient

    return _make_patient


@pytest.fixture
def make_appointment(db):
    """Insert an appointment directly, bypassing booking rules."""
    def _make_appointment(patient, doctor, when, status=AppointmentStatus.PENDING):
        appointment = Appointment(
            patient_id=patient.id,
            doctor_id=doctor.id,
            appointment_date=when,
            status=status,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make_appointment


@pytest.fixture
def doctor(make_doctor):
    return make_doctor()


@pytest.fixture
def patient(make_patient):
    return make_patient()
