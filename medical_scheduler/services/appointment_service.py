from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, Query
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple
import logging

from ..core.config import settings
from ..core.exceptions import (
    MissingField, InvalidIdFormat, InvalidStatus, InvalidDateRange, PastDate,
    PatientNotFound, DoctorNotFound, AppointmentNotFound, DoctorInactive,
    CannotModifyCancelled, CannotModifyCompleted, SlotConflict
)
from ..core.timeutils import (
    DateInput, local_now, parse_datetime, parse_day, day_bounds, end_of_day
)
from ..models.appointment import Appointment, AppointmentStatus, TERMINAL_STATUSES
from ..models.doctor import Doctor
from ..models.patient import Patient
from .slots import generate_day_slots, filter_available_slots, format_slot
from .user_directory import UserDirectory

logger = logging.getLogger(__name__)

AppointmentPage = Tuple[List[Appointment], int]

# Primary keys are 32-bit INTEGER columns on PostgreSQL
MAX_ID = 2**31 - 1


def page_limit(limit: Optional[int] = None) -> int:
    """Effective page size: the default when unset, otherwise within [1, MAX_PAGE_SIZE]."""
    if limit is None:
        return settings.DEFAULT_PAGE_SIZE
    return max(1, min(limit, settings.MAX_PAGE_SIZE))


class AppointmentService:
    def __init__(
        self,
        db: Session,
        directory: Optional[UserDirectory] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.db = db
        self.directory = directory or UserDirectory(db)
        self.clock = clock or local_now

    # Booking

    def create_appointment(self, patient_id, doctor_id, appointment_date) -> Appointment:
        """Book a pending appointment for a patient with a doctor."""
        missing = [
            name for name, value in (
                ("patient_id", patient_id),
                ("doctor_id", doctor_id),
                ("appointment_date", appointment_date),
            )
            if value is None or value == ""
        ]
        if missing:
            raise MissingField(
                f"Patient, doctor and date are required (missing: {', '.join(missing)})"
            )

        patient_id = self._parse_id(patient_id, "patient")
        doctor_id = self._parse_id(doctor_id, "doctor")
        when = parse_datetime(appointment_date)

        self._get_patient(patient_id)
        doctor = self._get_doctor(doctor_id)
        if not doctor.is_active:
            raise DoctorInactive("Cannot create appointment with inactive doctor")

        self._ensure_future(when)
        self._ensure_slot_free(doctor_id, when)

        appointment = Appointment(
            patient_id=patient_id,
            doctor_id=doctor_id,
            appointment_date=when,
            status=AppointmentStatus.PENDING
        )
        self.db.add(appointment)
        self._commit_slot_write(doctor_id, when)
        self.db.refresh(appointment)

        logger.info(
            f"Booked appointment {appointment.id}: patient {patient_id} "
            f"with doctor {doctor_id} at {when.isoformat()}"
        )
        return appointment

    # Queries

    def get_appointment(self, appointment_id) -> Appointment:
        appointment_id = self._parse_id(appointment_id, "appointment")
        appointment = self.db.query(Appointment).filter(
            Appointment.id == appointment_id
        ).first()

        if not appointment:
            raise AppointmentNotFound()
        return appointment

    def list_appointments(
        self,
        status: Optional[str] = None,
        doctor_id=None,
        patient_id=None,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> AppointmentPage:
        """All appointments matching the optional filters, oldest first."""
        query = self._filtered(
            self.db.query(Appointment),
            status=status, doctor_id=doctor_id, patient_id=patient_id
        )
        return self._paginate(query, skip, limit)

    def list_appointments_by_doctor(self, doctor_id, **filters) -> AppointmentPage:
        doctor = self._get_doctor(self._parse_id(doctor_id, "doctor"))
        filters["doctor_id"] = doctor.id
        return self.list_appointments(**filters)

    def list_appointments_by_patient(self, patient_id, **filters) -> AppointmentPage:
        patient = self._get_patient(self._parse_id(patient_id, "patient"))
        filters["patient_id"] = patient.id
        return self.list_appointments(**filters)

    def list_appointments_by_date_range(
        self,
        start_date: DateInput,
        end_date: DateInput,
        status: Optional[str] = None,
        doctor_id=None,
        patient_id=None,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> AppointmentPage:
        """Appointments from ``start_date`` through the whole day of ``end_date``."""
        if not start_date or not end_date:
            raise MissingField("Start date and end date are required")

        start = parse_datetime(start_date, "start date")
        end = end_of_day(parse_datetime(end_date, "end date"))
        if start > end:
            raise InvalidDateRange()

        query = self.db.query(Appointment).filter(
            Appointment.appointment_date >= start,
            Appointment.appointment_date <= end
        )
        query = self._filtered(
            query, status=status, doctor_id=doctor_id, patient_id=patient_id
        )
        return self._paginate(query, skip, limit)

    def list_appointments_by_status(self, status: Optional[str], **filters) -> AppointmentPage:
        filters["status"] = self._parse_status(status).value
        return self.list_appointments(**filters)

    def get_available_slots(self, doctor_id, day: DateInput) -> List[Dict[str, object]]:
        """
        Free slots on the doctor's working day.

        A slot is taken when any non-cancelled appointment of the doctor that
        day starts less than SLOT_CONFLICT_WINDOW_MINUTES away from it.
        """
        doctor_id = self._parse_id(doctor_id, "doctor")
        if day is None or day == "":
            raise MissingField("Date is required")
        day = parse_day(day)
        self._get_doctor(doctor_id)

        start, end = day_bounds(day)
        rows = self.db.query(Appointment.appointment_date).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_date >= start,
            Appointment.appointment_date <= end,
            Appointment.status != AppointmentStatus.CANCELLED
        ).order_by(Appointment.appointment_date.asc()).all()
        booked = [row.appointment_date for row in rows]

        available = filter_available_slots(generate_day_slots(day), booked)
        return [format_slot(slot) for slot in available]

    # Status and date changes

    def update_status(self, appointment_id, new_status: Optional[str], reason: Optional[str] = None) -> Appointment:
        status = self._parse_status(new_status)
        appointment = self.get_appointment(appointment_id)
        self._ensure_modifiable(appointment)

        # Cancelling stays possible for a deactivated doctor
        if status != AppointmentStatus.CANCELLED and not appointment.doctor.is_active:
            raise DoctorInactive("Cannot modify appointment with inactive doctor")

        if status == AppointmentStatus.CANCELLED:
            self._mark_cancelled(appointment, reason)
        else:
            appointment.status = status

        self.db.commit()
        self.db.refresh(appointment)

        logger.info(f"Appointment {appointment.id} status set to {status.value}")
        return appointment

    def update_date(self, appointment_id, new_date: Optional[DateInput]) -> Appointment:
        appointment_id = self._parse_id(appointment_id, "appointment")
        if new_date is None or new_date == "":
            raise MissingField("Date is required")
        when = parse_datetime(new_date)
        self._ensure_future(when, "New appointment date must be in the future")

        appointment = self.get_appointment(appointment_id)
        self._ensure_modifiable(appointment)
        if not appointment.doctor.is_active:
            raise DoctorInactive("Cannot modify appointment with inactive doctor")

        self._ensure_slot_free(appointment.doctor_id, when, exclude_id=appointment.id)

        appointment.appointment_date = when
        self._commit_slot_write(appointment.doctor_id, when)
        self.db.refresh(appointment)

        logger.info(f"Appointment {appointment.id} moved to {when.isoformat()}")
        return appointment

    def delete_appointment(self, appointment_id, reason: Optional[str] = None) -> Appointment:
        """Soft delete: the appointment is cancelled, never removed."""
        appointment = self.get_appointment(appointment_id)
        if appointment.status == AppointmentStatus.CANCELLED:
            return appointment
        self._ensure_not_locked_completed(appointment)

        self._mark_cancelled(appointment, reason)
        self.db.commit()
        self.db.refresh(appointment)

        logger.info(f"Appointment {appointment.id} cancelled")
        return appointment

    def cancel_range(
        self,
        doctor_id,
        start_date: Optional[DateInput],
        end_date: Optional[DateInput],
        reason: Optional[str] = None
    ) -> Dict[str, int]:
        """
        Cancel every open appointment of a doctor between two instants.

        Both bounds are inclusive and used as given. Cancelled and completed
        appointments are left alone. Runs as a single UPDATE statement.
        """
        doctor_id = self._parse_id(doctor_id, "doctor")
        self._get_doctor(doctor_id)

        if not start_date or not end_date:
            raise MissingField("Start date and end date are required")
        start = parse_datetime(start_date, "start date")
        end = parse_datetime(end_date, "end date")
        if start > end:
            raise InvalidDateRange()

        modified = self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_date >= start,
            Appointment.appointment_date <= end,
            Appointment.status.notin_(TERMINAL_STATUSES)
        ).update(
            {
                Appointment.status: AppointmentStatus.CANCELLED,
                Appointment.cancellation_reason: reason or settings.DEFAULT_BULK_CANCEL_REASON,
                Appointment.cancelled_at: self.clock(),
            },
            synchronize_session=False
        )
        self.db.commit()

        logger.info(
            f"Bulk cancelled {modified} appointments for doctor {doctor_id} "
            f"between {start.isoformat()} and {end.isoformat()}"
        )
        return {"modified_count": modified}

    # Helpers

    def _parse_id(self, value, label: str) -> int:
        if value is None or value == "":
            raise MissingField(f"{label.capitalize()} ID is required")

        if isinstance(value, bool):
            raise InvalidIdFormat(f"Invalid {label} ID format")
        if isinstance(value, str):
            value = value.strip()
            if not value.isdecimal() or len(value) > len(str(MAX_ID)):
                raise InvalidIdFormat(f"Invalid {label} ID format")
            value = int(value)
        if not isinstance(value, int) or not 0 < value <= MAX_ID:
            raise InvalidIdFormat(f"Invalid {label} ID format")
        return value

    def _parse_status(self, value: Optional[str]) -> AppointmentStatus:
        if value is None or value == "":
            raise MissingField("Status is required")
        try:
            return AppointmentStatus(value)
        except ValueError:
            raise InvalidStatus()

    def _get_patient(self, patient_id: int) -> Patient:
        patient = self.directory.find_patient(patient_id)
        if not patient:
            raise PatientNotFound()
        return patient

    def _get_doctor(self, doctor_id: int) -> Doctor:
        doctor = self.directory.find_doctor(doctor_id)
        if not doctor:
            raise DoctorNotFound()
        return doctor

    def _ensure_future(self, when: datetime, message: Optional[str] = None):
        if when <= self.clock():
            raise PastDate(message)

    def _ensure_modifiable(self, appointment: Appointment):
        if appointment.status == AppointmentStatus.CANCELLED:
            raise CannotModifyCancelled()
        self._ensure_not_locked_completed(appointment)

    def _ensure_not_locked_completed(self, appointment: Appointment):
        if settings.COMPLETED_IS_TERMINAL and appointment.status == AppointmentStatus.COMPLETED:
            raise CannotModifyCompleted()

    def _ensure_slot_free(self, doctor_id: int, when: datetime, exclude_id: Optional[int] = None):
        """Early exact-timestamp check; the unique index has the final word."""
        query = self.db.query(Appointment.id).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_date == when,
            Appointment.status != AppointmentStatus.CANCELLED
        )
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)

        if query.first():
            logger.warning(f"Slot conflict for doctor {doctor_id} at {when.isoformat()}")
            raise SlotConflict()

    def _commit_slot_write(self, doctor_id: int, when: datetime):
        """Commit a write guarded by the doctor/date unique index."""
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning(
                f"Unique slot index rejected doctor {doctor_id} at {when.isoformat()}"
            )
            raise SlotConflict()

    def _mark_cancelled(self, appointment: Appointment, reason: Optional[str]):
        appointment.status = AppointmentStatus.CANCELLED
        appointment.cancelled_at = self.clock()
        if reason:
            appointment.cancellation_reason = reason

    def _filtered(
        self,
        query: Query,
        status: Optional[str] = None,
        doctor_id=None,
        patient_id=None
    ) -> Query:
        if status:
            query = query.filter(Appointment.status == self._parse_status(status))
        if doctor_id:
            query = query.filter(Appointment.doctor_id == self._parse_id(doctor_id, "doctor"))
        if patient_id:
            query = query.filter(Appointment.patient_id == self._parse_id(patient_id, "patient"))
        return query

    def _paginate(self, query: Query, skip: int = 0, limit: Optional[int] = None) -> AppointmentPage:
        skip = max(skip or 0, 0)
        limit = page_limit(limit)

        total = query.count()
        items = query.order_by(
            Appointment.appointment_date.asc(), Appointment.id.asc()
        ).offset(skip).limit(limit).all()
        return items, total
