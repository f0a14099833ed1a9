from fastapi import HTTPException, status


class SchedulingError(HTTPException):
    """Base class for user-presentable scheduling failures.

    Every subclass carries a stable ``code`` so clients can tell the
    failures apart without parsing the message.
    """

    code = "SchedulingError"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Scheduling request could not be processed"

    def __init__(self, detail: str = None):
        super().__init__(
            status_code=self.status_code,
            detail=detail or self.default_detail,
        )


# Validation errors
class MissingField(SchedulingError):
    code = "MissingField"
    default_detail = "Required field is missing"


class InvalidIdFormat(SchedulingError):
    code = "InvalidIdFormat"
    default_detail = "Invalid ID format"


class InvalidDateFormat(SchedulingError):
    code = "InvalidDateFormat"
    default_detail = "Invalid date format"


class PastDate(SchedulingError):
    code = "PastDate"
    default_detail = "Appointment date must be in the future"


class InvalidStatus(SchedulingError):
    code = "InvalidStatus"
    default_detail = "Invalid status. Allowed values: pending, confirmed, cancelled, completed"


class InvalidDateRange(SchedulingError):
    code = "InvalidDateRange"
    default_detail = "Start date must not be after end date"


# Lookup errors
class PatientNotFound(SchedulingError):
    code = "PatientNotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Patient not found"


class DoctorNotFound(SchedulingError):
    code = "DoctorNotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Doctor not found"


class AppointmentNotFound(SchedulingError):
    code = "AppointmentNotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Appointment not found"


# State errors
class DoctorInactive(SchedulingError):
    code = "DoctorInactive"
    default_detail = "Doctor account is inactive"


class CannotModifyCancelled(SchedulingError):
    code = "CannotModifyCancelled"
    default_detail = "Cannot modify cancelled appointment"


class CannotModifyCompleted(SchedulingError):
    code = "CannotModifyCompleted"
    default_detail = "Cannot modify completed appointment"


class SlotConflict(SchedulingError):
    code = "SlotConflict"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The doctor already has an appointment at this date and time"
