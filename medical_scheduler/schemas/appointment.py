from pydantic import BaseModel
from typing import List, Optional, Union
from datetime import datetime

from ..models.appointment import AppointmentStatus

# Ids and dates arrive loosely typed so the service can report
# MissingField / InvalidIdFormat / InvalidDateFormat itself.
IdInput = Optional[Union[int, str]]

class AppointmentCreate(BaseModel):
    patient_id: IdInput = None
    doctor_id: IdInput = None
    appointment_date: Optional[str] = None

class AppointmentStatusUpdate(BaseModel):
    status: Optional[str] = None
    reason: Optional[str] = None

class AppointmentDateUpdate(BaseModel):
    appointment_date: Optional[str] = None

class BulkCancelRequest(BaseModel):
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    reason: Optional[str] = None

class PatientSummary(BaseModel):
    id: int
    first_name: str
    last_name: str
    personal_id: Optional[str] = None

    class Config:
        from_attributes = True

class DoctorSummary(BaseModel):
    id: int
    first_name: str
    last_name: str
    specialization: str
    license_number: str

    class Config:
        from_attributes = True

class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    appointment_date: datetime
    status: AppointmentStatus
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    patient: Optional[PatientSummary] = None
    doctor: Optional[DoctorSummary] = None

    class Config:
        from_attributes = True

class AppointmentPage(BaseModel):
    items: List[AppointmentResponse]
    total: int
    skip: int
    limit: int

class AvailableSlot(BaseModel):
    time: datetime
    formatted: str

class BulkCancelResponse(BaseModel):
    modified_count: int
    message: str
