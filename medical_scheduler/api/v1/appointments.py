from fastapi import APIRouter, Depends, status
from typing import List, Optional

from ...api.deps import get_appointment_service
from ...services.appointment_service import AppointmentService, page_limit
from ...schemas.appointment import (
    AppointmentCreate, AppointmentStatusUpdate, AppointmentDateUpdate,
    BulkCancelRequest, AppointmentResponse, AppointmentPage, AvailableSlot,
    BulkCancelResponse
)

router = APIRouter(prefix="/appointments", tags=["Appointments"])

def _page(result, skip: int, limit: Optional[int]) -> AppointmentPage:
    items, total = result
    return AppointmentPage(
        items=[AppointmentResponse.from_orm(item) for item in items],
        total=total,
        skip=max(skip, 0),
        limit=page_limit(limit)
    )

@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    appointment_data: AppointmentCreate,
    service: AppointmentService = Depends(get_appointment_service)
):
    """Book a new appointment."""
    appointment = service.create_appointment(
        appointment_data.patient_id,
        appointment_data.doctor_id,
        appointment_data.appointment_date
    )
    return AppointmentResponse.from_orm(appointment)

@router.get("", response_model=AppointmentPage)
async def list_appointments(
    status: Optional[str] = None,
    doctor_id: Optional[str] = None,
    patient_id: Optional[str] = None,
    skip: int = 0,
    limit: Optional[int] = None,
    service: AppointmentService = Depends(get_appointment_service)
):
    """List appointments with optional filters."""
    result = service.list_appointments(
        status=status, doctor_id=doctor_id, patient_id=patient_id,
        skip=skip, limit=limit
    )
    return _page(result, skip, limit)

@router.get("/date-range", response_model=AppointmentPage)
async def list_appointments_by_date_range(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    status: Optional[str] = None,
    doctor_id: Optional[str] = None,
    patient_id: Optional[str] = None,
    skip: int = 0,
    limit: Optional[int] = None,
    service: AppointmentService = Depends(get_appointment_service)
):
    """List appointments between two dates; the end date covers its whole day."""
    result = service.list_appointments_by_date_range(
        start_date, end_date, status=status, doctor_id=doctor_id,
        patient_id=patient_id, skip=skip, limit=limit
    )
    return _page(result, skip, limit)

@router.get("/status", response_model=AppointmentPage)
async def list_appointments_by_status(
    status: Optional[str] = None,
    doctor_id: Optional[str] = None,
    patient_id: Optional[str] = None,
    skip: int = 0,
    limit: Optional[int] = None,
    service: AppointmentService = Depends(get_appointment_service)
):
    """List appointments in a given status."""
    result = service.list_appointments_by_status(
        status, doctor_id=doctor_id, patient_id=patient_id,
        skip=skip, limit=limit
    )
    return _page(result, skip, limit)

@router.get("/available-slots/{doctor_id}", response_model=List[AvailableSlot])
async def get_available_slots(
    doctor_id: str,
    date: Optional[str] = None,
    service: AppointmentService = Depends(get_appointment_service)
):
    """Free 30-minute slots for a doctor on a calendar day."""
    return service.get_available_slots(doctor_id, date)

@router.get("/doctor/{doctor_id}", response_model=AppointmentPage)
async def list_doctor_appointments(
    doctor_id: str,
    status: Optional[str] = None,
    skip: int = 0,
    limit: Optional[int] = None,
    service: AppointmentService = Depends(get_appointment_service)
):
    result = service.list_appointments_by_doctor(
        doctor_id, status=status, skip=skip, limit=limit
    )
    return _page(result, skip, limit)

@router.post("/doctor/{doctor_id}/cancel-range", response_model=BulkCancelResponse)
async def cancel_doctor_range(
    doctor_id: str,
    cancel_data: BulkCancelRequest,
    service: AppointmentService = Depends(get_appointment_service)
):
    """Cancel every open appointment of a doctor within a date range."""
    result = service.cancel_range(
        doctor_id, cancel_data.start_date, cancel_data.end_date, cancel_data.reason
    )
    return BulkCancelResponse(
        modified_count=result["modified_count"],
        message=f"Successfully cancelled {result['modified_count']} appointments"
    )

@router.get("/patient/{patient_id}", response_model=AppointmentPage)
async def list_patient_appointments(
    patient_id: str,
    status: Optional[str] = None,
    skip: int = 0,
    limit: Optional[int] = None,
    service: AppointmentService = Depends(get_appointment_service)
):
    result = service.list_appointments_by_patient(
        patient_id, status=status, skip=skip, limit=limit
    )
    return _page(result, skip, limit)

@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: str,
    service: AppointmentService = Depends(get_appointment_service)
):
    return AppointmentResponse.from_orm(service.get_appointment(appointment_id))

@router.patch("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: str,
    status_data: AppointmentStatusUpdate,
    service: AppointmentService = Depends(get_appointment_service)
):
    """Move an appointment through pending, confirmed, completed or cancelled."""
    appointment = service.update_status(
        appointment_id, status_data.status, reason=status_data.reason
    )
    return AppointmentResponse.from_orm(appointment)

@router.patch("/{appointment_id}/date", response_model=AppointmentResponse)
async def update_appointment_date(
    appointment_id: str,
    date_data: AppointmentDateUpdate,
    service: AppointmentService = Depends(get_appointment_service)
):
    """Reschedule an appointment to a new future date."""
    appointment = service.update_date(appointment_id, date_data.appointment_date)
    return AppointmentResponse.from_orm(appointment)

@router.delete("/{appointment_id}", response_model=AppointmentResponse)
async def delete_appointment(
    appointment_id: str,
    reason: Optional[str] = None,
    service: AppointmentService = Depends(get_appointment_service)
):
    """Cancel an appointment. Appointments are never physically removed."""
    return AppointmentResponse.from_orm(service.delete_appointment(appointment_id, reason))
