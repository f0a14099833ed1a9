from fastapi import Depends
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..services.appointment_service import AppointmentService
from ..services.user_directory import UserDirectory

def get_user_directory(db: Session = Depends(get_db)) -> UserDirectory:
    """Lookup of patients and doctors owned by user management."""
    return UserDirectory(db)

def get_appointment_service(
    db: Session = Depends(get_db),
    directory: UserDirectory = Depends(get_user_directory)
) -> AppointmentService:
    """Appointment service bound to the request's database session."""
    return AppointmentService(db, directory=directory)
