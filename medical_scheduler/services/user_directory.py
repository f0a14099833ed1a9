from sqlalchemy.orm import Session
from typing import Dict, Optional, Type, Union

from ..models.doctor import Doctor
from ..models.patient import Patient
from ..models.user import UserRole

# Profile model that represents each bookable role
ROLE_MODELS: Dict[UserRole, Type[Union[Patient, Doctor]]] = {
    UserRole.PATIENT: Patient,
    UserRole.DOCTOR: Doctor,
}

class UserDirectory:
    """Read-only view of the user-management records the scheduler needs."""

    def __init__(self, db: Session):
        self.db = db

    def find_user_by_id_and_role(
        self, user_id: int, role: UserRole
    ) -> Optional[Union[Patient, Doctor]]:
        """Return the patient or doctor profile with ``user_id``, or None."""
        try:
            model = ROLE_MODELS[UserRole(role)]
        except (KeyError, ValueError):
            raise ValueError(f"No profile lookup registered for role {role!r}")

        return self.db.query(model).filter(model.id == user_id).first()

    def find_patient(self, patient_id: int) -> Optional[Patient]:
        return self.find_user_by_id_and_role(patient_id, UserRole.PATIENT)

    def find_doctor(self, doctor_id: int) -> Optional[Doctor]:
        return self.find_user_by_id_and_role(doctor_id, UserRole.DOCTOR)
