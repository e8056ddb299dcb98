from .connection import get_connection, init_database, transaction
from .doctor_repository import DoctorRepository
from .patient_repository import PatientRepository
from .schedule_repository import ScheduleRepository

__all__ = [
    "get_connection",
    "init_database",
    "transaction",
    "DoctorRepository",
    "PatientRepository",
    "ScheduleRepository",
]
