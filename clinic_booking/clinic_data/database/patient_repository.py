"""Patient repository with CRUD operations and audit logging."""

import logging
import sqlite3
import uuid
from dataclasses import asdict, dataclass
from datetime import date, datetime

from .audit import get_change_history, log_change, log_creation
from .connection import count_references, get_connection, transaction
from .converters import insert_row, parse_date, to_db, update_row
from .enums import BloodType, Gender, PartyStatus
from .errors import ReferentialConflictError, translate_integrity_error
from .validation import PatientInput, validate_input

logger = logging.getLogger(__name__)


@dataclass
class Patient:
    id: str | None
    patient_number: str
    first_name: str
    last_name: str
    date_of_birth: date
    gender: Gender
    phone: str
    address: str
    email: str | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    blood_type: BloodType | None = None
    allergies: str | None = None
    medical_history: str | None = None
    insurance_provider: str | None = None
    insurance_policy_number: str | None = None
    registration_date: date | None = None
    status: PartyStatus = PartyStatus.ACTIVE
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == PartyStatus.ACTIVE

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class PatientRepository:
    """Repository for patient CRUD operations with audit logging."""

    # Fields that can be updated
    PATIENT_FIELDS = [field for field in PatientInput.model_fields if field != "registration_date"]

    # Tables whose rows block a hard delete
    DEPENDENTS = {"appointments": "patient_id", "medical_records": "patient_id"}

    def find_existing_patient(
        self,
        phone: str | None = None,
        email: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
        date_of_birth: date | str | None = None,
    ) -> Patient | None:
        """Find existing patient by phone, email, or name+DOB."""
        conn = get_connection()
        cursor = conn.cursor()

        # Try phone first
        if phone:
            cursor.execute("SELECT * FROM patients WHERE phone = ?", (phone,))
            row = cursor.fetchone()
            if row:
                conn.close()
                return self._row_to_patient(row)

        # Try email
        if email:
            cursor.execute("SELECT * FROM patients WHERE email = ?", (email.strip().lower(),))
            row = cursor.fetchone()
            if row:
                conn.close()
                return self._row_to_patient(row)

        # Try name + DOB
        if first_name and last_name and date_of_birth:
            cursor.execute(
                """SELECT * FROM patients
                   WHERE LOWER(first_name) = LOWER(?) AND LOWER(last_name) = LOWER(?)
                     AND date_of_birth = ?""",
                (first_name, last_name, to_db(date_of_birth)),
            )
            row = cursor.fetchone()
            if row:
                conn.close()
                return self._row_to_patient(row)

        conn.close()
        return None

    def find_patients_by_name(self, first_name: str, last_name: str) -> list[Patient]:
        """Find patients matching first and last name (for DOB verification)."""
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute(
            "SELECT * FROM patients WHERE LOWER(first_name) = LOWER(?) AND LOWER(last_name) = LOWER(?)",
            (first_name, last_name)
        )
        rows = cursor.fetchall()
        conn.close()
        return [self._row_to_patient(row) for row in rows]

    def create(self, patient: Patient, changed_by: str = "system") -> Patient:
        """Register a new patient with audit logging."""
        data = validate_input(PatientInput, "patient", asdict(patient)).model_dump()
        patient_id = patient.id or str(uuid.uuid4())
        now = datetime.now().isoformat()

        try:
            with transaction() as conn:
                cursor = conn.cursor()
                insert_row(cursor, "patients", {
                    "id": patient_id,
                    **data,
                    "status": PartyStatus.ACTIVE,
                    "created_at": now,
                    "updated_at": now,
                })
                log_creation(cursor, "patient", patient_id, data, changed_by)
        except sqlite3.IntegrityError as exc:
            raise translate_integrity_error("patient", exc) from exc

        logger.info("Registered patient %s (%s)", data["patient_number"], patient_id)
        return self.get_by_id(patient_id)

    def get_by_id(self, patient_id: str) -> Patient | None:
        """Get a patient by ID."""
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM patients WHERE id = ?", (patient_id,))
        row = cursor.fetchone()
        conn.close()
        return self._row_to_patient(row) if row else None

    def get_by_number(self, patient_number: str) -> Patient | None:
        """Get a patient by external patient number."""
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM patients WHERE patient_number = ?", (patient_number,))
        row = cursor.fetchone()
        conn.close()
        return self._row_to_patient(row) if row else None

    def list_patients(self, active_only: bool = True) -> list[Patient]:
        conn = get_connection()
        query = "SELECT * FROM patients"
        if active_only:
            query += " WHERE status = 'Active'"
        rows = conn.execute(query + " ORDER BY last_name, first_name").fetchall()
        conn.close()
        return [self._row_to_patient(row) for row in rows]

    def update(self, patient_id: str, updates: dict, changed_by: str = "system") -> Patient | None:
        """Update patient fields with audit logging."""
        current = self.get_by_id(patient_id)
        if not current:
            return None

        merged = asdict(current)
        merged.update({k: v for k, v in updates.items() if k in self.PATIENT_FIELDS})
        data = validate_input(PatientInput, "patient", merged).model_dump()

        # Filter valid fields and detect changes
        changes = self.check_what_changed(current, data)
        if changes:
            try:
                with transaction() as conn:
                    cursor = conn.cursor()
                    for field, change in changes.items():
                        log_change(cursor, "patient", patient_id, field,
                                   change["old"], change["new"], "UPDATE", changed_by)
                    values = {field: change["new"] for field, change in changes.items()}
                    values["updated_at"] = datetime.now().isoformat()
                    update_row(cursor, "patients", patient_id, values)
            except sqlite3.IntegrityError as exc:
                raise translate_integrity_error("patient", exc) from exc
            logger.info("Updated patient %s: %s", patient_id, ", ".join(changes))

        return self.get_by_id(patient_id)

    def check_what_changed(self, patient: Patient, new_data: dict) -> dict:
        """Compare current patient data with new data, return differences."""
        changes = {}
        for field, new_value in new_data.items():
            if field in self.PATIENT_FIELDS:
                current_value = getattr(patient, field, None)
                if current_value != new_value:
                    changes[field] = {"old": current_value, "new": new_value}
        return changes

    def deactivate(self, patient_id: str, changed_by: str = "system") -> Patient | None:
        """Mark a patient inactive; the record and its history are kept."""
        return self._set_status(patient_id, PartyStatus.INACTIVE, changed_by)

    def reactivate(self, patient_id: str, changed_by: str = "system") -> Patient | None:
        return self._set_status(patient_id, PartyStatus.ACTIVE, changed_by)

    def delete(self, patient_id: str) -> bool:
        """Hard-delete a patient. Restricted while appointments or records reference them."""
        try:
            with transaction() as conn:
                dependents = count_references(conn, self.DEPENDENTS, patient_id)
                if dependents:
                    raise ReferentialConflictError(
                        "patient", patient_id,
                        "patient has appointments or medical records; deactivate instead",
                        dependents,
                    )
                deleted = conn.execute("DELETE FROM patients WHERE id = ?", (patient_id,)).rowcount
        except sqlite3.IntegrityError as exc:
            raise translate_integrity_error("patient", exc) from exc
        if deleted:
            logger.info("Deleted patient %s", patient_id)
        return bool(deleted)

    def get_patient_summary(self, patient_id: str) -> dict | None:
        """Get a quick summary of a patient for the front desk."""
        patient = self.get_by_id(patient_id)
        if not patient:
            return None

        conn = get_connection()
        upcoming = conn.execute(
            """SELECT COUNT(*) FROM appointments
               WHERE patient_id = ? AND appointment_date >= ?
                 AND status IN ('Scheduled', 'Confirmed')""",
            (patient_id, date.today().isoformat()),
        ).fetchone()[0]
        diagnoses = conn.execute(
            """SELECT diagnosis FROM medical_records
               WHERE patient_id = ? AND diagnosis IS NOT NULL
               ORDER BY record_date DESC LIMIT 3""",
            (patient_id,),
        ).fetchall()
        conn.close()

        return {
            "id": patient.id,
            "patient_number": patient.patient_number,
            "name": patient.full_name,
            "first_name": patient.first_name,
            "phone": patient.phone,
            "is_active": patient.is_active,
            "has_insurance": bool(patient.insurance_provider),
            "insurance_provider": patient.insurance_provider,
            "upcoming_appointments": upcoming,
            "recent_diagnoses": [row["diagnosis"] for row in diagnoses],
        }

    def get_change_history(self, patient_id: str, limit: int = 50) -> list[dict]:
        """Get audit trail for a patient."""
        return get_change_history("patient", patient_id, limit)

    # Private helpers

    def _set_status(self, patient_id: str, status: PartyStatus, changed_by: str) -> Patient | None:
        current = self.get_by_id(patient_id)
        if not current or current.status == status:
            return current
        with transaction() as conn:
            cursor = conn.cursor()
            update_row(cursor, "patients", patient_id, {
                "status": status,
                "updated_at": datetime.now().isoformat(),
            })
            log_change(cursor, "patient", patient_id, "status",
                       current.status, status, "STATUS", changed_by)
        logger.info("Patient %s is now %s", patient_id, status.value)
        return self.get_by_id(patient_id)

    def _row_to_patient(self, row) -> Patient:
        """Convert a database row to a Patient object."""
        return Patient(
            id=row["id"],
            patient_number=row["patient_number"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            date_of_birth=parse_date(row["date_of_birth"]),
            gender=Gender(row["gender"]),
            phone=row["phone"],
            address=row["address"],
            email=row["email"],
            emergency_contact_name=row["emergency_contact_name"],
            emergency_contact_phone=row["emergency_contact_phone"],
            blood_type=BloodType(row["blood_type"]) if row["blood_type"] else None,
            allergies=row["allergies"],
            medical_history=row["medical_history"],
            insurance_provider=row["insurance_provider"],
            insurance_policy_number=row["insurance_policy_number"],
            registration_date=parse_date(row["registration_date"]),
            status=PartyStatus(row["status"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
