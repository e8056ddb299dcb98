"""Doctor repository with CRUD operations and audit logging."""

import logging
import sqlite3
import uuid
from dataclasses import asdict, dataclass
from datetime import date, datetime

from .audit import get_change_history, log_change, log_creation
from .connection import count_references, get_connection, row_exists, transaction
from .converters import insert_row, parse_date, update_row
from .enums import PartyStatus
from .errors import ReferentialConflictError, translate_integrity_error
from .schedule_repository import invalidate_windows
from .validation import DoctorInput, validate_input

logger = logging.getLogger(__name__)


@dataclass
class Doctor:
    id: str | None
    doctor_number: str
    first_name: str
    last_name: str
    specialization: str
    department_id: str
    phone: str
    email: str
    license_number: str
    consultation_fee: float
    hire_date: date
    qualification: str | None = None
    experience_years: int | None = None
    address: str | None = None
    status: PartyStatus = PartyStatus.ACTIVE
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == PartyStatus.ACTIVE

    @property
    def full_name(self) -> str:
        return f"Dr. {self.first_name} {self.last_name}"


class DoctorRepository:
    """Repository for doctors.

    Deleting a doctor removes their schedules but is refused while appointments
    or medical records reference them; doctors who leave are deactivated.
    """

    DOCTOR_FIELDS = list(DoctorInput.model_fields)

    DEPENDENTS = {"appointments": "doctor_id", "medical_records": "doctor_id"}

    def create(self, doctor: Doctor, changed_by: str = "system") -> Doctor:
        data = validate_input(DoctorInput, "doctor", asdict(doctor)).model_dump()
        doctor_id = doctor.id or str(uuid.uuid4())
        now = datetime.now().isoformat()

        try:
            with transaction() as conn:
                self._require_department(conn, data["department_id"])
                cursor = conn.cursor()
                insert_row(cursor, "doctors", {
                    "id": doctor_id,
                    **data,
                    "status": PartyStatus.ACTIVE,
                    "created_at": now,
                    "updated_at": now,
                })
                log_creation(cursor, "doctor", doctor_id, data, changed_by)
        except sqlite3.IntegrityError as exc:
            raise translate_integrity_error("doctor", exc) from exc

        logger.info("Hired doctor %s (%s)", data["doctor_number"], doctor_id)
        return self.get_by_id(doctor_id)

    def get_by_id(self, doctor_id: str) -> Doctor | None:
        conn = get_connection()
        row = conn.execute("SELECT * FROM doctors WHERE id = ?", (doctor_id,)).fetchone()
        conn.close()
        return self._row_to_doctor(row) if row else None

    def get_by_number(self, doctor_number: str) -> Doctor | None:
        conn = get_connection()
        row = conn.execute("SELECT * FROM doctors WHERE doctor_number = ?", (doctor_number,)).fetchone()
        conn.close()
        return self._row_to_doctor(row) if row else None

    def find_doctors(
        self,
        specialization: str | None = None,
        department_id: str | None = None,
        active_only: bool = True,
        limit: int = 20,
    ) -> list[Doctor]:
        """Find doctors matching criteria."""
        query = "SELECT * FROM doctors WHERE 1 = 1"
        params = []

        if active_only:
            query += " AND status = 'Active'"

        if specialization:
            query += " AND specialization LIKE ?"
            params.append(f"%{specialization}%")

        if department_id:
            query += " AND department_id = ?"
            params.append(department_id)

        query += " ORDER BY last_name, first_name LIMIT ?"
        params.append(limit)

        conn = get_connection()
        rows = conn.execute(query, params).fetchall()
        conn.close()
        return [self._row_to_doctor(row) for row in rows]

    def update(self, doctor_id: str, updates: dict, changed_by: str = "system") -> Doctor | None:
        """Update doctor fields with audit logging."""
        current = self.get_by_id(doctor_id)
        if not current:
            return None

        merged = asdict(current)
        merged.update({k: v for k, v in updates.items() if k in self.DOCTOR_FIELDS})
        data = validate_input(DoctorInput, "doctor", merged).model_dump()
        changes = {k: v for k, v in data.items() if getattr(current, k) != v}

        if changes:
            try:
                with transaction() as conn:
                    if "department_id" in changes:
                        self._require_department(conn, changes["department_id"])
                    cursor = conn.cursor()
                    for field, value in changes.items():
                        log_change(cursor, "doctor", doctor_id, field,
                                   getattr(current, field), value, "UPDATE", changed_by)
                    update_row(cursor, "doctors", doctor_id,
                               {**changes, "updated_at": datetime.now().isoformat()})
            except sqlite3.IntegrityError as exc:
                raise translate_integrity_error("doctor", exc) from exc
            logger.info("Updated doctor %s: %s", doctor_id, ", ".join(changes))

        return self.get_by_id(doctor_id)

    def deactivate(self, doctor_id: str, changed_by: str = "system") -> Doctor | None:
        """Mark a doctor inactive; they can no longer take bookings."""
        return self._set_status(doctor_id, PartyStatus.INACTIVE, changed_by)

    def reactivate(self, doctor_id: str, changed_by: str = "system") -> Doctor | None:
        return self._set_status(doctor_id, PartyStatus.ACTIVE, changed_by)

    def delete(self, doctor_id: str) -> bool:
        """Hard-delete a doctor and their schedules."""
        try:
            with transaction() as conn:
                dependents = count_references(conn, self.DEPENDENTS, doctor_id)
                if dependents:
                    raise ReferentialConflictError(
                        "doctor", doctor_id,
                        "doctor has appointments or medical records; deactivate instead",
                        dependents,
                    )
                deleted = conn.execute("DELETE FROM doctors WHERE id = ?", (doctor_id,)).rowcount
        except sqlite3.IntegrityError as exc:
            raise translate_integrity_error("doctor", exc) from exc
        invalidate_windows(doctor_id)
        if deleted:
            logger.info("Deleted doctor %s and their schedules", doctor_id)
        return bool(deleted)

    def get_change_history(self, doctor_id: str, limit: int = 50) -> list[dict]:
        return get_change_history("doctor", doctor_id, limit)

    # Private helpers

    def _require_department(self, conn, department_id: str) -> None:
        if not row_exists(conn, "departments", department_id):
            raise ReferentialConflictError("department", department_id, "department does not exist")

    def _set_status(self, doctor_id: str, status: PartyStatus, changed_by: str) -> Doctor | None:
        current = self.get_by_id(doctor_id)
        if not current or current.status == status:
            return current
        with transaction() as conn:
            cursor = conn.cursor()
            update_row(cursor, "doctors", doctor_id, {
                "status": status,
                "updated_at": datetime.now().isoformat(),
            })
            log_change(cursor, "doctor", doctor_id, "status",
                       current.status, status, "STATUS", changed_by)
        logger.info("Doctor %s is now %s", doctor_id, status.value)
        return self.get_by_id(doctor_id)

    def _row_to_doctor(self, row) -> Doctor:
        """Convert a database row to a Doctor object."""
        return Doctor(
            id=row["id"],
            doctor_number=row["doctor_number"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            specialization=row["specialization"],
            department_id=row["department_id"],
            phone=row["phone"],
            email=row["email"],
            license_number=row["license_number"],
            consultation_fee=row["consultation_fee"],
            hire_date=parse_date(row["hire_date"]),
            qualification=row["qualification"],
            experience_years=row["experience_years"],
            address=row["address"],
            status=PartyStatus(row["status"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
