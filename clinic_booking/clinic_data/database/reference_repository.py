"""Department and medication reference data."""

import logging
import sqlite3
import uuid
from dataclasses import asdict, dataclass

from .connection import count_references, get_connection, transaction
from .converters import insert_row, update_row
from .enums import DosageForm
from .errors import ReferentialConflictError, translate_integrity_error
from .validation import DepartmentInput, MedicationInput, validate_input

logger = logging.getLogger(__name__)


@dataclass
class Department:
    id: str | None
    department_name: str
    department_head: str | None = None
    location: str | None = None
    phone: str | None = None
    description: str | None = None
    created_at: str | None = None


@dataclass
class Medication:
    id: str | None
    medication_name: str
    dosage_form: DosageForm
    generic_name: str | None = None
    manufacturer: str | None = None
    strength: str | None = None
    unit_price: float | None = None
    description: str | None = None
    created_at: str | None = None


class DepartmentRepository:
    """Repository for departments; a department cannot be deleted while it has doctors."""

    FIELDS = list(DepartmentInput.model_fields)

    def create(self, department: Department) -> Department:
        data = validate_input(DepartmentInput, "department", asdict(department))
        department_id = department.id or str(uuid.uuid4())
        try:
            with transaction() as conn:
                insert_row(conn.cursor(), "departments", {"id": department_id, **data.model_dump()})
        except sqlite3.IntegrityError as exc:
            raise translate_integrity_error("department", exc) from exc
        logger.info("Created department %s (%s)", data.department_name, department_id)
        return self.get_by_id(department_id)

    def get_by_id(self, department_id: str) -> Department | None:
        conn = get_connection()
        row = conn.execute("SELECT * FROM departments WHERE id = ?", (department_id,)).fetchone()
        conn.close()
        return self._row_to_department(row) if row else None

    def get_by_name(self, name: str) -> Department | None:
        conn = get_connection()
        row = conn.execute(
            "SELECT * FROM departments WHERE LOWER(department_name) = LOWER(?)", (name.strip(),)
        ).fetchone()
        conn.close()
        return self._row_to_department(row) if row else None

    def list_all(self) -> list[Department]:
        conn = get_connection()
        rows = conn.execute("SELECT * FROM departments ORDER BY department_name").fetchall()
        conn.close()
        return [self._row_to_department(row) for row in rows]

    def update(self, department_id: str, updates: dict) -> Department | None:
        current = self.get_by_id(department_id)
        if not current:
            return None
        merged = asdict(current)
        merged.update({k: v for k, v in updates.items() if k in self.FIELDS})
        data = validate_input(DepartmentInput, "department", merged).model_dump()
        changes = {k: v for k, v in data.items() if getattr(current, k) != v}
        if changes:
            try:
                with transaction() as conn:
                    update_row(conn.cursor(), "departments", department_id, changes)
            except sqlite3.IntegrityError as exc:
                raise translate_integrity_error("department", exc) from exc
        return self.get_by_id(department_id)

    def delete(self, department_id: str) -> bool:
        """Delete a department. Restricted while doctors reference it."""
        try:
            with transaction() as conn:
                dependents = count_references(conn, {"doctors": "department_id"}, department_id)
                if dependents:
                    raise ReferentialConflictError(
                        "department", department_id, "doctors still belong to this department", dependents
                    )
                deleted = conn.execute("DELETE FROM departments WHERE id = ?", (department_id,)).rowcount
        except sqlite3.IntegrityError as exc:
            raise translate_integrity_error("department", exc) from exc
        if deleted:
            logger.info("Deleted department %s", department_id)
        return bool(deleted)

    def _row_to_department(self, row) -> Department:
        return Department(
            id=row["id"],
            department_name=row["department_name"],
            department_head=row["department_head"],
            location=row["location"],
            phone=row["phone"],
            description=row["description"],
            created_at=row["created_at"],
        )


class MedicationRepository:
    """Repository for medications; a medication cannot be deleted while prescribed."""

    FIELDS = list(MedicationInput.model_fields)

    def create(self, medication: Medication) -> Medication:
        data = validate_input(MedicationInput, "medication", asdict(medication))
        medication_id = medication.id or str(uuid.uuid4())
        try:
            with transaction() as conn:
                insert_row(conn.cursor(), "medications", {"id": medication_id, **data.model_dump()})
        except sqlite3.IntegrityError as exc:
            raise translate_integrity_error("medication", exc) from exc
        logger.info("Created medication %s (%s)", data.medication_name, medication_id)
        return self.get_by_id(medication_id)

    def get_by_id(self, medication_id: str) -> Medication | None:
        conn = get_connection()
        row = conn.execute("SELECT * FROM medications WHERE id = ?", (medication_id,)).fetchone()
        conn.close()
        return self._row_to_medication(row) if row else None

    def get_by_name(self, name: str) -> Medication | None:
        conn = get_connection()
        row = conn.execute(
            "SELECT * FROM medications WHERE LOWER(medication_name) = LOWER(?)", (name.strip(),)
        ).fetchone()
        conn.close()
        return self._row_to_medication(row) if row else None

    def search(self, term: str, limit: int = 20) -> list[Medication]:
        """Find medications whose brand or generic name contains ``term``."""
        conn = get_connection()
        pattern = f"%{term.strip()}%"
        rows = conn.execute(
            """SELECT * FROM medications
               WHERE medication_name LIKE ? OR generic_name LIKE ?
               ORDER BY medication_name
               LIMIT ?""",
            (pattern, pattern, limit),
        ).fetchall()
        conn.close()
        return [self._row_to_medication(row) for row in rows]

    def list_all(self) -> list[Medication]:
        conn = get_connection()
        rows = conn.execute("SELECT * FROM medications ORDER BY medication_name").fetchall()
        conn.close()
        return [self._row_to_medication(row) for row in rows]

    def update(self, medication_id: str, updates: dict) -> Medication | None:
        current = self.get_by_id(medication_id)
        if not current:
            return None
        merged = asdict(current)
        merged.update({k: v for k, v in updates.items() if k in self.FIELDS})
        data = validate_input(MedicationInput, "medication", merged).model_dump()
        changes = {k: v for k, v in data.items() if getattr(current, k) != v}
        if changes:
            try:
                with transaction() as conn:
                    update_row(conn.cursor(), "medications", medication_id, changes)
            except sqlite3.IntegrityError as exc:
                raise translate_integrity_error("medication", exc) from exc
        return self.get_by_id(medication_id)

    def delete(self, medication_id: str) -> bool:
        """Delete a medication. Restricted while prescriptions reference it."""
        try:
            with transaction() as conn:
                dependents = count_references(conn, {"prescriptions": "medication_id"}, medication_id)
                if dependents:
                    raise ReferentialConflictError(
                        "medication", medication_id, "medication is still prescribed", dependents
                    )
                deleted = conn.execute("DELETE FROM medications WHERE id = ?", (medication_id,)).rowcount
        except sqlite3.IntegrityError as exc:
            raise translate_integrity_error("medication", exc) from exc
        if deleted:
            logger.info("Deleted medication %s", medication_id)
        return bool(deleted)

    def _row_to_medication(self, row) -> Medication:
        return Medication(
            id=row["id"],
            medication_name=row["medication_name"],
            dosage_form=DosageForm(row["dosage_form"]),
            generic_name=row["generic_name"],
            manufacturer=row["manufacturer"],
            strength=row["strength"],
            unit_price=row["unit_price"],
            description=row["description"],
            created_at=row["created_at"],
        )
