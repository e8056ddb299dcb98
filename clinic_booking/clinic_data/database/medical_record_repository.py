"""Medical records and the prescriptions written on them.

Records are append-only: there is no update, a correction is a new record.
Deleting a record deletes its prescriptions.
"""

import json
import logging
import sqlite3
import uuid
from dataclasses import asdict, dataclass, field
from datetime import date, datetime

from .connection import get_connection, row_exists, transaction
from .converters import insert_row, parse_date, parse_datetime, to_db
from .enums import AppointmentStatus
from .errors import ReferentialConflictError, ValidationError, translate_integrity_error
from .validation import MedicalRecordInput, PrescriptionInput, validate_input

logger = logging.getLogger(__name__)

# Appointment statuses a record may be attached to
RECORDABLE_STATUSES = (AppointmentStatus.IN_PROGRESS, AppointmentStatus.COMPLETED)


@dataclass
class MedicalRecord:
    id: str | None
    patient_id: str
    doctor_id: str
    appointment_id: str | None = None
    record_date: datetime | None = None
    chief_complaint: str | None = None
    diagnosis: str | None = None
    treatment_plan: str | None = None
    vital_signs: dict = field(default_factory=dict)
    symptoms: str | None = None
    examination_notes: str | None = None
    lab_results: str | None = None
    follow_up_instructions: str | None = None
    next_appointment_recommended: bool = False
    created_at: str | None = None


@dataclass
class Prescription:
    id: str | None
    record_id: str
    medication_id: str
    dosage: str
    frequency: str
    duration_days: int
    quantity: int
    instructions: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    is_active: bool = True
    created_at: str | None = None


class MedicalRecordRepository:
    """Repository for medical records."""

    def create(self, record: MedicalRecord) -> MedicalRecord:
        values = asdict(record)
        values["vital_signs"] = values["vital_signs"] or None
        data = validate_input(MedicalRecordInput, "medical_record", values)
        record_id = record.id or str(uuid.uuid4())

        try:
            with transaction() as conn:
                self._check_references(conn, data)
                row = data.model_dump(exclude={"vital_signs"})
                if data.vital_signs is not None:
                    row["vital_signs"] = data.vital_signs.model_dump(exclude_none=True)
                insert_row(conn.cursor(), "medical_records", {"id": record_id, **row})
        except sqlite3.IntegrityError as exc:
            raise translate_integrity_error("medical_record", exc) from exc

        logger.info("Recorded encounter %s for patient %s", record_id, data.patient_id)
        return self.get_by_id(record_id)

    def get_by_id(self, record_id: str) -> MedicalRecord | None:
        conn = get_connection()
        row = conn.execute("SELECT * FROM medical_records WHERE id = ?", (record_id,)).fetchone()
        conn.close()
        return self._row_to_record(row) if row else None

    def list_for_patient(self, patient_id: str, limit: int | None = None) -> list[MedicalRecord]:
        """A patient's records, newest first."""
        query = "SELECT * FROM medical_records WHERE patient_id = ? ORDER BY record_date DESC"
        params = [patient_id]
        if limit:
            query += " LIMIT ?"
            params.append(limit)
        conn = get_connection()
        rows = conn.execute(query, params).fetchall()
        conn.close()
        return [self._row_to_record(row) for row in rows]

    def list_for_appointment(self, appointment_id: str) -> list[MedicalRecord]:
        conn = get_connection()
        rows = conn.execute(
            "SELECT * FROM medical_records WHERE appointment_id = ? ORDER BY record_date",
            (appointment_id,),
        ).fetchall()
        conn.close()
        return [self._row_to_record(row) for row in rows]

    def delete(self, record_id: str) -> bool:
        """Delete a record together with its prescriptions."""
        with transaction() as conn:
            deleted = conn.execute("DELETE FROM medical_records WHERE id = ?", (record_id,)).rowcount
        if deleted:
            logger.info("Deleted medical record %s and its prescriptions", record_id)
        return bool(deleted)

    def _check_references(self, conn, data: MedicalRecordInput) -> None:
        if not row_exists(conn, "patients", data.patient_id):
            raise ReferentialConflictError("patient", data.patient_id, "patient does not exist")
        if not row_exists(conn, "doctors", data.doctor_id):
            raise ReferentialConflictError("doctor", data.doctor_id, "doctor does not exist")
        if data.appointment_id is None:
            return

        appointment = conn.execute(
            "SELECT patient_id, doctor_id, status FROM appointments WHERE id = ?",
            (data.appointment_id,),
        ).fetchone()
        if not appointment:
            raise ReferentialConflictError("appointment", data.appointment_id, "appointment does not exist")
        if appointment["patient_id"] != data.patient_id or appointment["doctor_id"] != data.doctor_id:
            raise ValidationError("medical_record", "appointment_id",
                                  "appointment belongs to a different patient or doctor")
        status = AppointmentStatus(appointment["status"])
        if status not in RECORDABLE_STATUSES:
            raise ValidationError("medical_record", "appointment_id",
                                  f"appointment is {status.value}; records need an ongoing or completed visit")

    def _row_to_record(self, row) -> MedicalRecord:
        return MedicalRecord(
            id=row["id"],
            patient_id=row["patient_id"],
            doctor_id=row["doctor_id"],
            appointment_id=row["appointment_id"],
            record_date=parse_datetime(row["record_date"]),
            chief_complaint=row["chief_complaint"],
            diagnosis=row["diagnosis"],
            treatment_plan=row["treatment_plan"],
            vital_signs=json.loads(row["vital_signs"]) if row["vital_signs"] else {},
            symptoms=row["symptoms"],
            examination_notes=row["examination_notes"],
            lab_results=row["lab_results"],
            follow_up_instructions=row["follow_up_instructions"],
            next_appointment_recommended=bool(row["next_appointment_recommended"]),
            created_at=row["created_at"],
        )


class PrescriptionRepository:
    """Repository for prescriptions."""

    def create(self, prescription: Prescription) -> Prescription:
        data = validate_input(PrescriptionInput, "prescription", asdict(prescription))
        prescription_id = prescription.id or str(uuid.uuid4())

        try:
            with transaction() as conn:
                if not row_exists(conn, "medical_records", data.record_id):
                    raise ReferentialConflictError("medical_record", data.record_id, "record does not exist")
                if not row_exists(conn, "medications", data.medication_id):
                    raise ReferentialConflictError("medication", data.medication_id, "medication does not exist")
                insert_row(conn.cursor(), "prescriptions", {"id": prescription_id, **data.model_dump()})
        except sqlite3.IntegrityError as exc:
            raise translate_integrity_error("prescription", exc) from exc

        logger.info("Prescribed %s on record %s", data.medication_id, data.record_id)
        return self.get_by_id(prescription_id)

    def get_by_id(self, prescription_id: str) -> Prescription | None:
        conn = get_connection()
        row = conn.execute("SELECT * FROM prescriptions WHERE id = ?", (prescription_id,)).fetchone()
        conn.close()
        return self._row_to_prescription(row) if row else None

    def list_for_record(self, record_id: str) -> list[Prescription]:
        conn = get_connection()
        rows = conn.execute(
            "SELECT * FROM prescriptions WHERE record_id = ? ORDER BY start_date, created_at",
            (record_id,),
        ).fetchall()
        conn.close()
        return [self._row_to_prescription(row) for row in rows]

    def list_active_for_patient(self, patient_id: str) -> list[Prescription]:
        """Active prescriptions across all of a patient's records."""
        conn = get_connection()
        rows = conn.execute(
            """SELECT p.* FROM prescriptions p
               JOIN medical_records r ON r.id = p.record_id
               WHERE r.patient_id = ? AND p.is_active = 1
               ORDER BY p.start_date DESC""",
            (patient_id,),
        ).fetchall()
        conn.close()
        return [self._row_to_prescription(row) for row in rows]

    def discontinue(self, prescription_id: str, end_date: date | None = None) -> Prescription | None:
        """Stop a prescription, closing its date range."""
        current = self.get_by_id(prescription_id)
        if not current:
            return None
        end = end_date or date.today()
        if end < current.start_date:
            raise ValidationError("prescription", "end_date", "must not be before start_date")
        with transaction() as conn:
            conn.execute(
                "UPDATE prescriptions SET is_active = 0, end_date = ? WHERE id = ?",
                (to_db(end), prescription_id),
            )
        logger.info("Discontinued prescription %s on %s", prescription_id, end)
        return self.get_by_id(prescription_id)

    def delete(self, prescription_id: str) -> bool:
        with transaction() as conn:
            deleted = conn.execute("DELETE FROM prescriptions WHERE id = ?", (prescription_id,)).rowcount
        return bool(deleted)

    def _row_to_prescription(self, row) -> Prescription:
        return Prescription(
            id=row["id"],
            record_id=row["record_id"],
            medication_id=row["medication_id"],
            dosage=row["dosage"],
            frequency=row["frequency"],
            duration_days=row["duration_days"],
            quantity=row["quantity"],
            instructions=row["instructions"],
            start_date=parse_date(row["start_date"]),
            end_date=parse_date(row["end_date"]),
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
        )
