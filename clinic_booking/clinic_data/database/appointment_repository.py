"""Appointment reads and persistence helpers.

New appointments and status changes go through ``BookingEngine``; this module
only reads them, appends notes, and purges rows at the persistence level.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time

from .audit import get_change_history
from .connection import get_connection, transaction
from .converters import parse_date, parse_datetime, parse_time, to_db
from .enums import RELEASED_STATUSES, AppointmentStatus, AppointmentType

logger = logging.getLogger(__name__)

_RELEASED = tuple(status.value for status in RELEASED_STATUSES)
_RELEASED_PLACEHOLDERS = ", ".join("?" for _ in _RELEASED)


@dataclass
class Appointment:
    id: str
    appointment_number: str
    patient_id: str
    doctor_id: str
    appointment_date: date
    appointment_time: time
    duration_minutes: int
    appointment_type: AppointmentType
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    reason_for_visit: str | None = None
    notes: str | None = None
    consultation_fee: float | None = None
    booked_at: datetime | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def holds_slot(self) -> bool:
        """Whether this appointment counts against capacity and overlap checks."""
        return self.status not in RELEASED_STATUSES

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.appointment_date, self.appointment_time)


class AppointmentRepository:
    """Repository for appointment queries."""

    def get_by_id(self, appointment_id: str) -> Appointment | None:
        conn = get_connection()
        row = conn.execute("SELECT * FROM appointments WHERE id = ?", (appointment_id,)).fetchone()
        conn.close()
        return self._row_to_appointment(row) if row else None

    def get_by_number(self, appointment_number: str) -> Appointment | None:
        conn = get_connection()
        row = conn.execute(
            "SELECT * FROM appointments WHERE appointment_number = ?", (appointment_number,)
        ).fetchone()
        conn.close()
        return self._row_to_appointment(row) if row else None

    def list_for_doctor(self, doctor_id: str, on_date: date, include_released: bool = True) -> list[Appointment]:
        """A doctor's appointments for one day, in time order."""
        conn = get_connection()
        rows = self._doctor_day_rows(conn, doctor_id, on_date, include_released)
        conn.close()
        return [self._row_to_appointment(row) for row in rows]

    def list_for_patient(
        self, patient_id: str, upcoming_only: bool = False, today: date | None = None
    ) -> list[Appointment]:
        """A patient's appointments, most recent first (soonest first when upcoming)."""
        query = "SELECT * FROM appointments WHERE patient_id = ?"
        params = [patient_id]
        if upcoming_only:
            query += " AND appointment_date >= ? AND status IN ('Scheduled', 'Confirmed')"
            params.append(to_db(today or date.today()))
            query += " ORDER BY appointment_date, appointment_time"
        else:
            query += " ORDER BY appointment_date DESC, appointment_time DESC"

        conn = get_connection()
        rows = conn.execute(query, params).fetchall()
        conn.close()
        return [self._row_to_appointment(row) for row in rows]

    def add_notes(self, appointment_id: str, notes: str) -> Appointment | None:
        """Append a line to the appointment notes."""
        current = self.get_by_id(appointment_id)
        if not current:
            return None
        combined = f"{current.notes}\n{notes.strip()}" if current.notes else notes.strip()
        with transaction() as conn:
            conn.execute(
                "UPDATE appointments SET notes = ?, updated_at = ? WHERE id = ?",
                (combined, datetime.now().isoformat(), appointment_id),
            )
        return self.get_by_id(appointment_id)

    def delete(self, appointment_id: str) -> bool:
        """Purge an appointment row; linked medical records keep existing with no appointment."""
        with transaction() as conn:
            deleted = conn.execute("DELETE FROM appointments WHERE id = ?", (appointment_id,)).rowcount
        if deleted:
            logger.info("Purged appointment %s", appointment_id)
        return bool(deleted)

    def get_status_history(self, appointment_id: str) -> list[dict]:
        return get_change_history("appointment", appointment_id)

    # Queries shared with the booking engine (run on the caller's connection)

    def fetch(self, conn, appointment_id: str) -> Appointment | None:
        row = conn.execute("SELECT * FROM appointments WHERE id = ?", (appointment_id,)).fetchone()
        return self._row_to_appointment(row) if row else None

    def held_for_doctor(self, conn, doctor_id: str, on_date: date) -> list[Appointment]:
        """Appointments still holding a slot for a doctor on a date."""
        rows = self._doctor_day_rows(conn, doctor_id, on_date, include_released=False)
        return [self._row_to_appointment(row) for row in rows]

    def held_for_patient(self, conn, patient_id: str, on_date: date) -> list[Appointment]:
        """Appointments still holding a slot for a patient on a date."""
        rows = conn.execute(
            f"""SELECT * FROM appointments
                WHERE patient_id = ? AND appointment_date = ?
                  AND status NOT IN ({_RELEASED_PLACEHOLDERS})
                ORDER BY appointment_time""",
            (patient_id, to_db(on_date), *_RELEASED),
        ).fetchall()
        return [self._row_to_appointment(row) for row in rows]

    def _doctor_day_rows(self, conn, doctor_id: str, on_date: date, include_released: bool):
        query = "SELECT * FROM appointments WHERE doctor_id = ? AND appointment_date = ?"
        params = [doctor_id, to_db(on_date)]
        if not include_released:
            query += f" AND status NOT IN ({_RELEASED_PLACEHOLDERS})"
            params.extend(_RELEASED)
        return conn.execute(query + " ORDER BY appointment_time", params).fetchall()

    def _row_to_appointment(self, row) -> Appointment:
        """Convert a database row to an Appointment object."""
        return Appointment(
            id=row["id"],
            appointment_number=row["appointment_number"],
            patient_id=row["patient_id"],
            doctor_id=row["doctor_id"],
            appointment_date=parse_date(row["appointment_date"]),
            appointment_time=parse_time(row["appointment_time"]),
            duration_minutes=row["duration_minutes"],
            appointment_type=AppointmentType(row["appointment_type"]),
            status=AppointmentStatus(row["status"]),
            reason_for_visit=row["reason_for_visit"],
            notes=row["notes"],
            consultation_fee=row["consultation_fee"],
            booked_at=parse_datetime(row["booked_at"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
