"""Booking engine: validates appointment requests against doctor availability
and existing bookings, then commits them.

Each request runs inside one ``BEGIN IMMEDIATE`` transaction, so the capacity
and overlap checks and the insert see no interleaved writer. Rejections that
are normal outcomes of booking (no window, full hour, clash) come back as a
``BookingResult``; malformed input and missing rows raise ``ClinicError``s.
"""

import logging
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum

from clinic_booking import config, time_slots
from clinic_booking.state_machine import INITIAL_STATUS, StatusEvent, get_next_status
from clinic_booking.clinic_data.database.appointment_repository import (
    Appointment,
    AppointmentRepository,
)
from clinic_booking.clinic_data.database.audit import log_change
from clinic_booking.clinic_data.database.connection import get_connection, transaction
from clinic_booking.clinic_data.database.converters import insert_row
from clinic_booking.clinic_data.database.enums import (
    AppointmentStatus,
    AppointmentType,
    DayOfWeek,
    PartyStatus,
)
from clinic_booking.clinic_data.database.errors import (
    ConcurrentModificationError,
    InvalidTransitionError,
    ReferentialConflictError,
    ValidationError,
    translate_integrity_error,
)
from clinic_booking.clinic_data.database.schedule_repository import ScheduleRepository
from clinic_booking.clinic_data.database.validation import BookingInput, validate_input

logger = logging.getLogger(__name__)


class BookingRejection(Enum):
    """Why a booking request was turned down."""
    DATE_IN_PAST = "DATE_IN_PAST"
    INACTIVE_PATIENT = "INACTIVE_PATIENT"
    INACTIVE_DOCTOR = "INACTIVE_DOCTOR"
    OUTSIDE_AVAILABILITY = "OUTSIDE_AVAILABILITY"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    SLOT_CONFLICT = "SLOT_CONFLICT"
    PATIENT_DOUBLE_BOOKED = "PATIENT_DOUBLE_BOOKED"


@dataclass
class BookingResult:
    appointment: Appointment | None = None
    rejection: BookingRejection | None = None
    detail: str | None = None
    conflicting_appointment_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.appointment is not None

    @classmethod
    def rejected(
        cls, rejection: BookingRejection, detail: str, conflicting_appointment_id: str | None = None
    ) -> "BookingResult":
        return cls(rejection=rejection, detail=detail,
                   conflicting_appointment_id=conflicting_appointment_id)


class BookingEngine:
    """Sole writer of new appointments and of appointment status changes."""

    def __init__(
        self,
        clock=datetime.now,
        schedules: ScheduleRepository | None = None,
        appointments: AppointmentRepository | None = None,
    ):
        self.clock = clock
        self.schedules = schedules or ScheduleRepository()
        self.appointments = appointments or AppointmentRepository()

    def request_booking(
        self,
        patient_id: str,
        doctor_id: str,
        appointment_date: date,
        appointment_time: time,
        duration_minutes: int = config.DEFAULT_DURATION_MINUTES,
        appointment_type: AppointmentType = AppointmentType.CONSULTATION,
        reason_for_visit: str | None = None,
        consultation_fee: float | None = None,
        notes: str | None = None,
        booked_by: str = "system",
    ) -> BookingResult:
        """Validate a booking request and commit it, or say why not."""
        request = validate_input(BookingInput, "appointment", {
            "patient_id": patient_id,
            "doctor_id": doctor_id,
            "appointment_date": appointment_date,
            "appointment_time": appointment_time,
            "duration_minutes": duration_minutes,
            "appointment_type": appointment_type,
            "reason_for_visit": reason_for_visit,
            "notes": notes,
            "consultation_fee": consultation_fee,
        })
        booked_at = self.clock().replace(microsecond=0)

        if request.appointment_date < booked_at.date():
            return self._reject(
                request, BookingRejection.DATE_IN_PAST,
                f"{request.appointment_date} is before today ({booked_at.date()})",
            )

        try:
            with transaction(immediate=True) as conn:
                return self._check_and_commit(conn, request, booked_at, booked_by)
        except sqlite3.OperationalError as exc:
            if "locked" not in str(exc) and "busy" not in str(exc):
                raise
            logger.warning("Booking lock timed out for doctor %s on %s",
                           request.doctor_id, request.appointment_date)
            raise ConcurrentModificationError(
                f"Schedule for doctor {request.doctor_id} on {request.appointment_date} "
                "is being modified; retry the request"
            ) from exc
        except sqlite3.IntegrityError as exc:
            raise translate_integrity_error("appointment", exc) from exc

    def get_available_slots(
        self, doctor_id: str, on_date: date, duration_minutes: int = config.DEFAULT_DURATION_MINUTES
    ) -> list[time]:
        """Start times that would currently pass the window, capacity and overlap checks."""
        if duration_minutes <= 0:
            raise ValidationError("appointment", "duration_minutes", "must be greater than 0")
        now = self.clock()
        if on_date < now.date():
            return []

        conn = get_connection()
        held = self.appointments.held_for_doctor(conn, doctor_id, on_date)
        conn.close()

        windows = self.schedules.windows_for(doctor_id, DayOfWeek.from_date(on_date))

        slots = []
        for window in windows:
            if not window.is_available:
                continue
            for start in time_slots.candidate_starts(window, duration_minutes):
                if on_date == now.date() and start <= now.time():
                    continue
                if self._capacity_conflict(held, window, start) is not None:
                    continue
                if self._overlapping(held, start, duration_minutes) is not None:
                    continue
                slots.append(start)
        return slots

    # Status transitions

    def confirm(self, appointment_id: str, changed_by: str = "system") -> Appointment | None:
        return self.transition(appointment_id, StatusEvent.CONFIRM, changed_by)

    def check_in(self, appointment_id: str, changed_by: str = "system") -> Appointment | None:
        return self.transition(appointment_id, StatusEvent.CHECK_IN, changed_by)

    def complete(self, appointment_id: str, changed_by: str = "system") -> Appointment | None:
        return self.transition(appointment_id, StatusEvent.COMPLETE, changed_by)

    def cancel(
        self, appointment_id: str, reason: str | None = None, changed_by: str = "system"
    ) -> Appointment | None:
        """Cancel before check-in; the slot becomes bookable again."""
        return self.transition(appointment_id, StatusEvent.CANCEL, changed_by, reason)

    def mark_no_show(self, appointment_id: str, changed_by: str = "system") -> Appointment | None:
        return self.transition(appointment_id, StatusEvent.MARK_NO_SHOW, changed_by)

    def transition(
        self,
        appointment_id: str,
        event: StatusEvent,
        changed_by: str = "system",
        reason: str | None = None,
    ) -> Appointment | None:
        """Apply a status event. Returns None for an unknown appointment."""
        now = self.clock().replace(microsecond=0)

        with transaction(immediate=True) as conn:
            row = conn.execute(
                "SELECT status, appointment_date, appointment_time, notes FROM appointments WHERE id = ?",
                (appointment_id,),
            ).fetchone()
            if not row:
                return None

            current = AppointmentStatus(row["status"])
            target = get_next_status(current, event)

            if event == StatusEvent.MARK_NO_SHOW:
                starts_at = datetime.fromisoformat(f"{row['appointment_date']}T{row['appointment_time']}")
                if now < starts_at:
                    raise InvalidTransitionError(current, target, "appointment has not started yet")

            notes = row["notes"]
            if reason:
                line = f"{target.value}: {reason.strip()}"
                notes = f"{notes}\n{line}" if notes else line

            conn.execute(
                "UPDATE appointments SET status = ?, notes = ?, updated_at = ? WHERE id = ?",
                (target.value, notes, now.isoformat(), appointment_id),
            )
            log_change(conn.cursor(), "appointment", appointment_id, "status",
                       current, target, "STATUS", changed_by)

        logger.info("Appointment %s: %s -> %s", appointment_id, current.value, target.value)
        return self.appointments.get_by_id(appointment_id)

    # Private helpers

    def _check_and_commit(self, conn, request: BookingInput, booked_at: datetime, booked_by: str) -> BookingResult:
        patient = conn.execute(
            "SELECT status FROM patients WHERE id = ?", (request.patient_id,)
        ).fetchone()
        if not patient:
            raise ReferentialConflictError("patient", request.patient_id, "patient does not exist")
        doctor = conn.execute(
            "SELECT status, consultation_fee FROM doctors WHERE id = ?", (request.doctor_id,)
        ).fetchone()
        if not doctor:
            raise ReferentialConflictError("doctor", request.doctor_id, "doctor does not exist")

        if PartyStatus(patient["status"]) != PartyStatus.ACTIVE:
            return self._reject(request, BookingRejection.INACTIVE_PATIENT,
                                f"patient {request.patient_id} is inactive")
        if PartyStatus(doctor["status"]) != PartyStatus.ACTIVE:
            return self._reject(request, BookingRejection.INACTIVE_DOCTOR,
                                f"doctor {request.doctor_id} is inactive")

        window = self.schedules.find_window(
            request.doctor_id, request.appointment_date,
            request.appointment_time, request.duration_minutes, conn=conn,
        )
        if window is None:
            return self._reject(
                request, BookingRejection.OUTSIDE_AVAILABILITY,
                f"no available window contains {request.appointment_time:%H:%M} "
                f"+{request.duration_minutes}min on {request.appointment_date:%A}",
            )

        held = self.appointments.held_for_doctor(conn, request.doctor_id, request.appointment_date)

        booked_in_hour = self._capacity_conflict(held, window, request.appointment_time)
        if booked_in_hour is not None:
            return self._reject(
                request, BookingRejection.CAPACITY_EXCEEDED,
                f"{booked_in_hour} of {window.max_patients_per_hour} slots already booked "
                f"in the {request.appointment_time:%H}:00 hour",
            )

        clash = self._overlapping(held, request.appointment_time, request.duration_minutes)
        if clash is not None:
            return self._reject(
                request, BookingRejection.SLOT_CONFLICT,
                f"overlaps {clash.appointment_number} at {clash.appointment_time:%H:%M}",
                clash.id,
            )

        patient_held = self.appointments.held_for_patient(conn, request.patient_id, request.appointment_date)
        clash = self._overlapping(patient_held, request.appointment_time, request.duration_minutes)
        if clash is not None:
            return self._reject(
                request, BookingRejection.PATIENT_DOUBLE_BOOKED,
                f"patient already booked for {clash.appointment_number} at {clash.appointment_time:%H:%M}",
                clash.id,
            )

        appointment_id = str(uuid.uuid4())
        appointment_number = f"APT-{booked_at:%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"
        fee = request.consultation_fee if request.consultation_fee is not None else doctor["consultation_fee"]
        now = booked_at.isoformat()

        cursor = conn.cursor()
        insert_row(cursor, "appointments", {
            "id": appointment_id,
            "appointment_number": appointment_number,
            "patient_id": request.patient_id,
            "doctor_id": request.doctor_id,
            "appointment_date": request.appointment_date,
            "appointment_time": request.appointment_time,
            "duration_minutes": request.duration_minutes,
            "appointment_type": request.appointment_type,
            "status": INITIAL_STATUS,
            "reason_for_visit": request.reason_for_visit,
            "notes": request.notes,
            "consultation_fee": fee,
            "booked_at": booked_at,
            "created_at": now,
            "updated_at": now,
        })
        log_change(cursor, "appointment", appointment_id, "status",
                   None, INITIAL_STATUS, "CREATE", booked_by)

        logger.info(
            "Booked %s: patient %s with doctor %s on %s at %s (%d min)",
            appointment_number, request.patient_id, request.doctor_id,
            request.appointment_date, request.appointment_time, request.duration_minutes,
        )
        return BookingResult(appointment=self.appointments.fetch(conn, appointment_id))

    def _capacity_conflict(self, held: list[Appointment], window, start: time) -> int | None:
        """Number of bookings in ``start``'s clock hour if the hour is full, else None."""
        in_hour = sum(1 for a in held if time_slots.same_clock_hour(a.appointment_time, start))
        return in_hour if in_hour >= window.max_patients_per_hour else None

    def _overlapping(self, held: list[Appointment], start: time, duration_minutes: int) -> Appointment | None:
        requested = time_slots.span(start, duration_minutes)
        for appointment in held:
            if time_slots.overlaps(requested, time_slots.span(appointment.appointment_time,
                                                               appointment.duration_minutes)):
                return appointment
        return None

    def _reject(self, request: BookingInput, rejection: BookingRejection, detail: str,
                conflicting_appointment_id: str | None = None) -> BookingResult:
        logger.warning(
            "Rejected booking for patient %s with doctor %s on %s at %s: %s (%s)",
            request.patient_id, request.doctor_id, request.appointment_date,
            request.appointment_time, rejection.value, detail,
        )
        return BookingResult.rejected(rejection, detail, conflicting_appointment_id)
