"""Doctor schedule repository: recurring weekly availability windows.

Window listings for slot search are served from an in-process cache that
every schedule write (and doctor delete) invalidates. Booking reads windows
on its own locked connection and never consults the cache.
"""

import logging
import sqlite3
import threading
import uuid
from dataclasses import asdict, dataclass
from datetime import date, datetime, time

from clinic_booking import config, time_slots

from . import connection
from .connection import get_connection, row_exists, transaction
from .converters import insert_row, parse_time, update_row
from .enums import DayOfWeek
from .errors import ReferentialConflictError, ValidationError, translate_integrity_error
from .validation import ScheduleInput, validate_input

logger = logging.getLogger(__name__)


@dataclass
class DoctorSchedule:
    id: str | None
    doctor_id: str
    day_of_week: DayOfWeek
    start_time: time
    end_time: time
    max_patients_per_hour: int = config.DEFAULT_MAX_PATIENTS_PER_HOUR
    is_available: bool = True
    created_at: str | None = None
    updated_at: str | None = None


_window_cache: dict[tuple, list[DoctorSchedule]] = {}
_cache_lock = threading.Lock()
# Bumped on every invalidation; a fill that straddles a bump is not stored.
_cache_generation = 0


def invalidate_windows(doctor_id: str | None = None) -> None:
    """Drop cached windows for one doctor, or for everyone."""
    global _cache_generation
    with _cache_lock:
        _cache_generation += 1
        if doctor_id is None:
            _window_cache.clear()
        else:
            for key in [k for k in _window_cache if k[1] == doctor_id]:
                del _window_cache[key]
    logger.debug("Invalidated window cache for %s", doctor_id or "all doctors")


class ScheduleRepository:
    """Repository for doctor schedules and the availability questions they answer."""

    SCHEDULE_FIELDS = [f for f in ScheduleInput.model_fields if f != "doctor_id"]

    def create(self, schedule: DoctorSchedule) -> DoctorSchedule:
        """Add a window. Rejected if it overlaps another window of the same doctor/day."""
        data = validate_input(ScheduleInput, "doctor_schedule", asdict(schedule))
        schedule_id = schedule.id or str(uuid.uuid4())
        now = datetime.now().isoformat()

        try:
            with transaction(immediate=True) as conn:
                if not row_exists(conn, "doctors", data.doctor_id):
                    raise ReferentialConflictError("doctor", data.doctor_id, "doctor does not exist")
                self._reject_overlap(conn, data)
                insert_row(conn.cursor(), "doctor_schedules", {
                    "id": schedule_id,
                    **data.model_dump(),
                    "created_at": now,
                    "updated_at": now,
                })
        except sqlite3.IntegrityError as exc:
            raise translate_integrity_error("doctor_schedule", exc) from exc
        finally:
            invalidate_windows(data.doctor_id)

        logger.info(
            "Doctor %s available %s %s-%s (max %d/hour)",
            data.doctor_id, data.day_of_week.value, data.start_time, data.end_time,
            data.max_patients_per_hour,
        )
        return self.get_by_id(schedule_id)

    def get_by_id(self, schedule_id: str) -> DoctorSchedule | None:
        conn = get_connection()
        row = conn.execute("SELECT * FROM doctor_schedules WHERE id = ?", (schedule_id,)).fetchone()
        conn.close()
        return self._row_to_schedule(row) if row else None

    def list_for_doctor(self, doctor_id: str) -> list[DoctorSchedule]:
        """All windows for a doctor, Monday first, then by start time."""
        conn = get_connection()
        rows = conn.execute(
            "SELECT * FROM doctor_schedules WHERE doctor_id = ? ORDER BY start_time",
            (doctor_id,),
        ).fetchall()
        conn.close()
        order = list(DayOfWeek)
        schedules = [self._row_to_schedule(row) for row in rows]
        return sorted(schedules, key=lambda s: order.index(s.day_of_week))

    def update(self, schedule_id: str, updates: dict) -> DoctorSchedule | None:
        current = self.get_by_id(schedule_id)
        if not current:
            return None

        merged = asdict(current)
        merged.update({k: v for k, v in updates.items() if k in self.SCHEDULE_FIELDS})
        data = validate_input(ScheduleInput, "doctor_schedule", merged)
        changes = {k: v for k, v in data.model_dump().items() if getattr(current, k) != v}
        if not changes:
            return current

        try:
            with transaction(immediate=True) as conn:
                self._reject_overlap(conn, data, exclude_id=schedule_id)
                update_row(conn.cursor(), "doctor_schedules", schedule_id,
                           {**changes, "updated_at": datetime.now().isoformat()})
        except sqlite3.IntegrityError as exc:
            raise translate_integrity_error("doctor_schedule", exc) from exc
        finally:
            invalidate_windows(current.doctor_id)

        logger.info("Updated schedule %s: %s", schedule_id, ", ".join(changes))
        return self.get_by_id(schedule_id)

    def delete(self, schedule_id: str) -> bool:
        current = self.get_by_id(schedule_id)
        if not current:
            return False
        with transaction() as conn:
            conn.execute("DELETE FROM doctor_schedules WHERE id = ?", (schedule_id,))
        invalidate_windows(current.doctor_id)
        logger.info("Deleted schedule %s", schedule_id)
        return True

    # Availability queries

    def windows_for(self, doctor_id: str, day_of_week: DayOfWeek) -> list[DoctorSchedule]:
        """Windows for a doctor on a weekday, ordered by start time."""
        key = (str(connection.DB_PATH), doctor_id, day_of_week)
        with _cache_lock:
            cached = _window_cache.get(key)
            generation = _cache_generation
        if cached is not None:
            return list(cached)

        conn = get_connection()
        windows = self._load_windows(conn, doctor_id, day_of_week)
        conn.close()

        with _cache_lock:
            if generation != _cache_generation:
                logger.debug("Windows for %s changed while loading; not caching", doctor_id)
                return list(windows)
            _window_cache[key] = windows
        logger.debug("Cached %d window(s) for %s on %s", len(windows), doctor_id, day_of_week.value)
        return list(windows)

    def load_windows(self, conn, doctor_id: str, day_of_week: DayOfWeek) -> list[DoctorSchedule]:
        """Windows read straight from ``conn``, bypassing the cache.

        The booking engine calls this on its locked connection so the window
        check sees the same snapshot as the capacity and overlap checks.
        """
        return self._load_windows(conn, doctor_id, day_of_week)

    def find_window(
        self, doctor_id: str, on_date: date, start: time, duration_minutes: int, conn=None
    ) -> DoctorSchedule | None:
        """The available window that fully contains the appointment, if any.

        With ``conn`` the windows are read on that connection instead of the cache.
        """
        day_of_week = DayOfWeek.from_date(on_date)
        if conn is None:
            windows = self.windows_for(doctor_id, day_of_week)
        else:
            windows = self.load_windows(conn, doctor_id, day_of_week)
        return time_slots.find_window(windows, start, duration_minutes)

    def is_within_window(
        self, doctor_id: str, on_date: date, start: time, duration_minutes: int
    ) -> bool:
        return self.find_window(doctor_id, on_date, start, duration_minutes) is not None

    # Private helpers

    def _load_windows(self, conn, doctor_id: str, day_of_week: DayOfWeek) -> list[DoctorSchedule]:
        rows = conn.execute(
            """SELECT * FROM doctor_schedules
               WHERE doctor_id = ? AND day_of_week = ?
               ORDER BY start_time""",
            (doctor_id, day_of_week.value),
        ).fetchall()
        return [self._row_to_schedule(row) for row in rows]

    def _reject_overlap(self, conn, data: ScheduleInput, exclude_id: str | None = None) -> None:
        existing = self._load_windows(conn, data.doctor_id, data.day_of_week)
        clash = time_slots.find_overlapping_window(
            existing, data.start_time, data.end_time, exclude_id=exclude_id
        )
        if clash:
            raise ValidationError(
                "doctor_schedule", "start_time",
                f"overlaps existing window {clash.start_time:%H:%M}-{clash.end_time:%H:%M} "
                f"on {clash.day_of_week.value} ({clash.id})",
            )

    def _row_to_schedule(self, row) -> DoctorSchedule:
        return DoctorSchedule(
            id=row["id"],
            doctor_id=row["doctor_id"],
            day_of_week=DayOfWeek(row["day_of_week"]),
            start_time=parse_time(row["start_time"]),
            end_time=parse_time(row["end_time"]),
            max_patients_per_hour=row["max_patients_per_hour"],
            is_available=bool(row["is_available"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
