"""Tests for doctor schedule windows and the availability cache."""

from datetime import date, time, timezone

import pytest

from clinic_booking.clinic_data.database import connection
from clinic_booking.clinic_data.database.doctor_repository import DoctorRepository
from clinic_booking.clinic_data.database.enums import DayOfWeek
from clinic_booking.clinic_data.database.errors import ReferentialConflictError, ValidationError
from clinic_booking.clinic_data.database.schedule_repository import DoctorSchedule, ScheduleRepository

from conftest import MONDAY


@pytest.fixture
def repo():
    return ScheduleRepository()


def window(doctor_id, day, start, end, **kwargs):
    return DoctorSchedule(id=None, doctor_id=doctor_id, day_of_week=day,
                          start_time=start, end_time=end, **kwargs)


class TestCreateSchedule:
    """Adding availability windows."""

    def test_create(self, repo, doctor):
        created = repo.create(window(doctor.id, DayOfWeek.TUESDAY, time(8, 0), time(12, 0)))
        assert created.id is not None
        assert created.max_patients_per_hour == 4
        assert created.is_available

    def test_end_must_follow_start(self, repo, doctor):
        with pytest.raises(ValidationError) as excinfo:
            repo.create(window(doctor.id, DayOfWeek.TUESDAY, time(12, 0), time(12, 0)))
        assert excinfo.value.field == "end_time"

    def test_capacity_must_be_positive(self, repo, doctor):
        with pytest.raises(ValidationError) as excinfo:
            repo.create(window(doctor.id, DayOfWeek.TUESDAY, time(8, 0), time(12, 0), max_patients_per_hour=0))
        assert excinfo.value.field == "max_patients_per_hour"

    def test_times_are_wall_clock(self, repo, doctor):
        with pytest.raises(ValidationError) as excinfo:
            repo.create(window(doctor.id, DayOfWeek.TUESDAY,
                               time(8, 0, tzinfo=timezone.utc), time(12, 0)))
        assert excinfo.value.field == "start_time"

    def test_overlapping_window_rejected(self, repo, doctor, schedule):
        with pytest.raises(ValidationError) as excinfo:
            repo.create(window(doctor.id, DayOfWeek.MONDAY, time(16, 0), time(19, 0)))
        assert excinfo.value.code == "VALIDATION_ERROR"
        assert schedule.id in str(excinfo.value)

    def test_adjacent_window_allowed(self, repo, doctor, schedule):
        evening = repo.create(window(doctor.id, DayOfWeek.MONDAY, time(17, 0), time(20, 0)))
        assert [w.id for w in repo.windows_for(doctor.id, DayOfWeek.MONDAY)] == [schedule.id, evening.id]

    def test_unknown_doctor(self, repo):
        with pytest.raises(ReferentialConflictError):
            repo.create(window("no-such-doctor", DayOfWeek.MONDAY, time(9, 0), time(10, 0)))


class TestUpdateSchedule:
    """Changing windows."""

    def test_update_ignores_itself_for_overlap(self, repo, schedule):
        updated = repo.update(schedule.id, {"start_time": time(8, 0)})
        assert updated.start_time == time(8, 0)

    def test_update_into_another_window_rejected(self, repo, doctor, schedule):
        evening = repo.create(window(doctor.id, DayOfWeek.MONDAY, time(17, 0), time(20, 0)))
        with pytest.raises(ValidationError):
            repo.update(evening.id, {"start_time": time(16, 0)})

    def test_update_unknown(self, repo):
        assert repo.update("missing", {"start_time": time(8, 0)}) is None


class TestWindowCache:
    """Reads are cached and every write invalidates them."""

    def test_cached_read_survives_direct_change(self, repo, doctor, schedule):
        assert len(repo.windows_for(doctor.id, DayOfWeek.MONDAY)) == 1
        conn = connection.get_connection()
        conn.execute("DELETE FROM doctor_schedules WHERE id = ?", (schedule.id,))
        conn.commit()
        conn.close()
        assert len(repo.windows_for(doctor.id, DayOfWeek.MONDAY)) == 1

    def test_update_invalidates(self, repo, doctor, schedule):
        assert repo.is_within_window(doctor.id, MONDAY, time(9, 0), 30)
        repo.update(schedule.id, {"start_time": time(10, 0)})
        assert not repo.is_within_window(doctor.id, MONDAY, time(9, 0), 30)

    def test_delete_invalidates(self, repo, doctor, schedule):
        assert repo.find_window(doctor.id, MONDAY, time(9, 0), 30).id == schedule.id
        assert repo.delete(schedule.id)
        assert repo.find_window(doctor.id, MONDAY, time(9, 0), 30) is None

    def test_create_invalidates(self, repo, doctor):
        tuesday = date(2026, 10, 20)
        assert not repo.is_within_window(doctor.id, tuesday, time(9, 0), 30)
        repo.create(window(doctor.id, DayOfWeek.TUESDAY, time(9, 0), time(12, 0)))
        assert repo.is_within_window(doctor.id, tuesday, time(9, 0), 30)

    def test_write_during_load_is_not_cached(self, repo, doctor, schedule, monkeypatch):
        """A window closed while the cache was filling is seen on the next read."""
        load = ScheduleRepository._load_windows

        def load_then_close(self, conn, doctor_id, day_of_week):
            windows = load(self, conn, doctor_id, day_of_week)
            monkeypatch.setattr(ScheduleRepository, "_load_windows", load)
            ScheduleRepository().update(schedule.id, {"is_available": False})
            return windows

        monkeypatch.setattr(ScheduleRepository, "_load_windows", load_then_close)
        assert repo.windows_for(doctor.id, DayOfWeek.MONDAY)[0].is_available
        assert not repo.windows_for(doctor.id, DayOfWeek.MONDAY)[0].is_available
        assert not repo.is_within_window(doctor.id, MONDAY, time(9, 0), 30)

    def test_read_on_connection_skips_cache(self, repo, doctor, schedule):
        assert repo.is_within_window(doctor.id, MONDAY, time(9, 0), 30)
        conn = connection.get_connection()
        conn.execute("DELETE FROM doctor_schedules WHERE id = ?", (schedule.id,))
        conn.commit()
        assert repo.find_window(doctor.id, MONDAY, time(9, 0), 30, conn=conn) is None
        assert repo.load_windows(conn, doctor.id, DayOfWeek.MONDAY) == []
        conn.close()


class TestListAndCascade:
    """Listing windows and removing them with their doctor."""

    def test_list_monday_first(self, repo, doctor, schedule):
        repo.create(window(doctor.id, DayOfWeek.FRIDAY, time(8, 0), time(12, 0)))
        repo.create(window(doctor.id, DayOfWeek.TUESDAY, time(13, 0), time(15, 0)))
        days = [w.day_of_week for w in repo.list_for_doctor(doctor.id)]
        assert days == [DayOfWeek.MONDAY, DayOfWeek.TUESDAY, DayOfWeek.FRIDAY]

    def test_doctor_delete_cascades(self, repo, doctor, schedule):
        assert repo.is_within_window(doctor.id, MONDAY, time(9, 0), 30)
        assert DoctorRepository().delete(doctor.id)
        assert repo.get_by_id(schedule.id) is None
        assert repo.list_for_doctor(doctor.id) == []
        assert not repo.is_within_window(doctor.id, MONDAY, time(9, 0), 30)
