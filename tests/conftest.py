"""Shared pytest fixtures."""

from datetime import date, datetime, time

import pytest

from clinic_booking.booking_engine import BookingEngine
from clinic_booking.clinic_data.database import connection
from clinic_booking.clinic_data.database.doctor_repository import Doctor, DoctorRepository
from clinic_booking.clinic_data.database.enums import DayOfWeek, DosageForm, Gender
from clinic_booking.clinic_data.database.patient_repository import Patient, PatientRepository
from clinic_booking.clinic_data.database.reference_repository import (
    Department,
    DepartmentRepository,
    Medication,
    MedicationRepository,
)
from clinic_booking.clinic_data.database.schedule_repository import (
    DoctorSchedule,
    ScheduleRepository,
    invalidate_windows,
)

# Friday; every booking test happens on the following Monday
NOW = datetime(2026, 10, 16, 8, 0, 0)
MONDAY = date(2026, 10, 19)


@pytest.fixture(autouse=True)
def database(tmp_path, monkeypatch):
    """Give every test a fresh database file and an empty window cache."""
    monkeypatch.setattr(connection, "DB_PATH", tmp_path / "clinic.db")
    invalidate_windows()
    connection.init_database()
    yield tmp_path / "clinic.db"
    invalidate_windows()


@pytest.fixture
def clock():
    """A settable clock; tests move ``clock.now`` to change what "now" is."""
    class Clock:
        now = NOW

        def __call__(self):
            return self.now

    return Clock()


@pytest.fixture
def monday():
    return MONDAY


@pytest.fixture
def department():
    return DepartmentRepository().create(Department(id=None, department_name="Cardiology"))


@pytest.fixture
def medication():
    return MedicationRepository().create(Medication(
        id=None, medication_name="Metformin", dosage_form=DosageForm.TABLET, strength="500mg",
    ))


def make_patient(number="PT001", first_name="John", last_name="Smith", **overrides):
    fields = dict(
        id=None,
        patient_number=number,
        first_name=first_name,
        last_name=last_name,
        date_of_birth=date(1985, 3, 15),
        gender=Gender.MALE,
        phone=f"555-{number[-3:]}",
        address="123 Main St, City, State",
        email=f"{first_name.lower()}.{last_name.lower()}@email.com",
    )
    fields.update(overrides)
    return Patient(**fields)


def make_doctor(department_id, number="DR001", first_name="Sarah", last_name="Johnson", **overrides):
    fields = dict(
        id=None,
        doctor_number=number,
        first_name=first_name,
        last_name=last_name,
        specialization="Cardiologist",
        department_id=department_id,
        phone=f"555-2{number[-3:]}",
        email=f"{first_name.lower()}.{last_name.lower()}@clinic.com",
        license_number=f"LIC{number[-3:]}",
        consultation_fee=200.0,
        hire_date=date(2010, 1, 15),
    )
    fields.update(overrides)
    return Doctor(**fields)


@pytest.fixture
def patient():
    return PatientRepository().create(make_patient(), changed_by="test")


@pytest.fixture
def other_patient():
    return PatientRepository().create(
        make_patient("PT002", "Mary", "Johnson", gender=Gender.FEMALE), changed_by="test"
    )


@pytest.fixture
def doctor(department):
    return DoctorRepository().create(make_doctor(department.id), changed_by="test")


@pytest.fixture
def schedule(doctor):
    """Monday 09:00-17:00, at most 3 patients per hour."""
    return ScheduleRepository().create(DoctorSchedule(
        id=None,
        doctor_id=doctor.id,
        day_of_week=DayOfWeek.MONDAY,
        start_time=time(9, 0),
        end_time=time(17, 0),
        max_patients_per_hour=3,
    ))


@pytest.fixture
def engine(clock):
    return BookingEngine(clock=clock)


@pytest.fixture
def book(engine, patient, doctor, schedule):
    """Book ``patient`` with ``doctor`` on Monday at ``HH:MM``."""
    def _book(at, duration=20, patient_id=None, doctor_id=None, on_date=MONDAY, **kwargs):
        hour, minute = (int(part) for part in at.split(":"))
        return engine.request_booking(
            patient_id or patient.id,
            doctor_id or doctor.id,
            on_date,
            time(hour, minute),
            duration_minutes=duration,
            **kwargs,
        )
    return _book
