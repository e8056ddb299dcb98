"""Pydantic input models enforcing the field constraints of each entity."""

import re
from datetime import date, datetime, time

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError

from clinic_booking import config

from .enums import AppointmentType, BloodType, DayOfWeek, DosageForm, Gender
from .errors import ValidationError

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class _Input(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


def _check_email(value: str | None) -> str | None:
    if value is None:
        return None
    if not EMAIL_RE.match(value):
        raise ValueError("is not a valid email address")
    return value.lower()


def _naive_time(value: time) -> time:
    # Times are clinic wall-clock; an offset would be dropped on storage.
    if value.tzinfo is not None:
        raise ValueError("must not carry a UTC offset")
    return value


class DepartmentInput(_Input):
    department_name: str = Field(min_length=1, max_length=100)
    department_head: str | None = Field(None, max_length=100)
    location: str | None = Field(None, max_length=100)
    phone: str | None = Field(None, max_length=20)
    description: str | None = None


class MedicationInput(_Input):
    medication_name: str = Field(min_length=1, max_length=150)
    generic_name: str | None = Field(None, max_length=150)
    manufacturer: str | None = Field(None, max_length=100)
    dosage_form: DosageForm
    strength: str | None = Field(None, max_length=50)
    unit_price: float | None = Field(None, ge=0)
    description: str | None = None


class PatientInput(_Input):
    patient_number: str = Field(min_length=1, max_length=20)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    date_of_birth: date
    gender: Gender
    phone: str = Field(min_length=1, max_length=20)
    email: str | None = Field(None, max_length=100)
    address: str = Field(min_length=1)
    emergency_contact_name: str | None = Field(None, max_length=100)
    emergency_contact_phone: str | None = Field(None, max_length=20)
    blood_type: BloodType | None = None
    allergies: str | None = None
    medical_history: str | None = None
    insurance_provider: str | None = Field(None, max_length=100)
    insurance_policy_number: str | None = Field(None, max_length=50)
    registration_date: date | None = None

    @field_validator("date_of_birth")
    @classmethod
    def dob_in_past(cls, v: date) -> date:
        if v >= date.today():
            raise ValueError("must be in the past")
        return v

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("email")
    @classmethod
    def email_format(cls, v):
        return _check_email(v)

    @field_validator("registration_date", mode="before")
    @classmethod
    def default_registration_date(cls, v):
        return v or date.today()


class DoctorInput(_Input):
    doctor_number: str = Field(min_length=1, max_length=20)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    specialization: str = Field(min_length=1, max_length=100)
    department_id: str = Field(min_length=1)
    phone: str = Field(min_length=1, max_length=20)
    email: str = Field(max_length=100)
    license_number: str = Field(min_length=1, max_length=50)
    qualification: str | None = Field(None, max_length=200)
    experience_years: int | None = Field(None, ge=0)
    consultation_fee: float = Field(gt=0)
    address: str | None = None
    hire_date: date

    @field_validator("email")
    @classmethod
    def email_format(cls, v):
        return _check_email(v)


class ScheduleInput(_Input):
    doctor_id: str = Field(min_length=1)
    day_of_week: DayOfWeek
    start_time: time
    end_time: time
    max_patients_per_hour: int = Field(config.DEFAULT_MAX_PATIENTS_PER_HOUR, gt=0)
    is_available: bool = True

    @field_validator("start_time", "end_time")
    @classmethod
    def wall_clock_times(cls, v: time) -> time:
        return _naive_time(v)

    @field_validator("end_time")
    @classmethod
    def end_after_start(cls, v: time, info: ValidationInfo) -> time:
        start = info.data.get("start_time")
        if start is not None and v <= start:
            raise ValueError("must be after start_time")
        return v


class BookingInput(_Input):
    patient_id: str = Field(min_length=1)
    doctor_id: str = Field(min_length=1)
    appointment_date: date
    appointment_time: time
    duration_minutes: int = Field(config.DEFAULT_DURATION_MINUTES, gt=0)
    appointment_type: AppointmentType = AppointmentType.CONSULTATION
    reason_for_visit: str | None = None
    notes: str | None = None
    consultation_fee: float | None = Field(None, ge=0)

    @field_validator("appointment_time")
    @classmethod
    def wall_clock_time(cls, v: time) -> time:
        return _naive_time(v)


class VitalSigns(_Input):
    """Structured vital signs stored with a medical record."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    blood_pressure: str | None = Field(None, pattern=r"^\d{2,3}/\d{2,3}$")
    heart_rate: int | None = Field(None, gt=0, lt=300)
    respiratory_rate: int | None = Field(None, gt=0, lt=100)
    temperature: float | None = Field(None, gt=0)
    oxygen_saturation: float | None = Field(None, ge=0, le=100)
    weight: float | None = Field(None, gt=0)
    height: float | None = Field(None, gt=0)


class MedicalRecordInput(_Input):
    patient_id: str = Field(min_length=1)
    doctor_id: str = Field(min_length=1)
    appointment_id: str | None = None
    record_date: datetime | None = None
    chief_complaint: str | None = None
    diagnosis: str | None = None
    treatment_plan: str | None = None
    vital_signs: VitalSigns | None = None
    symptoms: str | None = None
    examination_notes: str | None = None
    lab_results: str | None = None
    follow_up_instructions: str | None = None
    next_appointment_recommended: bool = False

    @field_validator("record_date", mode="before")
    @classmethod
    def default_record_date(cls, v):
        return v or datetime.now().replace(microsecond=0)


class PrescriptionInput(_Input):
    record_id: str = Field(min_length=1)
    medication_id: str = Field(min_length=1)
    dosage: str = Field(min_length=1, max_length=100)
    frequency: str = Field(min_length=1, max_length=100)
    duration_days: int = Field(gt=0)
    quantity: int = Field(gt=0)
    instructions: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    is_active: bool = True

    @field_validator("start_date", mode="before")
    @classmethod
    def default_start_date(cls, v):
        return v or date.today()

    @field_validator("end_date")
    @classmethod
    def end_not_before_start(cls, v: date | None, info: ValidationInfo) -> date | None:
        start = info.data.get("start_date")
        if v is not None and start is not None and v < start:
            raise ValueError("must not be before start_date")
        return v


def validate_input(model: type[BaseModel], entity: str, data: dict):
    """Validate ``data`` against ``model``, raising ValidationError on the first bad field."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        error = exc.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or None
        raise ValidationError(entity, field, error["msg"]) from exc
