"""Closed value sets for enum-typed columns.

Values are the strings stored in the database.
"""

from enum import Enum


class DayOfWeek(Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"

    @classmethod
    def from_date(cls, day) -> "DayOfWeek":
        """Day of week for a ``date`` (Monday is weekday 0)."""
        return list(cls)[day.weekday()]


class Gender(Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class BloodType(Enum):
    A_POSITIVE = "A+"
    A_NEGATIVE = "A-"
    B_POSITIVE = "B+"
    B_NEGATIVE = "B-"
    AB_POSITIVE = "AB+"
    AB_NEGATIVE = "AB-"
    O_POSITIVE = "O+"
    O_NEGATIVE = "O-"


class DosageForm(Enum):
    TABLET = "Tablet"
    CAPSULE = "Capsule"
    LIQUID = "Liquid"
    INJECTION = "Injection"
    CREAM = "Cream"
    DROPS = "Drops"


class AppointmentType(Enum):
    CONSULTATION = "Consultation"
    FOLLOW_UP = "Follow-up"
    EMERGENCY = "Emergency"
    ROUTINE_CHECK = "Routine Check"
    VACCINATION = "Vaccination"


class AppointmentStatus(Enum):
    SCHEDULED = "Scheduled"
    CONFIRMED = "Confirmed"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    NO_SHOW = "No Show"


# Statuses that release the booked slot
RELEASED_STATUSES = (AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW)


class PartyStatus(Enum):
    """Lifecycle of patients and doctors; they are deactivated, not deleted."""
    ACTIVE = "Active"
    INACTIVE = "Inactive"
