"""Errors raised by the clinic repositories and booking engine."""

import re
import sqlite3


class ClinicError(Exception):
    """Base class for all clinic errors."""

    code = "CLINIC_ERROR"


class ValidationError(ClinicError):
    """A field constraint was violated."""

    code = "VALIDATION_ERROR"

    def __init__(self, entity: str, field: str | None, message: str):
        self.entity = entity
        self.field = field
        self.message = message
        where = f"{entity}.{field}" if field else entity
        super().__init__(f"{where}: {message}")


class ReferentialConflictError(ClinicError):
    """A delete is blocked by dependents, or an insert references a missing row."""

    code = "REFERENTIAL_CONFLICT"

    def __init__(
        self,
        entity: str,
        entity_id: str | None,
        message: str,
        dependents: dict[str, int] | None = None,
    ):
        self.entity = entity
        self.entity_id = entity_id
        self.message = message
        self.dependents = dependents or {}
        target = f"{entity} {entity_id}" if entity_id else entity
        super().__init__(f"{target}: {message}")


class ConcurrentModificationError(ClinicError):
    """The booking lock could not be acquired; the caller should retry."""

    code = "CONCURRENT_MODIFICATION"


class InvalidTransitionError(ValidationError):
    """An appointment status change is not allowed from its current status."""

    def __init__(self, current, requested, reason: str | None = None):
        self.current = current
        self.requested = requested
        message = f"cannot move from {current.value} to {requested.value}"
        if reason:
            message += f" ({reason})"
        super().__init__("appointment", "status", message)


_UNIQUE_RE = re.compile(r"UNIQUE constraint failed: ([\w., ]+)")
_CHECK_RE = re.compile(r"CHECK constraint failed: (\w+)")


def translate_integrity_error(entity: str, exc: sqlite3.IntegrityError) -> ClinicError:
    """Map a SQLite integrity failure onto the matching clinic error."""
    message = str(exc)

    unique = _UNIQUE_RE.search(message)
    if unique:
        # "doctors.email" or "doctor_schedules.doctor_id, doctor_schedules.day_of_week, ..."
        columns = [part.strip().split(".")[-1] for part in unique.group(1).split(",")]
        if "appointment_time" in columns:
            return ConcurrentModificationError(
                "Another booking claimed this slot; retry the request"
            )
        return ValidationError(entity, columns[-1], "must be unique")

    check = _CHECK_RE.search(message)
    if check:
        return ValidationError(entity, None, f"violates {check.group(1)}")

    if "FOREIGN KEY" in message:
        return ReferentialConflictError(entity, None, "referenced row is missing or still in use")

    if "NOT NULL" in message:
        field = message.rsplit(".", 1)[-1]
        return ValidationError(entity, field, "is required")

    return ValidationError(entity, None, message)
