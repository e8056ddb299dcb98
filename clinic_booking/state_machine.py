"""State machine for the appointment lifecycle."""

from enum import Enum

from clinic_booking.clinic_data.database.enums import AppointmentStatus
from clinic_booking.clinic_data.database.errors import InvalidTransitionError


class StatusEvent(Enum):
    """Front-desk and clinical events that move an appointment along."""
    CONFIRM = "confirm"
    CHECK_IN = "check_in"
    COMPLETE = "complete"
    CANCEL = "cancel"
    MARK_NO_SHOW = "mark_no_show"


# Status reached by each event
EVENT_TARGETS = {
    StatusEvent.CONFIRM: AppointmentStatus.CONFIRMED,
    StatusEvent.CHECK_IN: AppointmentStatus.IN_PROGRESS,
    StatusEvent.COMPLETE: AppointmentStatus.COMPLETED,
    StatusEvent.CANCEL: AppointmentStatus.CANCELLED,
    StatusEvent.MARK_NO_SHOW: AppointmentStatus.NO_SHOW,
}

# Allowed moves out of each status
TRANSITIONS = {
    AppointmentStatus.SCHEDULED: {
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    },
    AppointmentStatus.CONFIRMED: {
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    },
    AppointmentStatus.IN_PROGRESS: {AppointmentStatus.COMPLETED},
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.CANCELLED: set(),
    AppointmentStatus.NO_SHOW: set(),
}

INITIAL_STATUS = AppointmentStatus.SCHEDULED

TERMINAL_STATES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)


def is_terminal(status: AppointmentStatus) -> bool:
    return status in TERMINAL_STATES


def can_transition(current: AppointmentStatus, requested: AppointmentStatus) -> bool:
    return requested in TRANSITIONS[current]


def get_next_status(current: AppointmentStatus, event: StatusEvent) -> AppointmentStatus:
    """Status an appointment moves to on ``event``; raises if the move is not allowed."""
    requested = EVENT_TARGETS[event]
    if is_terminal(current):
        raise InvalidTransitionError(current, requested, f"{current.value} is final")
    if not can_transition(current, requested):
        raise InvalidTransitionError(current, requested)
    return requested
