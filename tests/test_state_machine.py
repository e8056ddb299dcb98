"""Tests for the appointment status state machine."""

import pytest

from clinic_booking.clinic_data.database.enums import AppointmentStatus
from clinic_booking.clinic_data.database.errors import InvalidTransitionError, ValidationError
from clinic_booking.state_machine import (
    INITIAL_STATUS,
    TERMINAL_STATES,
    StatusEvent,
    can_transition,
    get_next_status,
    is_terminal,
)


class TestTransitions:
    """Tests for allowed status moves."""

    def test_initial_status(self):
        assert INITIAL_STATUS == AppointmentStatus.SCHEDULED

    def test_happy_path(self):
        status = INITIAL_STATUS
        for event in (StatusEvent.CONFIRM, StatusEvent.CHECK_IN, StatusEvent.COMPLETE):
            status = get_next_status(status, event)
        assert status == AppointmentStatus.COMPLETED

    def test_cancel_from_scheduled_and_confirmed(self):
        assert get_next_status(AppointmentStatus.SCHEDULED, StatusEvent.CANCEL) == AppointmentStatus.CANCELLED
        assert get_next_status(AppointmentStatus.CONFIRMED, StatusEvent.CANCEL) == AppointmentStatus.CANCELLED

    def test_no_show_from_scheduled_and_confirmed(self):
        assert get_next_status(AppointmentStatus.SCHEDULED, StatusEvent.MARK_NO_SHOW) == AppointmentStatus.NO_SHOW
        assert get_next_status(AppointmentStatus.CONFIRMED, StatusEvent.MARK_NO_SHOW) == AppointmentStatus.NO_SHOW

    def test_cannot_check_in_unconfirmed(self):
        assert not can_transition(AppointmentStatus.SCHEDULED, AppointmentStatus.IN_PROGRESS)
        with pytest.raises(InvalidTransitionError):
            get_next_status(AppointmentStatus.SCHEDULED, StatusEvent.CHECK_IN)

    def test_cannot_cancel_in_progress(self):
        with pytest.raises(InvalidTransitionError):
            get_next_status(AppointmentStatus.IN_PROGRESS, StatusEvent.CANCEL)


class TestTerminalStates:
    """Completed, Cancelled and No Show accept no further events."""

    def test_terminal_set(self):
        assert TERMINAL_STATES == {
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.NO_SHOW,
        }

    @pytest.mark.parametrize("status", sorted(TERMINAL_STATES, key=lambda s: s.value))
    @pytest.mark.parametrize("event", list(StatusEvent))
    def test_no_event_leaves_terminal_state(self, status, event):
        assert is_terminal(status)
        with pytest.raises(InvalidTransitionError):
            get_next_status(status, event)

    def test_error_is_a_validation_error(self):
        with pytest.raises(ValidationError) as excinfo:
            get_next_status(AppointmentStatus.CANCELLED, StatusEvent.CONFIRM)
        error = excinfo.value
        assert error.code == "VALIDATION_ERROR"
        assert error.field == "status"
        assert error.current == AppointmentStatus.CANCELLED
        assert error.requested == AppointmentStatus.CONFIRMED
