"""Front-desk console for booking and managing clinic appointments."""

import logging
import shlex
import sys
from datetime import date, time

from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from clinic_booking import config
from clinic_booking.booking_engine import BookingEngine
from clinic_booking.clinic_data.database import (
    DoctorRepository,
    PatientRepository,
    ScheduleRepository,
    init_database,
)
from clinic_booking.clinic_data.database.appointment_repository import AppointmentRepository
from clinic_booking.clinic_data.database.errors import ClinicError

console = Console()
engine = BookingEngine()
patient_repo = PatientRepository()
doctor_repo = DoctorRepository()
schedule_repo = ScheduleRepository()
appointment_repo = AppointmentRepository()

HELP = """\
**Commands**

- `doctors [specialization]` list active doctors
- `windows DR001` weekly availability for a doctor
- `slots DR001 2026-10-26 [minutes]` open start times on a date
- `day DR001 2026-10-26` a doctor's appointments on a date
- `book PT001 DR001 2026-10-26 09:00 [minutes] [reason...]`
- `confirm|checkin|complete|noshow APT-...`
- `cancel APT-... [reason...]`
- `patient PT001` patient summary
- `history APT-...` status changes for an appointment
- `quit`
"""


class CommandError(Exception):
    """Bad command usage; the message is shown to the user."""


def _doctor(number: str):
    doctor = doctor_repo.get_by_number(number)
    if not doctor:
        raise CommandError(f"No doctor {number}")
    return doctor


def _patient(number: str):
    patient = patient_repo.get_by_number(number)
    if not patient:
        raise CommandError(f"No patient {number}")
    return patient


def _appointment(number: str):
    appointment = appointment_repo.get_by_number(number)
    if not appointment:
        raise CommandError(f"No appointment {number}")
    return appointment


def _date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise CommandError(f"Dates look like 2026-10-26, not {value!r}")


def _time(value: str) -> time:
    try:
        parsed = time.fromisoformat(value)
    except ValueError:
        raise CommandError(f"Times look like 09:30, not {value!r}")
    if parsed.tzinfo is not None:
        raise CommandError(f"Times are clinic local time, drop the offset in {value!r}")
    return parsed


def _minutes(args: list[str], index: int) -> int:
    if len(args) <= index:
        return config.DEFAULT_DURATION_MINUTES
    if not args[index].isdigit() or int(args[index]) == 0:
        raise CommandError(f"Duration must be a whole number of minutes, not {args[index]!r}")
    return int(args[index])


def _need(args: list[str], count: int, usage: str) -> None:
    if len(args) < count:
        raise CommandError(f"Usage: {usage}")


def handle_doctors(args: list[str]):
    doctors = doctor_repo.find_doctors(specialization=" ".join(args) or None)
    if not doctors:
        return "No doctors found."
    table = Table(title="Doctors")
    for column in ("Number", "Name", "Specialization", "Fee"):
        table.add_column(column)
    for doctor in doctors:
        table.add_row(doctor.doctor_number, doctor.full_name, doctor.specialization,
                      f"{doctor.consultation_fee:.2f}")
    return table


def handle_windows(args: list[str]):
    _need(args, 1, "windows DR001")
    doctor = _doctor(args[0])
    windows = schedule_repo.list_for_doctor(doctor.id)
    if not windows:
        return f"{doctor.full_name} has no availability windows."
    table = Table(title=f"{doctor.full_name} availability")
    for column in ("Day", "From", "To", "Max/hour", "Available"):
        table.add_column(column)
    for window in windows:
        table.add_row(window.day_of_week.value, f"{window.start_time:%H:%M}", f"{window.end_time:%H:%M}",
                      str(window.max_patients_per_hour), "yes" if window.is_available else "no")
    return table


def handle_slots(args: list[str]):
    _need(args, 2, "slots DR001 2026-10-26 [minutes]")
    doctor = _doctor(args[0])
    on_date = _date(args[1])
    slots = engine.get_available_slots(doctor.id, on_date, _minutes(args, 2))
    if not slots:
        return f"No open slots for {doctor.full_name} on {on_date:%A %Y-%m-%d}."
    times = ", ".join(f"{slot:%H:%M}" for slot in slots)
    return f"Open slots for {doctor.full_name} on {on_date:%A %Y-%m-%d}: {times}"


def handle_day(args: list[str]):
    _need(args, 2, "day DR001 2026-10-26")
    doctor = _doctor(args[0])
    on_date = _date(args[1])
    appointments = appointment_repo.list_for_doctor(doctor.id, on_date)
    if not appointments:
        return f"{doctor.full_name} has no appointments on {on_date}."
    table = Table(title=f"{doctor.full_name} on {on_date:%A %Y-%m-%d}")
    for column in ("Time", "Minutes", "Number", "Patient", "Status"):
        table.add_column(column)
    for appointment in appointments:
        patient = patient_repo.get_by_id(appointment.patient_id)
        table.add_row(f"{appointment.appointment_time:%H:%M}", str(appointment.duration_minutes),
                      appointment.appointment_number, patient.full_name if patient else "?",
                      appointment.status.value)
    return table


def handle_book(args: list[str]):
    _need(args, 4, "book PT001 DR001 2026-10-26 09:00 [minutes] [reason...]")
    patient = _patient(args[0])
    doctor = _doctor(args[1])
    reason_start = 5 if len(args) > 4 and args[4].isdigit() else 4
    result = engine.request_booking(
        patient.id,
        doctor.id,
        _date(args[2]),
        _time(args[3]),
        duration_minutes=_minutes(args, 4) if reason_start == 5 else config.DEFAULT_DURATION_MINUTES,
        reason_for_visit=" ".join(args[reason_start:]) or None,
        booked_by="front-desk",
    )
    if not result.ok:
        return f"**Not booked** ({result.rejection.value}): {result.detail}"
    appointment = result.appointment
    return (f"Booked **{appointment.appointment_number}** for {patient.full_name} with "
            f"{doctor.full_name} on {appointment.appointment_date} at {appointment.appointment_time:%H:%M} "
            f"(fee {appointment.consultation_fee:.2f})")


def _status_handler(action):
    def handler(args: list[str]):
        _need(args, 1, f"{action.__name__} APT-...")
        appointment = action(_appointment(args[0]).id, changed_by="front-desk")
        return f"{appointment.appointment_number} is now **{appointment.status.value}**"
    return handler


def handle_cancel(args: list[str]):
    _need(args, 1, "cancel APT-... [reason...]")
    appointment = engine.cancel(_appointment(args[0]).id, reason=" ".join(args[1:]) or None,
                                changed_by="front-desk")
    return f"{appointment.appointment_number} is now **{appointment.status.value}**"


def handle_patient(args: list[str]):
    _need(args, 1, "patient PT001")
    patient = _patient(args[0])
    summary = patient_repo.get_patient_summary(patient.id)
    lines = [f"**{summary['name']}** ({summary['patient_number']}), born {patient.date_of_birth}, "
             f"{'active' if summary['is_active'] else 'inactive'}"]
    upcoming = appointment_repo.list_for_patient(patient.id, upcoming_only=True)
    lines.append(f"\nUpcoming appointments: {summary['upcoming_appointments']}")
    lines.extend(f"- {a.appointment_date} {a.appointment_time:%H:%M} {a.appointment_number} ({a.status.value})"
                 for a in upcoming)
    diagnoses = summary["recent_diagnoses"]
    if diagnoses:
        lines.append("\nRecent diagnoses:")
        lines.extend(f"- {d}" for d in diagnoses)
    return "\n".join(lines)


def handle_history(args: list[str]):
    _need(args, 1, "history APT-...")
    appointment = _appointment(args[0])
    history = appointment_repo.get_status_history(appointment.id)
    if not history:
        return f"No history for {appointment.appointment_number}."
    return "\n".join(
        f"- {entry['changed_at']} {entry['old_value'] or '(new)'} -> {entry['new_value']} by {entry['changed_by']}"
        for entry in history
    )


def handle_help(args: list[str]):
    return HELP


HANDLERS = {
    "help": handle_help,
    "doctors": handle_doctors,
    "windows": handle_windows,
    "slots": handle_slots,
    "day": handle_day,
    "book": handle_book,
    "confirm": _status_handler(engine.confirm),
    "checkin": _status_handler(engine.check_in),
    "complete": _status_handler(engine.complete),
    "noshow": _status_handler(engine.mark_no_show),
    "cancel": handle_cancel,
    "patient": handle_patient,
    "history": handle_history,
}


def process_input(user_input: str):
    """Dispatch one command line to its handler."""
    command, *args = shlex.split(user_input)
    handler = HANDLERS.get(command.lower())
    if handler is None:
        raise CommandError(f"Unknown command {command!r}; type 'help'")
    return handler(args)


def main():
    """Main command loop."""
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    init_database()

    console.print("[bold blue]Clinic front desk[/bold blue]")
    console.print("Type 'help' for commands, 'quit' or 'exit' to leave.\n")

    is_tty = sys.stdin.isatty()

    while True:
        try:
            user_input = console.input("[bold green]>[/bold green] ").strip()
            # Echo input when stdin is piped (not interactive)
            if not is_tty and user_input:
                console.print(f"[dim]{user_input}[/dim]")
        except (EOFError, KeyboardInterrupt):
            console.print("\n[bold blue]Goodbye![/bold blue]")
            break

        if not user_input:
            continue

        if user_input.lower() in ("quit", "exit"):
            console.print("[bold blue]Goodbye![/bold blue]")
            break

        try:
            response = process_input(user_input)
        except (CommandError, ValueError) as e:
            console.print(f"[bold red]Error:[/bold red] {e}\n")
            continue
        except ClinicError as e:
            console.print(f"[bold red]{e.code}:[/bold red] {e}\n")
            continue

        if isinstance(response, str):
            console.print(Markdown(response), "\n")
        else:
            console.print(response, "\n")


if __name__ == "__main__":
    main()
