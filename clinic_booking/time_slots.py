"""Interval arithmetic for schedule windows and appointment slots.

All intervals are half-open, ``[start, end)``, measured in seconds since
midnight. Windows are any objects with ``start_time``, ``end_time`` and
``is_available`` attributes (``DoctorSchedule`` rows in practice).
"""

from datetime import time


def to_seconds(t: time) -> int:
    return t.hour * 3600 + t.minute * 60 + t.second


def from_seconds(seconds: int) -> time:
    return time(seconds // 3600, (seconds % 3600) // 60, seconds % 60)


def span(start: time, duration_minutes: int) -> tuple[int, int]:
    """The ``[start, start + duration)`` interval of an appointment."""
    begin = to_seconds(start)
    return begin, begin + duration_minutes * 60


def overlaps(a: tuple[int, int], b: tuple[int, int]) -> bool:
    return a[0] < b[1] and b[0] < a[1]


def window_span(window) -> tuple[int, int]:
    return to_seconds(window.start_time), to_seconds(window.end_time)


def window_contains(window, start: time, duration_minutes: int) -> bool:
    """True if the appointment fits entirely inside the window."""
    begin, end = span(start, duration_minutes)
    window_begin, window_end = window_span(window)
    return window_begin <= begin and end <= window_end


def find_window(windows, start: time, duration_minutes: int):
    """The available window containing the appointment, or None."""
    for window in windows:
        if window.is_available and window_contains(window, start, duration_minutes):
            return window
    return None


def find_overlapping_window(windows, start: time, end: time, exclude_id: str | None = None):
    """The first window overlapping ``[start, end)``, ignoring ``exclude_id``."""
    candidate = (to_seconds(start), to_seconds(end))
    for window in windows:
        if exclude_id is not None and window.id == exclude_id:
            continue
        if overlaps(candidate, window_span(window)):
            return window
    return None


def same_clock_hour(a: time, b: time) -> bool:
    return a.hour == b.hour


def candidate_starts(window, duration_minutes: int) -> list[time]:
    """Start times on a ``duration`` grid from the window start that fit in the window."""
    step = duration_minutes * 60
    if step <= 0:
        return []
    begin, end = window_span(window)
    starts = []
    current = begin
    while current + step <= end:
        starts.append(from_seconds(current))
        current += step
    return starts
