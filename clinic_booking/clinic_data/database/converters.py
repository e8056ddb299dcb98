"""Conversions between Python values and SQLite column values."""

import json
from datetime import date, datetime, time
from enum import Enum


def to_db(value):
    """Convert a Python value to its stored column representation."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return value.isoformat(timespec="seconds")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    if isinstance(value, dict):
        return json.dumps(value)
    return value


def parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def parse_time(value: str | None) -> time | None:
    return time.fromisoformat(value) if value else None


def parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def insert_row(cursor, table: str, values: dict) -> None:
    """INSERT a row from a column -> value mapping."""
    columns = ", ".join(values)
    placeholders = ", ".join("?" for _ in values)
    cursor.execute(
        f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
        [to_db(v) for v in values.values()],
    )


def update_row(cursor, table: str, row_id: str, values: dict) -> None:
    """UPDATE the given columns of one row by id."""
    set_clause = ", ".join(f"{column} = ?" for column in values)
    cursor.execute(
        f"UPDATE {table} SET {set_clause} WHERE id = ?",
        [to_db(v) for v in values.values()] + [row_id],
    )
