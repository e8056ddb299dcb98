"""Change audit trail shared by the party and appointment repositories."""

import uuid
from datetime import datetime

from .connection import get_connection
from .converters import to_db


def log_change(
    cursor,
    entity: str,
    entity_id: str,
    field_name: str,
    old_value,
    new_value,
    change_type: str,
    changed_by: str,
) -> None:
    """Log a change to the audit table."""
    cursor.execute("""
        INSERT INTO change_log (id, entity, entity_id, field_name, old_value, new_value,
                                change_type, changed_at, changed_by)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
    """, (
        str(uuid.uuid4()), entity, entity_id, field_name,
        None if old_value is None else str(to_db(old_value)),
        None if new_value is None else str(to_db(new_value)),
        change_type, datetime.now().isoformat(), changed_by,
    ))


def log_creation(cursor, entity: str, entity_id: str, values: dict, changed_by: str) -> None:
    """Log a CREATE entry for each non-null field."""
    for field_name, value in values.items():
        if value is not None:
            log_change(cursor, entity, entity_id, field_name, None, value, "CREATE", changed_by)


def get_change_history(entity: str, entity_id: str, limit: int = 50) -> list[dict]:
    """Get audit trail for one entity, newest first."""
    conn = get_connection()
    cursor = conn.cursor()
    cursor.execute("""
        SELECT * FROM change_log
        WHERE entity = ? AND entity_id = ?
        ORDER BY changed_at DESC, rowid DESC
        LIMIT ?
    """, (entity, entity_id, limit))
    rows = cursor.fetchall()
    conn.close()
    return [dict(row) for row in rows]
