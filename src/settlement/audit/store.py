"""SQLite-backed audit trail store with indexed queries.

The ``audit_log`` table lives in the settlement database.  Functions accept
an open connection and use parameterized queries exclusively.
"""

from __future__ import annotations

import json
import sqlite3
from typing import Any

from settlement.audit.models import AuditEntry
from settlement.domain.timestamps import format_timestamp


def init_audit_table(conn: sqlite3.Connection) -> None:
    """Create the ``audit_log`` table and its indexes if missing.

    Args:
        conn: An open sqlite3.Connection.
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS audit_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
            event_type TEXT NOT NULL,
            actor_id TEXT,
            campaign_id TEXT,
            metadata TEXT
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_campaign ON audit_log (campaign_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_actor ON audit_log (actor_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log (timestamp)")
    conn.commit()


def insert_audit_entry(conn: sqlite3.Connection, entry: AuditEntry) -> int:
    """Insert an audit entry and return its row id.

    Serializes metadata dict to JSON string if present.
    """
    metadata_json: str | None = None
    if entry.metadata is not None:
        metadata_json = json.dumps(entry.metadata, sort_keys=True)

    cursor = conn.execute(
        """
        INSERT INTO audit_log (timestamp, event_type, actor_id, campaign_id, metadata)
        VALUES (?, ?, ?, ?, ?)
        """,
        (
            format_timestamp(),
            entry.event_type.value,
            entry.actor_id,
            entry.campaign_id,
            metadata_json,
        ),
    )
    conn.commit()
    return cursor.lastrowid or 0


def query_audit_trail(
    conn: sqlite3.Connection,
    *,
    actor_id: str | None = None,
    campaign_id: str | None = None,
    from_date: str | None = None,
    to_date: str | None = None,
    event_type: str | None = None,
    limit: int = 50,
) -> list[dict[str, Any]]:
    """Query the audit trail with flexible filtering.

    All filters are optional.  Results are ordered newest first.

    Args:
        conn: An open database connection.
        actor_id: Filter by acting administrator (exact match).
        campaign_id: Filter by campaign ID (exact match).
        from_date: Filter entries on or after this ISO 8601 date.
        to_date: Filter entries on or before this ISO 8601 date.
        event_type: Filter by event type (exact match).
        limit: Maximum number of results to return (default 50).

    Returns:
        A list of dicts, one per matching audit entry, newest first.
    """
    conn.row_factory = sqlite3.Row

    conditions: list[str] = []
    params: list[str | int] = []

    if actor_id is not None:
        conditions.append("actor_id = ?")
        params.append(actor_id)

    if campaign_id is not None:
        conditions.append("campaign_id = ?")
        params.append(campaign_id)

    if from_date is not None:
        conditions.append("timestamp >= ?")
        params.append(from_date)

    if to_date is not None:
        conditions.append("timestamp <= ?")
        params.append(to_date)

    if event_type is not None:
        conditions.append("event_type = ?")
        params.append(event_type)

    where_clause = ""
    if conditions:
        where_clause = "WHERE " + " AND ".join(conditions)

    query = f"SELECT * FROM audit_log {where_clause} ORDER BY timestamp DESC, id DESC LIMIT ?"
    params.append(limit)

    results: list[dict[str, Any]] = []
    for row in conn.execute(query, params).fetchall():
        row_dict = dict(row)
        if row_dict.get("metadata") is not None:
            row_dict["metadata"] = json.loads(row_dict["metadata"])
        results.append(row_dict)

    return results
