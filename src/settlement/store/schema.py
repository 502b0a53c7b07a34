"""SQLite schema for settlement persistence.

Money columns hold integer cents.  Two invariants are enforced by triggers
rather than by convention:

* ``transactions`` is append-only: no UPDATE or DELETE is ever accepted.
* ``submissions`` rows are frozen once their campaign is COMPLETED or
  CANCELLED.
"""

from __future__ import annotations

import sqlite3


def init_settlement_schema(conn: sqlite3.Connection) -> None:
    """Create all settlement tables, indexes and guard triggers if missing.

    Args:
        conn: An open sqlite3.Connection (see ``connect_db``).
    """
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            role TEXT NOT NULL,
            name TEXT NOT NULL,
            balance_cents INTEGER NOT NULL DEFAULT 0,
            disqualified INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
        );

        CREATE TABLE IF NOT EXISTS campaigns (
            id TEXT PRIMARY KEY,
            artist_id TEXT NOT NULL REFERENCES users (id),
            title TEXT NOT NULL,
            status TEXT NOT NULL,
            total_budget_cents INTEGER NOT NULL CHECK (total_budget_cents > 0),
            duration_days INTEGER NOT NULL DEFAULT 30,
            rejection_reason TEXT,
            start_date TEXT,
            end_date TEXT,
            created_at TEXT NOT NULL,
            completed_at TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_campaigns_status_end
            ON campaigns (status, end_date);

        CREATE TABLE IF NOT EXISTS submissions (
            id TEXT PRIMARY KEY,
            campaign_id TEXT NOT NULL REFERENCES campaigns (id),
            creator_id TEXT NOT NULL REFERENCES users (id),
            url TEXT NOT NULL,
            status TEXT NOT NULL,
            views INTEGER NOT NULL DEFAULT 0,
            likes INTEGER NOT NULL DEFAULT 0,
            comments INTEGER NOT NULL DEFAULT 0,
            shares INTEGER NOT NULL DEFAULT 0,
            last_checked_at TEXT,
            impact_score TEXT,
            payout_cents INTEGER,
            created_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_submissions_campaign
            ON submissions (campaign_id, status);

        CREATE TRIGGER IF NOT EXISTS submissions_frozen_after_settlement
        BEFORE UPDATE ON submissions
        WHEN (SELECT status FROM campaigns WHERE id = OLD.campaign_id)
             IN ('completed', 'cancelled')
        BEGIN
            SELECT RAISE(ABORT, 'submission belongs to a settled campaign');
        END;

        CREATE TABLE IF NOT EXISTS transactions (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES users (id),
            amount_cents INTEGER NOT NULL,
            type TEXT NOT NULL,
            status TEXT NOT NULL,
            description TEXT NOT NULL,
            reference TEXT,
            created_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_transactions_user
            ON transactions (user_id);

        CREATE TRIGGER IF NOT EXISTS transactions_no_update
        BEFORE UPDATE ON transactions
        BEGIN
            SELECT RAISE(ABORT, 'transactions are append-only');
        END;

        CREATE TRIGGER IF NOT EXISTS transactions_no_delete
        BEFORE DELETE ON transactions
        BEGIN
            SELECT RAISE(ABORT, 'transactions are append-only');
        END;

        CREATE TABLE IF NOT EXISTS notifications (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            title TEXT NOT NULL,
            message TEXT NOT NULL,
            link TEXT,
            created_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_notifications_user
            ON notifications (user_id);

        CREATE TABLE IF NOT EXISTS metric_fetch_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            campaign_id TEXT NOT NULL,
            submission_id TEXT NOT NULL,
            status TEXT NOT NULL,
            error_message TEXT,
            created_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_metric_fetch_campaign
            ON metric_fetch_log (campaign_id);
    """)
