"""Ledger primitive: balance changes that always leave an audit record.

A user's ``balance_cents`` column is only ever changed here, and only
together with an appended ``transactions`` row in the same database
transaction.  The balance is therefore always reconstructible as the sum of
the user's entries, which :meth:`Ledger.reconcile` verifies.
"""

from __future__ import annotations

import sqlite3
import uuid
from decimal import Decimal

import structlog

from settlement.domain.errors import NotFoundError
from settlement.domain.models import BalanceCheck, LedgerEntry
from settlement.domain.money import from_cents, to_cents
from settlement.domain.timestamps import format_timestamp
from settlement.domain.types import TransactionStatus, TransactionType

logger = structlog.get_logger()

_ENTRY_COLUMNS = "id, user_id, amount_cents, type, status, description, reference, created_at"


def _row_to_entry(row: sqlite3.Row | tuple) -> LedgerEntry:
    return LedgerEntry(
        id=row[0],
        user_id=row[1],
        amount=from_cents(row[2]),
        type=TransactionType(row[3]),
        status=TransactionStatus(row[4]),
        description=row[5],
        reference=row[6],
        created_at=row[7],
    )


class Ledger:
    """Append-only ledger over the ``users`` and ``transactions`` tables.

    Args:
        conn: An open connection whose database has the settlement schema.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def apply_entry(
        self,
        user_id: str,
        amount: Decimal,
        entry_type: TransactionType,
        description: str,
        reference: str | None = None,
    ) -> LedgerEntry:
        """Append a transaction and adjust the user's balance by *amount*.

        Must run inside the caller's unit of work so the entry commits or
        rolls back together with the rest of the caller's writes.  Negative
        resulting balances are allowed; callers enforce domain rules.

        Args:
            user_id: The user whose balance changes.
            amount: Signed amount (credit > 0, debit < 0), whole cents.
            entry_type: The kind of entry.
            description: Human-readable description for the audit trail.
            reference: Optional campaign or submission id.

        Returns:
            The appended ledger entry.

        Raises:
            RuntimeError: If no transaction is open on the connection.
            NotFoundError: If the user does not exist.
        """
        if not self._conn.in_transaction:
            raise RuntimeError("Ledger entries must be applied inside a unit of work")

        cents = to_cents(amount)
        cursor = self._conn.execute(
            "UPDATE users SET balance_cents = balance_cents + ? WHERE id = ?",
            (cents, user_id),
        )
        if cursor.rowcount == 0:
            raise NotFoundError("user", user_id)

        entry = LedgerEntry(
            id=uuid.uuid4().hex,
            user_id=user_id,
            amount=from_cents(cents),
            type=entry_type,
            status=TransactionStatus.COMPLETED,
            description=description,
            reference=reference,
            created_at=format_timestamp(),
        )
        self._conn.execute(
            f"INSERT INTO transactions ({_ENTRY_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                entry.id,
                entry.user_id,
                cents,
                entry.type.value,
                entry.status.value,
                entry.description,
                entry.reference,
                format_timestamp(entry.created_at),
            ),
        )
        logger.info(
            "ledger_entry_applied",
            user_id=user_id,
            amount=str(entry.amount),
            entry_type=entry.type.value,
            reference=reference,
        )
        return entry

    def balance(self, user_id: str) -> Decimal:
        """Return the user's current spendable balance.

        Raises:
            NotFoundError: If the user does not exist.
        """
        row = self._conn.execute(
            "SELECT balance_cents FROM users WHERE id = ?", (user_id,)
        ).fetchone()
        if row is None:
            raise NotFoundError("user", user_id)
        return from_cents(row[0])

    def entries(
        self,
        user_id: str,
        entry_type: TransactionType | None = None,
    ) -> list[LedgerEntry]:
        """Return the user's entries in the order they were appended."""
        query = f"SELECT {_ENTRY_COLUMNS} FROM transactions WHERE user_id = ?"
        params: list[str] = [user_id]
        if entry_type is not None:
            query += " AND type = ?"
            params.append(entry_type.value)
        query += " ORDER BY rowid"
        return [_row_to_entry(row) for row in self._conn.execute(query, params).fetchall()]

    def entries_for_reference(self, reference: str) -> list[LedgerEntry]:
        """Return every entry tagged with *reference* (e.g. a campaign id)."""
        rows = self._conn.execute(
            f"SELECT {_ENTRY_COLUMNS} FROM transactions WHERE reference = ? ORDER BY rowid",
            (reference,),
        ).fetchall()
        return [_row_to_entry(row) for row in rows]

    def reconcile(self, user_id: str) -> BalanceCheck:
        """Compare the stored balance with the sum of the user's entries."""
        balance = self.balance(user_id)
        row = self._conn.execute(
            "SELECT COALESCE(SUM(amount_cents), 0) FROM transactions WHERE user_id = ?",
            (user_id,),
        ).fetchone()
        return BalanceCheck(user_id=user_id, balance=balance, ledger_total=from_cents(row[0]))

    def reconcile_all(self) -> list[BalanceCheck]:
        """Reconcile every user, ordered by user id."""
        user_ids = [row[0] for row in self._conn.execute("SELECT id FROM users ORDER BY id")]
        return [self.reconcile(user_id) for user_id in user_ids]
