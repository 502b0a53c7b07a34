"""Ledger primitive: atomic balance adjustments with append-only entries."""

from settlement.ledger.ledger import Ledger

__all__ = ["Ledger"]
