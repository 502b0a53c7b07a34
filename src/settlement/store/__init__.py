"""Settlement persistence package.

Provides the SQLite schema, connection setup, the unit-of-work transaction
scope, and the data-access store for campaigns, submissions and users.
"""

from settlement.domain.timestamps import format_timestamp
from settlement.store.database import connect_db, unit_of_work
from settlement.store.schema import init_settlement_schema
from settlement.store.store import SettlementStore

__all__ = [
    "SettlementStore",
    "connect_db",
    "format_timestamp",
    "init_settlement_schema",
    "unit_of_work",
]
