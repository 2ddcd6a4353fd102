"""
Database connection management.

Provides SQLite connections with the decimal aggregate registered.
"""

import sqlite3
from decimal import Decimal
from pathlib import Path
from typing import Optional


class DecimalSum:
    """``DECIMAL_SUM(x)`` aggregate that adds values as ``Decimal``.

    SQLite's own ``SUM`` works in binary floating point for non-integer
    values. This one returns the exact total as decimal text, or NULL when
    the group has no non-null values, like ``SUM``.
    """

    def __init__(self):
        self.total: Optional[Decimal] = None

    def step(self, value) -> None:
        if value is None:
            return
        amount = Decimal(str(value))
        self.total = amount if self.total is None else self.total + amount

    def finalize(self) -> Optional[str]:
        if self.total is None:
            return None
        return str(self.total)


def get_connection(db_path: str = "cost_ledger.db", timeout: float = 5.0) -> sqlite3.Connection:
    """Create and return a SQLite database connection.

    Args:
        db_path: Path to SQLite database file
        timeout: Seconds to wait on a locked database before failing

    Returns:
        SQLite connection with ``sqlite3.Row`` rows and ``DECIMAL_SUM``
    """
    path = Path(db_path)
    conn = sqlite3.connect(str(path), timeout=timeout)
    conn.row_factory = sqlite3.Row
    conn.create_aggregate("DECIMAL_SUM", 1, DecimalSum)
    return conn
