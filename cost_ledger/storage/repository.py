"""
Repository pattern for data access.

Handles database operations for cost records. Every method opens its own
connection, so a repository can be shared across threads.
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterator, List, Sequence

from cost_ledger.core.filters import FilterSpec
from cost_ledger.utils.errors import ConflictError, NotFoundError, StoreError
from .db import get_connection
from .models import CostRecord, CostRecordInput, quantize_amount

logger = logging.getLogger(__name__)

TABLE_NAME = "cost_records"

RECORD_COLUMNS = (
    "id", "date", "service_name", "cost_amount", "region", "account_id",
    "resource_id", "usage_type", "description", "created_at", "updated_at",
)

UPDATABLE_COLUMNS = frozenset({
    "date", "service_name", "cost_amount", "region", "account_id",
    "resource_id", "usage_type", "description",
})

FILTER_COLUMNS = frozenset({"service_name", "region", "account_id"})

_NOW = "strftime('%Y-%m-%dT%H:%M:%f', 'now')"

_SELECT_RECORDS = f"SELECT {', '.join(RECORD_COLUMNS)} FROM {TABLE_NAME}"


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Translate sqlite failures into typed store errors."""
    try:
        yield
    except sqlite3.IntegrityError as e:
        logger.warning("Constraint violation while trying to %s: %s", operation, e)
        raise ConflictError("Cost record conflicts with an existing record") from e
    except sqlite3.Error as e:
        logger.error("Store failure while trying to %s: %s", operation, e)
        raise StoreError(f"Failed to {operation}") from e


def _to_db_value(column: str, value: Any) -> Any:
    if value is None:
        return None
    if column == "date":
        return value.isoformat()
    if column == "cost_amount":
        return str(quantize_amount(Decimal(value)))
    return value


def _row_to_record(row: sqlite3.Row) -> CostRecord:
    try:
        return CostRecord(
            id=row["id"],
            date=date.fromisoformat(row["date"]),
            service_name=row["service_name"],
            cost_amount=Decimal(str(row["cost_amount"])),
            region=row["region"],
            account_id=row["account_id"],
            resource_id=row["resource_id"],
            usage_type=row["usage_type"],
            description=row["description"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
    except (TypeError, ValueError, InvalidOperation) as e:
        logger.error("Unexpected cost record row %r: %s", dict(row), e)
        raise StoreError("Store returned an unexpected record") from e


class CostRepository:
    """Repository for cost records.

    Queries take a compiled FilterSpec and push it down into SQL. Aggregate
    queries return the raw rows the store produced; turning them into strict
    numbers is the caller's job.
    """

    def __init__(self, db_path: str = "cost_ledger.db", timeout: float = 5.0):
        """Initialize the repository.

        Args:
            db_path: Path to SQLite database file
            timeout: Seconds to wait on a locked database
        """
        self.db_path = db_path
        self.timeout = timeout

    def _connect(self) -> sqlite3.Connection:
        return get_connection(self.db_path, self.timeout)

    def initialize_schema(self) -> None:
        """Create the cost_records table and its filter indexes if missing."""
        with _store_errors("initialize schema"):
            conn = self._connect()
            try:
                with conn:
                    conn.execute(f"""
                        CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
                            id INTEGER PRIMARY KEY AUTOINCREMENT,
                            date TEXT NOT NULL,
                            service_name TEXT NOT NULL,
                            cost_amount TEXT NOT NULL,
                            region TEXT NOT NULL,
                            account_id TEXT NOT NULL,
                            resource_id TEXT,
                            usage_type TEXT,
                            description TEXT,
                            created_at TEXT NOT NULL DEFAULT ({_NOW}),
                            updated_at TEXT NOT NULL DEFAULT ({_NOW})
                        )
                    """)
                    for column in ("date", "service_name", "region", "account_id"):
                        conn.execute(
                            f"CREATE INDEX IF NOT EXISTS idx_{TABLE_NAME}_{column} "
                            f"ON {TABLE_NAME} ({column})"
                        )
            finally:
                conn.close()

    def insert_record(self, record: CostRecordInput) -> CostRecord:
        """Insert a single cost record.

        Returns:
            The stored record, with id and timestamps assigned
        """
        return self.insert_records([record])[0]

    def insert_records(self, records: Sequence[CostRecordInput]) -> List[CostRecord]:
        """Insert cost records atomically.

        All records are inserted in a single transaction; if any insert
        fails none are kept.

        Returns:
            The stored records, in input order
        """
        if not records:
            return []

        with _store_errors("create cost records"):
            conn = self._connect()
            try:
                ids = []
                with conn:
                    for record in records:
                        cursor = conn.execute(f"""
                            INSERT INTO {TABLE_NAME}
                            (date, service_name, cost_amount, region, account_id,
                             resource_id, usage_type, description)
                            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        """, (
                            _to_db_value("date", record.date),
                            record.service_name,
                            _to_db_value("cost_amount", record.cost_amount),
                            record.region,
                            record.account_id,
                            record.resource_id,
                            record.usage_type,
                            record.description,
                        ))
                        ids.append(cursor.lastrowid)
                return [self._fetch_by_id(conn, record_id) for record_id in ids]
            finally:
                conn.close()

    def get_record(self, record_id: int) -> CostRecord:
        """Fetch one record by id.

        Raises:
            NotFoundError: If no record has this id
        """
        with _store_errors("fetch cost record"):
            conn = self._connect()
            try:
                return self._fetch_by_id(conn, record_id)
            finally:
                conn.close()

    def update_record(self, record_id: int, changes: Dict[str, Any]) -> CostRecord:
        """Overwrite the supplied columns of a record.

        Args:
            record_id: Id of the record to update
            changes: Column name to new value; only updatable columns

        Returns:
            The record after the update

        Raises:
            NotFoundError: If no record has this id
        """
        unknown = set(changes) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Columns cannot be updated: {sorted(unknown)}")

        with _store_errors("update cost record"):
            conn = self._connect()
            try:
                with conn:
                    if changes:
                        columns = sorted(changes)
                        assignments = ", ".join(f"{column} = ?" for column in columns)
                        params = [_to_db_value(column, changes[column]) for column in columns]
                        params.append(record_id)
                        cursor = conn.execute(
                            f"UPDATE {TABLE_NAME} SET {assignments}, updated_at = {_NOW} "
                            f"WHERE id = ?",
                            params,
                        )
                        if cursor.rowcount == 0:
                            raise NotFoundError()
                return self._fetch_by_id(conn, record_id)
            finally:
                conn.close()

    def delete_record(self, record_id: int) -> None:
        """Delete a record by id.

        Raises:
            NotFoundError: If no record has this id
        """
        with _store_errors("delete cost record"):
            conn = self._connect()
            try:
                with conn:
                    cursor = conn.execute(f"DELETE FROM {TABLE_NAME} WHERE id = ?", (record_id,))
                    if cursor.rowcount == 0:
                        raise NotFoundError()
            finally:
                conn.close()

    def fetch_records(self, spec: FilterSpec, limit: int, offset: int = 0) -> List[CostRecord]:
        """Fetch one page of matching records.

        Ordered by date (newest first) with id as the tie-break, so pages
        of an unchanged table never overlap or skip rows.
        """
        where, params = spec.to_sql()
        with _store_errors("fetch cost records"):
            conn = self._connect()
            try:
                cursor = conn.execute(
                    f"{_SELECT_RECORDS}{where} ORDER BY date DESC, id ASC LIMIT ? OFFSET ?",
                    [*params, limit, offset],
                )
                return [_row_to_record(row) for row in cursor.fetchall()]
            finally:
                conn.close()

    def count_records(self, spec: FilterSpec) -> Any:
        """Count matching records, ignoring any paging."""
        where, params = spec.to_sql()
        with _store_errors("count cost records"):
            conn = self._connect()
            try:
                row = conn.execute(f"SELECT COUNT(*) FROM {TABLE_NAME}{where}", params).fetchone()
                return row[0]
            finally:
                conn.close()

    def sum_by_service(self, spec: FilterSpec) -> List[Dict[str, Any]]:
        """Raw per-service totals: service_name, total_cost, record_count."""
        where, params = spec.to_sql()
        return self._aggregate(
            "summarize costs by service",
            f"""
                SELECT service_name,
                       DECIMAL_SUM(cost_amount) AS total_cost,
                       COUNT(id) AS record_count
                FROM {TABLE_NAME}{where}
                GROUP BY service_name
                ORDER BY service_name
            """,
            params,
        )

    def sum_by_date(self, spec: FilterSpec) -> List[Dict[str, Any]]:
        """Raw per-date totals: date, daily_cost, oldest date first."""
        where, params = spec.to_sql()
        return self._aggregate(
            "summarize costs by date",
            f"""
                SELECT date, DECIMAL_SUM(cost_amount) AS daily_cost
                FROM {TABLE_NAME}{where}
                GROUP BY date
                ORDER BY date ASC
            """,
            params,
        )

    def distinct_values(self, column: str) -> List[str]:
        """Distinct non-null values of a filterable column, over all records."""
        if column not in FILTER_COLUMNS:
            raise ValueError(f"Not a filterable column: {column}")
        with _store_errors(f"fetch distinct {column} values"):
            conn = self._connect()
            try:
                cursor = conn.execute(
                    f"SELECT DISTINCT {column} FROM {TABLE_NAME} "
                    f"WHERE {column} IS NOT NULL ORDER BY {column}"
                )
                return [row[0] for row in cursor.fetchall()]
            finally:
                conn.close()

    def _aggregate(self, operation: str, query: str, params: List[Any]) -> List[Dict[str, Any]]:
        with _store_errors(operation):
            conn = self._connect()
            try:
                return [dict(row) for row in conn.execute(query, params).fetchall()]
            finally:
                conn.close()

    def _fetch_by_id(self, conn: sqlite3.Connection, record_id: int) -> CostRecord:
        row = conn.execute(f"{_SELECT_RECORDS} WHERE id = ?", (record_id,)).fetchone()
        if row is None:
            raise NotFoundError()
        return _row_to_record(row)


def get_repository(db_path: str = "cost_ledger.db", timeout: float = 5.0) -> CostRepository:
    """Get a repository for the given database file."""
    return CostRepository(db_path, timeout)
