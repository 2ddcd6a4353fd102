"""
Unit tests for storage layer.

Tests schema creation, record insertion, update, deletion and error mapping.
"""

import os
import sqlite3
import tempfile
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import patch

import pytest

from cost_ledger.core.filters import compile_filters
from cost_ledger.storage.db import DecimalSum, get_connection
from cost_ledger.storage.models import CostRecordInput
from cost_ledger.storage.repository import CostRepository
from cost_ledger.utils.errors import ConflictError, NotFoundError, StoreError


def make_input(day=date(2025, 1, 10), service="EC2", amount="1.00", region="us-east-1",
               account="123456789012", **optional):
    """Create a cost record input."""
    return CostRecordInput(
        date=day,
        service_name=service,
        cost_amount=Decimal(amount),
        region=region,
        account_id=account,
        **optional
    )


class StorageTestCase:
    """Fresh database per test."""

    def setup_method(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.temp_dir.name, "test.db")
        self.repository = CostRepository(self.db_path)
        self.repository.initialize_schema()

    def teardown_method(self):
        self.temp_dir.cleanup()


class TestStorageSchema(StorageTestCase):
    """Test database schema creation and structure."""

    def test_schema_creation(self):
        """Verify table and filter indexes are created."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("PRAGMA table_info(cost_records)")
            column_names = [col[1] for col in cursor.fetchall()]
            assert column_names == [
                'id', 'date', 'service_name', 'cost_amount', 'region', 'account_id',
                'resource_id', 'usage_type', 'description', 'created_at', 'updated_at'
            ]

            cursor = conn.execute("""
                SELECT name FROM sqlite_master
                WHERE type='index' AND tbl_name='cost_records' AND name LIKE 'idx_%'
            """)
            index_names = {row[0] for row in cursor.fetchall()}
            assert index_names == {
                'idx_cost_records_date',
                'idx_cost_records_service_name',
                'idx_cost_records_region',
                'idx_cost_records_account_id',
            }
        finally:
            conn.close()

    def test_schema_creation_is_idempotent(self):
        """Initializing twice keeps existing data."""
        self.repository.insert_record(make_input())
        self.repository.initialize_schema()
        assert self.repository.count_records(compile_filters()) == 1


class TestRecordInsertion(StorageTestCase):
    """Test cost record insertion."""

    def test_insert_single_record(self):
        """The stored record gets an id and timestamps."""
        record = self.repository.insert_record(make_input(
            amount="12.34", resource_id="i-0abc", usage_type="BoxUsage"
        ))

        assert record.id == 1
        assert record.date == date(2025, 1, 10)
        assert record.service_name == "EC2"
        assert record.cost_amount == Decimal("12.34")
        assert record.resource_id == "i-0abc"
        assert record.usage_type == "BoxUsage"
        assert record.description is None
        assert isinstance(record.created_at, datetime)
        assert record.updated_at == record.created_at

    def test_amount_is_stored_with_two_decimals(self):
        """Amounts are rounded half-up to cents on write."""
        assert self.repository.insert_record(make_input(amount="0.125")).cost_amount == Decimal("0.13")
        assert self.repository.insert_record(make_input(amount="7")).cost_amount == Decimal("7.00")

    def test_missing_optional_fields_stay_null(self):
        """Optional fields are stored as NULL, not empty strings."""
        record = self.repository.insert_record(make_input())
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT resource_id, usage_type, description FROM cost_records WHERE id = ?",
                (record.id,),
            ).fetchone()
            assert tuple(row) == (None, None, None)
        finally:
            conn.close()

    def test_insert_multiple_records(self):
        """Batch inserts return records in input order."""
        records = self.repository.insert_records([
            make_input(service="EC2"),
            make_input(service="S3"),
            make_input(service="Lambda"),
        ])
        assert [record.service_name for record in records] == ["EC2", "S3", "Lambda"]
        assert len({record.id for record in records}) == 3

    def test_insert_empty_list(self):
        """Inserting nothing is a no-op."""
        assert self.repository.insert_records([]) == []
        assert self.repository.count_records(compile_filters()) == 0

    def test_batch_insert_is_atomic(self):
        """A failing record rolls back the whole batch."""
        conn = get_connection(self.db_path)
        try:
            conn.execute("CREATE UNIQUE INDEX uq_resource ON cost_records (resource_id)")
            conn.commit()
        finally:
            conn.close()

        with pytest.raises(ConflictError):
            self.repository.insert_records([
                make_input(resource_id="i-1"),
                make_input(resource_id="i-2"),
                make_input(resource_id="i-1"),
            ])
        assert self.repository.count_records(compile_filters()) == 0


class TestRecordUpdate(StorageTestCase):
    """Test cost record updates."""

    def test_update_supplied_fields(self):
        """Only supplied columns change."""
        record = self.repository.insert_record(make_input(description="old"))
        updated = self.repository.update_record(record.id, {
            "cost_amount": Decimal("9.999"),
            "region": "eu-west-1",
        })

        assert updated.id == record.id
        assert updated.cost_amount == Decimal("10.00")
        assert updated.region == "eu-west-1"
        assert updated.service_name == "EC2"
        assert updated.description == "old"
        assert updated.created_at == record.created_at
        assert updated.updated_at >= record.updated_at

    def test_clear_optional_field(self):
        """Optional fields can be cleared."""
        record = self.repository.insert_record(make_input(description="old"))
        assert self.repository.update_record(record.id, {"description": None}).description is None

    def test_empty_update_returns_record(self):
        """No changes returns the current record."""
        record = self.repository.insert_record(make_input())
        assert self.repository.update_record(record.id, {}) == record

    def test_update_unknown_id(self):
        """Updating a missing record is NotFound."""
        with pytest.raises(NotFoundError):
            self.repository.update_record(42, {"region": "eu-west-1"})

    def test_empty_update_unknown_id(self):
        """An empty update of a missing record is still NotFound."""
        with pytest.raises(NotFoundError):
            self.repository.update_record(42, {})

    def test_update_rejects_store_owned_columns(self):
        """id and timestamps cannot be written."""
        record = self.repository.insert_record(make_input())
        with pytest.raises(ValueError):
            self.repository.update_record(record.id, {"id": 99})


class TestRecordDeletion(StorageTestCase):
    """Test cost record deletion."""

    def test_delete_record(self):
        """A deleted record is gone."""
        record = self.repository.insert_record(make_input())
        self.repository.delete_record(record.id)
        with pytest.raises(NotFoundError):
            self.repository.get_record(record.id)

    def test_delete_unknown_id(self):
        """Deleting a missing record is NotFound."""
        with pytest.raises(NotFoundError):
            self.repository.delete_record(42)

    def test_ids_are_not_reused(self):
        """A new record never takes a deleted record's id."""
        first = self.repository.insert_record(make_input())
        self.repository.delete_record(first.id)
        assert self.repository.insert_record(make_input()).id != first.id


class TestRecordQueries(StorageTestCase):
    """Test filtered queries."""

    def test_fetch_orders_by_date_then_id(self):
        """Newest date first; equal dates in insertion order."""
        self.repository.insert_records([
            make_input(day=date(2025, 1, 1), service="A"),
            make_input(day=date(2025, 1, 3), service="B"),
            make_input(day=date(2025, 1, 3), service="C"),
            make_input(day=date(2025, 1, 2), service="D"),
        ])
        records = self.repository.fetch_records(compile_filters(), limit=10)
        assert [record.service_name for record in records] == ["B", "C", "D", "A"]

    def test_fetch_with_limit_and_offset(self):
        """Limit and offset slice the ordered result."""
        self.repository.insert_records([make_input(day=date(2025, 1, day)) for day in range(1, 6)])
        records = self.repository.fetch_records(compile_filters(), limit=2, offset=2)
        assert [record.date.day for record in records] == [3, 2]

    def test_sum_by_service_returns_decimal_text(self):
        """Grouped sums come back as exact decimal text."""
        self.repository.insert_records([
            make_input(service="EC2", amount="0.10"),
            make_input(service="EC2", amount="0.20"),
        ])
        rows = self.repository.sum_by_service(compile_filters())
        assert rows == [{"service_name": "EC2", "total_cost": "0.30", "record_count": 2}]

    def test_sum_on_empty_table(self):
        """An empty table has no groups."""
        assert self.repository.sum_by_service(compile_filters()) == []
        assert self.repository.sum_by_date(compile_filters()) == []

    def test_distinct_values(self):
        """Distinct values are unique."""
        self.repository.insert_records([
            make_input(region="us-east-1"),
            make_input(region="us-east-1"),
            make_input(region="eu-west-1"),
        ])
        assert self.repository.distinct_values("region") == ["eu-west-1", "us-east-1"]

    def test_distinct_values_rejects_other_columns(self):
        """Only filterable columns can be listed."""
        with pytest.raises(ValueError):
            self.repository.distinct_values("description")


class TestStoreErrors:
    """Test sqlite failures are mapped to typed errors."""

    def test_missing_table_is_store_error(self):
        """Querying before initialization is a StoreError."""
        with tempfile.TemporaryDirectory() as temp_dir:
            repository = CostRepository(os.path.join(temp_dir, "empty.db"))
            with pytest.raises(StoreError) as excinfo:
                repository.count_records(compile_filters())
            assert "no such table" not in str(excinfo.value)
            assert isinstance(excinfo.value.__cause__, sqlite3.OperationalError)

    def test_unreachable_store_is_store_error(self):
        """A database that cannot be opened is a StoreError."""
        with tempfile.TemporaryDirectory() as temp_dir:
            repository = CostRepository(os.path.join(temp_dir, "missing", "dir", "test.db"))
            with pytest.raises(StoreError):
                repository.initialize_schema()

    def test_connection_failure_is_store_error(self):
        """Driver errors raised while connecting are StoreErrors."""
        repository = CostRepository("ignored.db")
        with patch(
            "cost_ledger.storage.repository.get_connection",
            side_effect=sqlite3.OperationalError("database is locked"),
        ):
            with pytest.raises(StoreError):
                repository.fetch_records(compile_filters(), limit=10)

    def test_unexpected_row_is_store_error(self):
        """A corrupt stored value is reported as a StoreError."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            repository = CostRepository(db_path)
            repository.initialize_schema()
            conn = get_connection(db_path)
            try:
                conn.execute("""
                    INSERT INTO cost_records (date, service_name, cost_amount, region, account_id)
                    VALUES ('not-a-date', 'EC2', '1.00', 'us-east-1', '1')
                """)
                conn.commit()
            finally:
                conn.close()

            with pytest.raises(StoreError):
                repository.fetch_records(compile_filters(), limit=10)


class TestDecimalSum:
    """Test the DECIMAL_SUM aggregate."""

    def test_no_values_is_null(self):
        """An empty group sums to NULL, like SUM."""
        assert DecimalSum().finalize() is None

    def test_nulls_are_skipped(self):
        """NULL inputs do not contribute."""
        total = DecimalSum()
        for value in ("0.10", None, "0.20"):
            total.step(value)
        assert total.finalize() == "0.30"

    def test_exact_over_many_values(self):
        """Ten thousand 0.01 values add up exactly."""
        total = DecimalSum()
        for _ in range(10000):
            total.step("0.01")
        assert total.finalize() == "100.00"
