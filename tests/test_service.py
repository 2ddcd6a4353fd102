"""
Tests for the cost endpoints and their response envelopes.
"""

import os
import tempfile
from unittest.mock import MagicMock

from cost_ledger.service.costs import ApiResponse, CostService
from cost_ledger.storage.repository import CostRepository
from cost_ledger.utils.errors import StoreError


def payload(**overrides):
    """Create a valid create payload."""
    data = {
        "date": "2025-01-10",
        "serviceName": "EC2",
        "costAmount": "1.00",
        "region": "us-east-1",
        "accountId": "123456789012",
    }
    data.update(overrides)
    return data


class TestCostService:
    """Test envelopes produced by each endpoint."""

    def setup_method(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        repository = CostRepository(os.path.join(self.temp_dir.name, "test.db"))
        repository.initialize_schema()
        self.service = CostService(repository, max_limit=100)

    def teardown_method(self):
        self.temp_dir.cleanup()

    def test_create_returns_record(self):
        """Creating returns the stored record with a 201 status."""
        response = self.service.create_cost(payload(costAmount=12.345, usageType="BoxUsage"))

        assert response.success
        assert response.status_code == 201
        body = response.to_dict()
        assert body["message"] == "Cost record created successfully"
        assert body["data"]["id"] == 1
        assert body["data"]["costAmount"] == 12.35
        assert body["data"]["usageType"] == "BoxUsage"
        assert body["data"]["resourceId"] is None
        assert "pagination" not in body

    def test_create_invalid_payload(self):
        """Validation failures list each field with a 400 status."""
        response = self.service.create_cost({"date": "2025-13-01", "costAmount": -1})

        assert not response.success
        assert response.status_code == 400
        body = response.to_dict()
        assert body["error"] == "ValidationError"
        fields = {error["field"] for error in body["errors"]}
        assert fields == {"date", "costAmount", "serviceName", "region", "accountId"}

    def test_create_many_is_all_or_nothing(self):
        """One invalid record rejects the whole batch."""
        response = self.service.create_costs([payload(), payload(region="")])

        assert response.status_code == 400
        assert [error.field for error in response.errors] == ["[1].region"]
        assert self.service.list_costs({}).pagination.total_records == 0

        response = self.service.create_costs([payload(), payload(serviceName="S3")])
        assert response.status_code == 201
        assert len(response.data) == 2

    def test_list_envelope(self):
        """Listing includes data and pagination."""
        for day in range(1, 16):
            self.service.create_cost(payload(date=f"2025-01-{day:02d}"))

        body = self.service.list_costs({"page": "2", "limit": "10"}).to_dict()

        assert body["success"] is True
        assert len(body["data"]) == 5
        assert body["data"][0]["date"] == "2025-01-05"
        assert body["pagination"] == {
            "currentPage": 2,
            "totalPages": 2,
            "totalRecords": 15,
            "recordsPerPage": 10,
        }

    def test_list_page_beyond_data(self):
        """A page past the end is an empty success."""
        for _ in range(15):
            self.service.create_cost(payload())

        response = self.service.list_costs({"page": 99, "limit": 10})

        assert response.success
        assert response.data == []
        assert response.pagination.total_pages == 2

    def test_list_rejects_bad_paging(self):
        """Invalid page, oversize limit and bad dates are 400s."""
        assert self.service.list_costs({"page": "0"}).status_code == 400
        assert self.service.list_costs({"limit": "101"}).status_code == 400
        assert self.service.list_costs({"startDate": "2025/01/01"}).status_code == 400
        assert self.service.list_costs({"page": "99999999999999999999"}).status_code == 400

    def test_oversize_amount_is_rejected(self):
        """An amount too large to store is a 400 and nothing is written."""
        response = self.service.create_cost(payload(costAmount="1e30"))

        assert response.status_code == 400
        assert [error.field for error in response.errors] == ["costAmount"]
        assert self.service.list_costs({}).pagination.total_records == 0

    def test_summary_of_largest_amounts(self):
        """Summing many maximal amounts stays exact."""
        for _ in range(3):
            assert self.service.create_cost(payload(costAmount="9999999999999.99")).status_code == 201

        response = self.service.cost_summary({})

        assert response.status_code == 200
        assert response.data[0]["recordCount"] == 3

    def test_list_filters_by_multiple_services(self):
        """A list filter matches any of its values."""
        for service in ("EC2", "S3", "Lambda"):
            self.service.create_cost(payload(serviceName=service))

        response = self.service.list_costs({"serviceName": ["EC2", "S3"]})

        assert sorted(item["serviceName"] for item in response.data) == ["EC2", "S3"]

    def test_summary_envelope(self):
        """Summary data carries totals as numbers and no pagination."""
        self.service.create_cost(payload(costAmount="1.00"))
        self.service.create_cost(payload(costAmount="2.50"))
        self.service.create_cost(payload(serviceName="S3", costAmount="0.50"))

        body = self.service.cost_summary({}).to_dict()

        assert body == {
            "success": True,
            "data": [
                {"serviceName": "EC2", "totalCost": 3.5, "recordCount": 2},
                {"serviceName": "S3", "totalCost": 0.5, "recordCount": 1},
            ],
        }

    def test_trends_envelope(self):
        """Trend data is keyed by ISO date."""
        self.service.create_cost(payload(date="2025-01-02", costAmount="1.10"))
        self.service.create_cost(payload(date="2025-01-01", costAmount="2.20"))

        body = self.service.cost_trends({"endDate": "2025-01-31"}).to_dict()

        assert body["data"] == [
            {"date": "2025-01-01", "dailyCost": 2.2},
            {"date": "2025-01-02", "dailyCost": 1.1},
        ]

    def test_filters_envelope(self):
        """Filter catalogs ignore request filters."""
        self.service.create_cost(payload())
        self.service.create_cost(payload(serviceName="S3", region="eu-west-1"))

        body = self.service.available_filters().to_dict()

        assert body["data"] == {
            "services": ["EC2", "S3"],
            "regions": ["eu-west-1", "us-east-1"],
            "accounts": ["123456789012"],
        }

    def test_update_record(self):
        """Updating returns the changed record."""
        created = self.service.create_cost(payload(description="old"))

        response = self.service.update_cost(created.data["id"], {"costAmount": 4, "description": None})

        assert response.success
        assert response.message == "Cost record updated successfully"
        assert response.data["costAmount"] == 4.0
        assert response.data["description"] is None
        assert response.data["serviceName"] == "EC2"

    def test_update_unknown_id_is_not_found(self):
        """Updating a missing record is a 404, not a store failure."""
        response = self.service.update_cost(42, {"region": "eu-west-1"})

        assert not response.success
        assert response.status_code == 404
        assert response.to_dict()["message"] == "Cost record not found"

    def test_delete_record(self):
        """Deleting returns a bare success envelope."""
        created = self.service.create_cost(payload())

        body = self.service.delete_cost(str(created.data["id"])).to_dict()

        assert body == {"success": True, "message": "Cost record deleted successfully"}
        assert self.service.delete_cost(created.data["id"]).status_code == 404

    def test_delete_invalid_id(self):
        """A malformed id is a validation failure."""
        assert self.service.delete_cost("abc").status_code == 400


class TestFailureEnvelopes:
    """Test store failures are reported without internals."""

    def test_store_failure_is_opaque(self):
        """A store failure becomes a 500 with the safe message only."""
        repository = MagicMock()
        repository.count_records.side_effect = StoreError("Failed to count cost records")

        response = CostService(repository).list_costs({})

        assert response.status_code == 500
        assert response.to_dict() == {
            "success": False,
            "message": "Failed to count cost records",
            "error": "StoreError",
        }

    def test_unexpected_error_is_opaque(self):
        """Unexpected exceptions do not leak their message."""
        repository = MagicMock()
        repository.sum_by_date.side_effect = RuntimeError("connection string with password")

        response = CostService(repository).cost_trends({})

        assert response.status_code == 500
        assert "password" not in str(response.to_dict())

    def test_filters_fail_as_a_whole(self):
        """One failed distinct lookup fails the catalog request."""
        repository = MagicMock()
        repository.distinct_values.side_effect = [["EC2"], StoreError("boom"), ["1"]]

        response = CostService(repository).available_filters()

        assert not response.success
        assert response.data is None


class TestApiResponse:
    """Test envelope serialization."""

    def test_only_set_keys_are_emitted(self):
        """Unset optional keys are left out."""
        assert ApiResponse(success=True).to_dict() == {"success": True}
