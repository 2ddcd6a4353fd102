"""
Cost endpoints.

Entry points for the request-handling shell. Each method takes raw caller
input, runs validation and the core, and returns an ApiResponse envelope.
Typed failures become failure envelopes; anything unexpected is logged and
reported without internals.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from cost_ledger.core.aggregation import (
    available_filter_values,
    daily_cost_trend,
    list_cost_records,
    summarize_by_service,
)
from cost_ledger.core.pagination import Pagination
from cost_ledger.core.validation import (
    DEFAULT_MAX_LIMIT,
    parse_filter_params,
    parse_page_request,
    parse_record_id,
    parse_record_payload,
    parse_record_update,
)
from cost_ledger.storage.repository import CostRepository
from cost_ledger.utils.errors import FieldError, LedgerError, StoreError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class ApiResponse:
    """Response envelope returned to the shell."""
    success: bool
    data: Any = None
    message: Optional[str] = None
    pagination: Optional[Pagination] = None
    error: Optional[str] = None
    errors: List[FieldError] = field(default_factory=list)
    status_code: int = 200

    def to_dict(self) -> Dict[str, Any]:
        """Envelope with only the keys that are set."""
        body: Dict[str, Any] = {"success": self.success}
        if self.data is not None:
            body["data"] = self.data
        if self.message is not None:
            body["message"] = self.message
        if self.pagination is not None:
            body["pagination"] = self.pagination.to_dict()
        if self.error is not None:
            body["error"] = self.error
        if self.errors:
            body["errors"] = [error.to_dict() for error in self.errors]
        return body


def _failure(error: LedgerError) -> ApiResponse:
    return ApiResponse(
        success=False,
        message=error.message,
        error=type(error).__name__,
        errors=getattr(error, "errors", []),
        status_code=error.status_code,
    )


class CostService:
    """Cost ledger operations behind the envelope contract."""

    def __init__(self, repository: CostRepository, max_limit: int = DEFAULT_MAX_LIMIT):
        self.repository = repository
        self.max_limit = max_limit

    def _run(self, operation: str, handler: Callable[[], ApiResponse]) -> ApiResponse:
        try:
            return handler()
        except ValidationError as e:
            logger.warning("Rejected %s: %s %s", operation, e.message, [err.to_dict() for err in e.errors])
            return _failure(e)
        except LedgerError as e:
            if isinstance(e, StoreError):
                logger.error("Failed to %s: %s", operation, e.message)
            else:
                logger.warning("Failed to %s: %s", operation, e.message)
            return _failure(e)
        except Exception:
            logger.exception("Unexpected error while trying to %s", operation)
            return _failure(StoreError("An unexpected error occurred. Please try again later."))

    def list_costs(self, params: Mapping[str, Any]) -> ApiResponse:
        """GET /api/costs - paginated, filtered listing."""
        def handler():
            page_request = parse_page_request(params.get("page"), params.get("limit"), self.max_limit)
            spec = parse_filter_params(params)
            page = list_cost_records(self.repository, spec, page_request)
            return ApiResponse(
                success=True,
                data=[record.to_dict() for record in page.records],
                pagination=page.pagination,
            )
        return self._run("fetch cost records", handler)

    def cost_summary(self, params: Mapping[str, Any]) -> ApiResponse:
        """GET /api/costs/summary - totals per service."""
        def handler():
            spec = parse_filter_params(params)
            summary = summarize_by_service(self.repository, spec)
            return ApiResponse(success=True, data=[item.to_dict() for item in summary])
        return self._run("fetch cost summary", handler)

    def cost_trends(self, params: Mapping[str, Any]) -> ApiResponse:
        """GET /api/costs/trends - totals per day."""
        def handler():
            spec = parse_filter_params(params)
            trend = daily_cost_trend(self.repository, spec)
            return ApiResponse(success=True, data=[item.to_dict() for item in trend])
        return self._run("fetch cost trends", handler)

    def available_filters(self) -> ApiResponse:
        """GET /api/costs/filters - distinct filter values."""
        def handler():
            catalog = available_filter_values(self.repository)
            return ApiResponse(success=True, data=catalog.to_dict())
        return self._run("fetch available filters", handler)

    def create_cost(self, payload: Mapping[str, Any]) -> ApiResponse:
        """POST /api/costs - create one record."""
        def handler():
            record = self.repository.insert_record(parse_record_payload(payload))
            logger.info(
                "Cost record created: id=%d service=%s amount=%s",
                record.id, record.service_name, record.cost_amount,
            )
            return ApiResponse(
                success=True,
                data=record.to_dict(),
                message="Cost record created successfully",
                status_code=201,
            )
        return self._run("create cost record", handler)

    def create_costs(self, payloads: Sequence[Mapping[str, Any]]) -> ApiResponse:
        """Create many records atomically; any invalid payload rejects them all."""
        def handler():
            errors: List[FieldError] = []
            records = []
            for index, payload in enumerate(payloads):
                try:
                    records.append(parse_record_payload(payload))
                except ValidationError as e:
                    errors.extend(
                        FieldError(f"[{index}].{err.field}", err.message) for err in e.errors
                    )
                    if not e.errors:
                        errors.append(FieldError(f"[{index}]", e.message))
            if errors:
                raise ValidationError("Invalid cost records", errors)

            created = self.repository.insert_records(records)
            logger.info("Created %d cost records", len(created))
            return ApiResponse(
                success=True,
                data=[record.to_dict() for record in created],
                message=f"{len(created)} cost records created successfully",
                status_code=201,
            )
        return self._run("create cost records", handler)

    def update_cost(self, record_id: Any, payload: Mapping[str, Any]) -> ApiResponse:
        """PUT /api/costs/:id - overwrite the supplied fields."""
        def handler():
            parsed_id = parse_record_id(record_id)
            record = self.repository.update_record(parsed_id, parse_record_update(payload))
            logger.info("Cost record updated: id=%d service=%s", record.id, record.service_name)
            return ApiResponse(
                success=True,
                data=record.to_dict(),
                message="Cost record updated successfully",
            )
        return self._run("update cost record", handler)

    def delete_cost(self, record_id: Any) -> ApiResponse:
        """DELETE /api/costs/:id."""
        def handler():
            parsed_id = parse_record_id(record_id)
            self.repository.delete_record(parsed_id)
            logger.info("Cost record deleted: id=%d", parsed_id)
            return ApiResponse(success=True, message="Cost record deleted successfully")
        return self._run("delete cost record", handler)
