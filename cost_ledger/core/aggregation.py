"""
Aggregation over cost records.

Each mode evaluates a compiled FilterSpec against the record store:

1. Listing - one page of matching records, newest first, with page metadata
2. Service summary - total cost and record count per service, largest first
3. Daily trend - total cost per date, oldest first, no gap filling
4. Filter catalog - distinct services, regions and accounts, unfiltered

All modes are read-only and keep no state between calls.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List

from cost_ledger.storage.models import CostRecord
from cost_ledger.storage.repository import CostRepository
from .filters import FilterSpec
from .formatting import parse_amount, parse_count
from .pagination import PageRequest, Pagination, build_pagination

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordPage:
    """One page of a record listing."""
    records: List[CostRecord]
    pagination: Pagination


@dataclass(frozen=True)
class ServiceCostSummary:
    """Total cost of one service."""
    service_name: str
    total_cost: Decimal
    record_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "serviceName": self.service_name,
            "totalCost": float(self.total_cost),
            "recordCount": self.record_count,
        }


@dataclass(frozen=True)
class DailyCost:
    """Total cost of one day."""
    date: date
    daily_cost: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "dailyCost": float(self.daily_cost),
        }


@dataclass(frozen=True)
class FilterCatalog:
    """Distinct values available for each filter dimension."""
    services: List[str]
    regions: List[str]
    accounts: List[str]

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "services": list(self.services),
            "regions": list(self.regions),
            "accounts": list(self.accounts),
        }


def list_cost_records(
    repository: CostRepository,
    spec: FilterSpec,
    page_request: PageRequest,
) -> RecordPage:
    """Fetch one page of matching records and its page metadata.

    The total is counted with the same predicate as the page, so
    ``pagination.total_records`` ignores limit and offset.

    Args:
        repository: Record store
        spec: Compiled filters
        page_request: Requested page and page size

    Returns:
        RecordPage with at most ``page_request.limit`` records
    """
    total = parse_count(repository.count_records(spec))
    records = repository.fetch_records(spec, limit=page_request.limit, offset=page_request.offset)
    pagination = build_pagination(page_request, total)

    logger.info(
        "Fetched %d cost records (page %d of %d, %d total) filters=%s",
        len(records),
        pagination.current_page,
        pagination.total_pages,
        total,
        spec.describe(),
    )
    return RecordPage(records=records, pagination=pagination)


def summarize_by_service(repository: CostRepository, spec: FilterSpec) -> List[ServiceCostSummary]:
    """Total cost and record count per service.

    Ordered by total cost (highest first); equal totals are ordered by
    service name so the output is deterministic.

    Args:
        repository: Record store
        spec: Compiled filters

    Returns:
        One entry per service with at least one matching record
    """
    summary = [
        ServiceCostSummary(
            service_name=row["service_name"],
            total_cost=parse_amount(row.get("total_cost")),
            record_count=parse_count(row.get("record_count")),
        )
        for row in repository.sum_by_service(spec)
    ]
    summary.sort(key=lambda item: (-item.total_cost, item.service_name))

    logger.info("Summarized costs for %d services filters=%s", len(summary), spec.describe())
    return summary


def daily_cost_trend(repository: CostRepository, spec: FilterSpec) -> List[DailyCost]:
    """Total cost per date, oldest first.

    Dates without matching records are left out rather than reported as
    zero.

    Args:
        repository: Record store
        spec: Compiled filters

    Returns:
        One entry per date with at least one matching record
    """
    daily_totals: Dict[date, Decimal] = {}
    for row in repository.sum_by_date(spec):
        day = date.fromisoformat(str(row["date"]))
        daily_totals[day] = daily_totals.get(day, Decimal("0.00")) + parse_amount(row.get("daily_cost"))

    trend = [DailyCost(date=day, daily_cost=total) for day, total in sorted(daily_totals.items())]

    logger.info("Computed cost trend over %d days filters=%s", len(trend), spec.describe())
    return trend


def available_filter_values(repository: CostRepository) -> FilterCatalog:
    """Distinct services, regions and accounts across all records.

    The three lookups run concurrently. If any of them fails the whole
    call fails; a partial catalog is never returned.

    Args:
        repository: Record store

    Returns:
        FilterCatalog with each list deduplicated and sorted
    """
    columns = ("service_name", "region", "account_id")
    with ThreadPoolExecutor(max_workers=len(columns)) as executor:
        futures = [executor.submit(repository.distinct_values, column) for column in columns]
        services, regions, accounts = [sorted(set(future.result())) for future in futures]

    logger.info(
        "Fetched filter values: %d services, %d regions, %d accounts",
        len(services),
        len(regions),
        len(accounts),
    )
    return FilterCatalog(services=services, regions=regions, accounts=accounts)
