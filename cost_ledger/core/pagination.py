"""
Page arithmetic for record listings.

Converts a 1-indexed page request into an offset and builds the page
metadata that accompanies a listing.
"""

from dataclasses import dataclass
from typing import Dict

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 50


@dataclass(frozen=True)
class PageRequest:
    """A validated page request (both values >= 1)."""
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class Pagination:
    """Page metadata for a listing."""
    current_page: int
    total_pages: int
    total_records: int
    records_per_page: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "totalRecords": self.total_records,
            "recordsPerPage": self.records_per_page,
        }


def build_pagination(page_request: PageRequest, total_records: int) -> Pagination:
    """Build page metadata for ``total_records`` matching rows.

    A page past the last one is not an error: its metadata is still
    correct and the listing itself is simply empty.

    Args:
        page_request: Requested page and page size
        total_records: Count of all matching records, ignoring paging

    Returns:
        Pagination with ``total_pages = ceil(total_records / limit)``
    """
    total_pages = -(-total_records // page_request.limit)
    return Pagination(
        current_page=page_request.page,
        total_pages=total_pages,
        total_records=total_records,
        records_per_page=page_request.limit,
    )
