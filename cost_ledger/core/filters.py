"""
Filter compilation.

Turns optional, possibly multi-valued request filters into a single
immutable predicate that every aggregation mode shares.

Composition rules:
1. Date bounds - both ends give a closed interval, one end gives an
   open-ended bound, neither leaves dates unconstrained
2. Dimensions - no values, one value (exact match) or several (match any)
3. Across dates and dimensions the constraints are ANDed
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, FrozenSet, List, Optional, Sequence, Tuple, Union


@dataclass(frozen=True)
class Unconstrained:
    """No constraint on a dimension."""

    def matches(self, value: str) -> bool:
        return True

    def summary(self):
        return None

    def to_sql(self, column: str) -> Tuple[Optional[str], List[Any]]:
        return None, []


@dataclass(frozen=True)
class Exact:
    """Dimension must equal one value (case-sensitive, untrimmed)."""
    value: str

    def matches(self, value: str) -> bool:
        return value == self.value

    def summary(self):
        return self.value

    def to_sql(self, column: str) -> Tuple[Optional[str], List[Any]]:
        return f"{column} = ?", [self.value]


@dataclass(frozen=True)
class AnyOf:
    """Dimension must equal any value of a set."""
    values: FrozenSet[str]

    def __post_init__(self):
        if not self.values:
            raise ValueError("AnyOf requires at least one value")

    def matches(self, value: str) -> bool:
        return value in self.values

    def summary(self):
        return sorted(self.values)

    def to_sql(self, column: str) -> Tuple[Optional[str], List[Any]]:
        # Sorted so the same set always renders the same statement
        params = sorted(self.values)
        placeholders = ", ".join("?" for _ in params)
        return f"{column} IN ({placeholders})", params


DimensionFilter = Union[Unconstrained, Exact, AnyOf]


@dataclass(frozen=True)
class DateRange:
    """Inclusive date bounds; either end may be open."""
    start: Optional[date] = None
    end: Optional[date] = None

    def matches(self, value: date) -> bool:
        if self.start is not None and value < self.start:
            return False
        if self.end is not None and value > self.end:
            return False
        return True

    def to_sql(self, column: str) -> Tuple[Optional[str], List[Any]]:
        # Dates are stored as ISO text, so text comparison is date comparison
        if self.start is not None and self.end is not None:
            return f"{column} BETWEEN ? AND ?", [self.start.isoformat(), self.end.isoformat()]
        if self.start is not None:
            return f"{column} >= ?", [self.start.isoformat()]
        if self.end is not None:
            return f"{column} <= ?", [self.end.isoformat()]
        return None, []


@dataclass(frozen=True)
class FilterSpec:
    """Normalized predicate over cost records."""
    date_range: DateRange = field(default_factory=DateRange)
    service_name: DimensionFilter = field(default_factory=Unconstrained)
    region: DimensionFilter = field(default_factory=Unconstrained)
    account_id: DimensionFilter = field(default_factory=Unconstrained)

    def matches(self, record) -> bool:
        """Evaluate the predicate against a record in memory."""
        return (
            self.date_range.matches(record.date)
            and self.service_name.matches(record.service_name)
            and self.region.matches(record.region)
            and self.account_id.matches(record.account_id)
        )

    def to_sql(self) -> Tuple[str, List[Any]]:
        """Render as a ``WHERE`` clause and its parameters.

        Returns:
            Tuple of clause (empty string when unconstrained) and parameters
        """
        conditions = []
        params: List[Any] = []
        for column, constraint in (
            ("date", self.date_range),
            ("service_name", self.service_name),
            ("region", self.region),
            ("account_id", self.account_id),
        ):
            clause, clause_params = constraint.to_sql(column)
            if clause is not None:
                conditions.append(clause)
                params.extend(clause_params)

        if not conditions:
            return "", []
        return " WHERE " + " AND ".join(conditions), params

    def describe(self) -> dict:
        """Plain summary of the active constraints, for logging."""
        summary = {}
        if self.date_range.start is not None:
            summary["start_date"] = self.date_range.start.isoformat()
        if self.date_range.end is not None:
            summary["end_date"] = self.date_range.end.isoformat()
        for name in ("service_name", "region", "account_id"):
            value = getattr(self, name).summary()
            if value is not None:
                summary[name] = value
        return summary


def compile_dimension(values: Sequence[str]) -> DimensionFilter:
    """Compile the values given for one dimension.

    Duplicates collapse, so ``["EC2", "EC2"]`` is an exact match.
    """
    distinct = frozenset(values)
    if not distinct:
        return Unconstrained()
    if len(distinct) == 1:
        return Exact(next(iter(distinct)))
    return AnyOf(distinct)


def compile_filters(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    service_names: Sequence[str] = (),
    regions: Sequence[str] = (),
    account_ids: Sequence[str] = (),
) -> FilterSpec:
    """Compile validated request filters into a FilterSpec.

    Pure and infallible for validated input. A start date after the end
    date is not rejected; it simply matches nothing.

    Args:
        start_date: Inclusive lower date bound
        end_date: Inclusive upper date bound
        service_names: Acceptable service names (empty means any)
        regions: Acceptable regions (empty means any)
        account_ids: Acceptable account ids (empty means any)

    Returns:
        Immutable FilterSpec
    """
    return FilterSpec(
        date_range=DateRange(start=start_date, end=end_date),
        service_name=compile_dimension(service_names),
        region=compile_dimension(regions),
        account_id=compile_dimension(account_ids),
    )
