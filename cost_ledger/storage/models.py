"""
Data models for storage layer.

Defines the cost record entity and its creation payload.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Any, Dict, Optional

CENTS = Decimal("0.01")

# Largest amount a single record may carry. Sums over any realistic number
# of records stay within the default 28-digit decimal context.
MAX_COST_AMOUNT = Decimal("9999999999999.99")


def quantize_amount(amount: Decimal) -> Decimal:
    """Round a cost amount to the 2 fractional digits the ledger stores.

    Precision is widened to fit the integer digits, so large finite amounts
    round instead of raising ``InvalidOperation``.
    """
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, amount.adjusted() + 3)
        return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CostRecordInput:
    """Fields a caller supplies to create a cost record.

    ``id`` and the timestamps are owned by the store and are not part of
    the input.
    """
    date: date
    service_name: str
    cost_amount: Decimal
    region: str
    account_id: str
    resource_id: Optional[str] = None
    usage_type: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class CostRecord:
    """A persisted cost record."""
    id: int
    date: date
    service_name: str
    cost_amount: Decimal
    region: str
    account_id: str
    resource_id: Optional[str]
    usage_type: Optional[str]
    description: Optional[str]
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation with camelCase keys."""
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "serviceName": self.service_name,
            "costAmount": float(self.cost_amount),
            "region": self.region,
            "accountId": self.account_id,
            "resourceId": self.resource_id,
            "usageType": self.usage_type,
            "description": self.description,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
