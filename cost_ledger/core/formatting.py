"""
Normalization of store-level aggregates.

The store hands back sums and counts as loosely typed scalars (decimal text,
ints, or NULL for an empty group). These helpers turn them into strict
numbers. An absent aggregate is expected, so they default instead of raising.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

from cost_ledger.storage.models import quantize_amount

logger = logging.getLogger(__name__)

ZERO_AMOUNT = Decimal("0.00")


def parse_amount(value: Any) -> Decimal:
    """Parse an aggregate sum as a cent-precision Decimal.

    Args:
        value: Raw aggregate (decimal text, int, float, Decimal or None)

    Returns:
        The amount rounded to cents, or 0.00 when absent or unparseable
    """
    if value is None:
        return ZERO_AMOUNT
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        logger.debug("Unparseable amount %r, using 0.00", value)
        return ZERO_AMOUNT
    if not amount.is_finite():
        logger.debug("Non-finite amount %r, using 0.00", value)
        return ZERO_AMOUNT
    try:
        return quantize_amount(amount)
    except InvalidOperation:
        logger.warning("Amount %r cannot be rounded to cents, using 0.00", value)
        return ZERO_AMOUNT


def parse_count(value: Any) -> int:
    """Parse an aggregate count as an int.

    Args:
        value: Raw count (int, numeric text or None)

    Returns:
        The count, or 0 when absent or unparseable
    """
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    # Counts sometimes come back as "3.0"
    try:
        return int(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError, OverflowError):
        logger.debug("Unparseable count %r, using 0", value)
        return 0
