"""
Request validation.

Checks raw caller input before it reaches the filter compiler, the page
calculator or the store. Everything invalid is reported as a
ValidationError listing each offending field.
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Tuple

from cost_ledger.storage.models import MAX_COST_AMOUNT, CostRecordInput, quantize_amount
from cost_ledger.utils.errors import FieldError, ValidationError
from .filters import FilterSpec, compile_filters
from .pagination import DEFAULT_LIMIT, DEFAULT_PAGE, PageRequest

DEFAULT_MAX_LIMIT = 1000

# SQLite integers are signed 64-bit
MAX_OFFSET = 2 ** 63 - 1

# Wire field name -> (column, required)
RECORD_FIELDS: Dict[str, Tuple[str, bool]] = {
    "date": ("date", True),
    "serviceName": ("service_name", True),
    "costAmount": ("cost_amount", True),
    "region": ("region", True),
    "accountId": ("account_id", True),
    "resourceId": ("resource_id", False),
    "usageType": ("usage_type", False),
    "description": ("description", False),
}

READ_ONLY_FIELDS = frozenset({"id", "createdAt", "updatedAt"})

_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")


def _parse_date(value: Any, field: str, errors: List[FieldError]) -> Optional[date]:
    if not isinstance(value, str):
        errors.append(FieldError(field, "must be a date string in YYYY-MM-DD format"))
        return None
    # fromisoformat accepts other shapes on newer Pythons
    if not _DATE_PATTERN.fullmatch(value):
        errors.append(FieldError(field, "must be a date in YYYY-MM-DD format"))
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        errors.append(FieldError(field, "must be a valid calendar date in YYYY-MM-DD format"))
        return None


def _parse_positive_int(value: Any, field: str, errors: List[FieldError]) -> Optional[int]:
    if isinstance(value, bool):
        errors.append(FieldError(field, "must be a positive integer"))
        return None
    if isinstance(value, int):
        number = value
    else:
        try:
            number = int(str(value).strip())
        except ValueError:
            errors.append(FieldError(field, "must be a positive integer"))
            return None
    if number < 1:
        errors.append(FieldError(field, "must be at least 1"))
        return None
    return number


def _raise_if_errors(errors: List[FieldError], message: str) -> None:
    if errors:
        raise ValidationError(message, errors)


def parse_date(value: str, field: str = "date") -> date:
    """Parse a strict ``YYYY-MM-DD`` date.

    Raises:
        ValidationError: If the value is not a valid calendar date
    """
    errors: List[FieldError] = []
    parsed = _parse_date(value, field, errors)
    _raise_if_errors(errors, f"Invalid {field}")
    return parsed


def parse_page_request(
    page: Any = None,
    limit: Any = None,
    max_limit: int = DEFAULT_MAX_LIMIT,
) -> PageRequest:
    """Validate page and limit parameters.

    Args:
        page: 1-indexed page number (default 1)
        limit: Page size (default 50)
        max_limit: Largest page size accepted

    Raises:
        ValidationError: If either value is not an integer >= 1, or limit
            exceeds max_limit
    """
    errors: List[FieldError] = []
    page_number = DEFAULT_PAGE if page in (None, "") else _parse_positive_int(page, "page", errors)
    page_size = DEFAULT_LIMIT if limit in (None, "") else _parse_positive_int(limit, "limit", errors)
    if page_size is not None and page_size > max_limit:
        errors.append(FieldError("limit", f"must be at most {max_limit}"))
    if page_number is not None and page_size is not None and (page_number - 1) * page_size > MAX_OFFSET:
        errors.append(FieldError("page", "is too large"))
    _raise_if_errors(errors, "Invalid pagination parameters")
    return PageRequest(page=page_number, limit=page_size)


def _filter_values(raw: Any, field: str, errors: List[FieldError]) -> List[str]:
    # A query parameter arrives once as a string or repeated as a list
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = [raw]
    elif not isinstance(raw, (list, tuple)):
        errors.append(FieldError(field, "must be a string or a list of strings"))
        return []
    values = []
    for value in raw:
        if not isinstance(value, str):
            errors.append(FieldError(field, "must be a string or a list of strings"))
            return []
        if value != "":
            values.append(value)
    return values


def parse_filter_params(params: Mapping[str, Any]) -> FilterSpec:
    """Validate the filter parameters of a raw query bag and compile them.

    Recognized keys are ``startDate``, ``endDate``, ``serviceName``,
    ``region`` and ``accountId``; other keys (such as paging) are ignored.

    Raises:
        ValidationError: If a date is malformed or a filter value is not a
            string
    """
    errors: List[FieldError] = []

    start_date = None
    if params.get("startDate") not in (None, ""):
        start_date = _parse_date(params["startDate"], "startDate", errors)
    end_date = None
    if params.get("endDate") not in (None, ""):
        end_date = _parse_date(params["endDate"], "endDate", errors)

    service_names = _filter_values(params.get("serviceName"), "serviceName", errors)
    regions = _filter_values(params.get("region"), "region", errors)
    account_ids = _filter_values(params.get("accountId"), "accountId", errors)

    _raise_if_errors(errors, "Invalid filter parameters")
    return compile_filters(
        start_date=start_date,
        end_date=end_date,
        service_names=service_names,
        regions=regions,
        account_ids=account_ids,
    )


def _parse_field(field: str, value: Any, errors: List[FieldError]) -> Any:
    column, required = RECORD_FIELDS[field]

    if value is None:
        if required:
            errors.append(FieldError(field, "is required"))
        return None

    if column == "date":
        return _parse_date(value, field, errors)

    if column == "cost_amount":
        if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
            errors.append(FieldError(field, "must be a number"))
            return None
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            errors.append(FieldError(field, "must be a number"))
            return None
        if not amount.is_finite():
            errors.append(FieldError(field, "must be a finite number"))
            return None
        if amount < 0:
            errors.append(FieldError(field, "must not be negative"))
            return None
        if quantize_amount(amount) > MAX_COST_AMOUNT:
            errors.append(FieldError(field, f"must be at most {MAX_COST_AMOUNT}"))
            return None
        return amount

    if not isinstance(value, str):
        errors.append(FieldError(field, "must be a string"))
        return None
    if required and value == "":
        errors.append(FieldError(field, "must not be empty"))
        return None
    return value


def _check_field_names(payload: Mapping[str, Any], errors: List[FieldError]) -> None:
    for field in payload:
        if field in READ_ONLY_FIELDS:
            errors.append(FieldError(field, "is read-only"))
        elif field not in RECORD_FIELDS:
            errors.append(FieldError(field, "is not a cost record field"))


def parse_record_payload(payload: Mapping[str, Any]) -> CostRecordInput:
    """Validate a create payload.

    Args:
        payload: Record fields with camelCase keys

    Returns:
        CostRecordInput ready to insert

    Raises:
        ValidationError: Listing every missing, malformed, read-only or
            unknown field
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("Cost record must be an object")

    errors: List[FieldError] = []
    _check_field_names(payload, errors)

    values = {}
    for field, (column, _) in RECORD_FIELDS.items():
        values[column] = _parse_field(field, payload.get(field), errors)

    _raise_if_errors(errors, "Invalid cost record")
    return CostRecordInput(**values)


def parse_record_update(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate an update payload.

    Only the supplied fields change. Optional fields may be cleared with
    ``None``; required fields may not.

    Returns:
        Column name to new value

    Raises:
        ValidationError: Listing every malformed, read-only or unknown field
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("Cost record must be an object")

    errors: List[FieldError] = []
    _check_field_names(payload, errors)

    changes = {}
    for field, value in payload.items():
        if field not in RECORD_FIELDS:
            continue
        column, _ = RECORD_FIELDS[field]
        changes[column] = _parse_field(field, value, errors)

    _raise_if_errors(errors, "Invalid cost record update")
    return changes


def parse_record_id(value: Any) -> int:
    """Validate a record id path parameter.

    Raises:
        ValidationError: If the id is not a positive integer
    """
    errors: List[FieldError] = []
    record_id = _parse_positive_int(value, "id", errors)
    _raise_if_errors(errors, "Invalid cost record id")
    return record_id
