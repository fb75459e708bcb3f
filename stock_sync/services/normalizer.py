"""Normalization of local-backend stock payloads.

The backend's response shape is not fixed: a lookup may return a single
record or a list of per-location records, and the quantity may live under
any of several field names, as a number or a numeric string. Decoding is
split in two steps so it can be tested without HTTP:

  1. ``decode_payload`` tags the raw JSON as ``SinglePayload`` or
     ``MultiplePayload``.
  2. ``normalize`` extracts and, for multiple records, sums the quantities.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

from ..models.product import LocalStockRecord

# First match wins.
QUANTITY_FIELDS = (
    "stock_quantity",
    "stockQuantity",
    "stok",
    "stock",
    "quantity",
    "qty",
    "available_stock",
    "availableStock",
    "inventory",
    "stock_count",
    "stockCount",
)


@dataclass(frozen=True)
class SinglePayload:
    record: Dict[str, Any]


@dataclass(frozen=True)
class MultiplePayload:
    records: List[Dict[str, Any]]


Payload = Union[SinglePayload, MultiplePayload]


def decode_payload(data: Any) -> Optional[Payload]:
    """Tag a raw response body, or return None for an unusable shape."""
    if isinstance(data, list):
        return MultiplePayload(records=[r for r in data if isinstance(r, dict)])
    if isinstance(data, dict):
        return SinglePayload(record=data)
    return None


def parse_quantity(value: Any) -> Optional[int]:
    """
    Parse a raw field value into a non-negative integer.

    Numbers and numeric strings are accepted; fractional values are floored
    (``"5.7"`` gives 5). Booleans, non-numeric strings, non-finite and
    negative values give None.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(number) or number < 0:
        return None
    return int(math.floor(number))


def extract_quantity(
    record: Dict[str, Any],
    fields: Sequence[str] = QUANTITY_FIELDS
) -> Optional[int]:
    """Probe ``fields`` in order and return the first usable quantity."""
    for name in fields:
        if name in record:
            quantity = parse_quantity(record[name])
            if quantity is not None:
                return quantity
    return None


def normalize(
    key: str,
    data: Any,
    fields: Optional[Sequence[str]] = None
) -> LocalStockRecord:
    """
    Turn a raw lookup body into a ``LocalStockRecord``.

    A list of records is summed over the elements that yield a quantity;
    elements without one contribute nothing. The record is ``found`` only if
    at least one quantity was extracted.
    """
    fields = tuple(fields) if fields else QUANTITY_FIELDS
    payload = decode_payload(data)

    if isinstance(payload, SinglePayload):
        records = [payload.record]
    elif isinstance(payload, MultiplePayload):
        records = payload.records
    else:
        return LocalStockRecord.not_found(key)

    total = 0
    matched = 0
    for record in records:
        quantity = extract_quantity(record, fields)
        if quantity is not None:
            total += quantity
            matched += 1

    if not matched:
        return LocalStockRecord.not_found(key)

    return LocalStockRecord(key=key, quantity=total, found=True, matched_records=matched)
