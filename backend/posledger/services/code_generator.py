# Overview: Sequential code assignment for items, variants and purchase orders.

"""
Code Generator

FORMATS:
- Item:            {PREFIX}-{YY}-{NNNN}   e.g. MQN-24-0007
- Variant:         {ITEMCODE}-{v1}/{v2}   e.g. MQN-24-0007-M/Red
- Purchase order:  PO-{YY}-{NNNN}

The sequence restarts at 0001 each calendar year. The next number comes from
the highest existing code for the prefix/year: lexicographic DESC ordering is
safe because the numeric part is fixed-width and zero-padded.

CONCURRENCY: two transactions can read the same "highest" code and mint the
same value. The unique constraints on items.code and
purchase_orders.order_number reject the second insert; callers rerun the whole
transaction through run_with_retry(..., retry_on=(IntegrityError,)).
"""

from __future__ import annotations

import re

from ..extensions import db
from ..models import Item, PurchaseOrder
from ..models.catalog import STORE_PREFIXES
from ..errors import ValidationError
from ..time_utils import utcnow


ORDER_PREFIX = "PO"
SEQUENCE_WIDTH = 4

ITEM_CODE_RE = re.compile(r"^(MQN|LCH)-(\d{2})-\d{4}$")
ORDER_NUMBER_RE = re.compile(r"^PO-(\d{2})-\d{4}$")


def _year_suffix(now=None) -> str:
    now = now or utcnow()
    return f"{now.year % 100:02d}"


def _next_sequence(column, prefix: str) -> int:
    last = (
        db.session.query(column)
        .filter(column.like(f"{prefix}-%"))
        .order_by(column.desc())
        .limit(1)
        .scalar()
    )
    if not last:
        return 1
    number_part = last.split("-")[2] if last.count("-") >= 2 else ""
    if len(number_part) == SEQUENCE_WIDTH and number_part.isdigit():
        return int(number_part) + 1
    return 1


def store_prefix(store: str) -> str:
    try:
        return STORE_PREFIXES[store]
    except KeyError:
        raise ValidationError("Invalid store value")


def generate_item_code(store: str, *, now=None) -> str:
    """Next item code for the store in the current year."""
    prefix = f"{store_prefix(store)}-{_year_suffix(now)}"
    seq = _next_sequence(Item.code, prefix)
    return f"{prefix}-{seq:0{SEQUENCE_WIDTH}d}"


def generate_order_number(*, now=None) -> str:
    """Next purchase order number in the current year."""
    prefix = f"{ORDER_PREFIX}-{_year_suffix(now)}"
    seq = _next_sequence(PurchaseOrder.order_number, prefix)
    return f"{prefix}-{seq:0{SEQUENCE_WIDTH}d}"


def generate_variant_code(item_code: str, attributes: dict) -> str:
    values = [str(v) for v in attributes.values() if v is not None]
    return f"{item_code}-{'/'.join(values)}"


def generate_variant_combinations(variant_groups: dict[str, list[str]]) -> list[dict[str, str]]:
    """
    Cartesian product of named value lists.

    Order: group declaration order, then each group's value order,
    depth-first. {"size": ["S", "M"], "color": ["Red"]} ->
    [{"size": "S", "color": "Red"}, {"size": "M", "color": "Red"}]
    """
    names = list(variant_groups.keys())
    if not names:
        return []

    combinations: list[dict[str, str]] = []

    def _walk(current: dict[str, str], index: int) -> None:
        if index == len(names):
            combinations.append(dict(current))
            return
        name = names[index]
        for value in variant_groups[name]:
            current[name] = value
            _walk(current, index + 1)
        current.pop(name, None)

    _walk({}, 0)
    return combinations


def validate_code_format(code: str) -> bool:
    return bool(ITEM_CODE_RE.match(code or ""))


def store_from_code(code: str) -> str | None:
    for store, prefix in STORE_PREFIXES.items():
        if (code or "").startswith(f"{prefix}-"):
            return store
    return None


def year_from_code(code: str) -> int | None:
    match = ITEM_CODE_RE.match(code or "")
    if not match:
        return None
    return 2000 + int(match.group(2))


def validate_order_number_format(order_number: str) -> bool:
    return bool(ORDER_NUMBER_RE.match(order_number or ""))


def year_from_order_number(order_number: str) -> int | None:
    match = ORDER_NUMBER_RE.match(order_number or "")
    if not match:
        return None
    return 2000 + int(match.group(1))
