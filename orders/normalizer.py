"""Mapping of external order payloads into normalized records.

The router calls :func:`check_required` first so a payload with missing
fields is rejected before anything else happens, then
:func:`normalize_order` to coerce types. Both raise
:class:`~orders.errors.ValidationError`; neither touches storage.
"""

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .domain import Order, OrderItem
from .errors import ValidationError
from .schemas import OrderIn

REQUIRED_FIELDS = ("orderNumber", "totalValue", "creationDate", "items")


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False


def check_required(payload: Any, *, allow_empty_items: bool = False) -> dict:
    """Reject payloads that lack any of the required order fields.

    Args:
        payload: Decoded JSON body.
        allow_empty_items: Accept ``items: []`` (used by replace-update so an
            order can be emptied). The key itself must still be present.

    Returns:
        dict: The payload, unchanged.

    Raises:
        ValidationError: ``INVALID_PAYLOAD`` when the body is not a JSON
            object, ``MISSING_FIELDS`` listing every absent field otherwise.
    """
    if not isinstance(payload, dict):
        raise ValidationError("INVALID_PAYLOAD")

    missing = []
    for name in REQUIRED_FIELDS:
        value = payload.get(name)
        if name == "items" and allow_empty_items and value == []:
            continue
        if _is_blank(value):
            missing.append(name)
    if missing:
        raise ValidationError("MISSING_FIELDS", fields=missing)
    return payload


def _error_fields(exc: PydanticValidationError) -> list[str]:
    return [".".join(str(part) for part in err["loc"]) for err in exc.errors()]


def normalize_order(payload: dict) -> Order:
    """Build a normalized :class:`Order` from an external payload.

    Args:
        payload: Body with ``orderNumber``, ``totalValue``, ``creationDate``
            and ``items`` (each with ``itemId``, ``itemQuantity``,
            ``itemValue``).

    Returns:
        Order: Storage-ready record with items in input order.

    Raises:
        ValidationError: ``INVALID_PAYLOAD`` with the offending field paths
            when a value cannot be coerced (non-numeric ``itemId``, invalid
            ``creationDate``, ...).
    """
    try:
        dto = OrderIn.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError("INVALID_PAYLOAD", fields=_error_fields(e)) from e

    return Order(
        order_id=dto.order_number,
        value=dto.total_value,
        creation_date=dto.creation_date,
        items=[
            OrderItem(product_id=i.item_id, quantity=i.item_quantity, price=i.item_value)
            for i in dto.items
        ],
    )
