"""Normalized order records.

These dataclasses are the storage-ready representation shared by the
normalizer, the store and the HTTP layer. They carry no persistence or
framework types so each layer can be tested on its own.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List

# Money is an exact decimal with at most MONEY_DIGITS digits in total, of
# which MONEY_PLACES are after the decimal point.
MONEY_DIGITS = 15
MONEY_PLACES = 4


@dataclass(frozen=True)
class OrderItem:
    """A single line item of an order.

    Attributes:
        product_id: Numeric product identifier.
        quantity: Units ordered.
        price: Unit price.

    Items have no identity of their own; they only exist as part of the
    order that owns them.
    """

    product_id: int
    quantity: int
    price: Decimal


@dataclass
class Order:
    """An order header plus its items.

    Attributes:
        order_id: Externally supplied identifier (primary key).
        value: Caller-supplied total; never derived from the items.
        creation_date: Creation timestamp in UTC.
        items: Line items in insertion order.
    """

    order_id: str
    value: Decimal
    creation_date: datetime
    items: List[OrderItem] = field(default_factory=list)
