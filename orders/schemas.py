"""Pydantic schemas for the orders API.

Input schemas use the external field names (``orderNumber``, ``itemId``,
...) as aliases and coerce them into the normalized types. Output schemas
render normalized records with camelCase keys.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

from .domain import MONEY_DIGITS, MONEY_PLACES, Order

# Finite decimal that fits the money columns; anything else is a 400.
MoneyIn = Annotated[
    Decimal,
    Field(max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES, allow_inf_nan=False),
]

# Rendered as a JSON number. With at most MONEY_DIGITS (15) digits the
# shortest float repr reproduces the decimal exactly.
MoneyOut = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive input is taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def coerce_product_id(value) -> int:
    """Convert an external ``itemId`` into an integer product id.

    Integers pass through, integral floats are converted and strings are
    parsed as base-10 integers.

    Raises:
        ValueError: For booleans, fractional numbers, non-numeric strings
            and any other type.
    """
    if isinstance(value, bool):
        raise ValueError("itemId must be numeric")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValueError("itemId must be an integer")
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            raise ValueError("itemId must be numeric") from None
    raise ValueError("itemId must be numeric")


class OrderItemIn(BaseModel):
    """Input schema for a single line item.

    Attributes:
        item_id: Product identifier, sent as ``itemId`` (string or number).
        item_quantity: Units ordered, sent as ``itemQuantity``.
        item_value: Unit price, sent as ``itemValue``. Exact decimal,
            finite, with at most four places.
    """

    item_id: int = Field(alias="itemId")
    item_quantity: int = Field(alias="itemQuantity")
    item_value: MoneyIn = Field(alias="itemValue")

    @field_validator("item_id", mode="before")
    @classmethod
    def validate_item_id(cls, v) -> int:
        return coerce_product_id(v)


class OrderIn(BaseModel):
    """Input schema for creating or replacing an order.

    Attributes:
        order_number: External identifier, sent as ``orderNumber``.
        total_value: Caller-computed total, sent as ``totalValue``.
        creation_date: ISO-8601 timestamp, sent as ``creationDate``.
            Normalized to UTC.
        items: Line items.
    """

    order_number: str = Field(alias="orderNumber", min_length=1, max_length=64)
    total_value: MoneyIn = Field(alias="totalValue")
    creation_date: datetime = Field(alias="creationDate")
    items: list[OrderItemIn]

    @field_validator("creation_date", mode="before")
    @classmethod
    def parse_creation_date(cls, v) -> datetime:
        """Parse ``creationDate`` strictly from an ISO-8601 string.

        Raises:
            ValueError: When the value is not a string or does not parse.
        """
        if not isinstance(v, str):
            raise ValueError("creationDate must be an ISO-8601 string")
        try:
            parsed = datetime.fromisoformat(v.strip())
        except ValueError:
            raise ValueError("creationDate is not a valid date-time") from None
        return as_utc(parsed)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderItemOut(_CamelModel):
    product_id: int
    quantity: int
    price: MoneyOut


class OrderOut(_CamelModel):
    """Read schema for an order with its items."""

    order_id: str
    value: MoneyOut
    creation_date: datetime
    items: list[OrderItemOut]

    @classmethod
    def from_domain(cls, order: Order) -> "OrderOut":
        return cls(
            order_id=order.order_id,
            value=order.value,
            creation_date=order.creation_date,
            items=[
                OrderItemOut(product_id=i.product_id, quantity=i.quantity, price=i.price)
                for i in order.items
            ],
        )

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
