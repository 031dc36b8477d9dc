"""SQLAlchemy models for the two-table order schema.

``order`` holds one header row per order keyed by the external
``orderId``. ``items`` holds the line items; it references ``order`` with
``ON DELETE CASCADE`` and has a surrogate ``id`` that is only used for row
identity and to return items in insertion order.
"""

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import mapped_column

from .db import Base
from .domain import MONEY_DIGITS, MONEY_PLACES

Money = Numeric(MONEY_DIGITS, MONEY_PLACES, asdecimal=True)


class OrderRow(Base):
    """Order header.

    Attributes:
        order_id: External identifier (``orderId`` column, primary key).
        value: Caller-supplied total.
        creation_date: Creation timestamp (``creationDate`` column).
    """

    __tablename__ = "order"

    order_id = mapped_column("orderId", String(64), primary_key=True)
    value = mapped_column(Money, nullable=False)
    creation_date = mapped_column("creationDate", DateTime(timezone=True), nullable=False)


class ItemRow(Base):
    """Line item owned by an order."""

    __tablename__ = "items"

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id = mapped_column(
        "orderId",
        String(64),
        ForeignKey("order.orderId", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = mapped_column("productId", Integer, nullable=False)
    quantity = mapped_column(Integer, nullable=False)
    price = mapped_column(Money, nullable=False)
