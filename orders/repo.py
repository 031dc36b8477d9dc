"""Transactional order store over the ``order`` / ``items`` schema.

Writes run inside a single transaction: the header and every item are
committed together or not at all. Update and delete use the conditional
statement itself (``UPDATE/DELETE ... WHERE orderId = :id``) as the
existence check, so there is no window between checking and writing.
Reads are two plain queries (header, then items) with no cross-query
snapshot.

Database failures are translated into the :mod:`orders.errors` taxonomy;
the original exception stays chained as ``__cause__``.
"""

import logging
import time
from collections import defaultdict
from datetime import datetime, timezone
from typing import Iterable, List

from sqlalchemy import delete, select, text, update
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Engine

from .db import Deadline, read_scope, transaction_scope
from .domain import Order, OrderItem
from .errors import DuplicateKeyError, NotFoundError, StoreError, StoreTimeoutError
from .models import ItemRow, OrderRow

logger = logging.getLogger("orders.store")

# SQLSTATE raised by PostgreSQL when statement_timeout cancels a query
QUERY_CANCELED = "57014"
# SQLSTATE for a unique or primary key violation
UNIQUE_VIOLATION = "23505"


def _is_unique_violation(exc: sa_exc.IntegrityError) -> bool:
    if getattr(exc.orig, "sqlstate", None) == UNIQUE_VIOLATION:
        return True
    # sqlite3 only reports the constraint kind in the message
    return "UNIQUE constraint failed" in str(exc.orig)


def _translate(exc: sa_exc.SQLAlchemyError) -> StoreError:
    if isinstance(exc, sa_exc.TimeoutError):
        return StoreTimeoutError("POOL_EXHAUSTED")
    if isinstance(exc, sa_exc.DBAPIError) and getattr(exc.orig, "sqlstate", None) == QUERY_CANCELED:
        return StoreTimeoutError()
    return StoreError()


def _utc(value: datetime) -> datetime:
    # SQLite hands back naive values; they were written as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_domain(row: OrderRow, items: Iterable[ItemRow]) -> Order:
    return Order(
        order_id=row.order_id,
        value=row.value,
        creation_date=_utc(row.creation_date),
        items=[OrderItem(product_id=i.product_id, quantity=i.quantity, price=i.price) for i in items],
    )


def _item_rows(order_id: str, items: Iterable[OrderItem]) -> List[ItemRow]:
    return [
        ItemRow(order_id=order_id, product_id=i.product_id, quantity=i.quantity, price=i.price)
        for i in items
    ]


class OrderStore:
    """Create, read, replace and delete orders with their items.

    Args:
        engine: Engine whose pool bounds concurrent operations.
        op_timeout: Per-operation deadline in seconds (``None``/0 disables).
        clock: Monotonic clock used for deadlines, injectable for tests.
    """

    def __init__(self, engine: Engine, op_timeout: float | None = None, clock=time.monotonic):
        self.engine = engine
        self.op_timeout = op_timeout
        self._clock = clock

    def _deadline(self) -> Deadline:
        return Deadline(self.op_timeout, self._clock)

    def create(self, order: Order) -> Order:
        """Insert an order header and all of its items atomically.

        Args:
            order: Normalized record to persist.

        Returns:
            Order: The same record, as confirmation.

        Raises:
            DuplicateKeyError: An order with this identifier already exists.
                Other integrity failures (NOT NULL, CHECK) are a plain
                ``StoreError``.
            StoreTimeoutError: The deadline expired or the pool was exhausted.
            StoreError: Any other database failure. In every failure case
                the transaction is rolled back and no row remains.
        """
        deadline = self._deadline()
        try:
            with transaction_scope(self.engine, self.op_timeout) as s:
                s.add(OrderRow(order_id=order.order_id, value=order.value, creation_date=order.creation_date))
                try:
                    s.flush()
                except sa_exc.IntegrityError as e:
                    if _is_unique_violation(e):
                        raise DuplicateKeyError() from e
                    raise
                deadline.check()

                s.add_all(_item_rows(order.order_id, order.items))
                s.flush()
                deadline.check()
        except sa_exc.SQLAlchemyError as e:
            raise _translate(e) from e

        logger.info("order created", extra={"order_id": order.order_id, "items": len(order.items)})
        return order

    def get(self, order_id: str) -> Order:
        """Fetch one order with its items.

        Raises:
            NotFoundError: No order has this identifier.
            StoreError: Database failure.
        """
        deadline = self._deadline()
        try:
            with read_scope(self.engine, self.op_timeout) as s:
                row = s.get(OrderRow, order_id)
                if row is None:
                    raise NotFoundError()
                deadline.check()
                items = s.scalars(
                    select(ItemRow).where(ItemRow.order_id == order_id).order_by(ItemRow.id)
                ).all()
                return _to_domain(row, items)
        except sa_exc.SQLAlchemyError as e:
            raise _translate(e) from e

    def list(self) -> List[Order]:
        """Fetch every order with its items.

        Headers come back in the engine's natural row order. Items are read
        in one query and grouped per order; items inserted for orders that
        appeared after the header query are ignored.
        """
        deadline = self._deadline()
        try:
            with read_scope(self.engine, self.op_timeout) as s:
                headers = s.scalars(select(OrderRow)).all()
                if not headers:
                    return []
                deadline.check()

                grouped = defaultdict(list)
                for item in s.scalars(select(ItemRow).order_by(ItemRow.id)):
                    grouped[item.order_id].append(item)
                return [_to_domain(h, grouped.get(h.order_id, ())) for h in headers]
        except sa_exc.SQLAlchemyError as e:
            raise _translate(e) from e

    def update(self, order_id: str, order: Order) -> Order:
        """Replace an order's value, creation date and whole item set.

        The identifier is taken from ``order_id``; ``order.order_id`` is
        ignored so the key can never change.

        Raises:
            NotFoundError: No order has this identifier (nothing is written).
            StoreTimeoutError: Deadline expired or pool exhausted.
            StoreError: Any other database failure; the transaction is
                rolled back and the previous state is kept.
        """
        deadline = self._deadline()
        try:
            with transaction_scope(self.engine, self.op_timeout) as s:
                result = s.execute(
                    update(OrderRow)
                    .where(OrderRow.order_id == order_id)
                    .values(value=order.value, creation_date=order.creation_date)
                )
                if result.rowcount == 0:
                    raise NotFoundError()
                deadline.check()

                s.execute(delete(ItemRow).where(ItemRow.order_id == order_id))
                s.add_all(_item_rows(order_id, order.items))
                s.flush()
                deadline.check()
        except sa_exc.SQLAlchemyError as e:
            raise _translate(e) from e

        logger.info("order updated", extra={"order_id": order_id, "items": len(order.items)})
        return Order(order_id=order_id, value=order.value, creation_date=order.creation_date, items=list(order.items))

    def delete(self, order_id: str) -> None:
        """Delete an order and its items.

        Raises:
            NotFoundError: No order has this identifier.
            StoreError: Database failure.
        """
        deadline = self._deadline()
        try:
            with transaction_scope(self.engine, self.op_timeout) as s:
                s.execute(delete(ItemRow).where(ItemRow.order_id == order_id))
                result = s.execute(delete(OrderRow).where(OrderRow.order_id == order_id))
                if result.rowcount == 0:
                    raise NotFoundError()
                deadline.check()
        except sa_exc.SQLAlchemyError as e:
            raise _translate(e) from e

        logger.info("order deleted", extra={"order_id": order_id})

    def ping(self) -> bool:
        """Return True when the database answers ``select 1``."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("select 1"))
            return True
        except sa_exc.SQLAlchemyError:
            logger.warning("database ping failed", exc_info=True)
            return False
