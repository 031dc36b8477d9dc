"""Unit tests for payload validation and normalization."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from orders.domain import OrderItem
from orders.errors import ValidationError
from orders.normalizer import check_required, normalize_order


def payload(**overrides):
    body = {
        "orderNumber": "A1",
        "totalValue": 100,
        "creationDate": "2024-05-01T10:30:00Z",
        "items": [{"itemId": "7", "itemQuantity": 2, "itemValue": 50}],
    }
    body.update(overrides)
    return body


def test_normalize_maps_external_fields():
    """External camelCase fields map onto the normalized record."""
    order = normalize_order(payload())
    assert order.order_id == "A1"
    assert order.value == 100
    assert order.creation_date == datetime(2024, 5, 1, 10, 30, tzinfo=timezone.utc)
    assert order.items == [OrderItem(product_id=7, quantity=2, price=Decimal("50"))]


@pytest.mark.parametrize("item_id, expected", [(7, 7), ("42", 42), (" 9 ", 9), (3.0, 3)])
def test_item_id_coerced_to_int(item_id, expected):
    """Numeric strings and integral floats become integer product ids."""
    body = payload(items=[{"itemId": item_id, "itemQuantity": 1, "itemValue": 1}])
    assert normalize_order(body).items[0].product_id == expected


@pytest.mark.parametrize("item_id", ["abc", "", "7.5", 7.5, True, None, {"id": 1}])
def test_non_numeric_item_id_rejected(item_id):
    """Anything that is not an integer id is INVALID_PAYLOAD on that item."""
    body = payload(items=[{"itemId": item_id, "itemQuantity": 1, "itemValue": 1}])
    with pytest.raises(ValidationError) as e:
        normalize_order(body)
    assert str(e.value) == "INVALID_PAYLOAD"
    assert "items.0.itemId" in e.value.fields


def test_money_parsed_as_exact_decimal():
    """JSON numbers become the decimal they were written as."""
    body = payload(totalValue=0.3, items=[{"itemId": 1, "itemQuantity": 3, "itemValue": 0.1}])
    order = normalize_order(body)
    assert order.value == Decimal("0.3")
    assert order.items[0].price == Decimal("0.1")
    assert order.items[0].price * order.items[0].quantity == order.value


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf"), "NaN", "Infinity"])
def test_non_finite_total_rejected(value):
    """NaN and infinities are malformed totals, never stored."""
    with pytest.raises(ValidationError) as e:
        normalize_order(payload(totalValue=value))
    assert str(e.value) == "INVALID_PAYLOAD"
    assert e.value.fields == ["totalValue"]


def test_non_finite_item_value_rejected():
    """NaN is rejected on item prices too."""
    body = payload(items=[{"itemId": 1, "itemQuantity": 1, "itemValue": float("nan")}])
    with pytest.raises(ValidationError) as e:
        normalize_order(body)
    assert e.value.fields == ["items.0.itemValue"]


@pytest.mark.parametrize("value", [0.30000000000000004, "1.23456", 1e12])
def test_total_outside_money_precision_rejected(value):
    """Totals with more than four places or eleven whole digits are rejected.

    These would otherwise be rounded or overflow the money column when
    written, so they are refused up front.
    """
    with pytest.raises(ValidationError) as e:
        normalize_order(payload(totalValue=value))
    assert e.value.fields == ["totalValue"]


@pytest.mark.parametrize("value", ["not-a-date", "2024-13-40", 1714559400])
def test_invalid_creation_date_rejected(value):
    """creationDate must be an ISO-8601 string."""
    with pytest.raises(ValidationError) as e:
        normalize_order(payload(creationDate=value))
    assert e.value.fields == ["creationDate"]


def test_offset_timestamps_normalized_to_utc():
    """A timestamp with an offset is converted to the same instant in UTC."""
    order = normalize_order(payload(creationDate="2024-05-01T12:30:00+02:00"))
    assert order.creation_date == datetime(2024, 5, 1, 10, 30, tzinfo=timezone.utc)
    assert order.creation_date.utcoffset() == timedelta(0)


def test_naive_timestamp_taken_as_utc():
    """A timestamp without an offset is read as UTC."""
    order = normalize_order(payload(creationDate="2024-05-01T10:30:00"))
    assert order.creation_date.utcoffset() == timedelta(0)
    assert order.creation_date.hour == 10


def test_item_fields_have_no_defaults():
    """A missing itemQuantity is reported, not defaulted."""
    body = payload(items=[{"itemId": 1, "itemValue": 1}])
    with pytest.raises(ValidationError) as e:
        normalize_order(body)
    assert "items.0.itemQuantity" in e.value.fields


def test_total_value_not_reconciled_with_items():
    """The caller's total is kept even when it disagrees with the items."""
    order = normalize_order(payload(totalValue=1))
    assert order.value == 1
    assert sum(i.price * i.quantity for i in order.items) == 100


def test_check_required_lists_every_missing_field():
    """Every blank or absent required field is listed in one error."""
    with pytest.raises(ValidationError) as e:
        check_required({"orderNumber": "  ", "totalValue": 10})
    assert str(e.value) == "MISSING_FIELDS"
    assert e.value.fields == ["orderNumber", "creationDate", "items"]


def test_check_required_rejects_empty_items_on_create():
    """An empty items list counts as missing when creating."""
    with pytest.raises(ValidationError) as e:
        check_required(payload(items=[]))
    assert e.value.fields == ["items"]


def test_check_required_allows_empty_items_on_update():
    """An update may clear the items with an empty list."""
    assert check_required(payload(items=[]), allow_empty_items=True)["items"] == []


def test_check_required_still_needs_items_key_on_update():
    """An update without an items key at all is still rejected."""
    body = payload()
    del body["items"]
    with pytest.raises(ValidationError):
        check_required(body, allow_empty_items=True)


@pytest.mark.parametrize("body", [None, [], "order"])
def test_check_required_rejects_non_objects(body):
    """A body that is not a JSON object is INVALID_PAYLOAD."""
    with pytest.raises(ValidationError) as e:
        check_required(body)
    assert str(e.value) == "INVALID_PAYLOAD"
