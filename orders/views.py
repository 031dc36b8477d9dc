"""HTTP routes for the orders service.

Handlers are kept small: they check that required fields are present,
normalize the payload, delegate to the :class:`~orders.repo.OrderStore`
and shape the response. Errors are raised as :mod:`orders.errors`
exceptions and turned into responses by the handlers registered in
:mod:`orders.main`.

Mutating ``/orders`` routes depend on :func:`~orders.auth.require_bearer`.
FastAPI decodes declared body parameters before it resolves dependencies,
so the create and update handlers declare none and read the body
themselves with :func:`read_json`; an unauthenticated request is refused
with 401 whatever its body contains.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from .auth import Authenticator, get_authenticator, require_bearer
from .errors import ValidationError
from .normalizer import check_required, normalize_order
from .repo import OrderStore
from .schemas import OrderOut

router = APIRouter()


def get_store(request: Request) -> OrderStore:
    return request.app.state.store


async def read_json(request: Request) -> Any:
    """Decode the request body as JSON.

    Raises:
        ValidationError: ``INVALID_PAYLOAD`` for an empty or undecodable body.
    """
    try:
        return await request.json()
    except ValueError:
        raise ValidationError("INVALID_PAYLOAD") from None


@router.get("/health")
def health(store: OrderStore = Depends(get_store)):
    """Liveness probe that also checks the database.

    Returns:
        JSONResponse: 200 with ``{"ok": true, ...}`` when the database
        answers, 503 otherwise.
    """
    db_ok = store.ping()
    return JSONResponse(
        {"ok": db_ok, "components": {"db": {"ok": db_ok}}},
        status_code=200 if db_ok else 503,
    )


@router.post("/login")
def login(
    payload: Any = Body(None),
    authenticator: Authenticator = Depends(get_authenticator),
):
    """Exchange a username and password for a bearer token.

    Returns:
        dict: ``access_token``, ``token_type`` and ``expires_in``.

    Raises:
        ValidationError: 400 when ``username`` or ``password`` is missing.
        AuthError: 401 for invalid credentials.
    """
    if not isinstance(payload, dict):
        raise ValidationError("INVALID_PAYLOAD")
    missing = [k for k in ("username", "password") if not isinstance(payload.get(k), str) or not payload[k]]
    if missing:
        raise ValidationError("MISSING_FIELDS", fields=missing)

    token = authenticator.login(payload["username"], payload["password"])
    return {
        "access_token": token,
        "token_type": "bearer",
        "expires_in": authenticator.signer.ttl_seconds,
    }


@router.post("/orders", status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_bearer)])
async def create_order(request: Request, store: OrderStore = Depends(get_store)):
    """Create an order with its items.

    Returns:
        dict: ``{"message": "ORDER_CREATED", "order": {...}}`` with the
        normalized order.
    """
    order = normalize_order(check_required(await read_json(request)))
    created = await run_in_threadpool(store.create, order)
    return {"message": "ORDER_CREATED", "order": OrderOut.from_domain(created).to_json()}


# registered before /orders/{order_id} so "list" is not taken as an id
@router.get("/orders/list")
@router.get("/orders")
def list_orders(store: OrderStore = Depends(get_store)):
    return [OrderOut.from_domain(o).to_json() for o in store.list()]


@router.get("/orders/{order_id}")
def retrieve_order(order_id: str, store: OrderStore = Depends(get_store)):
    return OrderOut.from_domain(store.get(order_id)).to_json()


@router.put("/orders/{order_id}", dependencies=[Depends(require_bearer)])
async def update_order(order_id: str, request: Request, store: OrderStore = Depends(get_store)):
    """Replace an order's value, creation date and items.

    The ``orderNumber`` in the body must match the path identifier; the
    identifier itself can never change. ``items`` may be an empty list.

    Raises:
        ValidationError: 400 on missing fields or an identifier mismatch.
        NotFoundError: 404 when the order does not exist.
    """
    payload = await read_json(request)
    order = normalize_order(check_required(payload, allow_empty_items=True))
    if order.order_id != order_id:
        raise ValidationError("ORDER_ID_MISMATCH", fields=["orderNumber"])
    await run_in_threadpool(store.update, order_id, order)
    return {"message": "ORDER_UPDATED", "orderId": order_id}


@router.delete("/orders/{order_id}", dependencies=[Depends(require_bearer)])
def delete_order(order_id: str, store: OrderStore = Depends(get_store)):
    store.delete(order_id)
    return {"message": "ORDER_DELETED", "orderId": order_id}
