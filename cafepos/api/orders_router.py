"""Order endpoints backed by cafepos.db.order_utils."""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cafepos.api.schemas import CamelModel
from cafepos.db import order_utils
from cafepos.db.models import User
from cafepos.db.dependencies import get_sqlalchemy_session, require_any_role, require_cashier_or_manager
from cafepos.utils.money import from_cents

router = APIRouter(prefix="/api/orders", tags=["orders"])


class CreateOrderRequest(CamelModel):
    table_id: int


# quantity/notes are validated by the service so bad values come back as 400
class OrderItemRequest(CamelModel):
    product_id: int
    quantity: Any = 1
    notes: Optional[Any] = None


class UpdateOrderItemRequest(CamelModel):
    quantity: Any = None
    notes: Optional[Any] = None


class StatusRequest(CamelModel):
    status: Any = None


@router.get("", summary="List orders")
async def list_orders(
    status: Optional[str] = Query(None),
    table_id: Optional[int] = Query(None, alias="tableId"),
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_any_role),
):
    return order_utils.list_orders(session, status=status, table_id=table_id)


@router.post("", status_code=201, summary="Open an order for a table")
async def create_order(
    request: CreateOrderRequest,
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_any_role),
):
    order = order_utils.create_order(session, request.table_id, user.id)
    return order_utils.order_header_to_dict(order)


@router.get("/table/{table_id}/active", summary="Open order for a table, if any")
async def get_active_order(
    table_id: int,
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_any_role),
):
    return {"order": order_utils.get_active_order_for_table(session, table_id)}


@router.get("/{order_id}", summary="Order detail with items")
async def get_order(
    order_id: int,
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_any_role),
):
    return order_utils.get_order(session, order_id)


@router.post("/{order_id}/items", status_code=201, summary="Add an item (merges same product)")
async def add_order_item(
    order_id: int,
    request: OrderItemRequest,
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_any_role),
):
    result = order_utils.add_order_item(
        session, order_id, request.product_id, request.quantity, request.notes
    )
    body = order_utils.order_item_to_dict(result.item)
    body["merged"] = result.merged
    body["orderTotal"] = from_cents(order_utils.order_subtotal_cents(session, order_id))
    return body


@router.put("/{order_id}/items/{item_id}", summary="Replace item quantity and notes")
async def update_order_item(
    order_id: int,
    item_id: int,
    request: UpdateOrderItemRequest,
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_any_role),
):
    item = order_utils.update_order_item(session, order_id, item_id, request.quantity, request.notes)
    body = order_utils.order_item_to_dict(item)
    body["orderTotal"] = from_cents(order_utils.order_subtotal_cents(session, order_id))
    return body


@router.delete("/{order_id}/items/{item_id}", summary="Remove an item")
async def remove_order_item(
    order_id: int,
    item_id: int,
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_any_role),
):
    result = order_utils.remove_order_item(session, order_id, item_id)
    return {
        "message": "Order cancelled: last item removed" if result.order_cancelled else "Item removed",
        "orderCancelled": result.order_cancelled,
        "remainingItems": result.remaining_items,
    }


@router.put("/{order_id}/status", summary="Change order status")
async def update_status(
    order_id: int,
    request: StatusRequest,
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_cashier_or_manager),
):
    result = order_utils.update_status(session, order_id, request.status)
    order = result.order
    return {
        "id": order.id,
        "status": order.status,
        "previousStatus": result.previous_status,
        "totalAmount": from_cents(order.total_amount),
        "alreadyInStatus": result.already_in_status,
    }
