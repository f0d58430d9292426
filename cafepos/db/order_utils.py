"""Order service: order creation, line item mutation and status changes.

All functions take a SQLAlchemy session and commit their own unit of work.
Domain failures are raised as ``cafepos.db.errors`` exceptions after the
session has been rolled back.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Any, List, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from cafepos.db.errors import ValidationError, NotFound, InvalidState, Conflict, MissingPayment
from cafepos.db.models import Table, Product, Order, OrderItem, Payment
from cafepos.db.order_status import OrderStatus, can_transition, parse_status
from cafepos.utils.money import from_cents
from cafepos.utils.time_utils import now_local_naive, isoformat_local

logger = logging.getLogger(__name__)

MAX_NOTES_LENGTH = 500


@dataclass
class AddItemResult:
    item: OrderItem
    merged: bool


@dataclass
class RemoveItemResult:
    order_cancelled: bool
    remaining_items: int


@dataclass
class StatusChangeResult:
    order: Order
    already_in_status: bool
    previous_status: str


# ---------- validation helpers ----------

def validate_quantity(quantity) -> int:
    """Quantity must be a positive int (bools are rejected)."""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("Quantity must be a positive integer")
    if quantity <= 0:
        raise ValidationError("Quantity must be a positive integer")
    return quantity


def validate_notes(notes) -> Optional[str]:
    if notes is None:
        return None
    if not isinstance(notes, str):
        raise ValidationError("Notes must be a string")
    notes = notes.strip()
    if len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(f"Notes must be at most {MAX_NOTES_LENGTH} characters")
    return notes or None


def lock_for_write(session: Session) -> None:
    """
    Take the database write lock before reading rows that will be changed.

    SQLite ignores FOR UPDATE, so the transaction is opened with
    BEGIN IMMEDIATE instead; concurrent writers then wait on the busy
    timeout. Other backends rely on the row lock from ``load_order``.
    """
    connection = session.connection()
    if connection.dialect.name != "sqlite":
        return
    if not connection.connection.driver_connection.in_transaction:
        connection.exec_driver_sql("BEGIN IMMEDIATE")


def load_order(session: Session, order_id: int, for_update: bool = False) -> Order:
    """Fetch an order or raise NotFound."""
    if for_update:
        lock_for_write(session)
    stmt = select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    if for_update:
        stmt = stmt.with_for_update()
    order = session.execute(stmt).scalar_one_or_none()
    if order is None:
        raise NotFound(f"Order {order_id} not found")
    return order


def require_ordering(order: Order, action: str) -> None:
    """Raise InvalidState unless the order is still open."""
    if order.status != OrderStatus.ORDERING.value:
        raise InvalidState(
            f"Cannot {action}: order {order.id} is {order.status}",
            current_status=order.status,
        )


def order_subtotal_cents(session: Session, order_id: int) -> int:
    """Live sum of quantity x unit price over the order's current items."""
    total = session.execute(
        select(func.coalesce(func.sum(OrderItem.quantity * OrderItem.unit_price), 0))
        .where(OrderItem.order_id == order_id)
    ).scalar_one()
    return int(total)


def _load_item(session: Session, order_id: int, item_id: int) -> OrderItem:
    item = session.get(OrderItem, item_id)
    if item is None or item.order_id != order_id:
        raise NotFound(f"Order item {item_id} not found in order {order_id}")
    return item


# ---------- mutations ----------

def create_order(session: Session, table_id: int, user_id: int) -> Order:
    """
    Open a new order for a table.

    Args:
        session: SQLAlchemy session
        table_id: Table to open the tab for
        user_id: User creating the order

    Returns:
        The new Order (status Ordering)

    Raises:
        NotFound: table does not exist
        Conflict: the table already has an order in Ordering status
    """
    try:
        table = session.get(Table, table_id)
        if table is None:
            raise NotFound(f"Table {table_id} not found")

        active = session.execute(
            select(Order)
            .where(Order.table_id == table_id)
            .where(Order.status == OrderStatus.ORDERING.value)
        ).scalars().first()
        if active is not None:
            raise Conflict(
                f"Table {table.name} already has an active order",
                extra={"activeOrderId": active.id},
            )

        order = Order(
            table_id=table_id,
            user_id=user_id,
            status=OrderStatus.ORDERING.value,
            order_date=now_local_naive(),
        )
        session.add(order)
        session.commit()
    except IntegrityError:
        # Lost the race against another create for the same table
        session.rollback()
        logger.warning("Conflict creating order for table %s (concurrent insert)", table_id)
        raise Conflict(f"Table {table_id} already has an active order")
    except Exception:
        session.rollback()
        raise

    logger.info("Order %s created for table %s by user %s", order.id, table_id, user_id)
    return order


def _add_item_once(session, order_id, product_id, quantity, notes) -> AddItemResult:
    try:
        order = load_order(session, order_id, for_update=True)
        require_ordering(order, "add items")

        product = session.get(Product, product_id)
        if product is None or not product.available:
            raise NotFound(f"Product {product_id} not found or unavailable")

        item = session.execute(
            select(OrderItem)
            .where(OrderItem.order_id == order_id)
            .where(OrderItem.product_id == product_id)
            .execution_options(populate_existing=True)
        ).scalars().first()

        merged = item is not None
        if merged:
            item.quantity += quantity
        else:
            item = OrderItem(
                order_id=order_id,
                product_id=product_id,
                quantity=quantity,
                unit_price=product.price,
                notes=notes,
            )
            session.add(item)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return AddItemResult(item=item, merged=merged)


def add_order_item(
    session: Session,
    order_id: int,
    product_id: int,
    quantity: int,
    notes: Optional[str] = None,
) -> AddItemResult:
    """
    Add a product to an open order.

    Adding a product already on the order increments that line's quantity;
    the line keeps its original notes and captured unit price. A new line
    captures the product's current price. If a concurrent add inserted the
    same product first, the unique (order, product) constraint rejects this
    insert and the add is retried as a merge.
    """
    quantity = validate_quantity(quantity)
    notes = validate_notes(notes)

    try:
        result = _add_item_once(session, order_id, product_id, quantity, notes)
    except IntegrityError:
        logger.warning("Order %s: concurrent add of product %s, retrying as merge", order_id, product_id)
        try:
            result = _add_item_once(session, order_id, product_id, quantity, notes)
        except IntegrityError:
            raise Conflict(f"Order {order_id} was modified concurrently, try again")

    item = result.item
    logger.info(
        "Order %s: %s product %s x%s (line %s now x%s)",
        order_id, "merged" if result.merged else "added", product_id, quantity, item.id, item.quantity,
    )
    return result


def update_order_item(
    session: Session,
    order_id: int,
    item_id: int,
    quantity: int,
    notes: Optional[str] = None,
) -> OrderItem:
    """Replace an item's quantity and notes."""
    try:
        quantity = validate_quantity(quantity)
        notes = validate_notes(notes)

        order = load_order(session, order_id, for_update=True)
        require_ordering(order, "update items")
        item = _load_item(session, order_id, item_id)

        item.quantity = quantity
        item.notes = notes
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info("Order %s: item %s set to x%s", order_id, item_id, quantity)
    return item


def remove_order_item(session: Session, order_id: int, item_id: int) -> RemoveItemResult:
    """Delete an item. Removing the last item cancels the order."""
    try:
        order = load_order(session, order_id, for_update=True)
        require_ordering(order, "remove items")
        item = _load_item(session, order_id, item_id)

        session.delete(item)
        session.flush()

        remaining = session.execute(
            select(func.count(OrderItem.id)).where(OrderItem.order_id == order_id)
        ).scalar_one()

        cancelled = remaining == 0
        if cancelled:
            order.status = OrderStatus.CANCELLED.value
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(
        "Order %s: item %s removed, %s left (auto-cancelled=%s)", order_id, item_id, remaining, cancelled
    )
    return RemoveItemResult(order_cancelled=cancelled, remaining_items=remaining)


def update_status(session: Session, order_id: int, new_status) -> StatusChangeResult:
    """
    Generic status change.

    Same-status requests succeed without touching the row. Paid and
    Cancelled are terminal. Paid is only accepted when a payment row already
    exists; the payments endpoint is the normal way to settle an order.
    """
    try:
        target = parse_status(new_status)
        order = load_order(session, order_id, for_update=True)
        current = parse_status(order.status)

        if current == target:
            # Nothing to write; end the transaction to release the lock
            session.commit()
            return StatusChangeResult(order=order, already_in_status=True, previous_status=current.value)

        if not can_transition(current, target):
            raise InvalidState(
                f"Cannot change order {order_id} from {current.value} to {target.value}",
                current_status=current.value,
            )

        if target == OrderStatus.PAID:
            payment = session.execute(
                select(Payment.id).where(Payment.order_id == order_id)
            ).first()
            if payment is None:
                raise MissingPayment(
                    f"Order {order_id} has no payment record; create a payment to mark it Paid"
                )
            order.total_amount = order_subtotal_cents(session, order_id)

        order.status = target.value
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info("Order %s status %s -> %s", order_id, current.value, target.value)
    return StatusChangeResult(order=order, already_in_status=False, previous_status=current.value)


# ---------- read side ----------

def display_total_cents(order: Order, live_subtotal: int) -> Optional[int]:
    """Live sum while open, frozen value afterwards."""
    if order.status == OrderStatus.ORDERING.value:
        return live_subtotal
    return order.total_amount


def display_date(order: Order):
    """Payment time for Paid orders, order time otherwise."""
    if order.status == OrderStatus.PAID.value and order.payment is not None:
        return order.payment.payment_date
    return order.order_date


def order_header_to_dict(order: Order) -> Dict[str, Any]:
    """Shape returned by create order."""
    return {
        "id": order.id,
        "tableId": order.table_id,
        "tableName": order.table.name if order.table else None,
        "userId": order.user_id,
        "orderDate": isoformat_local(order.order_date),
        "status": order.status,
    }


def order_item_to_dict(item: OrderItem) -> Dict[str, Any]:
    product = item.product
    return {
        "id": item.id,
        "orderId": item.order_id,
        "productId": item.product_id,
        "productName": product.name if product else None,
        "categoryName": product.category.name if product and product.category else None,
        "productAvailable": bool(product.available) if product else False,
        "quantity": item.quantity,
        "unitPrice": from_cents(item.unit_price),
        "notes": item.notes,
        "subtotal": from_cents(item.subtotal),
    }


def _order_to_dict(order: Order) -> Dict[str, Any]:
    live = sum(item.subtotal for item in order.items)
    payment = order.payment
    return {
        "id": order.id,
        "tableId": order.table_id,
        "tableName": order.table.name if order.table else None,
        "userId": order.user_id,
        "username": order.user.username if order.user else None,
        "userFullName": order.user.full_name if order.user else None,
        "orderDate": isoformat_local(order.order_date),
        "status": order.status,
        "totalAmount": from_cents(display_total_cents(order, live)),
        "displayDate": isoformat_local(display_date(order)),
        "itemCount": len(order.items),
        "paymentType": payment.payment_type if payment else None,
        "discountPercentage": payment.discount_percentage if payment else None,
        "paymentDate": isoformat_local(payment.payment_date) if payment else None,
    }


def _order_query():
    return select(Order).options(
        joinedload(Order.table),
        joinedload(Order.user),
        joinedload(Order.payment),
        selectinload(Order.items).joinedload(OrderItem.product).joinedload(Product.category),
    ).execution_options(populate_existing=True)


def get_order(session: Session, order_id: int) -> Dict[str, Any]:
    """Order header, its items and a computed summary."""
    order = session.execute(_order_query().where(Order.id == order_id)).unique().scalar_one_or_none()
    if order is None:
        raise NotFound(f"Order {order_id} not found")

    items = [order_item_to_dict(item) for item in order.items]
    return {
        "order": _order_to_dict(order),
        "items": items,
        "summary": {
            "totalItems": len(order.items),
            "totalQuantity": sum(item.quantity for item in order.items),
            "calculatedTotal": from_cents(sum(item.subtotal for item in order.items)),
        },
    }


def list_orders(
    session: Session,
    status: Optional[str] = None,
    table_id: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """All orders, newest display date first."""
    stmt = _order_query()
    if status is not None:
        stmt = stmt.where(Order.status == parse_status(status).value)
    if table_id is not None:
        stmt = stmt.where(Order.table_id == table_id)

    orders = session.execute(stmt).unique().scalars().all()
    orders = sorted(orders, key=lambda o: (display_date(o), o.id), reverse=True)
    return [_order_to_dict(order) for order in orders]


def get_active_order_for_table(session: Session, table_id: int) -> Optional[Dict[str, Any]]:
    """The table's open order, or None."""
    order = session.execute(
        _order_query()
        .where(Order.table_id == table_id)
        .where(Order.status == OrderStatus.ORDERING.value)
    ).unique().scalars().first()
    return _order_to_dict(order) if order else None
