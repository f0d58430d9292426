"""Payment service: settles orders and reconstructs payment amounts.

Amounts are handled in integer cents; the discount is computed with
``Decimal`` and rounded half-up to a whole cent so that
``amount + discountAmount == originalAmount`` always holds.
"""

import logging
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from numbers import Real
from typing import Dict, Any, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from cafepos.db.errors import ValidationError, NotFound, InvalidState, Conflict, EmptyOrder
from cafepos.db.models import Order, OrderItem, Payment
from cafepos.db.order_status import OrderStatus
from cafepos.db.order_utils import load_order, order_subtotal_cents
from cafepos.utils.money import from_cents
from cafepos.utils.time_utils import now_local_naive, isoformat_local, local_day_bounds

logger = logging.getLogger(__name__)


class PaymentType(str, Enum):
    CASH = "Cash"
    CARD = "Card"
    BANKING = "Banking"


def parse_payment_type(value) -> PaymentType:
    try:
        return PaymentType(value)
    except ValueError:
        allowed = ", ".join(p.value for p in PaymentType)
        raise ValidationError(f"PaymentType must be one of: {allowed}")


def validate_discount(value) -> Decimal:
    """Discount percentage must be a number in [0, 100]."""
    if value is None:
        return Decimal("0")
    if isinstance(value, bool) or not isinstance(value, (Real, Decimal)):
        raise ValidationError("discountPercentage must be a number between 0 and 100")
    pct = Decimal(str(value))
    if not pct.is_finite() or pct < 0 or pct > 100:
        raise ValidationError("discountPercentage must be between 0 and 100")
    return pct


def discount_cents(original_cents: int, discount_percentage) -> int:
    """Discount in whole cents, rounded half-up."""
    pct = Decimal(str(discount_percentage or 0))
    return int((Decimal(original_cents) * pct / 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def payment_to_dict(payment: Payment, original_cents: int) -> Dict[str, Any]:
    """Reconstruct original/discount/final amounts for one payment."""
    order = payment.order
    discount = discount_cents(original_cents, payment.discount_percentage)
    return {
        "id": payment.id,
        "orderId": payment.order_id,
        "paymentType": payment.payment_type,
        "amount": from_cents(payment.amount),
        "discountPercentage": float(payment.discount_percentage or 0),
        "discountAmount": round(discount / 100.0, 2),
        "originalAmount": from_cents(original_cents),
        "paymentDate": isoformat_local(payment.payment_date),
        "orderStatus": order.status if order else None,
        "orderTotal": from_cents(order.total_amount) if order else None,
    }


def create_payment(
    session: Session,
    order_id: int,
    payment_type,
    discount_percentage=0,
) -> Dict[str, Any]:
    """
    Settle an order.

    The payment insert and the order's switch to Paid (with its total
    frozen to the final amount) are committed together.

    Args:
        session: SQLAlchemy session
        order_id: Order being paid
        payment_type: Cash, Card or Banking
        discount_percentage: 0-100

    Returns:
        Payment dict including originalAmount and discountAmount

    Raises:
        ValidationError: bad payment type or discount
        NotFound: order does not exist
        Conflict: the order already has a payment
        InvalidState: the order is not in Ordering status
        EmptyOrder: the order's items sum to zero
    """
    try:
        ptype = parse_payment_type(payment_type)
        pct = validate_discount(discount_percentage)

        order = load_order(session, order_id, for_update=True)

        existing = session.execute(
            select(Payment.id).where(Payment.order_id == order_id)
        ).first()
        if existing is not None:
            raise Conflict(f"Order {order_id} has already been paid")

        if order.status != OrderStatus.ORDERING.value:
            raise InvalidState(
                f"Cannot pay order {order_id}: order is {order.status}",
                current_status=order.status,
            )

        original = order_subtotal_cents(session, order_id)
        if original <= 0:
            raise EmptyOrder(f"Order {order_id} has no items or invalid total amount")

        discount = discount_cents(original, pct)
        final = original - discount

        payment = Payment(
            order_id=order_id,
            payment_type=ptype.value,
            amount=final,
            discount_percentage=float(pct),
            payment_date=now_local_naive(),
        )
        session.add(payment)
        order.status = OrderStatus.PAID.value
        order.total_amount = final
        session.commit()
    except IntegrityError:
        session.rollback()
        logger.warning("Conflict recording payment for order %s (concurrent insert)", order_id)
        raise Conflict(f"Order {order_id} has already been paid")
    except Exception:
        session.rollback()
        raise

    logger.info(
        "Payment %s for order %s: original=%s discount=%s final=%s (%s)",
        payment.id, order_id, original, discount, final, ptype.value,
    )
    return payment_to_dict(payment, original)


def _payment_query():
    return select(Payment).options(
        joinedload(Payment.order).joinedload(Order.user),
    ).execution_options(populate_existing=True)


def _subtotals(session: Session, order_ids: List[int]) -> Dict[int, int]:
    if not order_ids:
        return {}
    rows = session.execute(
        select(OrderItem.order_id, OrderItem.quantity, OrderItem.unit_price)
        .where(OrderItem.order_id.in_(order_ids))
    ).all()
    totals = {order_id: 0 for order_id in order_ids}
    for order_id, quantity, unit_price in rows:
        totals[order_id] += quantity * unit_price
    return totals


def get_payment(session: Session, payment_id: int) -> Dict[str, Any]:
    payment = session.execute(
        _payment_query().where(Payment.id == payment_id)
    ).unique().scalar_one_or_none()
    if payment is None:
        raise NotFound(f"Payment {payment_id} not found")
    return payment_to_dict(payment, order_subtotal_cents(session, payment.order_id))


def list_payments(
    session: Session,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    payment_type: Optional[str] = None,
    order_id: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Payments newest first, with the processing user's name."""
    stmt = _payment_query()
    lower, upper = local_day_bounds(start_date, end_date)
    if lower is not None:
        stmt = stmt.where(Payment.payment_date >= lower)
    if upper is not None:
        stmt = stmt.where(Payment.payment_date < upper)
    if payment_type is not None:
        stmt = stmt.where(Payment.payment_type == parse_payment_type(payment_type).value)
    if order_id is not None:
        stmt = stmt.where(Payment.order_id == order_id)
    stmt = stmt.order_by(Payment.payment_date.desc(), Payment.id.desc())

    payments = session.execute(stmt).unique().scalars().all()
    subtotals = _subtotals(session, [p.order_id for p in payments])

    results = []
    for payment in payments:
        row = payment_to_dict(payment, subtotals[payment.order_id])
        user = payment.order.user if payment.order else None
        row["processedBy"] = user.username if user else None
        row["processedByFullName"] = user.full_name if user else None
        results.append(row)
    return results


def payments_for_order(session: Session, order_id: int) -> List[Dict[str, Any]]:
    """Payments recorded against one order (zero or one)."""
    payments = session.execute(
        _payment_query().where(Payment.order_id == order_id).order_by(Payment.payment_date.desc())
    ).unique().scalars().all()
    original = order_subtotal_cents(session, order_id)
    return [payment_to_dict(payment, original) for payment in payments]
