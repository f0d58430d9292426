"""Order lifecycle: statuses and the transitions allowed between them."""

from enum import Enum

from cafepos.db.errors import ValidationError


class OrderStatus(str, Enum):
    ORDERING = "Ordering"
    PAID = "Paid"
    CANCELLED = "Cancelled"


# Paid and Cancelled are terminal
ALLOWED_TRANSITIONS = {
    OrderStatus.ORDERING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def parse_status(value) -> OrderStatus:
    """Return the OrderStatus for ``value`` or raise ValidationError."""
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in OrderStatus)
        raise ValidationError(f"Invalid status. Must be one of: {allowed}")


def can_transition(current, target) -> bool:
    """True when ``current -> target`` is allowed. Same-status is always allowed."""
    current = parse_status(current)
    target = parse_status(target)
    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS[current]
