# storefront/services/order_lifecycle.py
"""
Order fulfilment status.

    paid -> confirmed -> processing -> shipped -> out_for_delivery -> delivered
    any non-terminal status -> cancelled

Operators may skip ahead but never move back. Sending the current status
again succeeds without touching the history.
"""
import enum
import logging

from ..errors import InvalidTransitionError, ValidationError
from ..model import Order, OrderStatusHistory
from .notifications import notify

logger = logging.getLogger(__name__)


class OrderStatus(str, enum.Enum):
    PAID = "paid"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


FORWARD = (
    OrderStatus.PAID,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)
TERMINAL = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})
INITIAL = OrderStatus.PAID


def parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(str(value or "").strip().lower())
    except ValueError:
        raise ValidationError(f"unknown status '{value}'")


def check_transition(current, target) -> bool:
    """
    True when ``current -> target`` is a real change, False for a repeat of
    the current status. Raises InvalidTransitionError otherwise.
    """
    current = OrderStatus(current)
    target = parse_status(target)

    if target == current:
        return False
    if current in TERMINAL:
        raise InvalidTransitionError(current.value, target.value)
    if target == OrderStatus.CANCELLED:
        return True
    if FORWARD.index(target) < FORWARD.index(current):
        raise InvalidTransitionError(current.value, target.value)
    return True


def record_initial_status(order: Order, actor: str):
    order.status = INITIAL.value
    order.status_history.append(OrderStatusHistory(status=INITIAL.value, actor=actor))


def transition_order(order: Order, target, actor: str) -> bool:
    """Apply an operator status change. Caller commits. Returns False for a no-op."""
    if not check_transition(order.status, target):
        return False

    target = parse_status(target)
    previous = order.status
    order.status = target.value
    order.status_history.append(OrderStatusHistory(status=target.value, actor=actor))
    notify(
        "order_status",
        f"Your order {order.id} is now {target.value.replace('_', ' ')}",
        user_id=order.user_id,
    )
    logger.info("order %s: %s -> %s by %s", order.id, previous, target.value, actor)
    return True
