# storefront/services/return_lifecycle.py
"""
Return request status.

    pending -> under_review -> approved -> refund_processed
    pending | under_review -> rejected

Only tracks status. Refunds and restocking are handled outside this service.
"""
import enum
import logging
from datetime import datetime, timedelta, timezone

from flask import current_app

from ..extensions import db
from ..errors import InvalidTransitionError, NotFoundError, ValidationError
from ..model import Order, ReturnRequest, RETURN_REASONS
from .notifications import notify
from .order_lifecycle import OrderStatus

logger = logging.getLogger(__name__)


class ReturnStatus(str, enum.Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REFUND_PROCESSED = "refund_processed"
    REJECTED = "rejected"


TERMINAL = frozenset({ReturnStatus.REFUND_PROCESSED, ReturnStatus.REJECTED})
REJECTABLE_FROM = frozenset({ReturnStatus.PENDING, ReturnStatus.UNDER_REVIEW})


def parse_status(value) -> ReturnStatus:
    try:
        return ReturnStatus(str(value or "").strip().lower())
    except ValueError:
        raise ValidationError(f"unknown status '{value}'")


def check_transition(current, target) -> bool:
    current = ReturnStatus(current)
    target = parse_status(target)

    if target == current:
        return False
    if current in TERMINAL:
        raise InvalidTransitionError(current.value, target.value)
    if target == ReturnStatus.REJECTED and current not in REJECTABLE_FROM:
        raise InvalidTransitionError(current.value, target.value)
    return True


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def open_return(user_id, order_id, reason, description, phone=None, now=None) -> ReturnRequest:
    """Customer files a return against one of their delivered orders. Caller commits."""
    order_id = (order_id or "").strip()
    description = (description or "").strip()
    if not order_id:
        raise ValidationError("order_id is required")
    if reason not in RETURN_REASONS:
        raise ValidationError("reason must be one of: " + ", ".join(RETURN_REASONS))
    if not description:
        raise ValidationError("description is required")

    order = db.session.get(Order, order_id)
    if not order or order.user_id != user_id:
        raise NotFoundError("order not found")
    if order.status != OrderStatus.DELIVERED.value:
        raise ValidationError("returns can only be requested for delivered orders")

    window = int(current_app.config.get("RETURN_WINDOW_DAYS", 7))
    delivered_at = order.delivered_at()
    if delivered_at and (now or _utcnow()) > delivered_at + timedelta(days=window):
        raise ValidationError(f"returns are accepted within {window} days of delivery")

    open_statuses = [s.value for s in ReturnStatus if s not in TERMINAL]
    already_open = ReturnRequest.query.filter(
        ReturnRequest.order_id == order_id, ReturnRequest.status.in_(open_statuses)
    ).first()
    if already_open:
        raise ValidationError("a return for this order is already in progress")

    rr = ReturnRequest(
        order_id=order_id,
        user_id=user_id,
        reason=reason,
        description=description,
        phone=(phone or "").strip() or None,
        status=ReturnStatus.PENDING.value,
    )
    db.session.add(rr)
    notify("return_requested", f"Return requested for order {order_id}: {reason}")
    return rr


def transition_return(rr: ReturnRequest, target, actor: str) -> bool:
    """Operator status change. Caller commits. Returns False for a no-op."""
    if not check_transition(rr.status, target):
        return False
    target = parse_status(target)
    previous = rr.status
    rr.status = target.value
    rr.updated_by = actor
    notify(
        "return_status",
        f"Your return for order {rr.order_id} is now {target.value.replace('_', ' ')}",
        user_id=rr.user_id,
    )
    logger.info("return %s: %s -> %s by %s", rr.id, previous, target.value, actor)
    return True
