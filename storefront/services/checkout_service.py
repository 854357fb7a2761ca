# storefront/services/checkout_service.py
"""
Checkout.

  0) known reference       a retry whose reference is already an order returns it
  1) stock check           any shortfall aborts before payment
  2) points hold           debited under the account lock before payment
  3) payment capture       the gateway reference becomes the order id
  4) order write           once per reference, in the same commit as the re-keyed hold
  5) coupon usage          best-effort
  6) stock decrement       best-effort, never rolls the order back
  7) loyalty earn          best-effort, never fails the response
  8) notifications         best-effort

A hold that does not end up on a new order (capture failed, duplicate
reference) is credited back. Once payment has been captured the order
stands: later steps log their failures and report them as warnings
instead of raising.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import PaymentError, ValidationError
from ..model import LedgerEntry, Order, OrderItem
from ..model.loyalty import REDEEM
from . import coupon_service, inventory, loyalty_service
from .notifications import notify
from .order_lifecycle import record_initial_status
from .payment import get_gateway
from .pricing import CouponTerms, PriceBreakdown, price_cart

logger = logging.getLogger(__name__)

CHECKOUT_ACTOR = "system:checkout"


@dataclass
class CheckoutResult:
    order: Order
    created: bool
    pricing: Optional[PriceBreakdown] = None
    warnings: list = field(default_factory=list)

    def as_api(self):
        return {
            "order": self.order.as_api(),
            "created": self.created,
            "pricing": self.pricing.as_api() if self.pricing else None,
            "warnings": list(self.warnings),
        }


@dataclass
class PointsHold:
    key: str
    points: int


def quote(user_id, lines, coupon_code=None, points_requested=0, now=None) -> PriceBreakdown:
    """Price a cart for display. No stock check, no writes."""
    coupon = coupon_service.get_coupon(coupon_code) if coupon_code else None
    return price_cart(
        lines,
        CouponTerms.from_model(coupon) if coupon else None,
        coupon_code=coupon_code,
        points_requested=points_requested,
        points_balance=loyalty_service.get_balance(user_id),
        now=now or datetime.now(timezone.utc).replace(tzinfo=None),
    )


def recorded_order(ref, user_id):
    """The order already stored under ``ref`` for this user, or None."""
    if not ref:
        return None
    order = db.session.get(Order, ref)
    if order is not None and order.user_id != user_id:
        raise PaymentError("payment reference belongs to another order")
    return order


def _persist_order(ref, user_id, lines, pricing, address, payment_method, hold=None):
    """Create-if-absent keyed by the payment reference. Returns (order, created)."""
    existing = db.session.get(Order, ref)
    if existing is not None:
        return existing, False

    order = Order(
        id=ref,
        user_id=user_id,
        address_json=address or {},
        payment_method=payment_method,
        subtotal=pricing.subtotal,
        bulk_discount=pricing.bulk_discount,
        coupon_code=pricing.coupon_code,
        coupon_discount=pricing.coupon_discount,
        points_redeemed=pricing.points_redeemed,
        points_discount=pricing.points_discount,
        total=pricing.total,
    )
    for line in lines:
        order.items.append(OrderItem(
            product_id=line.product_id,
            name=line.name,
            unit_price=line.unit_price,
            quantity=line.quantity,
            line_total=line.line_total,
        ))
    record_initial_status(order, CHECKOUT_ACTOR)
    db.session.add(order)
    try:
        if hold is not None:
            # the debit and the order commit together
            db.session.query(LedgerEntry) \
                .filter(LedgerEntry.order_id == hold.key, LedgerEntry.kind == REDEEM) \
                .update({LedgerEntry.order_id: ref}, synchronize_session=False)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        existing = db.session.get(Order, ref)
        if existing is None:
            raise
        return existing, False
    return order, True


def _hold_points(user_id, pricing):
    if not pricing.points_redeemed:
        return None
    entry = loyalty_service.hold_points(user_id, pricing.points_redeemed)
    return PointsHold(key=entry.order_id, points=-entry.delta)


def _release(user_id, hold, why):
    if hold is None:
        return
    try:
        loyalty_service.release_hold(user_id, hold.key, hold.points)
        logger.info("checkout: released %s points held as %s (%s)", hold.points, hold.key, why)
    except Exception:
        db.session.rollback()
        logger.exception("checkout: could not release hold %s of %s points", hold.key, hold.points)


def _best_effort(step, order_id, warnings, fn, *args):
    try:
        result = fn(*args)
        db.session.commit()
        return result
    except Exception:
        db.session.rollback()
        logger.exception("checkout %s: %s failed", order_id, step)
        warnings.append(f"{step} failed")
        return None


def _redeem_coupon(order, warnings):
    if not coupon_service.increment_usage(order.coupon_code):
        logger.warning("checkout %s: coupon %s hit its usage limit after payment", order.id, order.coupon_code)
        warnings.append(f"coupon {order.coupon_code} usage not recorded")


def _decrement_stock(order, warnings):
    for item in order.items:
        ok = _best_effort("stock decrement", order.id, warnings, inventory.decrement_stock, item.product_id, item.quantity)
        if ok is False:
            warnings.append(f"stock for product {item.product_id} not decremented")


def _notify_placed(order):
    notify("order_placed", f"Order {order.id} received. Total {order.total}.", user_id=order.user_id)
    notify("new_order", f"New order {order.id} from user {order.user_id}, total {order.total}")


def checkout(user_id, lines, *, coupon_code=None, points_requested=0, address=None,
             payment_metadata=None, gateway=None, now=None) -> CheckoutResult:
    gateway = gateway or get_gateway()
    metadata = dict(payment_metadata or {})
    metadata.setdefault("user_id", user_id)

    # 0) a retry of a checkout that already went through
    known = recorded_order(gateway.reference_for(metadata), user_id)
    if known is not None:
        logger.info("checkout %s: reference already recorded, returning stored order", known.id)
        return CheckoutResult(order=known, created=False)

    lines = list(lines)
    if not lines:
        raise ValidationError("cart is empty")

    # 1) stock
    inventory.validate_stock(lines)

    pricing = quote(user_id, lines, coupon_code, points_requested, now)

    # 2) points; InsufficientPointsError here means nothing is charged
    hold = _hold_points(user_id, pricing)

    # 3) payment; no order is written if this raises
    try:
        ref = gateway.charge(pricing.total, metadata)
        if not ref:
            raise PaymentError("payment gateway returned no reference")
    except Exception:
        _release(user_id, hold, "payment failed")
        raise

    # 4) order
    order, created = _persist_order(ref, user_id, lines, pricing, address, gateway.method, hold)
    if not created:
        logger.info("checkout %s: duplicate capture reference, returning stored order", ref)
        _release(user_id, hold, f"order {ref} already recorded")
        return CheckoutResult(order=order, created=False)

    logger.info("checkout %s: order written user=%s total=%s", ref, user_id, pricing.total)
    warnings = []

    # 5) coupon usage
    if order.coupon_code:
        _best_effort("coupon usage", ref, warnings, _redeem_coupon, order, warnings)

    # 6) stock
    _decrement_stock(order, warnings)

    # 7) loyalty earn on the amount actually paid
    _best_effort("loyalty credit", ref, warnings, loyalty_service.earn_points, user_id, order.total, ref)

    # 8) notifications
    _best_effort("notification", ref, warnings, _notify_placed, order)

    return CheckoutResult(order=order, created=True, pricing=pricing, warnings=warnings)
