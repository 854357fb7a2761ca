# storefront/services/pricing.py
"""
Cart pricing.

Discounts stack in a fixed order, each one taken from what the previous
step left over:

  1) subtotal                 sum(unit_price * quantity)
  2) bulk discount            keyed to total item quantity
  3) coupon                   percentage or fixed, gated on the post-bulk base
  4) loyalty points           blocks of 100 points, 100 points = 10 units
  5) total                    never below zero

Everything here is a pure function of its arguments: no database access,
no request state, and the inputs are never mutated.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Iterable, Optional, Sequence

from ..utils.money import percent_of

# (minimum total quantity, percent); first match wins
BULK_TIERS = ((8, 12), (5, 8), (3, 5))

POINTS_BLOCK = 100
POINTS_PER_UNIT = 10          # 10 points = 1 unit of discount
SPEND_PER_POINT = 10          # 1 point earned per 10 units paid

TIER_THRESHOLDS = (("Platinum", 2000), ("Gold", 1000), ("Silver", 500), ("Bronze", 0))
TIER_DISCOUNT_PERCENT = {"Bronze": 0, "Silver": 2, "Gold": 5, "Platinum": 8}


@dataclass(frozen=True)
class CartLine:
    product_id: int
    unit_price: int
    quantity: int
    name: str = ""

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class CouponTerms:
    code: str
    discount_type: str            # "percentage" | "fixed"
    value: int
    min_order_value: int = 0
    is_active: bool = True
    max_discount: Optional[int] = None
    usage_limit: Optional[int] = None
    used_count: int = 0
    expires_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, coupon) -> "CouponTerms":
        return cls(
            code=coupon.code,
            discount_type=coupon.discount_type,
            value=int(coupon.value or 0),
            min_order_value=int(coupon.min_order_value or 0),
            is_active=bool(coupon.is_active),
            max_discount=coupon.max_discount,
            usage_limit=coupon.usage_limit,
            used_count=int(coupon.used_count or 0),
            expires_at=coupon.expires_at,
        )


@dataclass(frozen=True)
class PriceBreakdown:
    item_count: int
    subtotal: int
    bulk_rate: int
    bulk_discount: int
    subtotal_after_bulk: int
    coupon_code: Optional[str]
    coupon_discount: int
    coupon_rejection: Optional[str]
    subtotal_after_coupon: int
    points_requested: int
    points_redeemed: int
    points_discount: int
    redemption_rejection: Optional[str]
    total: int
    points_to_earn: int

    def as_api(self):
        return asdict(self)


# ---- step functions ---------------------------------------------------------

def subtotal_of(lines: Iterable[CartLine]) -> int:
    return sum(line.unit_price * line.quantity for line in lines)


def bulk_rate_for(item_count: int) -> int:
    for min_qty, rate in BULK_TIERS:
        if item_count >= min_qty:
            return rate
    return 0


def coupon_rejection(coupon: CouponTerms, base: int, now: Optional[datetime] = None) -> Optional[str]:
    """Why the coupon does not apply to ``base``, or None when it does."""
    if not coupon.is_active:
        return "coupon is inactive"
    if coupon.expires_at and now and now > coupon.expires_at:
        return "coupon has expired"
    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        return "coupon usage limit reached"
    if base < coupon.min_order_value:
        return f"order must be at least {coupon.min_order_value} after bulk discount"
    return None


def coupon_amount(coupon: CouponTerms, base: int) -> int:
    if base <= 0:
        return 0
    if coupon.discount_type == "percentage":
        amount = percent_of(base, coupon.value)
        if coupon.max_discount is not None:
            amount = min(amount, coupon.max_discount)
        return min(amount, base)
    if coupon.discount_type == "fixed":
        return min(coupon.value, base)
    return 0


def redeemable_points(requested: int, balance: int, payable: int) -> int:
    """
    Largest multiple of POINTS_BLOCK that is <= requested, <= balance and
    worth no more than ``payable``. Requests below one block give 0.
    """
    if requested < POINTS_BLOCK:
        return 0
    cap = min(requested, max(balance, 0), max(payable, 0) * POINTS_PER_UNIT)
    return (cap // POINTS_BLOCK) * POINTS_BLOCK


def points_value(points: int) -> int:
    return (points // POINTS_BLOCK) * (POINTS_BLOCK // POINTS_PER_UNIT)


def points_earned_for(total: int) -> int:
    return max(total, 0) // SPEND_PER_POINT


def tier_for(balance: int) -> str:
    for name, threshold in TIER_THRESHOLDS:
        if balance >= threshold:
            return name
    return "Bronze"


def tier_discount_rate(tier: str) -> int:
    # shown to members; not applied by price_cart
    return TIER_DISCOUNT_PERCENT.get(tier, 0)


def next_tier(balance: int):
    """(tier name, points still needed) for the next tier up, or (None, 0) at the top."""
    for name, threshold in reversed(TIER_THRESHOLDS):
        if threshold > balance:
            return name, threshold - balance
    return None, 0


# ---- engine -----------------------------------------------------------------

def price_cart(
    lines: Sequence[CartLine],
    coupon: Optional[CouponTerms] = None,
    *,
    coupon_code: Optional[str] = None,
    points_requested: int = 0,
    points_balance: int = 0,
    now: Optional[datetime] = None,
) -> PriceBreakdown:
    """
    Price ``lines``. ``coupon_code`` is what the shopper typed; pass it with
    ``coupon=None`` when the registry had no such code so the rejection is
    reported. Coupon and redemption problems never abort pricing.
    """
    for line in lines:
        if line.quantity < 1:
            raise ValueError(f"quantity for product {line.product_id} must be >= 1")
        if line.unit_price < 0:
            raise ValueError(f"price for product {line.product_id} must be >= 0")

    # 1) subtotal
    item_count = sum(line.quantity for line in lines)
    subtotal = subtotal_of(lines)

    # 2) bulk
    bulk_rate = bulk_rate_for(item_count)
    bulk_discount = percent_of(subtotal, bulk_rate)
    after_bulk = subtotal - bulk_discount

    # 3) coupon
    applied_code = None
    coupon_discount = 0
    rejection = None
    if coupon is not None:
        rejection = coupon_rejection(coupon, after_bulk, now)
        if rejection is None:
            applied_code = coupon.code
            coupon_discount = coupon_amount(coupon, after_bulk)
    elif coupon_code:
        rejection = "invalid coupon code"
    after_coupon = after_bulk - coupon_discount

    # 4) points
    points_requested = max(int(points_requested or 0), 0)
    redemption_rejection = None
    points_redeemed = 0
    if points_requested:
        if points_requested < POINTS_BLOCK:
            redemption_rejection = f"minimum redemption is {POINTS_BLOCK} points"
        else:
            points_redeemed = redeemable_points(points_requested, points_balance, after_coupon)
            if points_redeemed == 0:
                redemption_rejection = "not enough points or payable amount to redeem"
    points_discount = points_value(points_redeemed)

    # 5) total
    total = max(after_coupon - points_discount, 0)

    return PriceBreakdown(
        item_count=item_count,
        subtotal=subtotal,
        bulk_rate=bulk_rate,
        bulk_discount=bulk_discount,
        subtotal_after_bulk=after_bulk,
        coupon_code=applied_code,
        coupon_discount=coupon_discount,
        coupon_rejection=rejection,
        subtotal_after_coupon=after_coupon,
        points_requested=points_requested,
        points_redeemed=points_redeemed,
        points_discount=points_discount,
        redemption_rejection=redemption_rejection,
        total=total,
        points_to_earn=points_earned_for(total),
    )
