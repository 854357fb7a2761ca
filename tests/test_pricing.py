from datetime import datetime

import pytest

from storefront.services.pricing import (
    CartLine,
    CouponTerms,
    bulk_rate_for,
    coupon_amount,
    next_tier,
    points_value,
    price_cart,
    redeemable_points,
    tier_discount_rate,
    tier_for,
)
from storefront.utils.money import percent_of

TIERS = ["Bronze", "Silver", "Gold", "Platinum"]


def honey(qty, price=200):
    return [CartLine(product_id=1, unit_price=price, quantity=qty, name="Forest Honey")]


SAVE10 = CouponTerms(code="SAVE10", discount_type="percentage", value=10)


def test_checkout_scenario_from_storefront():
    b = price_cart(honey(5), SAVE10, points_requested=200, points_balance=500)

    assert b.subtotal == 1000
    assert b.bulk_rate == 8
    assert b.bulk_discount == 80
    assert b.subtotal_after_bulk == 920
    assert b.coupon_code == "SAVE10"
    assert b.coupon_discount == 92
    assert b.subtotal_after_coupon == 828
    assert b.points_redeemed == 200
    assert b.points_discount == 20
    assert b.total == 808
    assert b.points_to_earn == 80


def test_total_is_subtotal_minus_discounts_in_order():
    lines = honey(3, price=333) + [CartLine(product_id=2, unit_price=149, quantity=6)]
    b = price_cart(lines, SAVE10, points_requested=700, points_balance=1000)
    assert b.total == max(b.subtotal - b.bulk_discount - b.coupon_discount - b.points_discount, 0)


def test_reordering_discounts_changes_the_total():
    b = price_cart(honey(5), SAVE10, points_requested=200, points_balance=500)

    # points first, then bulk, then coupon
    base = 1000 - points_value(200)
    base -= percent_of(base, bulk_rate_for(5))
    base -= coupon_amount(SAVE10, base)
    assert base != b.total
    assert base > b.total

    fixed = CouponTerms(code="FLAT100", discount_type="fixed", value=100)
    in_order = price_cart(honey(5), fixed).total
    coupon_first = 1000 - 100
    coupon_first -= percent_of(coupon_first, bulk_rate_for(5))
    assert in_order == 820
    assert coupon_first == 828


@pytest.mark.parametrize("qty,rate", [
    (1, 0), (2, 0), (3, 5), (4, 5), (5, 8), (7, 8), (8, 12), (40, 12),
])
def test_bulk_rate_steps(qty, rate):
    assert bulk_rate_for(qty) == rate


def test_bulk_rate_counts_units_not_distinct_products():
    lines = [CartLine(product_id=i, unit_price=100, quantity=1) for i in range(1, 4)]
    assert price_cart(lines).bulk_rate == 5
    assert price_cart(honey(3, price=100)).bulk_rate == 5


def test_bulk_discount_rounds_half_up():
    b = price_cart([CartLine(product_id=1, unit_price=1010, quantity=3)])
    # 5% of 3030 = 151.5
    assert b.bulk_discount == 152


def test_coupon_min_order_is_checked_after_bulk_discount():
    too_high = CouponTerms(code="BIG", discount_type="percentage", value=10, min_order_value=950)
    b = price_cart(honey(5), too_high)
    assert b.coupon_discount == 0
    assert b.coupon_code is None
    assert "at least 950" in b.coupon_rejection
    assert b.total == 920

    boundary = CouponTerms(code="EDGE", discount_type="percentage", value=10, min_order_value=920)
    assert price_cart(honey(5), boundary).coupon_discount == 92


def test_inactive_expired_and_exhausted_coupons_are_skipped():
    inactive = CouponTerms(code="OFF", discount_type="fixed", value=50, is_active=False)
    expired = CouponTerms(code="OLD", discount_type="fixed", value=50, expires_at=datetime(2020, 1, 1))
    exhausted = CouponTerms(code="GONE", discount_type="fixed", value=50, usage_limit=3, used_count=3)

    assert price_cart(honey(1), inactive).coupon_rejection == "coupon is inactive"
    assert price_cart(honey(1), expired, now=datetime(2024, 1, 1)).coupon_rejection == "coupon has expired"
    assert price_cart(honey(1), exhausted).coupon_rejection == "coupon usage limit reached"
    assert price_cart(honey(1), exhausted).total == 200


def test_unknown_coupon_code_is_reported_not_raised():
    b = price_cart(honey(1), None, coupon_code="NOPE")
    assert b.coupon_rejection == "invalid coupon code"
    assert b.total == 200


def test_fixed_coupon_never_exceeds_the_base():
    big = CouponTerms(code="HUGE", discount_type="fixed", value=5000)
    b = price_cart(honey(1), big, points_requested=500, points_balance=500)
    assert b.coupon_discount == 200
    assert b.points_redeemed == 0
    assert b.total == 0


def test_percentage_coupon_respects_max_discount():
    capped = CouponTerms(code="CAP", discount_type="percentage", value=50, max_discount=60)
    assert price_cart(honey(1), capped).coupon_discount == 60


def test_redeeming_under_one_block_gives_nothing():
    b = price_cart(honey(1), points_requested=50, points_balance=5000)
    assert b.points_redeemed == 0
    assert b.points_discount == 0
    assert b.redemption_rejection == "minimum redemption is 100 points"
    assert b.total == 200


def test_redemption_is_clamped_to_balance_silently():
    b = price_cart(honey(5), points_requested=900, points_balance=350)
    assert b.points_redeemed == 300
    assert b.redemption_rejection is None


def test_redemption_is_capped_by_payable_amount():
    # 15 payable -> at most 150 points worth -> one block
    b = price_cart([CartLine(product_id=1, unit_price=15, quantity=1)], points_requested=1000, points_balance=1000)
    assert b.points_redeemed == 100
    assert b.points_discount == 10
    assert b.total == 5


@pytest.mark.parametrize("requested", [0, 50, 99, 100, 150, 250, 999, 1000, 4321])
@pytest.mark.parametrize("balance", [0, 120, 480, 2500])
@pytest.mark.parametrize("payable", [0, 9, 37, 250])
def test_redeemable_points_bounds(requested, balance, payable):
    pts = redeemable_points(requested, balance, payable)
    assert pts % 100 == 0
    assert 0 <= pts <= min(balance, payable * 10)
    assert pts <= requested
    if requested < 100:
        assert pts == 0


def test_inputs_are_not_mutated():
    lines = honey(5)
    snapshot = list(lines)
    price_cart(lines, SAVE10, points_requested=200, points_balance=500)
    assert lines == snapshot


def test_quantity_below_one_is_rejected():
    with pytest.raises(ValueError):
        price_cart([CartLine(product_id=1, unit_price=100, quantity=0)])


@pytest.mark.parametrize("balance,tier", [
    (0, "Bronze"), (499, "Bronze"), (500, "Silver"), (999, "Silver"),
    (1000, "Gold"), (1999, "Gold"), (2000, "Platinum"), (10000, "Platinum"),
])
def test_tier_thresholds(balance, tier):
    assert tier_for(balance) == tier


def test_tier_is_monotonic_in_balance():
    ranks = [TIERS.index(tier_for(b)) for b in range(0, 3001, 25)]
    assert ranks == sorted(ranks)


def test_tier_discount_is_reported_only():
    assert [tier_discount_rate(t) for t in TIERS] == [0, 2, 5, 8]
    b = price_cart(honey(1), points_balance=5000)
    assert b.total == 200


def test_next_tier():
    assert next_tier(0) == ("Silver", 500)
    assert next_tier(1500) == ("Platinum", 500)
    assert next_tier(2000) == (None, 0)
