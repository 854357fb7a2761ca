from datetime import datetime

import pytest

from storefront.errors import NotFoundError, ValidationError
from storefront.model import Coupon
from storefront.services import coupon_service


def test_create_normalizes_code_and_defaults(app):
    c = coupon_service.create_coupon_from_payload({"code": "  welcome5 ", "discount_type": "FIXED", "value": "5"})
    assert c.code == "WELCOME5"
    assert c.discount_type == "fixed"
    assert c.value == 5
    assert c.usage_limit == 1
    assert c.used_count == 0
    assert c.is_active is True


@pytest.mark.parametrize("payload,message", [
    ({"value": 10}, "code is required"),
    ({"code": "A", "discount_type": "bogo", "value": 10}, "discount_type"),
    ({"code": "A"}, "value is required"),
    ({"code": "A", "value": 0}, "value must be >= 1"),
    ({"code": "A", "value": "ten"}, "value must be an integer"),
    ({"code": "A", "value": 101}, "percentage coupon must be <= 100"),
    ({"code": "A", "value": 5, "usage_limit": 0}, "usage_limit must be >= 1"),
    ({"code": "A", "value": 5, "expires_at": "next tuesday"}, "expires_at"),
])
def test_create_rejects_bad_payloads(app, payload, message):
    with pytest.raises(ValidationError) as exc:
        coupon_service.create_coupon_from_payload(payload)
    assert message in exc.value.message


def test_duplicate_codes_are_refused(app, make_coupon):
    make_coupon("SAVE10")
    with pytest.raises(ValidationError):
        coupon_service.create_coupon_from_payload({"code": "save10", "value": 5})


def test_expiry_is_stored_as_naive_utc(app):
    c = coupon_service.create_coupon_from_payload({"code": "NYE", "value": 5, "expires_at": "2031-01-01T05:30:00+05:30"})
    assert c.expires_at == datetime(2031, 1, 1, 0, 0)


def test_increment_usage_stops_at_the_limit(app, make_coupon):
    make_coupon("TWICE", usage_limit=2)
    assert coupon_service.increment_usage("twice") is True
    assert coupon_service.increment_usage("TWICE") is True
    assert coupon_service.increment_usage("TWICE") is False
    assert Coupon.query.filter_by(code="TWICE").one().used_count == 2


def test_increment_usage_on_unknown_code(app):
    assert coupon_service.increment_usage("GHOST") is False


def test_check_coupon(app, make_coupon):
    make_coupon("MIN500", min_order_value=500)
    make_coupon("DONE", expires_at=datetime(2020, 1, 1))

    assert coupon_service.check_coupon("min500", 500) == (True, None)
    applicable, reason = coupon_service.check_coupon("MIN500", 499)
    assert applicable is False
    assert "at least 500" in reason
    assert coupon_service.check_coupon("DONE", 1000, now=datetime(2024, 1, 1)) == (False, "coupon has expired")
    assert coupon_service.check_coupon("NOPE", 1000) == (False, "invalid coupon code")


def test_activate_and_delete(app, make_coupon):
    make_coupon("TOGGLE")
    assert coupon_service.set_active("toggle", False).is_active is False
    assert coupon_service.set_active("TOGGLE", True).is_active is True
    coupon_service.delete_coupon("TOGGLE")
    with pytest.raises(NotFoundError):
        coupon_service.require_coupon("TOGGLE")
