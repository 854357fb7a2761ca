# storefront/services/coupon_service.py
from datetime import datetime, timezone
from ..extensions import db
from ..errors import ValidationError, NotFoundError
from ..model import Coupon
from ..model.coupon import DISCOUNT_TYPES
from .pricing import CouponTerms, coupon_rejection

def _parse_iso8601(s):
    if not s: return None
    s = s.strip()
    if s.endswith("Z"): s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt

def _int_field(data, name, default=None, minimum=0):
    raw = data.get(name, default)
    if raw is None:
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")
    if value < minimum:
        raise ValidationError(f"{name} must be >= {minimum}")
    return value

def get_coupon(code):
    code = Coupon.normalize_code(code)
    if not code:
        return None
    return Coupon.query.filter_by(code=code).first()

def require_coupon(code) -> Coupon:
    c = get_coupon(code)
    if not c:
        raise NotFoundError("coupon not found")
    return c

def create_coupon_from_payload(data: dict) -> Coupon:
    code = Coupon.normalize_code(data.get("code"))
    discount_type = (data.get("discount_type") or "percentage").lower().strip()

    if not code:
        raise ValidationError("code is required")
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError("discount_type must be 'percentage' or 'fixed'")
    value = _int_field(data, "value", minimum=1)
    if value is None:
        raise ValidationError("value is required")
    if discount_type == "percentage" and value > 100:
        raise ValidationError("percentage coupon must be <= 100")

    if get_coupon(code):
        raise ValidationError("Coupon code already exists")

    expires_at = _parse_iso8601(data.get("expires_at"))
    if data.get("expires_at") and not expires_at:
        raise ValidationError("Invalid datetime format for expires_at")

    c = Coupon(
        code=code,
        discount_type=discount_type,
        value=value,
        is_active=bool(data.get("is_active", True)),
        min_order_value=_int_field(data, "min_order_value", default=0),
        max_discount=_int_field(data, "max_discount"),
        usage_limit=_int_field(data, "usage_limit", default=1, minimum=1),
        expires_at=expires_at,
    )
    db.session.add(c)
    db.session.commit()
    return c

def set_active(code, active: bool) -> Coupon:
    c = require_coupon(code)
    c.is_active = bool(active)
    db.session.commit()
    return c

def delete_coupon(code):
    c = require_coupon(code)
    db.session.delete(c)
    db.session.commit()

def check_coupon(code, subtotal_after_bulk: int, now=None):
    """(applicable, reason) for showing the shopper whether a code will apply."""
    c = get_coupon(code)
    if not c:
        return False, "invalid coupon code"
    reason = coupon_rejection(CouponTerms.from_model(c), subtotal_after_bulk, now or datetime.now(timezone.utc).replace(tzinfo=None))
    return reason is None, reason

def increment_usage(code) -> bool:
    """Atomic used_count += 1, refused once the usage limit is reached."""
    code = Coupon.normalize_code(code)
    updated = (
        db.session.query(Coupon)
        .filter(Coupon.code == code, Coupon.used_count < Coupon.usage_limit)
        .update({Coupon.used_count: Coupon.used_count + 1}, synchronize_session=False)
    )
    db.session.commit()
    return updated == 1
