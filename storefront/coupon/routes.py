# storefront/coupon/routes.py
from __future__ import annotations
from flask import request
from ..model import Coupon
from ..services import coupon_service
from ..utils.api import ok
from ..utils.decorators import operator_required
from . import bp

@bp.post("")
@operator_required
def create_coupon(user):
    c = coupon_service.create_coupon_from_payload(request.get_json(silent=True) or {})
    return ok("Coupon created", c.as_api(), status=201)

@bp.get("")
@operator_required
def list_coupons(user):
    q = Coupon.query
    active = request.args.get("active")
    if active is not None:
        q = q.filter(Coupon.is_active == (active.lower() == "true"))
    items = q.order_by(Coupon.id.desc()).all()
    return ok("ok", {"items": [c.as_api() for c in items]})

@bp.post("/<code>/activate")
@operator_required
def activate(user, code):
    return ok("Coupon activated", coupon_service.set_active(code, True).as_api())

@bp.post("/<code>/deactivate")
@operator_required
def deactivate(user, code):
    return ok("Coupon deactivated", coupon_service.set_active(code, False).as_api())

@bp.delete("/<code>")
@operator_required
def delete(user, code):
    coupon_service.delete_coupon(code)
    return ok("Coupon deleted")

@bp.get("/<code>/check")
def check(code):
    """?subtotal=<amount after bulk discount>. Tells the shopper whether the code would apply."""
    subtotal = int(request.args.get("subtotal", 0))
    applicable, reason = coupon_service.check_coupon(code, subtotal)
    return ok("coupon check", {"code": Coupon.normalize_code(code), "applicable": applicable, "reason": reason})
