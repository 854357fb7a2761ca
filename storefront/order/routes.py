# storefront/order/routes.py
from datetime import datetime, timedelta
from flask import request
from ..extensions import db
from ..model import Order
from ..services.checkout_service import checkout as run_checkout
from ..services.order_lifecycle import transition_order
from ..utils.api import ok, err
from ..utils.decorators import login_required, operator_required, ROLE_LEVEL, OPERATOR_ROLE
from ..cart.routes import get_or_create_cart
from . import bp

def _parse_int(v, default=0):
    try:
        return int(v)
    except (TypeError, ValueError):
        return default

def _paged(q):
    page = max(_parse_int(request.args.get("page"), 1), 1)
    per = min(max(_parse_int(request.args.get("per_page"), 20), 1), 100)
    paged = q.order_by(Order.created_at.desc()).paginate(page=page, per_page=per, error_out=False)
    return {
        "page": page,
        "per_page": per,
        "total": paged.total,
        "items": [o.as_api() for o in paged.items],
    }

@bp.post("/checkout")
@login_required
def checkout(user):
    """
    Body:
      coupon_code: str?
      points: int?                 points the shopper wants to redeem
      address: {...}
      payment: { payment_reference?, idempotency_key? }
    """
    cart = get_or_create_cart(user.id)
    payload = request.get_json(silent=True) or {}
    address = payload.get("address") or {}
    if not address.get("name") or not address.get("phone"):
        return err("address name and phone are required", 422)

    result = run_checkout(
        user.id,
        cart.lines(),
        coupon_code=payload.get("coupon_code"),
        points_requested=_parse_int(payload.get("points")),
        address=address,
        payment_metadata=payload.get("payment") or {},
    )

    if not result.created:
        return ok("order already recorded", result.as_api())

    # Close cart
    cart = get_or_create_cart(user.id)
    cart.status = "checked_out"
    db.session.commit()

    resp = ok("order created", result.as_api(), status=201)
    resp.headers["X-Order-Id"] = result.order.id
    return resp

@bp.get("")
@login_required
def my_orders(user):
    return ok("orders", _paged(Order.query.filter(Order.user_id == user.id)))

@bp.get("/<order_id>")
@login_required
def get_order(user, order_id):
    o = db.session.get(Order, order_id)
    is_operator = ROLE_LEVEL.get(user.role, 0) >= ROLE_LEVEL[OPERATOR_ROLE]
    if not o or (o.user_id != user.id and not is_operator):
        return err("order not found", 404)
    return ok("order", o.as_api())

@bp.get("/manage")
@operator_required
def list_all(user):
    """
    Query params:
      - page, per_page
      - status=paid|confirmed|processing|shipped|out_for_delivery|delivered|cancelled
      - user_id=...
      - start=YYYY-MM-DD
      - end=YYYY-MM-DD (inclusive)
    """
    q = Order.query
    status = request.args.get("status")
    user_id = request.args.get("user_id")
    start = request.args.get("start")
    end = request.args.get("end")

    if status: q = q.filter(Order.status == status)
    if user_id: q = q.filter(Order.user_id == _parse_int(user_id))
    if start:
        q = q.filter(Order.created_at >= datetime.fromisoformat(start))
    if end:
        # make end inclusive for the whole day
        q = q.filter(Order.created_at < datetime.fromisoformat(end) + timedelta(days=1))
    return ok("orders", _paged(q))

@bp.patch("/<order_id>/status")
@operator_required
def update_status(user, order_id):
    o = db.session.get(Order, order_id)
    if not o:
        return err("order not found", 404)
    target = (request.get_json(silent=True) or {}).get("status")
    if not target:
        return err("status is required", 422)

    changed = transition_order(o, target, actor=user.actor_label)
    db.session.commit()
    return ok("status updated" if changed else "status unchanged", {"order": o.as_api(), "changed": changed})
