# storefront/returns/routes.py
import uuid
from flask import request
from ..extensions import db
from ..model import ReturnRequest, RETURN_REASONS
from ..services.return_lifecycle import open_return, transition_return
from ..utils.api import ok, err
from ..utils.decorators import login_required, operator_required
from . import bp

@bp.get("/reasons")
def reasons():
    return ok("reasons", {"items": list(RETURN_REASONS)})

@bp.post("")
@login_required
def create(user):
    """Body: { order_id, reason, description, phone? }"""
    data = request.get_json(silent=True) or {}
    rr = open_return(
        user.id,
        data.get("order_id"),
        data.get("reason"),
        data.get("description"),
        phone=data.get("phone") or user.phone,
    )
    db.session.commit()
    return ok("return request submitted", rr.as_api(), status=201)

@bp.get("/by-order/<order_id>")
@login_required
def by_order(user, order_id):
    rr = (ReturnRequest.query
          .filter(ReturnRequest.order_id == order_id, ReturnRequest.user_id == user.id)
          .order_by(ReturnRequest.created_at.desc())
          .first())
    if not rr:
        return err("no return request for this order", 404)
    return ok("return request", rr.as_api())

@bp.get("")
@operator_required
def list_returns(user):
    q = ReturnRequest.query
    status = request.args.get("status")
    if status: q = q.filter(ReturnRequest.status == status)
    items = q.order_by(ReturnRequest.created_at.desc()).limit(200).all()
    return ok("returns", {"items": [r.as_api() for r in items]})

@bp.patch("/<return_id>/status")
@operator_required
def update_status(user, return_id):
    try:
        rr = db.session.get(ReturnRequest, uuid.UUID(return_id))
    except ValueError:
        rr = None
    if not rr:
        return err("return request not found", 404)
    target = (request.get_json(silent=True) or {}).get("status")
    if not target:
        return err("status is required", 422)

    changed = transition_return(rr, target, actor=user.actor_label)
    db.session.commit()
    return ok("status updated" if changed else "status unchanged", {"return": rr.as_api(), "changed": changed})
