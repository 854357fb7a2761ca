# storefront/product/routes.py
from flask import request
from ..extensions import db
from ..model import Product
from ..services.inventory import adjust_stock
from ..utils.api import ok, err
from ..utils.decorators import operator_required
from . import bp

def _parse_int(v, default=0):
    try:
        return int(v)
    except (TypeError, ValueError):
        return default

@bp.post("")
@operator_required
def create_product(user):
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    price = _parse_int(data.get("price"), -1)
    stock = _parse_int(data.get("stock"), 0)
    if not name:
        return err("name is required", 422)
    if price < 0:
        return err("price must be a non-negative integer", 422)
    if stock < 0:
        return err("stock must be >= 0", 422)

    p = Product(
        sku=(data.get("sku") or "").strip() or None,
        name=name,
        price=price,
        stock=stock,
        is_active=bool(data.get("is_active", True)),
    )
    db.session.add(p)
    db.session.commit()
    return ok("product created", p.as_api(), status=201)

@bp.get("/<int:product_id>")
def get_product(product_id: int):
    p = db.session.get(Product, product_id)
    if not p:
        return err("product not found", 404)
    return ok("product", p.as_api())

@bp.patch("/<int:product_id>/stock")
@operator_required
def update_stock(user, product_id: int):
    """Body: { "delta": int }  positive to restock, negative to write off."""
    data = request.get_json(silent=True) or {}
    delta = _parse_int(data.get("delta"), 0)
    if delta == 0:
        return err("delta must be a non-zero integer", 422)
    p = adjust_stock(product_id, delta)
    return ok("stock updated", p.as_api())
