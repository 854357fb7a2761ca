# storefront/cart/routes.py
from __future__ import annotations
from flask import request

from ..utils.api import ok, err
from ..extensions import db
from ..model import Product, Cart, CartItem
from ..services.checkout_service import quote
from ..utils.decorators import login_required
from . import bp

# ---- helpers ---------------------------------------------------------------

def get_or_create_cart(user_id: int) -> Cart:
    cart = Cart.query.filter_by(user_id=user_id, status="active").first()
    if not cart:
        cart = Cart(user_id=user_id, status="active")
        db.session.add(cart)
        db.session.commit()
    return cart

def _find_item(cart: Cart, product_id: int) -> CartItem | None:
    return next((i for i in cart.items if i.product_id == product_id), None)

def _parse_qty(data):
    try:
        qty = int(data.get("quantity") or data.get("qty") or 0)
    except (TypeError, ValueError):
        return None
    return qty if qty >= 1 else None

# ---- endpoints -------------------------------------------------------------

@bp.get("")
@login_required
def get_cart(user):
    cart = get_or_create_cart(user.id)
    return ok("cart", cart.as_api())

@bp.post("/items")
@login_required
def add_item(user):
    """
    Body: { "product_id": int, "quantity": int }
    The unit price is captured now and kept until checkout.
    """
    cart = get_or_create_cart(user.id)
    data = request.get_json(silent=True) or {}
    product_id = data.get("product_id")
    qty = _parse_qty(data) if ("quantity" in data or "qty" in data) else 1

    if not product_id:
        return err("product_id is required", 422)
    if not qty:
        return err("quantity must be >= 1", 422)

    product: Product | None = db.session.get(Product, product_id)
    if not product or product.is_active is False:
        return err("product not found or inactive", 404)

    item = _find_item(cart, product.id)
    if item:
        item.quantity += qty
    else:
        cart.items.append(CartItem(
            product_id=product.id,
            product_name=product.name,
            unit_price=product.price,
            quantity=qty,
        ))
    db.session.commit()
    return ok("item added", cart.as_api(), status=201)

@bp.patch("/items/<int:product_id>")
@login_required
def update_item(user, product_id: int):
    cart = get_or_create_cart(user.id)
    item = _find_item(cart, product_id)
    if not item:
        return err("item not found in this cart", 404)

    qty = _parse_qty(request.get_json(silent=True) or {})
    if not qty:
        return err("quantity must be >= 1", 422)

    item.quantity = qty
    db.session.commit()
    return ok("item updated", cart.as_api())

@bp.delete("/items/<int:product_id>")
@login_required
def remove_item(user, product_id: int):
    cart = get_or_create_cart(user.id)
    item = _find_item(cart, product_id)
    if not item:
        return err("item not found in this cart", 404)

    cart.items.remove(item)
    db.session.commit()
    return ok("item removed", cart.as_api())

@bp.delete("/items")
@login_required
def clear_items(user):
    cart = get_or_create_cart(user.id)
    # cascade="all, delete-orphan" deletes the rows
    cart.items.clear()
    db.session.commit()
    return ok("all items removed", cart.as_api())

@bp.post("/quote")
@login_required
def quote_cart(user):
    """
    Body: { "coupon_code": str?, "points": int? }
    Prices the cart as checkout would, without touching stock, coupons or points.
    """
    cart = get_or_create_cart(user.id)
    if not cart.items:
        return err("cart is empty", 422)
    data = request.get_json(silent=True) or {}
    breakdown = quote(user.id, cart.lines(), data.get("coupon_code"), int(data.get("points") or 0))
    return ok("quote", breakdown.as_api())
