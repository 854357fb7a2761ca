# storefront/services/inventory.py
import logging
from ..extensions import db
from ..errors import InsufficientStockError, NotFoundError
from ..model import Product

logger = logging.getLogger(__name__)

def get_stock(product_id: int) -> int:
    stock = db.session.query(Product.stock).filter(Product.id == product_id).scalar()
    return int(stock or 0)

def find_shortfalls(lines):
    """
    Itemized list of lines asking for more than is on the shelf.
    Quantities for the same product across lines are added together.
    """
    wanted = {}
    names = {}
    for line in lines:
        wanted[line.product_id] = wanted.get(line.product_id, 0) + line.quantity
        names.setdefault(line.product_id, line.name)

    if not wanted:
        return []
    rows = db.session.query(Product.id, Product.name, Product.stock, Product.is_active) \
        .filter(Product.id.in_(wanted.keys())).all()
    pmap = {r.id: r for r in rows}

    shortfalls = []
    for pid, qty in wanted.items():
        p = pmap.get(pid)
        available = int(p.stock or 0) if p and p.is_active is not False else 0
        if qty > available:
            shortfalls.append({
                "product_id": pid,
                "name": (p.name if p else None) or names.get(pid) or f"product {pid}",
                "requested": qty,
                "available": available,
            })
    return shortfalls

def validate_stock(lines):
    shortfalls = find_shortfalls(lines)
    if shortfalls:
        raise InsufficientStockError(shortfalls)

def decrement_stock(product_id: int, qty: int) -> bool:
    """Conditional decrement; False when the row is missing or would go below zero."""
    updated = (
        db.session.query(Product)
        .filter(Product.id == product_id, Product.stock >= qty)
        .update({Product.stock: Product.stock - qty}, synchronize_session=False)
    )
    db.session.commit()
    if updated != 1:
        logger.warning("stock decrement refused product=%s qty=%s", product_id, qty)
        return False
    return True

def adjust_stock(product_id: int, delta: int) -> Product:
    """Operator correction of stock, applied as a single UPDATE."""
    q = db.session.query(Product).filter(Product.id == product_id)
    if delta < 0:
        q = q.filter(Product.stock >= -delta)
    updated = q.update({Product.stock: Product.stock + delta}, synchronize_session=False)
    db.session.commit()
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("product not found")
    if updated != 1:
        raise InsufficientStockError([{
            "product_id": product.id, "name": product.name,
            "requested": -delta, "available": product.stock,
        }])
    return product
