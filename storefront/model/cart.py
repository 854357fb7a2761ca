# storefront/model/cart.py
from __future__ import annotations
import uuid as _uuid
from sqlalchemy.sql import func
from ..extensions import db

class Cart(db.Model):
    __tablename__ = "cart"

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), unique=True, index=True, default=lambda: str(_uuid.uuid4()))
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    status = db.Column(db.String(16), default="active", index=True)   # active | checked_out
    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    items = db.relationship(
        "CartItem",
        backref="cart",
        cascade="all, delete-orphan",
        lazy="joined",
        order_by="CartItem.id.asc()"
    )

    def lines(self):
        """Frozen CartLine values for the pricing engine and checkout."""
        from ..services.pricing import CartLine
        return [
            CartLine(product_id=i.product_id, unit_price=i.unit_price, quantity=i.quantity, name=i.product_name)
            for i in self.items
        ]

    def item_count(self) -> int:
        return sum(i.quantity for i in self.items)

    def as_api(self):
        return {
            "id": self.id,
            "uuid": self.uuid,
            "status": self.status,
            "items": [i.as_api() for i in self.items],
            "item_count": self.item_count(),
            "subtotal": sum(i.line_total() for i in self.items),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class CartItem(db.Model):
    __tablename__ = "cart_item"

    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("cart.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    unit_price = db.Column(db.Integer, nullable=False, default=0)   # snapshot at add time
    quantity = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    def line_total(self) -> int:
        return self.unit_price * self.quantity

    def as_api(self):
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.product_name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "line_total": self.line_total(),
        }
