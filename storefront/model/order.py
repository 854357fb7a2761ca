# storefront/model/order.py
from datetime import datetime, timezone
from ..extensions import db

def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)

class Order(db.Model):
    __tablename__ = "orders"

    # payment transaction reference; one order per captured payment
    id = db.Column(db.String(64), primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default="paid", index=True)

    address_json = db.Column(db.JSON)
    payment_method = db.Column(db.String(20))

    # Money snapshot
    subtotal = db.Column(db.Integer, nullable=False)
    bulk_discount = db.Column(db.Integer, nullable=False, default=0)
    coupon_code = db.Column(db.String(64))
    coupon_discount = db.Column(db.Integer, nullable=False, default=0)
    points_redeemed = db.Column(db.Integer, nullable=False, default=0)
    points_discount = db.Column(db.Integer, nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=_utcnow, index=True)

    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        lazy="joined",
        order_by="OrderItem.id.asc()",
    )
    status_history = db.relationship(
        "OrderStatusHistory",
        backref="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderStatusHistory.id.asc()",
    )

    def delivered_at(self):
        for h in reversed(self.status_history):
            if h.status == "delivered":
                return h.created_at
        return None

    def as_api(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "status": self.status,
            "address": self.address_json,
            "payment_method": self.payment_method,
            "money": {
                "subtotal": self.subtotal,
                "bulk_discount": self.bulk_discount,
                "coupon_code": self.coupon_code,
                "coupon_discount": self.coupon_discount,
                "points_redeemed": self.points_redeemed,
                "points_discount": self.points_discount,
                "total": self.total,
            },
            "items": [i.as_api() for i in self.items],
            "status_history": [h.as_api() for h in self.status_history],
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(64), db.ForeignKey("orders.id"), nullable=False, index=True)

    product_id = db.Column(db.Integer, index=True)
    name = db.Column(db.String(255))
    unit_price = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Integer, nullable=False)

    def as_api(self):
        return {
            "product_id": self.product_id,
            "name": self.name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "line_total": self.line_total,
        }

class OrderStatusHistory(db.Model):
    """Append-only audit trail of order status changes."""
    __tablename__ = "order_status_history"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(64), db.ForeignKey("orders.id"), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False)
    actor = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)

    def as_api(self):
        return {
            "status": self.status,
            "actor": self.actor,
            "timestamp": self.created_at.isoformat() if self.created_at else None,
        }
