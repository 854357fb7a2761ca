# --- storefront/model/coupon.py ---

from ..extensions import db
from sqlalchemy.sql import func

PERCENTAGE = "percentage"
FIXED = "fixed"
DISCOUNT_TYPES = (PERCENTAGE, FIXED)

class Coupon(db.Model):
    __tablename__ = "coupon"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)   # stored upper-case

    # "percentage" or "fixed"
    discount_type = db.Column(db.String(16), nullable=False, default=PERCENTAGE)
    value = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, default=True, index=True)

    min_order_value = db.Column(db.Integer, nullable=False, default=0)   # checked against subtotal after bulk discount
    max_discount = db.Column(db.Integer, nullable=True)                  # percentage coupons only
    usage_limit = db.Column(db.Integer, nullable=False, default=1)
    used_count = db.Column(db.Integer, nullable=False, default=0)
    expires_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    __table_args__ = (
        db.CheckConstraint("used_count <= usage_limit", name="ck_coupon_usage_within_limit"),
    )

    @staticmethod
    def normalize_code(code) -> str:
        return (code or "").strip().upper()

    @property
    def is_exhausted(self) -> bool:
        return (self.used_count or 0) >= (self.usage_limit or 0)

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "discount_type": self.discount_type,
            "value": self.value,
            "is_active": self.is_active,
            "min_order_value": self.min_order_value,
            "max_discount": self.max_discount,
            "usage_limit": self.usage_limit,
            "used_count": self.used_count,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }
