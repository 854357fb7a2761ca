# storefront/model/returns.py
import uuid as _uuid
from datetime import datetime, timezone
from ..extensions import db
from .types import GUID

def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)

RETURN_REASONS = (
    "Damaged Product",
    "Wrong Item Received",
    "Quality Issue",
    "Changed My Mind",
    "Other",
)

class ReturnRequest(db.Model):
    __tablename__ = "return_request"

    id = db.Column(GUID(), primary_key=True, default=_uuid.uuid4)
    order_id = db.Column(db.String(64), nullable=False, index=True)   # reference only, no FK ownership
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)

    reason = db.Column(db.String(64), nullable=False)
    description = db.Column(db.Text, nullable=False)
    phone = db.Column(db.String(50))

    status = db.Column(db.String(20), nullable=False, default="pending", index=True)
    updated_by = db.Column(db.String(120))

    created_at = db.Column(db.DateTime, default=_utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    def as_api(self):
        return {
            "id": str(self.id),
            "order_id": self.order_id,
            "user_id": self.user_id,
            "reason": self.reason,
            "description": self.description,
            "phone": self.phone,
            "status": self.status,
            "updated_by": self.updated_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
