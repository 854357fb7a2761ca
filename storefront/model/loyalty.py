# storefront/model/loyalty.py
from datetime import datetime, timezone
from ..extensions import db

def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)

EARN = "earn"
REDEEM = "redeem"
RELEASE = "release"      # credit back a checkout hold that never became an order

class LoyaltyAccount(db.Model):
    __tablename__ = "loyalty_account"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), unique=True, nullable=False, index=True)

    # cached projection of sum(ledger.delta)
    points_balance = db.Column(db.Integer, nullable=False, default=0)
    lifetime_points = db.Column(db.Integer, nullable=False, default=0)
    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=_utcnow)

    entries = db.relationship(
        "LedgerEntry",
        backref="account",
        lazy="selectin",
        order_by="LedgerEntry.id.asc()",
    )

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        db.CheckConstraint("points_balance >= 0", name="ck_loyalty_balance_non_negative"),
    )


class LedgerEntry(db.Model):
    __tablename__ = "loyalty_ledger_entry"

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("loyalty_account.id"), nullable=False, index=True)
    kind = db.Column(db.String(10), nullable=False)          # earn | redeem | release
    delta = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    balance_after = db.Column(db.Integer, nullable=False)
    order_id = db.Column(db.String(64), nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("order_id", "kind", name="uq_ledger_order_kind"),
    )

    def as_api(self):
        return {
            "kind": self.kind,
            "points": self.delta,
            "description": self.description,
            "balance": self.balance_after,
            "order_id": self.order_id,
            "date": self.created_at.isoformat() if self.created_at else None,
        }
