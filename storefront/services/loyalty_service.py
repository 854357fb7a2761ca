# storefront/services/loyalty_service.py
"""
Loyalty ledger.

The ledger rows are the source of truth; ``LoyaltyAccount.points_balance``
is a cached running sum updated in the same transaction as each append.
Appends for one account serialize on a row lock plus the account's
``version`` column, and a stale write is retried from a fresh read.
"""
import logging
import uuid
from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import InsufficientPointsError, LedgerConflictError, ValidationError
from ..model import LoyaltyAccount, LedgerEntry
from ..model.loyalty import EARN, REDEEM, RELEASE
from .pricing import (
    POINTS_BLOCK, points_earned_for, points_value, tier_for, tier_discount_rate, next_tier,
)

logger = logging.getLogger(__name__)


def get_account(user_id):
    return LoyaltyAccount.query.filter_by(user_id=user_id).first()


def get_balance(user_id) -> int:
    acct = get_account(user_id)
    return acct.points_balance if acct else 0


def _locked_account(user_id, create=False):
    q = LoyaltyAccount.query.filter_by(user_id=user_id).with_for_update().populate_existing()
    acct = q.first()
    if acct is None and create:
        acct = LoyaltyAccount(user_id=user_id, points_balance=0, lifetime_points=0)
        db.session.add(acct)
        try:
            db.session.flush()
        except IntegrityError:
            # another request opened the account first
            db.session.rollback()
            acct = q.first()
    return acct


def _existing_entry(order_id, kind):
    if not order_id:
        return None
    return LedgerEntry.query.filter_by(order_id=order_id, kind=kind).first()


def _append(user_id, kind, delta, description, order_id=None):
    attempts = int(current_app.config.get("LEDGER_RETRY_ATTEMPTS", 3))
    for attempt in range(1, attempts + 1):
        existing = _existing_entry(order_id, kind)
        if existing is not None:
            return existing

        acct = _locked_account(user_id, create=delta > 0)
        balance = acct.points_balance if acct else 0
        new_balance = balance + delta
        if new_balance < 0:
            db.session.rollback()
            raise InsufficientPointsError(
                f"cannot redeem {-delta} points with a balance of {balance}",
                {"balance": balance, "requested": -delta},
            )

        entry = LedgerEntry(
            account_id=acct.id,
            kind=kind,
            delta=delta,
            description=description,
            balance_after=new_balance,
            order_id=order_id,
        )
        acct.points_balance = new_balance
        if kind == EARN:
            acct.lifetime_points = (acct.lifetime_points or 0) + delta
        db.session.add(entry)
        try:
            db.session.commit()
            return entry
        except StaleDataError:
            db.session.rollback()
            logger.warning("ledger write raced user=%s kind=%s attempt=%s", user_id, kind, attempt)
        except IntegrityError:
            db.session.rollback()
            existing = _existing_entry(order_id, kind)
            if existing is not None:
                return existing
            raise

    logger.error("ledger write gave up user=%s kind=%s after %s attempts", user_id, kind, attempts)
    raise LedgerConflictError("loyalty account is busy, try again")


def earn_points(user_id, order_total: int, order_id=None):
    """Credit floor(total / 10) points for a paid order. Returns the entry, or None for 0 points."""
    points = points_earned_for(order_total)
    if points <= 0:
        return None
    label = f"order {order_id}" if order_id else "purchase"
    return _append(user_id, EARN, points, f"Earned on {label}", order_id)


def redeem_points(user_id, points: int, order_id=None):
    if points < POINTS_BLOCK or points % POINTS_BLOCK:
        raise ValidationError(f"points must be a positive multiple of {POINTS_BLOCK}")
    description = f"Redeemed for {points_value(points)} discount"
    return _append(user_id, REDEEM, -points, description, order_id)


HOLD_PREFIX = "HOLD-"


def hold_points(user_id, points: int):
    """
    Debit ``points`` ahead of payment under a provisional key. The caller
    either re-keys the entry to the order id in the order's transaction or
    hands it to ``release_hold``.
    """
    return redeem_points(user_id, points, order_id=f"{HOLD_PREFIX}{uuid.uuid4().hex}")


def release_hold(user_id, hold_key: str, points: int):
    """Credit back a hold. Once per hold key."""
    return _append(user_id, RELEASE, points, f"Released {points} points held for checkout", hold_key)


def history(user_id):
    acct = get_account(user_id)
    if not acct:
        return []
    return list(reversed(acct.entries))


def account_summary(user_id):
    acct = get_account(user_id)
    balance = acct.points_balance if acct else 0
    tier = tier_for(balance)
    upcoming, needed = next_tier(balance)
    return {
        "points": balance,
        "lifetime_points": acct.lifetime_points if acct else 0,
        "points_value": points_value(balance),
        "tier": tier,
        "tier_discount_percent": tier_discount_rate(tier),
        "tier_discount_applied_at_checkout": False,
        "next_tier": upcoming,
        "points_to_next_tier": needed,
    }


def verify_ledger(account: LoyaltyAccount):
    """Recompute the balance from the ledger. Returns a list of problems (empty when consistent)."""
    problems = []
    running = 0
    for e in account.entries:
        running += e.delta
        if running < 0:
            problems.append(f"entry {e.id}: balance went negative ({running})")
        if e.balance_after != running:
            problems.append(f"entry {e.id}: balance_after {e.balance_after} != running sum {running}")
    if account.points_balance != running:
        problems.append(f"cached balance {account.points_balance} != ledger sum {running}")
    return problems
