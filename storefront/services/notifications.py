# storefront/services/notifications.py
import logging
from ..extensions import db
from ..model import Notification

logger = logging.getLogger(__name__)

def notify(kind: str, message: str, user_id=None) -> Notification:
    """Record that a notification-worthy event happened. Delivery happens elsewhere."""
    note = Notification(user_id=user_id, kind=kind, message=message[:255])
    db.session.add(note)
    return note

def for_user(user_id, unread_only=False):
    q = Notification.query.filter_by(user_id=user_id)
    if unread_only:
        q = q.filter(Notification.is_read.is_(False))
    return q.order_by(Notification.id.desc()).all()
