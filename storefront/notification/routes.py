from flask import request
from ..extensions import db
from ..model import Notification
from ..services.notifications import for_user
from ..utils.api import ok, err
from ..utils.decorators import login_required
from . import bp

@bp.get("")
@login_required
def mine(user):
    unread = request.args.get("unread", "").lower() == "true"
    return ok("notifications", {"items": [n.as_api() for n in for_user(user.id, unread_only=unread)]})

@bp.put("/<int:note_id>/read")
@login_required
def mark_as_read(user, note_id):
    note = db.session.get(Notification, note_id)
    if not note or note.user_id != user.id:
        return err("notification not found", 404)
    note.is_read = True
    db.session.commit()
    return ok("Marked as read", note.as_api())
