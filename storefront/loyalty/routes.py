# storefront/loyalty/routes.py
from ..services import loyalty_service
from ..utils.api import ok
from ..utils.decorators import login_required
from . import bp

@bp.get("")
@login_required
def summary(user):
    return ok("loyalty", loyalty_service.account_summary(user.id))

@bp.get("/history")
@login_required
def history(user):
    return ok("loyalty history", {"items": [e.as_api() for e in loyalty_service.history(user.id)]})
