from datetime import timedelta

import pytest

from storefront.errors import InvalidTransitionError, NotFoundError, ValidationError
from storefront.extensions import db
from storefront.model import Notification, Order
from storefront.services.order_lifecycle import record_initial_status, transition_order
from storefront.services.return_lifecycle import check_transition, open_return, transition_return


def _delivered_order(user_id, order_id="PAY-RET-1", status="delivered"):
    o = Order(id=order_id, user_id=user_id, subtotal=500, total=500)
    record_initial_status(o, "system:checkout")
    db.session.add(o)
    if status != "paid":
        transition_order(o, status, actor="ops")
    db.session.commit()
    return o


@pytest.mark.parametrize("current,target", [
    ("pending", "under_review"),
    ("under_review", "approved"),
    ("approved", "refund_processed"),
    ("pending", "approved"),
    ("pending", "rejected"),
    ("under_review", "rejected"),
])
def test_allowed_moves(current, target):
    assert check_transition(current, target) is True


@pytest.mark.parametrize("current,target", [
    ("approved", "rejected"),
    ("rejected", "pending"),
    ("refund_processed", "approved"),
    ("rejected", "under_review"),
])
def test_rejected_moves(current, target):
    with pytest.raises(InvalidTransitionError):
        check_transition(current, target)


def test_repeat_status_is_no_op():
    assert check_transition("under_review", "under_review") is False


def test_customer_opens_return_on_delivered_order(customer):
    _delivered_order(customer.id)

    rr = open_return(customer.id, "PAY-RET-1", "Damaged Product", "Jar arrived cracked", phone="0781112222")
    db.session.commit()

    assert rr.status == "pending"
    assert rr.order_id == "PAY-RET-1"
    assert Notification.query.filter_by(kind="return_requested", user_id=None).count() == 1


def test_pending_can_be_rejected_directly(customer):
    _delivered_order(customer.id)
    rr = open_return(customer.id, "PAY-RET-1", "Changed My Mind", "No longer needed")
    db.session.commit()

    assert transition_return(rr, "rejected", actor="manager:ops") is True
    db.session.commit()
    assert rr.status == "rejected"
    assert rr.updated_by == "manager:ops"

    with pytest.raises(InvalidTransitionError):
        transition_return(rr, "approved", actor="manager:ops")


def test_return_needs_a_delivered_order(customer):
    _delivered_order(customer.id, status="shipped")
    with pytest.raises(ValidationError):
        open_return(customer.id, "PAY-RET-1", "Quality Issue", "Too runny")


def test_return_only_for_own_order(customer, make_user):
    _delivered_order(customer.id)
    stranger = make_user("user")
    with pytest.raises(NotFoundError):
        open_return(stranger.id, "PAY-RET-1", "Quality Issue", "Not mine")


def test_return_window(app, customer):
    o = _delivered_order(customer.id)
    window = app.config["RETURN_WINDOW_DAYS"]

    late = o.delivered_at() + timedelta(days=window, hours=1)
    with pytest.raises(ValidationError):
        open_return(customer.id, o.id, "Quality Issue", "Too late", now=late)

    on_time = o.delivered_at() + timedelta(days=window - 1)
    assert open_return(customer.id, o.id, "Quality Issue", "Just in time", now=on_time).status == "pending"


def test_one_open_return_per_order(customer):
    _delivered_order(customer.id)
    first = open_return(customer.id, "PAY-RET-1", "Other", "first")
    db.session.commit()

    with pytest.raises(ValidationError):
        open_return(customer.id, "PAY-RET-1", "Other", "second")

    transition_return(first, "rejected", actor="ops")
    db.session.commit()
    assert open_return(customer.id, "PAY-RET-1", "Other", "after rejection").status == "pending"


def test_unknown_reason_is_rejected(customer):
    _delivered_order(customer.id)
    with pytest.raises(ValidationError):
        open_return(customer.id, "PAY-RET-1", "Bored", "because")
