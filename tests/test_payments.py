from decimal import Decimal

import pytest

from conftest import add_to_cart
from storefront import checkout, payments
from storefront.errors import (
    AlreadyProcessedError,
    DuplicatePaymentError,
    InvalidTransitionError,
    NotFoundError,
)
from storefront.models import Order, OrderStatus, Payment, PaymentMethod, PaymentStatus
from storefront.payments import PaymentGateway

ALWAYS_APPROVE = PaymentGateway(approval_rate=1.0)
ALWAYS_REJECT = PaymentGateway(approval_rate=0.0)


@pytest.fixture
def placed_order(db, customer, address, dress, dress_m):
    add_to_cart(db, customer, dress, dress_m, quantity=2)
    order, _ = checkout.place_order(db, customer.id, address.id, "CREDIT_CARD")
    return order


def _order_status(db, order_id):
    db.expire_all()
    return db.get(Order, order_id).status


def test_gateway_uses_injected_random_source():
    approve = PaymentGateway(approval_rate=0.5, rng=lambda: 0.49)
    reject = PaymentGateway(approval_rate=0.5, rng=lambda: 0.5)

    approved, txn = approve.authorize(None)
    assert approved is True
    assert txn.startswith("TXN_")

    assert reject.authorize(None) == (False, None)


def test_approved_payment_confirms_order(db, placed_order):
    payment = payments.process_payment(db, placed_order.payment.id, gateway=ALWAYS_APPROVE)

    assert payment.status == PaymentStatus.APPROVED
    assert payment.transaction_id.startswith("TXN_")
    assert _order_status(db, placed_order.id) == OrderStatus.CONFIRMED


def test_rejected_payment_rejects_order(db, placed_order):
    payment = payments.process_payment(db, placed_order.payment.id, gateway=ALWAYS_REJECT)

    assert payment.status == PaymentStatus.REJECTED
    assert payment.transaction_id is None
    assert _order_status(db, placed_order.id) == OrderStatus.REJECTED


def test_payment_is_processed_only_once(db, placed_order):
    payment_id = placed_order.payment.id
    payments.process_payment(db, payment_id, gateway=ALWAYS_APPROVE)

    with pytest.raises(AlreadyProcessedError):
        payments.process_payment(db, payment_id, gateway=ALWAYS_REJECT)

    db.expire_all()
    assert payments.get_payment(db, payment_id).status == PaymentStatus.APPROVED
    assert _order_status(db, placed_order.id) == OrderStatus.CONFIRMED


def test_process_unknown_payment(db):
    with pytest.raises(NotFoundError):
        payments.process_payment(db, 12345, gateway=ALWAYS_APPROVE)


def test_cancel_pending_payment(db, placed_order):
    payment = payments.cancel_payment(db, placed_order.payment.id)

    assert payment.status == PaymentStatus.CANCELLED
    assert _order_status(db, placed_order.id) == OrderStatus.CANCELLED


def test_cannot_cancel_approved_payment(db, placed_order):
    payments.process_payment(db, placed_order.payment.id, gateway=ALWAYS_APPROVE)

    with pytest.raises(InvalidTransitionError) as exc_info:
        payments.cancel_payment(db, placed_order.payment.id)

    assert exc_info.value.extra["current_status"] == "APPROVED"
    db.expire_all()
    assert payments.get_payment(db, placed_order.payment.id).status == PaymentStatus.APPROVED


def test_cancelled_payment_cannot_be_processed(db, placed_order):
    payments.cancel_payment(db, placed_order.payment.id)

    with pytest.raises(AlreadyProcessedError):
        payments.process_payment(db, placed_order.payment.id, gateway=ALWAYS_APPROVE)


def test_order_holds_at_most_one_payment(db, placed_order):
    with pytest.raises(DuplicatePaymentError):
        payments.create_payment(db, placed_order.id, PaymentMethod.PIX, Decimal("140.00"))


def test_create_payment_for_admin_order(db, dress):
    order = checkout.create_admin_order(db, items=[{"product_id": dress.id, "quantity": 1}], user_id="guest")

    payment = payments.create_payment(db, order.id, PaymentMethod.BOLETO, order.total)

    assert payment.status == PaymentStatus.PENDING
    assert payments.get_payment_by_order(db, order.id).id == payment.id


def test_create_payment_for_unknown_order(db):
    with pytest.raises(NotFoundError):
        payments.create_payment(db, 999, PaymentMethod.PIX, Decimal("10.00"))


def test_cancel_loses_race_to_approval(db, session_factory, monkeypatch, placed_order):
    payment_id = placed_order.payment.id

    def approved_elsewhere(session, payment, *args, **kwargs):
        other = session_factory()
        try:
            other.query(Payment).filter(Payment.id == payment_id).update({Payment.status: PaymentStatus.APPROVED})
            other.commit()
        finally:
            other.close()
        return False

    monkeypatch.setattr(payments, "_settle", approved_elsewhere)

    with pytest.raises(InvalidTransitionError) as exc_info:
        payments.cancel_payment(db, payment_id)
    assert exc_info.value.extra["current_status"] == "APPROVED"


def test_cancel_of_payment_deleted_meanwhile(db, session_factory, monkeypatch, placed_order):
    payment_id = placed_order.payment.id

    def deleted_elsewhere(session, payment, *args, **kwargs):
        other = session_factory()
        try:
            other.query(Payment).filter(Payment.id == payment_id).delete()
            other.commit()
        finally:
            other.close()
        return False

    monkeypatch.setattr(payments, "_settle", deleted_elsewhere)

    with pytest.raises(NotFoundError):
        payments.cancel_payment(db, payment_id)
