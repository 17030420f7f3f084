"""Payment state machine on top of a simulated gateway.

PENDING -> APPROVED | REJECTED via ``process_payment``; PENDING -> CANCELLED
via ``cancel_payment``. The owning order follows in the same transaction
(CONFIRMED, REJECTED or CANCELLED). Status changes are guarded UPDATEs on
``status = PENDING`` so a payment is settled at most once even when two
requests race.
"""
import logging
import random
import time
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from . import config
from .errors import (
    AlreadyProcessedError,
    DuplicatePaymentError,
    InvalidTransitionError,
    NotFoundError,
)
from .messaging import publish_event
from .models import Order, OrderStatus, Payment, PaymentMethod, PaymentStatus

logger = logging.getLogger(__name__)


class PaymentGateway:
    """Fake gateway: approves with probability ``approval_rate``.

    Not a real integration; outcomes are random unless ``rng`` is replaced.
    """

    def __init__(self, approval_rate: float = config.PAYMENT_APPROVAL_RATE, rng: Callable[[], float] = random.random):
        self.approval_rate = approval_rate
        self.rng = rng

    def authorize(self, payment: Payment) -> Tuple[bool, Optional[str]]:
        approved = self.rng() < self.approval_rate
        transaction_id = f"TXN_{int(time.time() * 1000)}" if approved else None
        return approved, transaction_id


_gateway = PaymentGateway()


def get_gateway() -> PaymentGateway:
    return _gateway


def _payment_query(db: Session):
    return db.query(Payment).options(selectinload(Payment.order))


def get_payment(db: Session, payment_id: int) -> Optional[Payment]:
    return _payment_query(db).filter(Payment.id == payment_id).first()


def get_payment_by_order(db: Session, order_id: int) -> Optional[Payment]:
    return _payment_query(db).filter(Payment.order_id == order_id).first()


def get_payments(db: Session) -> List[Payment]:
    return _payment_query(db).order_by(Payment.created_at.desc(), Payment.id.desc()).all()


def create_payment(db: Session, order_id: int, method: PaymentMethod, amount: Decimal) -> Payment:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError("Order not found")
    if get_payment_by_order(db, order_id):
        raise DuplicatePaymentError("Order already has a payment")

    payment = Payment(order_id=order_id, method=method, amount=amount, status=PaymentStatus.PENDING)
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment


def _settle(db: Session, payment: Payment, status: PaymentStatus, order_status: OrderStatus,
            transaction_id: Optional[str] = None) -> bool:
    """Move a PENDING payment and its order in one transaction.

    Returns False if another request settled the payment first.
    """
    try:
        result = db.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == PaymentStatus.PENDING)
            .values(status=status, transaction_id=transaction_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            return False
        db.execute(
            update(Order)
            .where(Order.id == payment.order_id)
            .values(status=order_status)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to settle payment %s", payment.id)
        raise
    return True


def process_payment(db: Session, payment_id: int, gateway: Optional[PaymentGateway] = None) -> Payment:
    gateway = gateway or get_gateway()

    payment = get_payment(db, payment_id)
    if not payment:
        raise NotFoundError("Payment not found")
    if payment.status != PaymentStatus.PENDING:
        raise AlreadyProcessedError("Payment has already been processed")

    approved, transaction_id = gateway.authorize(payment)
    if approved:
        settled = _settle(db, payment, PaymentStatus.APPROVED, OrderStatus.CONFIRMED, transaction_id)
    else:
        settled = _settle(db, payment, PaymentStatus.REJECTED, OrderStatus.REJECTED)
    if not settled:
        raise AlreadyProcessedError("Payment has already been processed")

    db.expire_all()
    payment = get_payment(db, payment_id)
    logger.info("Payment %s for order %s %s", payment.id, payment.order_id, payment.status.value)
    publish_event(
        "payment.processed",
        {
            "payment_id": payment.id,
            "order_id": payment.order_id,
            "status": payment.status.value,
            "amount": str(payment.amount),
            "transaction_id": payment.transaction_id,
        },
    )
    return payment


def cancel_payment(db: Session, payment_id: int) -> Payment:
    payment = get_payment(db, payment_id)
    if not payment:
        raise NotFoundError("Payment not found")
    if payment.status != PaymentStatus.PENDING:
        raise InvalidTransitionError(payment.status.value, PaymentStatus.CANCELLED.value)

    if not _settle(db, payment, PaymentStatus.CANCELLED, OrderStatus.CANCELLED):
        db.expire_all()
        current = get_payment(db, payment_id)
        if not current:
            raise NotFoundError("Payment not found")
        raise InvalidTransitionError(current.status.value, PaymentStatus.CANCELLED.value)

    db.expire_all()
    payment = get_payment(db, payment_id)
    logger.info("Payment %s cancelled", payment.id)
    return payment
