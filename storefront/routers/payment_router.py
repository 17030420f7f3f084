from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import orders, payments
from ..auth import get_current_admin, get_current_user
from ..database import get_db
from ..models import PaymentStatus, UserRole
from ..schemas import PaymentCreate, PaymentOut, PaymentResult

router = APIRouter(prefix="/payments", tags=["payments"])


def _is_admin(current_user: Dict) -> bool:
    return current_user.get("role") == UserRole.ADMIN.value


def _get_own_payment(db: Session, payment_id: int, current_user: Dict):
    payment = payments.get_payment(db, payment_id)
    # Someone else's payment looks the same as a missing one
    if not payment or (not _is_admin(current_user) and payment.order.user_id != current_user["id"]):
        raise HTTPException(status_code=404, detail="Payment not found")
    return payment


@router.get("/")
def list_payments(
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return {"payments": [PaymentOut.model_validate(p) for p in payments.get_payments(db)]}


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_payment(
    body: PaymentCreate,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not _is_admin(current_user) and not orders.get_user_order(db, current_user["id"], body.order_id):
        raise HTTPException(status_code=404, detail="Order not found")
    payment = payments.create_payment(db, body.order_id, body.method, body.amount)
    return {"payment": PaymentOut.model_validate(payment)}


@router.post("/{payment_id:int}/process", response_model=PaymentResult)
def process_payment(
    payment_id: int,
    current_user: Dict = Depends(get_current_user),
    gateway: payments.PaymentGateway = Depends(payments.get_gateway),
    db: Session = Depends(get_db),
):
    """Run the payment through the simulated gateway (approves about 90% of attempts)."""
    _get_own_payment(db, payment_id, current_user)
    payment = payments.process_payment(db, payment_id, gateway)
    approved = payment.status == PaymentStatus.APPROVED
    return {
        "payment": payment,
        "message": "Payment approved" if approved else "Payment rejected",
    }


@router.post("/{payment_id:int}/cancel")
def cancel_payment(
    payment_id: int,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _get_own_payment(db, payment_id, current_user)
    payment = payments.cancel_payment(db, payment_id)
    return {"payment": PaymentOut.model_validate(payment)}


@router.get("/order/{order_id:int}")
def get_payment_by_order(
    order_id: int,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    payment = payments.get_payment_by_order(db, order_id)
    if not payment or (not _is_admin(current_user) and payment.order.user_id != current_user["id"]):
        raise HTTPException(status_code=404, detail="Payment not found")
    return {"payment": PaymentOut.model_validate(payment)}


@router.get("/{payment_id:int}")
def get_payment(
    payment_id: int,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    payment = _get_own_payment(db, payment_id, current_user)
    return {"payment": PaymentOut.model_validate(payment)}
