from typing import Dict, Optional

from fastapi import APIRouter, Depends, Form, Header, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from .. import checkout, orders
from ..auth import get_current_admin, get_current_user
from ..database import get_db
from ..schemas import AdminOrderCreate, OrderListResponse, OrderOut, OrderStatusUpdate

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("/", response_model=OrderListResponse)
def get_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user_orders, pagination = orders.get_orders_by_user(db, current_user["id"], page=page, limit=limit)
    return {"orders": user_orders, "pagination": pagination}


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_order(
    response: Response,
    address_id: Optional[int] = Form(None, description="Delivery address ID", examples=[""]),
    payment_method: Optional[str] = Form(None, description="CREDIT_CARD, DEBIT_CARD, PIX or BOLETO", examples=[""]),
    address_id_camel: Optional[int] = Form(None, alias="addressId", description="Same as address_id"),
    payment_method_camel: Optional[str] = Form(None, alias="paymentMethod", description="Same as payment_method"),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Check out the current user's cart.

    - Creates the order, its items (with the prices of this moment) and a pending payment.
    - Decrements variant stock and empties the cart; all of it or nothing.
    - Repeating a request with the same Idempotency-Key returns the first order with 200.
    """
    order, created = checkout.place_order(
        db,
        user_id=current_user["id"],
        address_id=address_id or address_id_camel,
        payment_method=payment_method or payment_method_camel,
        idempotency_key=idempotency_key,
    )
    if not created:
        response.status_code = status.HTTP_200_OK
        return {"message": "Order already created", "order": OrderOut.model_validate(order)}
    return {"message": "Order created successfully", "order": OrderOut.model_validate(order)}


@router.get("/{order_id:int}", response_model=OrderOut)
def get_my_order(
    order_id: int,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    db_order = orders.get_user_order(db, current_user["id"], order_id)
    if not db_order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order with id {order_id} not found",
        )
    return db_order


# -----------------------------
# Admin
# -----------------------------


@router.get("/admin/all")
def get_all_orders(
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return {"orders": [OrderOut.model_validate(o) for o in orders.get_orders(db)]}


@router.get("/admin/{order_id:int}")
def get_order_admin(
    order_id: int,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    db_order = orders.get_order(db, order_id)
    if not db_order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order with id {order_id} not found",
        )
    return {"order": OrderOut.model_validate(db_order)}


@router.post("/admin", status_code=status.HTTP_201_CREATED)
def create_order_admin(
    body: AdminOrderCreate,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    order = checkout.create_admin_order(
        db,
        items=[i.model_dump() for i in body.items],
        user_id=body.user_id,
        customer=body.customer_info.model_dump() if body.customer_info else None,
        status=body.status,
    )
    return {"message": "Order created successfully", "order": OrderOut.model_validate(order)}


@router.patch("/admin/{order_id:int}")
@router.put("/admin/{order_id:int}")
def update_order_admin(
    order_id: int,
    status_update: OrderStatusUpdate,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    db_order = orders.update_order_status(db, order_id, status_update.status)
    if not db_order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order with id {order_id} not found",
        )
    return {"message": "Order updated successfully", "order": OrderOut.model_validate(db_order)}


@router.delete("/admin/{order_id:int}")
def delete_order_admin(
    order_id: int,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    db_order = orders.delete_order(db, order_id)
    if not db_order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order with id {order_id} not found",
        )
    return {"message": "Order deleted successfully"}
