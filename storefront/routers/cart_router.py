from typing import Dict, Optional

from fastapi import APIRouter, Depends, Form, status
from sqlalchemy.orm import Session

from .. import cart
from ..auth import get_current_user
from ..database import get_db
from ..schemas import CartItemOut, CartOut

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("/", response_model=CartOut)
def get_my_cart(
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return cart.get_cart(db, current_user["id"])


@router.post("/add", status_code=status.HTTP_201_CREATED)
def add_to_cart(
    product_id: Optional[int] = Form(None, description="Product ID", examples=[""]),
    variant_id: Optional[int] = Form(None, description="Variant ID (size)", examples=[""]),
    quantity: int = Form(1, description="Quantity", examples=[""]),
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Add a product (optionally a specific variant) to the cart.

    Adding a line that already exists increases its quantity. Stock is checked
    against the resulting quantity but not reserved.
    """
    item = cart.add_to_cart(db, current_user["id"], product_id, variant_id, quantity)
    return {"message": "Item added to cart", "item": CartItemOut.model_validate(item)}


@router.put("/{item_id}")
def update_cart_item(
    item_id: int,
    quantity: Optional[int] = Form(None, description="New quantity", examples=[""]),
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    item = cart.update_cart_item(db, current_user["id"], item_id, quantity)
    return {"message": "Quantity updated", "item": CartItemOut.model_validate(item)}


@router.delete("/{item_id}")
def remove_cart_item(
    item_id: int,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    cart.remove_cart_item(db, current_user["id"], item_id)
    return {"message": "Item removed from cart"}


@router.delete("/")
def clear_cart(
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    cart.clear_cart(db, current_user["id"])
    return {"message": "Cart cleared"}
