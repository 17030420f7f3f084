"""Per-user cart.

Stock is checked when a line is added or changed, but nothing is reserved:
stock may move before checkout, and ``checkout.place_order`` re-validates it
inside its own transaction.
"""
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from .errors import InsufficientStockError, NotFoundError, ValidationError
from .models import CartItem, Product, ProductVariant

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def get_cart_items(db: Session, user_id: int) -> List[CartItem]:
    return (
        db.query(CartItem)
        .options(selectinload(CartItem.product), selectinload(CartItem.variant))
        .filter(CartItem.user_id == user_id)
        .order_by(CartItem.id)
        .all()
    )


def cart_total(items: List[CartItem]) -> Decimal:
    total = sum((Decimal(str(i.product.price)) * i.quantity for i in items), Decimal("0"))
    return total.quantize(CENTS, rounding=ROUND_HALF_UP)


def get_cart(db: Session, user_id: int) -> Dict:
    items = get_cart_items(db, user_id)
    return {"items": items, "total": cart_total(items), "count": len(items)}


def _check_stock(product: Product, variant: Optional[ProductVariant], quantity: int) -> None:
    if variant is not None and variant.stock < quantity:
        raise InsufficientStockError(
            product_id=product.id,
            product_name=product.name,
            available=variant.stock,
            requested=quantity,
        )


def add_to_cart(
    db: Session,
    user_id: int,
    product_id: Optional[int],
    variant_id: Optional[int] = None,
    quantity: int = 1,
) -> CartItem:
    if not product_id:
        raise ValidationError("Product id is required")
    if quantity is None or quantity <= 0:
        raise ValidationError("Quantity must be greater than zero")

    product = (
        db.query(Product)
        .filter(Product.id == product_id, Product.is_active.is_(True))
        .first()
    )
    if not product:
        raise NotFoundError("Product not found or inactive")

    variant = None
    if variant_id:
        variant = (
            db.query(ProductVariant)
            .filter(ProductVariant.id == variant_id, ProductVariant.product_id == product_id)
            .first()
        )
        if not variant:
            raise NotFoundError("Product variant not found")

    existing = (
        db.query(CartItem)
        .filter(
            CartItem.user_id == user_id,
            CartItem.product_id == product_id,
            CartItem.variant_id.is_(None) if variant_id is None else CartItem.variant_id == variant_id,
        )
        .first()
    )

    new_quantity = quantity + (existing.quantity if existing else 0)
    _check_stock(product, variant, new_quantity)

    if existing:
        existing.quantity = new_quantity
        cart_item = existing
    else:
        cart_item = CartItem(
            user_id=user_id,
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity,
        )
        db.add(cart_item)

    db.commit()
    db.refresh(cart_item)
    logger.debug("Cart of user %s: product %s x%s", user_id, product_id, cart_item.quantity)
    return cart_item


def update_cart_item(db: Session, user_id: int, item_id: int, quantity: Optional[int]) -> CartItem:
    if not quantity or quantity <= 0:
        raise ValidationError("Quantity must be greater than zero")

    cart_item = (
        db.query(CartItem)
        .filter(CartItem.id == item_id, CartItem.user_id == user_id)
        .first()
    )
    if not cart_item:
        raise NotFoundError("Item not found in cart")

    _check_stock(cart_item.product, cart_item.variant, quantity)

    cart_item.quantity = quantity
    db.commit()
    db.refresh(cart_item)
    return cart_item


def remove_cart_item(db: Session, user_id: int, item_id: int) -> None:
    cart_item = (
        db.query(CartItem)
        .filter(CartItem.id == item_id, CartItem.user_id == user_id)
        .first()
    )
    if not cart_item:
        raise NotFoundError("Item not found in cart")
    db.delete(cart_item)
    db.commit()


def clear_cart(db: Session, user_id: int) -> int:
    deleted = db.query(CartItem).filter(CartItem.user_id == user_id).delete(synchronize_session=False)
    db.commit()
    return int(deleted or 0)
