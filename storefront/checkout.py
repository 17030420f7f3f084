"""Turning a cart into an order.

``place_order`` is the one multi-row write in the application. It validates
the request, then creates the order, its items and a pending payment,
decrements variant stock and empties the cart inside a single transaction.
Stock is decremented with a guarded ``UPDATE ... WHERE stock >= quantity``
after locking the variant rows in id order, so two checkouts racing for the
last units cannot both commit.
"""
import logging
import random
import time
from decimal import Decimal
from typing import Dict, List, Optional, Tuple, Union

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud, orders
from .cart import get_cart_items
from .errors import (
    EmptyCartError,
    InsufficientStockError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from .messaging import publish_event
from .models import (
    CartItem,
    Order,
    OrderItem,
    OrderStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    Product,
    ProductVariant,
)

logger = logging.getLogger(__name__)

ORDER_NUMBER_PREFIX = "EMY"


def generate_order_number() -> str:
    """``EMY`` + epoch milliseconds (13 digits) + 3 random digits."""
    return f"{ORDER_NUMBER_PREFIX}{int(time.time() * 1000)}{random.randint(0, 999):03d}"


def _parse_payment_method(value: Union[str, PaymentMethod, None]) -> PaymentMethod:
    try:
        return PaymentMethod(value)
    except ValueError:
        allowed = ", ".join(m.value for m in PaymentMethod)
        raise ValidationError(f"Unknown payment method '{value}'. Use one of: {allowed}")


def _merge_variant_quantities(cart_items: List[CartItem]) -> Dict[int, int]:
    merged: Dict[int, int] = {}
    for item in cart_items:
        if item.variant_id is not None:
            merged[item.variant_id] = merged.get(item.variant_id, 0) + item.quantity
    return merged


def _check_cart_stock(cart_items: List[CartItem]) -> None:
    for item in cart_items:
        if item.variant is not None and item.variant.stock < item.quantity:
            raise InsufficientStockError(
                product_id=item.product_id,
                product_name=item.product.name,
                available=item.variant.stock,
                requested=item.quantity,
            )


def _decrement_stock(db: Session, quantities: Dict[int, int], names: Dict[int, Tuple[int, str]]) -> None:
    # Lock rows in a stable order to avoid deadlocks
    locked = (
        db.query(ProductVariant)
        .filter(ProductVariant.id.in_(quantities.keys()))
        .order_by(ProductVariant.id)
        .with_for_update()
        .populate_existing()
        .all()
    )
    current = {v.id: v.stock for v in locked}

    for variant_id in sorted(quantities):
        qty = quantities[variant_id]
        result = db.execute(
            update(ProductVariant)
            .where(ProductVariant.id == variant_id, ProductVariant.stock >= qty)
            .values(stock=ProductVariant.stock - qty)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            product_id, product_name = names[variant_id]
            raise InsufficientStockError(
                product_id=product_id,
                product_name=product_name,
                available=int(current.get(variant_id, 0)),
                requested=qty,
            )


def place_order(
    db: Session,
    user_id: int,
    address_id: Optional[int],
    payment_method: Union[str, PaymentMethod, None],
    idempotency_key: Optional[str] = None,
) -> Tuple[Order, bool]:
    """Create an order from the user's cart.

    Returns ``(order, created)``. ``created`` is False when ``idempotency_key``
    matches an order this user already placed; that order is returned as is.
    """
    if idempotency_key:
        existing = orders.get_order_by_idempotency_key(db, user_id, idempotency_key)
        if existing:
            logger.info("Replaying order %s for idempotency key %r", existing.order_number, idempotency_key)
            return existing, False

    if not address_id or not payment_method:
        raise ValidationError("Address and payment method are required")
    method = _parse_payment_method(payment_method)

    address = crud.get_user_address(db, user_id, address_id)
    if not address:
        raise NotFoundError("Address not found")

    cart_items = get_cart_items(db, user_id)
    if not cart_items:
        raise EmptyCartError()

    _check_cart_stock(cart_items)

    # Snapshot prices now; later product edits must not touch this order
    order_items = [
        OrderItem(
            product_id=item.product_id,
            variant_id=item.variant_id,
            quantity=item.quantity,
            price=Decimal(str(item.product.price)),
        )
        for item in cart_items
    ]
    total = sum((i.price * i.quantity for i in order_items), Decimal("0"))

    variant_names = {
        item.variant_id: (item.product_id, item.product.name)
        for item in cart_items
        if item.variant_id is not None
    }

    try:
        db_order = Order(
            order_number=generate_order_number(),
            user_id=user_id,
            address_id=address.id,
            total=total,
            status=OrderStatus.PENDING,
            idempotency_key=idempotency_key,
            items=order_items,
            payment=Payment(method=method, amount=total, status=PaymentStatus.PENDING),
        )
        db.add(db_order)
        db.flush()

        quantities = _merge_variant_quantities(cart_items)
        if quantities:
            _decrement_stock(db, quantities, variant_names)

        db.query(CartItem).filter(CartItem.user_id == user_id).delete(synchronize_session=False)

        db.commit()
    except StoreError:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        if idempotency_key:
            # A concurrent request with the same key won the insert
            existing = orders.get_order_by_idempotency_key(db, user_id, idempotency_key)
            if existing:
                return existing, False
        logger.exception("Integrity error while placing order for user %s", user_id)
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to place order for user %s", user_id)
        raise

    logger.info("Order %s placed by user %s (total %s)", db_order.order_number, user_id, total)

    placed = orders.get_order(db, db_order.id)
    publish_event(
        "order.created",
        {
            "order_id": placed.id,
            "order_number": placed.order_number,
            "user_id": placed.user_id,
            "total": str(placed.total),
            "items": [
                {"product_id": i.product_id, "variant_id": i.variant_id, "quantity": i.quantity}
                for i in placed.items
            ],
        },
    )
    return placed, True


def create_admin_order(
    db: Session,
    items: List[Dict],
    user_id: Union[int, str, None] = None,
    customer: Optional[Dict] = None,
    status: OrderStatus = OrderStatus.PENDING,
) -> Order:
    """Create an order on behalf of a customer without touching cart or stock.

    ``user_id`` of None or ``"guest"`` stores ``customer`` contact fields on the
    order instead of linking a user; a registered user must have a default
    address. Item prices default to the current product price.
    """
    if not items:
        raise ValidationError("Items are required")

    db_order = Order(order_number=generate_order_number(), status=status)

    if user_id is not None and str(user_id).lower() != "guest":
        try:
            uid = int(user_id)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid user id '{user_id}'")
        user = crud.get_user(db, uid)
        if not user:
            raise NotFoundError("User not found")
        address = crud.get_default_address(db, uid)
        if not address:
            raise ValidationError("User has no default address")
        db_order.user_id = uid
        db_order.address_id = address.id
    else:
        customer = customer or {}
        db_order.customer_name = customer.get("name")
        db_order.customer_email = customer.get("email")
        db_order.customer_phone = customer.get("phone")
        db_order.customer_address = customer.get("address")
        db_order.customer_city = customer.get("city")
        db_order.customer_zip_code = customer.get("zip_code")

    total = Decimal("0")
    for item in items:
        product = db.query(Product).filter(Product.id == item["product_id"]).first()
        if not product:
            raise NotFoundError(f"Product {item['product_id']} not found")
        variant_id = item.get("variant_id")
        if variant_id:
            variant = (
                db.query(ProductVariant)
                .filter(ProductVariant.id == variant_id, ProductVariant.product_id == product.id)
                .first()
            )
            if not variant:
                raise NotFoundError(f"Variant {variant_id} not found for product {product.id}")
        price = Decimal(str(item.get("price") or product.price))
        total += price * item["quantity"]
        db_order.items.append(
            OrderItem(
                product_id=product.id,
                variant_id=variant_id,
                quantity=item["quantity"],
                price=price,
            )
        )

    db_order.total = total
    db.add(db_order)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to create admin order")
        raise

    logger.info("Admin order %s created (user=%s, total %s)", db_order.order_number, db_order.user_id, total)
    return orders.get_order(db, db_order.id)
