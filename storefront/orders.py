from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Query, Session, selectinload

from .crud import paginate
from .models import Order, OrderItem, OrderStatus


def _order_query(db: Session) -> Query:
    return db.query(Order).options(
        selectinload(Order.items).selectinload(OrderItem.product),
        selectinload(Order.items).selectinload(OrderItem.variant),
        selectinload(Order.address),
        selectinload(Order.payment),
    )


def get_order(db: Session, order_id: int) -> Optional[Order]:
    return _order_query(db).filter(Order.id == order_id).first()


def get_user_order(db: Session, user_id: int, order_id: int) -> Optional[Order]:
    return _order_query(db).filter(Order.id == order_id, Order.user_id == user_id).first()


def get_order_by_idempotency_key(db: Session, user_id: int, key: str) -> Optional[Order]:
    return (
        _order_query(db)
        .filter(Order.user_id == user_id, Order.idempotency_key == key)
        .first()
    )


def get_orders_by_user(db: Session, user_id: int, page: int = 1, limit: int = 10) -> Tuple[List[Order], Dict]:
    query = (
        _order_query(db)
        .filter(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    return paginate(query, page, limit)


def get_orders(db: Session) -> List[Order]:
    return _order_query(db).order_by(Order.created_at.desc(), Order.id.desc()).all()


def update_order_status(db: Session, order_id: int, new_status: OrderStatus) -> Optional[Order]:
    db_order = get_order(db, order_id)
    if not db_order:
        return None

    db_order.status = new_status
    db.commit()
    return get_order(db, order_id)


def delete_order(db: Session, order_id: int) -> Optional[Order]:
    db_order = get_order(db, order_id)
    if db_order:
        db.delete(db_order)
        db.commit()
    return db_order
