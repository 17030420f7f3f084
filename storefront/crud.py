import math
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session, selectinload

from .errors import ConflictError, NotFoundError, ValidationError
from .models import (
    Address,
    Category,
    Order,
    OrderItem,
    Product,
    ProductVariant,
    User,
    UserRole,
)


def paginate(query: Query, page: int, limit: int) -> Tuple[list, Dict]:
    page = max(int(page or 1), 1)
    limit = max(int(limit or 1), 1)
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit),
    }


# -----------------------------
# Users
# -----------------------------

def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    normalized = (email or "").strip().lower()
    if not normalized:
        return None
    return db.query(User).filter(func.lower(User.email) == normalized).first()


def create_user(
    db: Session,
    *,
    name: str,
    email: str,
    hashed_password: str,
    phone: Optional[str] = None,
    role: UserRole = UserRole.CUSTOMER,
    address: Optional[dict] = None,
) -> User:
    if get_user_by_email(db, email):
        raise ConflictError("A user with this email already exists")

    db_user = User(
        name=name,
        email=email.strip().lower(),
        hashed_password=hashed_password,
        phone=phone,
        role=role,
    )
    if address:
        db_user.addresses.append(Address(**address, is_default=True))
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        # DB-level unique constraint (race conditions)
        db.rollback()
        raise ConflictError("A user with this email already exists")
    db.refresh(db_user)
    return db_user


def get_users(db: Session) -> List[User]:
    return db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


def update_user(db: Session, user_id: int, update_data: dict) -> Optional[User]:
    db_user = get_user(db, user_id)
    if not db_user:
        return None

    address = update_data.pop("address", None)
    new_email = update_data.get("email")
    if new_email:
        existing = get_user_by_email(db, new_email)
        if existing and existing.id != user_id:
            raise ConflictError("A user with this email already exists")
        update_data["email"] = new_email.strip().lower()

    for key, value in update_data.items():
        if value is not None:
            setattr(db_user, key, value)

    if address:
        _clear_default_address(db, user_id)
        db_user.addresses.append(Address(**address, is_default=True))

    db.commit()
    db.refresh(db_user)
    return db_user


def delete_user(db: Session, user_id: int) -> Optional[User]:
    db_user = get_user(db, user_id)
    if not db_user:
        return None
    has_orders = db.query(Order.id).filter(Order.user_id == user_id).first() is not None
    if has_orders:
        raise ConflictError("Cannot delete a user with orders")
    db.delete(db_user)
    db.commit()
    return db_user


def get_user_stats(db: Session) -> Dict[str, int]:
    return {
        "total": db.query(User).count(),
        "admins": db.query(User).filter(User.role == UserRole.ADMIN).count(),
        "users": db.query(User).filter(User.role == UserRole.CUSTOMER).count(),
    }


# -----------------------------
# Addresses
# -----------------------------

def _clear_default_address(db: Session, user_id: int, exclude_id: Optional[int] = None) -> None:
    q = db.query(Address).filter(Address.user_id == user_id, Address.is_default.is_(True))
    if exclude_id is not None:
        q = q.filter(Address.id != exclude_id)
    q.update({Address.is_default: False}, synchronize_session=False)


def get_addresses(db: Session, user_id: int) -> List[Address]:
    return (
        db.query(Address)
        .filter(Address.user_id == user_id)
        .order_by(Address.is_default.desc(), Address.id)
        .all()
    )


def get_user_address(db: Session, user_id: int, address_id: int) -> Optional[Address]:
    return db.query(Address).filter(Address.id == address_id, Address.user_id == user_id).first()


def get_default_address(db: Session, user_id: int) -> Optional[Address]:
    return (
        db.query(Address)
        .filter(Address.user_id == user_id, Address.is_default.is_(True))
        .first()
    )


def create_address(db: Session, user_id: int, address_data: dict, is_default: bool = False) -> Address:
    missing = [f for f in ("street", "city", "state", "zip_code") if not address_data.get(f)]
    if missing:
        raise ValidationError("Street, city, state and zip code are required", missing=missing)

    if is_default:
        _clear_default_address(db, user_id)

    db_address = Address(user_id=user_id, is_default=is_default, **address_data)
    db.add(db_address)
    db.commit()
    db.refresh(db_address)
    return db_address


def update_address(
    db: Session, user_id: int, address_id: int, update_data: dict, is_default: Optional[bool] = None
) -> Optional[Address]:
    db_address = get_user_address(db, user_id, address_id)
    if not db_address:
        return None

    if is_default:
        _clear_default_address(db, user_id, exclude_id=address_id)
    if is_default is not None:
        db_address.is_default = is_default

    for key, value in update_data.items():
        if value is not None:
            setattr(db_address, key, value)
    db.commit()
    db.refresh(db_address)
    return db_address


def set_default_address(db: Session, user_id: int, address_id: int) -> Optional[Address]:
    return update_address(db, user_id, address_id, {}, is_default=True)


def delete_address(db: Session, user_id: int, address_id: int) -> Optional[Address]:
    db_address = get_user_address(db, user_id, address_id)
    if db_address:
        db.delete(db_address)
        db.commit()
    return db_address


# -----------------------------
# Categories
# -----------------------------

def get_categories_with_counts(db: Session) -> List[Tuple[Category, int]]:
    active_count = (
        db.query(Product.category_id, func.count(Product.id).label("n"))
        .filter(Product.is_active.is_(True))
        .group_by(Product.category_id)
        .subquery()
    )
    rows = (
        db.query(Category, func.coalesce(active_count.c.n, 0))
        .outerjoin(active_count, active_count.c.category_id == Category.id)
        .order_by(Category.name)
        .all()
    )
    return [(category, int(count)) for category, count in rows]


def get_category(db: Session, category_id: int) -> Optional[Category]:
    return db.query(Category).filter(Category.id == category_id).first()


def get_category_by_slug(db: Session, slug: str) -> Optional[Category]:
    return db.query(Category).filter(Category.slug == slug).first()


def count_products_in_category(db: Session, category_id: int) -> int:
    return db.query(Product).filter(Product.category_id == category_id).count()


def create_category(db: Session, name: str, slug: str, description: Optional[str] = None) -> Category:
    name = (name or "").strip()
    slug = (slug or "").strip()
    if not name or not slug:
        raise ValidationError("Name and slug are required")
    if get_category_by_slug(db, slug):
        raise ConflictError("A category with this slug already exists")

    db_category = Category(name=name, slug=slug, description=description)
    db.add(db_category)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("A category with this name or slug already exists")
    db.refresh(db_category)
    return db_category


def update_category(db: Session, category_id: int, update_data: dict) -> Optional[Category]:
    db_category = get_category(db, category_id)
    if not db_category:
        return None

    slug = update_data.get("slug")
    if slug:
        existing = get_category_by_slug(db, slug)
        if existing and existing.id != category_id:
            raise ConflictError("A category with this slug already exists")

    for key, value in update_data.items():
        if value is not None:
            setattr(db_category, key, value)
    db.commit()
    db.refresh(db_category)
    return db_category


def delete_category(db: Session, category_id: int) -> Optional[Category]:
    db_category = get_category(db, category_id)
    if not db_category:
        return None
    if count_products_in_category(db, category_id) > 0:
        raise ConflictError("Cannot delete a category with products")
    db.delete(db_category)
    db.commit()
    return db_category


# -----------------------------
# Products
# -----------------------------

def _product_query(db: Session) -> Query:
    return db.query(Product).options(
        selectinload(Product.category),
        selectinload(Product.variants),
    )


def get_products(
    db: Session,
    page: int = 1,
    limit: int = 12,
    category: Optional[str] = None,
    search: Optional[str] = None,
    include_inactive: bool = False,
) -> Tuple[List[Product], Dict]:
    query = _product_query(db)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if category:
        query = query.join(Category, Product.category_id == Category.id).filter(Category.slug == category)
    if search:
        search_pattern = f"%{search}%"
        conditions = [
            Product.name.ilike(search_pattern),
            Product.description.ilike(search_pattern),
        ]
        if include_inactive:
            # admin search also matches the category name
            conditions.append(Product.category.has(Category.name.ilike(search_pattern)))
        query = query.filter(or_(*conditions))
    query = query.order_by(Product.created_at.desc(), Product.id.desc())
    return paginate(query, page, limit)


def get_product(db: Session, product_id: int) -> Optional[Product]:
    return _product_query(db).filter(Product.id == product_id).first()


def get_variant(db: Session, variant_id: int) -> Optional[ProductVariant]:
    return db.query(ProductVariant).filter(ProductVariant.id == variant_id).first()


def create_product(db: Session, product_data: dict) -> Product:
    name = (product_data.get("name") or "").strip()
    if not name or not product_data.get("price") or not product_data.get("category_id"):
        raise ValidationError("Name, price and category are required")
    if not get_category(db, product_data["category_id"]):
        raise NotFoundError("Category not found")

    variants = product_data.pop("variants", None) or []
    db_product = Product(**{**product_data, "name": name})
    db_product.variants = [ProductVariant(**v) for v in variants]
    db.add(db_product)
    db.commit()
    return get_product(db, db_product.id)


def update_product(db: Session, product_id: int, update_data: dict) -> Optional[Product]:
    db_product = get_product(db, product_id)
    if not db_product:
        return None

    category_id = update_data.get("category_id")
    if category_id and not get_category(db, category_id):
        raise NotFoundError("Category not found")

    for key, value in update_data.items():
        if value is not None:
            setattr(db_product, key, value)
    db.commit()
    return get_product(db, product_id)


def delete_product(db: Session, product_id: int) -> Optional[Product]:
    db_product = get_product(db, product_id)
    if not db_product:
        return None
    has_orders = db.query(OrderItem.id).filter(OrderItem.product_id == product_id).first() is not None
    if has_orders:
        raise ConflictError("Cannot delete a product that belongs to orders; deactivate it instead")
    db.delete(db_product)
    db.commit()
    return db_product
