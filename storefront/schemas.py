from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .models import OrderStatus, PaymentMethod, PaymentStatus, UserRole


# Users
class UserOut(BaseModel):
    id: int
    name: str
    email: EmailStr
    phone: Optional[str] = None
    role: UserRole
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    message: str
    user: UserOut
    token: str


class AddressIn(BaseModel):
    street: str = Field(..., min_length=1)
    number: str = "1"
    neighborhood: str = "Centro"
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    phone: Optional[str] = None


class AddressOut(BaseModel):
    id: int
    user_id: int
    street: str
    number: str
    neighborhood: str
    city: str
    state: str
    zip_code: str
    phone: Optional[str] = None
    is_default: bool

    model_config = ConfigDict(from_attributes=True)


class AdminUserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)
    role: UserRole = UserRole.CUSTOMER
    phone: Optional[str] = None
    address: Optional[AddressIn] = None


class AdminUserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    phone: Optional[str] = None
    address: Optional[AddressIn] = None


class OrderSummary(BaseModel):
    id: int
    order_number: str
    total: Decimal
    status: OrderStatus
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UserDetail(UserOut):
    addresses: List[AddressOut] = []
    orders: List[OrderSummary] = []


class UserStats(BaseModel):
    total: int
    admins: int
    users: int


# Catalogue
class CategoryOut(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CategoryWithCount(CategoryOut):
    product_count: int = 0


class VariantIn(BaseModel):
    size: str = Field(..., min_length=1, max_length=20)
    color: Optional[str] = None
    stock: int = Field(0, ge=0)


class VariantOut(BaseModel):
    id: int
    product_id: int
    size: str
    color: Optional[str] = None
    stock: int

    model_config = ConfigDict(from_attributes=True)


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    price: Decimal = Field(..., gt=0)
    category_id: int = Field(..., gt=0)
    image_url: Optional[str] = None
    variants: List[VariantIn] = []


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, gt=0)
    category_id: Optional[int] = Field(None, gt=0)
    image_url: Optional[str] = None
    is_active: Optional[bool] = None


class ProductSummary(BaseModel):
    id: int
    name: str
    price: Decimal
    image_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ProductOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    image_url: Optional[str] = None
    category_id: int
    is_active: bool
    created_at: Optional[datetime] = None
    category: Optional[CategoryOut] = None
    variants: List[VariantOut] = []

    model_config = ConfigDict(from_attributes=True)


class CategoryDetail(CategoryOut):
    products: List[ProductOut] = []


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ProductListResponse(BaseModel):
    products: List[ProductOut]
    pagination: Pagination


# Cart
class CartItemOut(BaseModel):
    id: int
    product_id: int
    variant_id: Optional[int] = None
    quantity: int
    product: ProductSummary
    variant: Optional[VariantOut] = None

    model_config = ConfigDict(from_attributes=True)


class CartOut(BaseModel):
    items: List[CartItemOut]
    total: Decimal
    count: int


# Orders and payments
class PaymentOut(BaseModel):
    id: int
    order_id: int
    method: PaymentMethod
    amount: Decimal
    status: PaymentStatus
    transaction_id: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class OrderItemOut(BaseModel):
    id: int
    product_id: int
    variant_id: Optional[int] = None
    quantity: int
    price: Decimal
    product: Optional[ProductSummary] = None
    variant: Optional[VariantOut] = None

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    id: int
    order_number: str
    user_id: Optional[int] = None
    address_id: Optional[int] = None
    total: Decimal
    status: OrderStatus
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    customer_city: Optional[str] = None
    customer_zip_code: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[OrderItemOut] = []
    address: Optional[AddressOut] = None
    payment: Optional[PaymentOut] = None

    model_config = ConfigDict(from_attributes=True)


class OrderListResponse(BaseModel):
    orders: List[OrderOut]
    pagination: Pagination


class AdminOrderItem(BaseModel):
    product_id: int = Field(..., gt=0)
    variant_id: Optional[int] = Field(None, gt=0)
    quantity: int = Field(..., gt=0)
    # Omitted price means "use the current product price"
    price: Optional[Decimal] = Field(None, gt=0)


class CustomerInfo(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    zip_code: Optional[str] = Field(None, validation_alias=AliasChoices("zip_code", "zipCode"))


class AdminOrderCreate(BaseModel):
    # An int id, or "guest"/None for guest orders
    user_id: Optional[Union[int, str]] = None
    status: OrderStatus = OrderStatus.PENDING
    items: List[AdminOrderItem] = []
    customer_info: Optional[CustomerInfo] = Field(
        None, validation_alias=AliasChoices("customer_info", "customerInfo")
    )


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class PaymentCreate(BaseModel):
    order_id: int = Field(..., gt=0)
    method: PaymentMethod
    amount: Decimal = Field(..., gt=0)


class PaymentResult(BaseModel):
    payment: PaymentOut
    message: str


# Contact
class ContactMessage(BaseModel):
    name: Optional[str] = Field(None, validation_alias=AliasChoices("name", "nome"))
    email: Optional[str] = None
    phone: Optional[str] = Field(None, validation_alias=AliasChoices("phone", "telefone"))
    message: Optional[str] = Field(None, validation_alias=AliasChoices("message", "mensagem"))


_email_adapter = TypeAdapter(EmailStr)


def parse_email(value: Optional[str]) -> Optional[str]:
    """Return ``value`` as accepted by ``EmailStr``, or None if it is not a valid address."""
    if not value or not value.strip():
        return None
    try:
        return _email_adapter.validate_python(value.strip())
    except PydanticValidationError:
        return None
