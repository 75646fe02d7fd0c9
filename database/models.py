"""Record types shared by both engines.

Stored records are the JSON form of these models (`to_record`); rows coming
back from the hosted service are validated into the same models, so callers
see one shape whichever engine is active.
"""
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import InvalidRecordError

M = TypeVar('M', bound=BaseModel)

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def new_id() -> str:
    return str(uuid4())

def coerce(model: Type[M], value: Union[M, Dict[str, Any]]) -> M:
    """Validate caller input (a dict or a model instance) into `model`."""
    if isinstance(value, model):
        return value
    if isinstance(value, BaseModel):
        value = value.model_dump()
    return model.model_validate(value)


def check_quantity(quantity: int) -> None:
    if quantity < 1:
        raise InvalidRecordError(f"Quantity must be at least 1, got {quantity}")


class SellerStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"


def check_seller_status(status) -> SellerStatus:
    try:
        return SellerStatus(status)
    except ValueError:
        raise InvalidRecordError(f"Invalid seller status: {status!r}")


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Record(BaseModel):
    """Base for persisted entities."""
    model_config = ConfigDict(extra='ignore')

    def to_record(self) -> Dict[str, Any]:
        """JSON-safe dict as written to the record store."""
        return self.model_dump(mode='json')


class PublicUser(Record):
    """User identity without the credential."""
    id: str
    email: str
    created_at: datetime
    user_metadata: Dict[str, Any] = Field(default_factory=dict)


class User(PublicUser):
    """Stored user, credential included (fallback engine only)."""
    password: str

    def public(self) -> PublicUser:
        return PublicUser.model_validate(self.model_dump(exclude={'password'}))


class Session(BaseModel):
    user: PublicUser


class Author(BaseModel):
    id: str
    email: str


class SellerCreate(BaseModel):
    user_id: str
    business_name: str = Field(..., min_length=1)
    description: Optional[str] = None
    address: Optional[str] = None
    tax_id: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    logo_url: Optional[str] = None
    banner_url: Optional[str] = None
    status: SellerStatus = SellerStatus.PENDING


class Seller(SellerCreate, Record):
    id: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class ProductCreate(BaseModel):
    seller_id: str
    title: str = Field(..., min_length=1)
    description: str = ""
    price: Decimal = Field(..., ge=0)
    category: str = "Others"
    inventory: int = Field(0, ge=0)
    image_urls: List[str] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    """Partial product update; fields left as None keep their stored value."""
    id: str
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    category: Optional[str] = None
    inventory: Optional[int] = Field(None, ge=0)
    image_urls: Optional[List[str]] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude={'id'}, exclude_none=True)


class Product(ProductCreate, Record):
    id: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class CartItem(Record):
    id: str
    user_id: str
    product_id: Optional[str] = None
    quantity: int = Field(..., ge=1)
    created_at: datetime


class CartLine(CartItem):
    """Cart row joined to its product; product is None once deleted."""
    product: Optional[Product] = None


class OrderCreate(BaseModel):
    shipping_address: str = ""


class Order(Record):
    id: str
    user_id: str
    total: Decimal = Field(..., ge=0)
    status: OrderStatus = OrderStatus.PENDING
    shipping_address: str = ""
    created_at: datetime


class OrderItem(Record):
    """Line item; `price` is the unit price copied at order time.

    `product_id` is None on the hosted engine once the product is deleted.
    """
    id: str
    order_id: str
    product_id: Optional[str] = None
    quantity: int = Field(..., ge=1)
    price: Decimal = Field(..., ge=0)


class OrderLine(OrderItem):
    product: Optional[Product] = None


class OrderDetail(Order):
    items: List[OrderLine] = Field(default_factory=list)


class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""


class Review(ReviewCreate, Record):
    id: str
    user_id: str
    product_id: str
    created_at: datetime


class ReviewWithAuthor(Review):
    user: Optional[Author] = None
