"""
Storefront Schemas

Pydantic models for the records kept in the JSON document database. Each
model maps to a collection of the same name in plural form (Product ->
"products"). Cart, wishlist and order entries are embedded models; orders
are stored both in "orders" and, as a copy, inside the owning user's record.

Field names follow the stored JSON (camelCase) so that model_dump() can be
sent to the API as-is.
"""

from pydantic import BaseModel, ConfigDict, Field, EmailStr, field_validator
from typing import Optional, List, Literal, Union

ORDER_STATUSES = ("Pending", "Processing", "Shipped", "Delivered", "Cancelled")
OrderStatus = Literal["Pending", "Processing", "Shipped", "Delivered", "Cancelled"]

RecordId = Union[int, str]


def _not_blank(v: str) -> str:
    if not v or not v.strip():
        raise ValueError("must not be blank")
    return v.strip()


# ------------ Products ------------
class ProductCreate(BaseModel):
    name: str
    brand: Optional[str] = None
    sport: Optional[str] = None
    category: str
    price: float = Field(..., ge=0)
    discount: float = Field(0, ge=0)
    stock: int = Field(0, ge=0)
    rating: float = Field(0, ge=0, le=5)
    image: Optional[str] = None
    shortDescription: Optional[str] = None
    longDescription: Optional[str] = None

    @field_validator("name", "category")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _not_blank(v)


# ------------ Cart & Wishlist ------------
class CartItem(BaseModel):
    """A product snapshot with a quantity; extra product fields are kept."""
    model_config = ConfigDict(extra="allow")

    id: RecordId
    name: Optional[str] = None
    price: float = 0
    quantity: int = Field(1, ge=1)


class WishlistItem(BaseModel):
    id: RecordId
    name: Optional[str] = None
    price: Optional[float] = None
    image: Optional[str] = None
    category: Optional[str] = None


# ------------ Orders ------------
class OrderItem(BaseModel):
    productId: RecordId
    name: Optional[str] = None
    price: float = Field(0, ge=0)
    quantity: int = Field(1, ge=1)


class ShippingDetails(BaseModel):
    name: str
    address: str
    city: str
    postalCode: str
    phone: str

    @field_validator("name", "address", "city", "postalCode", "phone")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _not_blank(v)


class Order(BaseModel):
    id: RecordId
    userId: str
    items: List[OrderItem]
    totalAmount: float
    shippingDetails: ShippingDetails
    orderDate: str
    status: OrderStatus = "Pending"


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


# ------------ Auth & Users ------------
class UserCreate(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(..., min_length=6)

    @field_validator("name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _not_blank(v)


class UserLogin(BaseModel):
    email: str
    password: str


class User(BaseModel):
    name: str
    email: EmailStr
    password: str
    role: str = "user"
    isBlock: bool = False
    cart: List[CartItem] = []
    wishlist: List[WishlistItem] = []
    orders: List[Order] = []
