"""
Database Schemas

MongoDB collection documents as Pydantic models. Field names are the stored
keys. The collection each model maps to is resolved in database.COLLECTIONS:

- User -> "Users"
- Product -> "Products"
- CartItem -> "Cart"
- Order -> "Orders"
- OrderItem -> "OrderItems"
- Review -> "Reviews"
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from database import utcnow


class User(BaseModel):
    """
    Users collection schema
    Any extra sign-up fields are stored as given.
    """
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = Field(None, description="Full name")
    email: str = Field(..., description="Email address, always lowercase")
    password: str = Field(..., description="Base64-encoded password")
    role: str = Field("customer", description="Role: customer | admin")
    username: Optional[str] = None
    createdAt: datetime = Field(default_factory=utcnow)


class Product(BaseModel):
    name: str
    description: str = ""
    price: float = Field(..., description="Price, not range-checked")
    category: str
    imageUrl: str = ""
    stock: int = Field(0, description="Units available")
    createdAt: datetime = Field(default_factory=utcnow)


class CartItem(BaseModel):
    """
    Cart collection schema
    Rows are addressed by productId; extra fields such as userId pass through.
    """
    model_config = ConfigDict(extra="allow")

    productId: Any
    quantity: Any


class Order(BaseModel):
    userId: Any
    items: List[Any] = Field(..., min_length=1, description="[{productId, quantity, ...}]")
    totalAmount: float
    status: str = Field("pending", description="Free-form, no enforced transitions")
    deliveryData: Any = Field(default_factory=dict)
    paymentMethod: str = "pending"
    createdAt: datetime = Field(default_factory=utcnow)
    updatedAt: datetime = Field(default_factory=utcnow)


class OrderItem(BaseModel):
    orderId: Any
    productId: Any
    quantity: int
    price: float
    createdAt: datetime = Field(default_factory=utcnow)


class Review(BaseModel):
    productId: Any
    userId: Any
    rating: int = Field(..., ge=1, le=5)
    comment: Any = ""
    createdAt: datetime = Field(default_factory=utcnow)
    updatedAt: datetime = Field(default_factory=utcnow)


class PublicUser(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "PublicUser":
        return cls(
            id=str(doc.get("_id") or doc.get("id")),
            email=doc.get("email"),
            name=doc.get("name"),
            createdAt=doc.get("createdAt"),
        )
