"""
Database Schemas

MongoDB collection schemas as Pydantic models.
Each Pydantic model represents a collection in the database.
Model name lowercased is the collection name.
"""

from pydantic import BaseModel, Field, EmailStr
from typing import Optional, List

class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address, stored lower-cased")
    password_hash: str = Field(..., description="BCrypt hashed password")
    token: str = Field(..., description="Long-lived auth token issued at registration")
    role: str = Field("user", description="Role: user | admin")
    cart: Optional[str] = Field(None, description="Reference to the user's cart")

class Product(BaseModel):
    name: str
    description: Optional[str] = None
    image: Optional[str] = Field(None, description="Image URL")
    price: float = Field(..., ge=0)
    brand: Optional[str] = None
    stock: int = Field(0, ge=0)
    user: Optional[str] = Field(None, description="Reference to the creating user")

class Cart(BaseModel):
    products: List[str] = Field(default_factory=list, description="Distinct product references")
    total: float = Field(0, ge=0, description="Sum of product prices at the last mutation")


def collection_name(schema: type) -> str:
    return schema.__name__.lower()
