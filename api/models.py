"""
API models and schemas for the FastAPI application.

Input models decode request bodies. Create models default every field so a
missing field reaches the field rules as an empty value; update models leave
absent fields as None, meaning "leave unchanged". Response models control
what each record exposes in its envelope.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from utilities.validator import Validator


class InputModel(BaseModel):
    """Base for request bodies: unknown keys and wrong JSON types are rejected."""
    model_config = ConfigDict(extra="forbid", strict=True)


class BookInput(InputModel):
    title: str = ""
    author: str = ""
    genre: str = ""


class BookUpdate(InputModel):
    title: Optional[str] = None
    author: Optional[str] = None
    genre: Optional[str] = None


class ProductInput(InputModel):
    name: str = ""
    description: str = ""
    category: str = ""
    image_url: str = ""


class ProductUpdate(InputModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = None


class ReviewInput(InputModel):
    content: str = ""
    author: str = ""
    rating: int = 0
    helpful_count: int = 0


class ReviewUpdate(InputModel):
    content: Optional[str] = None
    author: Optional[str] = None
    rating: Optional[int] = None
    helpful_count: Optional[int] = None


class UserInput(InputModel):
    email: str = ""
    full_name: str = ""


class UserUpdate(InputModel):
    email: Optional[str] = None
    full_name: Optional[str] = None


class RecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Unique record identifier")
    version: int = Field(..., description="Optimistic-concurrency version")


class BookResponse(RecordResponse):
    """Book response model for API."""
    title: str
    author: str
    genre: str
    average_rating: float


class ProductResponse(RecordResponse):
    """Product response model for API."""
    name: str
    description: str
    category: str
    image_url: str
    average_rating: float


class ReviewResponse(RecordResponse):
    """Review response model for API."""
    product_id: int
    content: str
    author: str
    rating: int
    helpful_count: int
    created_at: datetime


class UserResponse(RecordResponse):
    """User response model for API."""
    email: str
    full_name: str


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    system_info: Dict[str, str] = Field(..., description="Environment and version")
    database_status: str = Field(..., description="Database connection status")


# Field rules. Each receives the full set of field values of a record.

def validate_book(v: Validator, book: Dict[str, Any]) -> None:
    v.check(book.get("title", "") != "", "title", "must be provided")
    v.check(book.get("author", "") != "", "author", "must be provided")


def validate_product(v: Validator, product: Dict[str, Any]) -> None:
    v.check(product.get("name", "") != "", "name", "must be provided")
    v.check(product.get("category", "") != "", "category", "must be provided")


def validate_review(v: Validator, review: Dict[str, Any]) -> None:
    v.check(review.get("content", "") != "", "content", "must be provided")
    v.check(review.get("author", "") != "", "author", "must be provided")


def validate_user(v: Validator, user: Dict[str, Any]) -> None:
    v.check(user.get("email", "") != "", "email", "must be provided")
    v.check(user.get("full_name", "") != "", "full_name", "must be provided")
    v.check(len(user.get("full_name", "")) <= 100, "full_name", "must not be more than 100 characters long")
