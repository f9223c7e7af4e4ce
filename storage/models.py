"""
SQLAlchemy ORM models for the catalog tables.
"""

from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for all catalog models."""

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class RecordMixin:
    """Columns every catalog record carries."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    # Optimistic-concurrency counter, bumped on every update
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")


class Book(RecordMixin, Base):
    __tablename__ = "books"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    author: Mapped[str] = mapped_column(String(255), nullable=False)
    genre: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    average_rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default="0")


class Product(RecordMixin, Base):
    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    image_url: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    average_rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default="0")


class Review(RecordMixin, Base):
    __tablename__ = "reviews"

    # Id of the reviewed parent record
    product_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author: Mapped[str] = mapped_column(String(255), nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    helpful_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class User(RecordMixin, Base):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
