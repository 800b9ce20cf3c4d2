"""
SQLAlchemy Models

Defines the database schema for:
- Collections (named, language-tagged partitions of quotes)
- Quotes with their full-text search vector
"""

from __future__ import annotations

from typing import Optional, List

from sqlalchemy import (
    Column,
    String,
    Integer,
    Text,
    ForeignKey,
    Index,
)
from sqlalchemy.dialects.postgresql import TSVECTOR
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# ---------------------------------------------------------------------
# Collection Model
# ---------------------------------------------------------------------

class Collection(Base):
    """
    A named partition of quotes, one per show or character universe.

    `language` is a PostgreSQL text search configuration name (e.g. "french")
    and is set once, at creation.
    """
    __tablename__ = "collection"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    language: Mapped[str] = mapped_column(String(32), nullable=False)

    quotes: Mapped[List["Quote"]] = relationship(
        "Quote",
        back_populates="collection",
        cascade="all, delete-orphan",
    )


# ---------------------------------------------------------------------
# Quote Model
# ---------------------------------------------------------------------

class Quote(Base):
    """
    A stored quote, unique by (collection_id, id).
    """
    __tablename__ = "quote"

    collection_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("collection.id", ondelete="CASCADE"),
        primary_key=True,
    )
    id: Mapped[str] = mapped_column(Text, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False, default="")
    character: Mapped[str] = mapped_column(Text, nullable=False, default="")
    context: Mapped[str] = mapped_column(Text, nullable=False, default="")
    url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # id, value, character and context folded like search queries
    search_text: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # to_tsvector over search_text, in the collection language
    search_vector = Column(TSVECTOR, nullable=True)

    collection: Mapped["Collection"] = relationship("Collection", back_populates="quotes")

    __table_args__ = (
        Index("idx_quote_search_vector", "search_vector", postgresql_using="gin"),
    )
