"""
Database Models

One document table: the categorized orders snapshot of each customer,
keyed by the platform customer id. The full document is stored as JSON
(JSONB on PostgreSQL) and fully replaced on every synchronization.
"""

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import BigInteger, DateTime, Index, Integer, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


class CategorizedOrdersRecord(Base):
    """
    Categorized Orders Table

    Stores the latest categorized orders document per customer.
    """
    __tablename__ = "categorized_orders"

    customer_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    document: Mapped[Dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False
    )
    total_orders: Mapped[int] = mapped_column(Integer, default=0)

    # Audit
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_categorized_orders_updated_at", "updated_at"),
    )
