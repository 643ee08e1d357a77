from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


class OrderDB(Base):
    """Order aggregate root row."""

    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("order_number", name="uq_orders_order_number"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    order_number: Mapped[str] = mapped_column(String(50), nullable=False)
    buyer_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), index=True, nullable=False, server_default=text("'pending'")
    )
    subtotal_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    shipping_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    tax_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    discount_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    total_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, server_default=text("'USD'")
    )
    shipping_address: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True
    )
    version: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("1")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    # Relationships
    items: Mapped[list[OrderItemDB]] = relationship(
        "OrderItemDB",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemDB.position",
    )
    seller_orders: Mapped[list[SellerOrderDB]] = relationship(
        "SellerOrderDB",
        back_populates="order",
        order_by="SellerOrderDB.position",
    )


class OrderItemDB(Base):
    """Line item row. Written once with its order."""

    __tablename__ = "order_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    order_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    # Index of the item within its order, to keep the buyer's ordering.
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    variant_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    variant_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sku: Mapped[str | None] = mapped_column(String(100), nullable=True)
    quantity: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("1")
    )
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    seller_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationship
    order: Mapped[OrderDB] = relationship("OrderDB", back_populates="items")


class SellerOrderDB(Base):
    """Per-seller partition of an order."""

    __tablename__ = "seller_orders"
    __table_args__ = (
        UniqueConstraint("order_id", "seller_id", name="uq_seller_orders_order_seller"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    order_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    # Index of the seller order within its order.
    position: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    seller_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, server_default=text("'pending'")
    )
    subtotal_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    version: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("1")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    # Relationship
    order: Mapped[OrderDB] = relationship("OrderDB", back_populates="seller_orders")


class OutboxEventDB(Base):
    """Integration event staged in the same transaction as the write it follows."""

    __tablename__ = "outbox_events"

    event_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    subject: Mapped[str] = mapped_column(String(100), index=True, nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)  # JSON document
    attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    delivered_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
