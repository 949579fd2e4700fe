"""
Shop models for the marketplace.

Includes:
- Shops (one per shopkeeper)
- Products
- Orders and their line items
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from localmart.core.database import Base

if TYPE_CHECKING:
    from localmart.models.feedback import Feedback
    from localmart.models.reward import Reward
    from localmart.models.user import User

# Largest values the columns below can hold
MAX_REWARD_RATE = Decimal("99.9999")
MAX_ORDER_TOTAL = Decimal("9999999999.99")
MAX_STOCK = 2_147_483_647


class OrderStatus(str, PyEnum):
    """Order fulfilment status, advanced one step at a time."""

    PENDING = "pending"
    PACKED = "packed"
    COMPLETED = "completed"

    @property
    def next(self) -> "OrderStatus | None":
        """The only status this one may advance to."""
        order = list(OrderStatus)
        index = order.index(self)
        return order[index + 1] if index + 1 < len(order) else None


class Shop(Base):
    """Seller owned by exactly one shopkeeper."""

    __tablename__ = "shops"
    __table_args__ = (
        CheckConstraint("reward_rate >= 0", name="ck_shops_reward_rate"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), unique=True)
    name: Mapped[str] = mapped_column(String(255))
    slug: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    address: Mapped[str] = mapped_column(Text)

    # Location
    lat: Mapped[float] = mapped_column(Float)
    lng: Mapped[float] = mapped_column(Float)

    # Points earned per currency unit spent (0.1 = 1 point per 10 units)
    reward_rate: Mapped[Decimal] = mapped_column(
        Numeric(6, 4), default=Decimal("0.1")
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    owner: Mapped["User"] = relationship(back_populates="shop")
    products: Mapped[list["Product"]] = relationship(back_populates="shop")
    orders: Mapped[list["Order"]] = relationship(back_populates="shop")
    rewards: Mapped[list["Reward"]] = relationship(back_populates="shop")
    feedback: Mapped[list["Feedback"]] = relationship(back_populates="shop")

    def __repr__(self) -> str:
        return f"<Shop {self.slug}>"


class Product(Base):
    """Product for sale in one shop."""

    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_products_price"),
        CheckConstraint("stock >= 0", name="ck_products_stock"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    shop_id: Mapped[int] = mapped_column(ForeignKey("shops.id"), index=True)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[str] = mapped_column(String(100), default="General")

    # Pricing
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))

    # Inventory
    stock: Mapped[int] = mapped_column(Integer, default=0)

    # Media
    images: Mapped[list[str]] = mapped_column(JSON, default=list)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    shop: Mapped["Shop"] = relationship(back_populates="products")

    @property
    def is_in_stock(self) -> bool:
        """Check if product is in stock."""
        return self.stock > 0

    def __repr__(self) -> str:
        return f"<Product {self.id}: {self.name}>"


class Order(Base):
    """Customer order placed with a single shop."""

    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("total >= 0", name="ck_orders_total"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    shop_id: Mapped[int] = mapped_column(ForeignKey("shops.id"), index=True)

    # Status
    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus), default=OrderStatus.PENDING
    )

    # Frozen at creation
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    reward_points_earned: Mapped[int] = mapped_column(Integer, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="orders")
    shop: Mapped["Shop"] = relationship(back_populates="orders")
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order",
        order_by="OrderItem.id",
    )

    def __repr__(self) -> str:
        return f"<Order {self.id} {self.status.value}>"


class OrderItem(Base):
    """Line item in an order."""

    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), index=True)
    # Nulled if the product is later deleted; the snapshot below survives
    product_id: Mapped[int | None] = mapped_column(
        ForeignKey("products.id", ondelete="SET NULL"), index=True
    )

    # Snapshot at time of order
    product_name: Mapped[str] = mapped_column(String(255))
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    quantity: Mapped[int] = mapped_column(Integer)

    # Relationships
    order: Mapped["Order"] = relationship(back_populates="items")

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity
