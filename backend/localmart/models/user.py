"""
User model for authentication and the loyalty balance.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from localmart.core.database import Base

if TYPE_CHECKING:
    from localmart.models.shop import Order, Shop


class UserRole(str, PyEnum):
    """Account role, fixed at registration."""

    CUSTOMER = "customer"
    SHOPKEEPER = "shopkeeper"


class User(Base):
    """User account model."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("reward_points >= 0", name="ck_users_reward_points"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    role: Mapped[UserRole] = mapped_column(Enum(UserRole))

    # Loyalty balance, changed only by order placement and reward claims
    reward_points: Mapped[int] = mapped_column(Integer, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    shop: Mapped["Shop | None"] = relationship(back_populates="owner")
    orders: Mapped[list["Order"]] = relationship(back_populates="user")

    def __repr__(self) -> str:
        return f"<User {self.email}>"
