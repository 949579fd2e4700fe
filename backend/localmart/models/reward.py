"""
Reward model: a shop-issued perk redeemable with loyalty points.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from localmart.core.database import Base

if TYPE_CHECKING:
    from localmart.models.shop import Shop
    from localmart.models.user import User


class Reward(Base):
    """Reward addressed to one customer; claimable exactly once."""

    __tablename__ = "rewards"
    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_rewards_points"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    shop_id: Mapped[int] = mapped_column(ForeignKey("shops.id"), index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    points: Mapped[int] = mapped_column(Integer)
    description: Mapped[str] = mapped_column(Text)

    # Null while available
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    shop: Mapped["Shop"] = relationship(back_populates="rewards")
    user: Mapped["User"] = relationship()

    @property
    def is_claimed(self) -> bool:
        return self.claimed_at is not None

    def __repr__(self) -> str:
        return f"<Reward {self.id}: {self.points} pts>"
