"""
ORM models. Importing this package registers every table on ``Base.metadata``.
"""

from localmart.models.feedback import Feedback
from localmart.models.reward import Reward
from localmart.models.shop import Order, OrderItem, OrderStatus, Product, Shop
from localmart.models.user import User, UserRole

__all__ = [
    "Feedback",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Product",
    "Reward",
    "Shop",
    "User",
    "UserRole",
]
