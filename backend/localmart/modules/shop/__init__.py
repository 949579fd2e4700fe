"""
Shop Module - Marketplace catalog and orders.

Features:
- Shop setup and profile
- Product catalog with search
- Nearest-shop sorting
- Order placement and fulfilment
- Redis-backed cart
"""

from localmart.modules.shop.cart import CartService
from localmart.modules.shop.orders import OrderService
from localmart.modules.shop.service import ShopService

__all__ = [
    "ShopService",
    "OrderService",
    "CartService",
]
