# ------ storefront/model/__init__.py ------

from .user import User
from .product import Product
from .cart import Cart, CartItem
from .types import GUID
from .coupon import Coupon
from .notification import Notification
from .order import Order, OrderItem, OrderStatusHistory
from .loyalty import LoyaltyAccount, LedgerEntry
from .returns import ReturnRequest, RETURN_REASONS

__all__ = [
    "User",
    "Product",
    "Cart",
    "CartItem",
    "GUID",
    "Coupon",
    "Notification",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "LoyaltyAccount",
    "LedgerEntry",
    "ReturnRequest",
    "RETURN_REASONS",
]
