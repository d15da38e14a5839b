from .auth import User, SessionToken, TemporaryPermission
from .security import SecurityEvent
from .inventory import Product, StockMovement
from .clients import Client, ClientReward
from .coupons import Coupon, CouponUsage
from .sales import Sale, SaleItem

__all__ = [
    'User', 'SessionToken', 'TemporaryPermission', 'SecurityEvent',
    'Product', 'StockMovement',
    'Client', 'ClientReward',
    'Coupon', 'CouponUsage',
    'Sale', 'SaleItem',
]
