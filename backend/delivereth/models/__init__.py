from .users import User, SessionToken, USER_TYPES, SELF_REGISTRATION_TYPES
from .security import SecurityEvent
from .catalog import Beverage, StockistInventory
from .orders import Order, OrderItem, OrderStatusEvent, VatReceipt, ORDER_STATUSES

__all__ = [
    'User', 'SessionToken', 'USER_TYPES', 'SELF_REGISTRATION_TYPES',
    'SecurityEvent',
    'Beverage', 'StockistInventory',
    'Order', 'OrderItem', 'OrderStatusEvent', 'VatReceipt', 'ORDER_STATUSES',
]
