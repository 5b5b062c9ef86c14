from .common import UserRole, UserStatus, OrderStatus, new_id
from .auth import User, RefreshToken
from .catalog import Book
from .orders import Order, OrderItem
from .activity import ActivityLog

__all__ = [
    'UserRole', 'UserStatus', 'OrderStatus', 'new_id',
    'User', 'RefreshToken',
    'Book',
    'Order', 'OrderItem',
    'ActivityLog',
]
