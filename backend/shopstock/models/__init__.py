from .catalog import Category, Product, ProductVariant
from .inventory import InventoryTransaction
from .orders import Order, OrderItem
from .auth import User, SessionToken

__all__ = [
    'Category', 'Product', 'ProductVariant',
    'InventoryTransaction',
    'Order', 'OrderItem',
    'User', 'SessionToken',
]
