from .auth import User, SessionToken
from .security import SecurityEvent
from .catalogue import Category, MasterOption, SubMasterOption, Product, Variant
from .orders import Order, OrderItem, Transaction
from .settings import StoreSetting

__all__ = [
    'User', 'SessionToken', 'SecurityEvent',
    'Category', 'MasterOption', 'SubMasterOption', 'Product', 'Variant',
    'Order', 'OrderItem', 'Transaction',
    'StoreSetting',
]
