from .tenancy import Store, ReceiptTemplate
from .registers import Register
from .inventory import Product, InventoryRecord
from .sales import Transaction, TransactionLine
from .auth import User, SessionToken

__all__ = [
    'Store', 'ReceiptTemplate', 'Register',
    'Product', 'InventoryRecord',
    'Transaction', 'TransactionLine',
    'User', 'SessionToken',
]
