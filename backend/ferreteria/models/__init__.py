from .auth import User, SessionToken
from .customers import Customer
from .inventory import Product, InventoryMovement
from .sales import Sale, SaleLine
from .documents import DocumentSequence

__all__ = [
    'User', 'SessionToken',
    'Customer',
    'Product', 'InventoryMovement',
    'Sale', 'SaleLine',
    'DocumentSequence',
]
