from .auth import User, SessionToken
from .inventory import Category, Supplier, Product, StockMovement
from .sales import Sale, SaleItem, Payment
from .settings import ShopSettings
from .scoping import active_scope

__all__ = [
    'User', 'SessionToken',
    'Category', 'Supplier', 'Product', 'StockMovement',
    'Sale', 'SaleItem', 'Payment',
    'ShopSettings',
    'active_scope',
]
