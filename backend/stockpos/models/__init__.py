from .base import SyncTrackedMixin, SYNC_PENDING, SYNC_SYNCED, SYNC_FAILED
from .inventory import Category, Product, StockLocation, StockLevel
from .customers import Customer
from .sales import SalesOrder, SalesOrderItem, Payment
from .finance import Expense
from .auth import User
from .communications import Notification

# Table name -> model, used by export and factory reset
TABLE_MODELS = {
    model.__tablename__: model
    for model in (
        Category, Product, StockLocation, StockLevel, Customer,
        SalesOrder, SalesOrderItem, Payment, Expense, User, Notification,
    )
}

# Children before parents
RESET_ORDER = (
    SalesOrderItem,
    Payment,
    SalesOrder,
    StockLevel,
    Product,
    Expense,
    Customer,
    Notification,
    Category,
    StockLocation,
    User,
)

__all__ = [
    'SyncTrackedMixin', 'SYNC_PENDING', 'SYNC_SYNCED', 'SYNC_FAILED',
    'Category', 'Product', 'StockLocation', 'StockLevel',
    'Customer',
    'SalesOrder', 'SalesOrderItem', 'Payment',
    'Expense',
    'User',
    'Notification',
    'TABLE_MODELS', 'RESET_ORDER',
]
