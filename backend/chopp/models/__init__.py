from .catalog import Product, StockMovement
from .directory import Customer, Asset
from .rentals import Rental
from .orders import Order, OrderItem
from .finance import Expense, Employee

__all__ = [
    'Product', 'StockMovement',
    'Customer', 'Asset',
    'Rental',
    'Order', 'OrderItem',
    'Expense', 'Employee',
]
