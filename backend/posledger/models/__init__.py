from .catalog import Category, Item, ItemVariant
from .customers import Customer
from .inventory import ItemMovement
from .sales import Sale, SaleItem
from .purchasing import PurchaseOrder, PurchaseOrderItem
from .registers import CashRegister, CashMovement

__all__ = [
    'Category', 'Item', 'ItemVariant',
    'Customer',
    'ItemMovement',
    'Sale', 'SaleItem',
    'PurchaseOrder', 'PurchaseOrderItem',
    'CashRegister', 'CashMovement',
]
