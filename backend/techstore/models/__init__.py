from .auth import User, PagePermission, SessionToken
from .catalog import Product, Inquiry
from .inventory import InventoryTransaction, StorageLocation, SerialUnit, SerialUnitHistory
from .purchasing import Supplier, PurchaseOrder, PurchaseOrderItem, SupplierPayment
from .sales import Sale, SaleItem, Refund
from .customers import Customer, CustomerWallet, WalletTransaction
from .documents import DocumentSequence

__all__ = [
    'User', 'PagePermission', 'SessionToken',
    'Product', 'Inquiry',
    'InventoryTransaction', 'StorageLocation', 'SerialUnit', 'SerialUnitHistory',
    'Supplier', 'PurchaseOrder', 'PurchaseOrderItem', 'SupplierPayment',
    'Sale', 'SaleItem', 'Refund',
    'Customer', 'CustomerWallet', 'WalletTransaction',
    'DocumentSequence',
]
