from .catalog import Product
from .vouchers import Voucher
from .transactions import Transaction, TransactionItem, TransactionPayment, CheckoutStep
from .auth import UserRole
from .settings import AppSetting
from .documents import DocumentSequence

__all__ = [
    'Product',
    'Voucher',
    'Transaction', 'TransactionItem', 'TransactionPayment', 'CheckoutStep',
    'UserRole',
    'AppSetting',
    'DocumentSequence',
]
