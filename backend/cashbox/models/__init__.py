from .auth import User, SessionToken
from .receipts import Receipt, ReceiptItem, PaymentDetails
from .accounts import DueRecord, AccountTransaction, AccountBalance

__all__ = [
    'User', 'SessionToken',
    'Receipt', 'ReceiptItem', 'PaymentDetails',
    'DueRecord', 'AccountTransaction', 'AccountBalance',
]

# Registers the flush-time balance maintenance hooks on the ledger mappers
from . import balance_rules  # noqa: E402,F401
