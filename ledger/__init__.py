"""
Personal Transaction Ledger

This module provides:
- Immutable transaction entries (deposits and withdrawals)
- Ledger-assigned, strictly increasing entry ids
- Running balance over the append-only log
- One ledger per user session
"""

from .models import (
    TransactionType,
    TransactionEntry,
    CreateTransactionRequest,
    AccountBalance,
)
from .service import (
    Ledger,
    LedgerRegistry,
    LedgerServiceError,
    InvalidAmountError,
)

__all__ = [
    "TransactionType",
    "TransactionEntry",
    "CreateTransactionRequest",
    "AccountBalance",
    "Ledger",
    "LedgerRegistry",
    "LedgerServiceError",
    "InvalidAmountError",
]
