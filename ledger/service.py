import os
import threading
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from .models import (
    AccountBalance,
    CreateTransactionRequest,
    TransactionEntry,
)

logger = structlog.get_logger(__name__)


class LedgerServiceError(Exception):
    pass


class InvalidAmountError(LedgerServiceError):
    def __init__(self, amount: Decimal):
        self.amount = amount
        super().__init__(f"Amount must not be negative, got {amount}")


class Ledger:
    """
    Append-only transaction log for one account.

    Ids come from an internal counter and are handed out inside
    add_transaction, so callers never stamp ids themselves. Every read
    and write holds the same lock: a reader sees either all of an
    insertion or none of it.
    """

    def __init__(self, id_origin: int = 0):
        self._entries: list[TransactionEntry] = []
        self._next_id = id_origin
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def next_id(self) -> int:
        return self._next_id

    def add_transaction(self, request: CreateTransactionRequest) -> TransactionEntry:
        if request.amount < 0:
            logger.warning("invalid_amount_rejected", amount=str(request.amount), type=request.type.value)
            raise InvalidAmountError(request.amount)

        date = request.date or datetime.now(timezone.utc)

        with self._lock:
            entry = TransactionEntry(
                id=self._next_id,
                date=date,
                amount=request.amount,
                type=request.type,
            )
            self._entries.append(entry)
            self._next_id += 1

        logger.info("transaction_added", id=entry.id, type=entry.type.value, amount=str(entry.amount))
        return entry

    def get_all_transactions(self) -> tuple[TransactionEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def get_total(self) -> Decimal:
        return _sum_signed(self.get_all_transactions())

    def get_balance(self) -> AccountBalance:
        entries = self.get_all_transactions()
        return AccountBalance(
            current_balance=_sum_signed(entries),
            total_entries=len(entries),
            last_transaction_at=entries[-1].date if entries else None,
        )


def _sum_signed(entries) -> Decimal:
    # Insertion order, one pass.
    total = Decimal("0")
    for entry in entries:
        total += entry.signed_amount
    return total


class LedgerRegistry:
    """
    One Ledger per user, created by get() on first write and dropped on close.

    find() is for reads and never creates a ledger.
    """

    def __init__(self, id_origin: Optional[int] = None):
        if id_origin is None:
            id_origin = int(os.getenv("LEDGER_ID_ORIGIN", "0"))
        self.id_origin = id_origin
        self._ledgers: dict[UUID, Ledger] = {}
        self._lock = threading.Lock()

    def __contains__(self, user_id: UUID) -> bool:
        return user_id in self._ledgers

    def __len__(self) -> int:
        return len(self._ledgers)

    def find(self, user_id: UUID) -> Optional[Ledger]:
        with self._lock:
            return self._ledgers.get(user_id)

    def get(self, user_id: UUID) -> Ledger:
        with self._lock:
            ledger = self._ledgers.get(user_id)
            if ledger is None:
                ledger = Ledger(id_origin=self.id_origin)
                self._ledgers[user_id] = ledger
                logger.info("ledger_opened", user_id=str(user_id))
            return ledger

    def close(self, user_id: UUID) -> bool:
        with self._lock:
            ledger = self._ledgers.pop(user_id, None)
        if ledger is None:
            return False
        logger.info("ledger_closed", user_id=str(user_id), entries=len(ledger))
        return True
