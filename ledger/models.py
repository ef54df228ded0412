from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class TransactionType(str, Enum):
    DEPOSIT = "Deposit"
    WITHDRAWAL = "Withdrawal"

    @property
    def sign(self) -> int:
        return _SIGNS[self]


_SIGNS = {
    TransactionType.DEPOSIT: 1,
    TransactionType.WITHDRAWAL: -1,
}


class CreateTransactionRequest(BaseModel):
    amount: Decimal = Field(..., allow_inf_nan=False, description="Magnitude; the sign comes from type")
    type: TransactionType
    date: Optional[datetime] = Field(default=None, description="Defaults to the time of insertion")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "amount": 100.00,
            "type": "Deposit",
            "date": "2022-01-01T00:00:00Z"
        }
    })


class TransactionEntry(BaseModel):
    id: int
    date: datetime
    amount: Decimal
    type: TransactionType

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @property
    def signed_amount(self) -> Decimal:
        return self.amount * self.type.sign

    @property
    def amount_minor_unit(self) -> int:
        return int((self.amount * 100).to_integral_value())


class AccountBalance(BaseModel):
    current_balance: Decimal
    total_entries: int
    last_transaction_at: Optional[datetime] = None


class BalanceResponse(AccountBalance):
    user_id: UUID
    message: str


class TransactionListResponse(BaseModel):
    user_id: UUID
    entries: list[TransactionEntry]
    total_count: int
    criteria: list[str] = Field(default_factory=list)


class SearchRequest(BaseModel):
    query: str = Field(..., description="Free-text description of the transactions to find")
