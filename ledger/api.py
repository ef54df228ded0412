from decimal import Decimal
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

import structlog

from filters.filter_engine import FilterEngine, FilterEngineError, split_criteria
from filters.llm_parser import LLMParser

from .log import configure_logging
from .models import (
    AccountBalance,
    BalanceResponse,
    CreateTransactionRequest,
    SearchRequest,
    TransactionEntry,
    TransactionListResponse,
)
from .service import LedgerRegistry, LedgerServiceError

logger = structlog.get_logger(__name__)

ledger_registry = LedgerRegistry()
filter_engine = FilterEngine()
query_parser = LLMParser(engine=filter_engine)

router = APIRouter()


def _filtered(user_id: UUID, tokens: list[str]) -> TransactionListResponse:
    ledger = ledger_registry.find(user_id)
    snapshot = ledger.get_all_transactions() if ledger is not None else ()
    try:
        entries = filter_engine.filter(snapshot, tokens)
    except FilterEngineError as e:
        logger.info("filter_rejected", user_id=str(user_id), criteria=tokens, error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return TransactionListResponse(
        user_id=user_id,
        entries=entries,
        total_count=len(entries),
        criteria=tokens,
    )


@router.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "personal-ledger"}


@router.post(
    "/users/{user_id}/transactions",
    response_model=TransactionEntry,
    status_code=status.HTTP_201_CREATED,
    tags=["Transactions"],
)
def add_transaction(user_id: UUID, request: CreateTransactionRequest) -> TransactionEntry:
    try:
        return ledger_registry.get(user_id).add_transaction(request)
    except LedgerServiceError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/users/{user_id}/transactions", response_model=TransactionListResponse, tags=["Transactions"])
def list_transactions(user_id: UUID, criteria: Optional[str] = None) -> TransactionListResponse:
    return _filtered(user_id, split_criteria(criteria))


@router.post("/users/{user_id}/transactions/search", response_model=TransactionListResponse, tags=["Transactions"])
def search_transactions(user_id: UUID, request: SearchRequest) -> TransactionListResponse:
    return _filtered(user_id, query_parser.parse(request.query))


@router.get("/users/{user_id}/balance", response_model=BalanceResponse, tags=["Users"])
def get_balance(user_id: UUID) -> BalanceResponse:
    ledger = ledger_registry.find(user_id)
    if ledger is None:
        balance = AccountBalance(current_balance=Decimal("0"), total_entries=0)
    else:
        balance = ledger.get_balance()
    return BalanceResponse(
        user_id=user_id,
        message=(
            f"Your current balance is ${balance.current_balance}. "
            f"You've made a total of {balance.total_entries} transactions."
        ),
        **balance.model_dump(),
    )


@router.delete("/users/{user_id}/ledger", status_code=status.HTTP_204_NO_CONTENT, tags=["Users"])
def close_ledger(user_id: UUID) -> None:
    if not ledger_registry.close(user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No open ledger for user {user_id}")


configure_logging()

app = FastAPI(
    title="Personal Ledger API",
    description="Per-user transaction ledger with running balance and criteria filters",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
