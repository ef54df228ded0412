"""
Transaction Filter Package

Parses criteria tokens such as ``["year", "2022", "type", "withdrawal"]``
into a conjunctive query over ledger entries, and turns free-text
questions into those tokens with an LLM.
"""

from .filter_engine import (
    FilterEngine,
    FilterField,
    FilterQuery,
    Condition,
    ConditionOperator,
    FilterEngineError,
    MalformedFilterExpressionError,
    UnknownFilterFieldError,
    InvalidFilterValueError,
    filter_transactions,
    split_criteria,
)

__all__ = [
    "FilterEngine",
    "FilterField",
    "FilterQuery",
    "Condition",
    "ConditionOperator",
    "FilterEngineError",
    "MalformedFilterExpressionError",
    "UnknownFilterFieldError",
    "InvalidFilterValueError",
    "filter_transactions",
    "split_criteria",
]
