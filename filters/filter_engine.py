import operator
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Sequence

from ledger.models import TransactionEntry, TransactionType


class FilterEngineError(Exception):
    pass


class MalformedFilterExpressionError(FilterEngineError):
    def __init__(self, tokens: Sequence[str]):
        self.tokens = list(tokens)
        super().__init__(
            f"Filter criteria must be field/value pairs, got {len(self.tokens)} tokens"
        )


class UnknownFilterFieldError(FilterEngineError):
    def __init__(self, field_name: str):
        self.field = field_name
        super().__init__(f"Unknown filter field '{field_name}'")


class InvalidFilterValueError(FilterEngineError):
    def __init__(self, field_name: str, value: str, reason: str = ""):
        self.field = field_name
        self.value = value
        message = f"Invalid value '{value}' for filter field '{field_name}'"
        super().__init__(f"{message}: {reason}" if reason else message)


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"


_COMPARATORS: dict[ConditionOperator, Callable[[Any, Any], bool]] = {
    ConditionOperator.EQUALS: operator.eq,
    ConditionOperator.GREATER_THAN_OR_EQUAL: operator.ge,
    ConditionOperator.LESS_THAN_OR_EQUAL: operator.le,
}


@dataclass(frozen=True)
class FilterField:
    name: str
    operator: ConditionOperator
    parse: Callable[[str], Any]
    accessor: Callable[[TransactionEntry], Any]


@dataclass(frozen=True)
class Condition:
    field: str
    operator: ConditionOperator
    value: Any
    accessor: Callable[[TransactionEntry], Any] = field(repr=False, compare=False)

    def evaluate(self, entry: TransactionEntry) -> bool:
        return _COMPARATORS[self.operator](self.accessor(entry), self.value)

    def to_dict(self) -> dict:
        value = self.value.value if isinstance(self.value, Enum) else str(self.value)
        return {"field": self.field, "operator": self.operator.value, "value": value}


@dataclass
class FilterQuery:
    conditions: list[Condition] = field(default_factory=list)

    def evaluate(self, entry: TransactionEntry) -> bool:
        return all(cond.evaluate(entry) for cond in self.conditions)

    def apply(self, entries: Iterable[TransactionEntry]) -> list[TransactionEntry]:
        return [entry for entry in entries if self.evaluate(entry)]

    def to_dict(self) -> dict:
        return {"operator": "AND", "conditions": [c.to_dict() for c in self.conditions]}


_YEAR_PATTERN = re.compile(r"[0-9]{4}")


def _parse_year(raw: str) -> int:
    if not _YEAR_PATTERN.fullmatch(raw):
        raise ValueError("expected a four-digit year")
    return int(raw)


def _parse_type(raw: str) -> TransactionType:
    for member in TransactionType:
        if member.value.lower() == raw.lower():
            return member
    raise ValueError("expected 'deposit' or 'withdrawal'")


def _parse_amount(raw: str) -> Decimal:
    try:
        value = Decimal(raw)
    except InvalidOperation:
        raise ValueError("expected a number") from None
    if not value.is_finite():
        raise ValueError("expected a finite number")
    return value


DEFAULT_FIELDS: tuple[FilterField, ...] = (
    FilterField("year", ConditionOperator.EQUALS, _parse_year, lambda e: e.date.year),
    FilterField("type", ConditionOperator.EQUALS, _parse_type, lambda e: e.type),
    FilterField("amount", ConditionOperator.EQUALS, _parse_amount, lambda e: e.amount),
    FilterField("min", ConditionOperator.GREATER_THAN_OR_EQUAL, _parse_amount, lambda e: e.amount),
    FilterField("max", ConditionOperator.LESS_THAN_OR_EQUAL, _parse_amount, lambda e: e.amount),
)


class FilterEngine:
    """
    Turns criteria tokens into a conjunctive query and runs it over entries.

    Tokens are read as (field, value) pairs. The whole list is parsed before
    any entry is looked at, so a bad pair anywhere fails the call without a
    partial result.
    """

    def __init__(self, fields: Optional[Iterable[FilterField]] = None):
        self.fields: dict[str, FilterField] = {}
        for filter_field in DEFAULT_FIELDS if fields is None else fields:
            self.register_field(filter_field)

    def register_field(self, filter_field: FilterField) -> None:
        self.fields[filter_field.name.lower()] = filter_field

    @property
    def field_names(self) -> list[str]:
        return sorted(self.fields)

    def parse(self, tokens: Sequence[str]) -> FilterQuery:
        if len(tokens) % 2:
            raise MalformedFilterExpressionError(tokens)

        conditions = []
        for index in range(0, len(tokens), 2):
            name, raw = tokens[index], tokens[index + 1]
            filter_field = self.fields.get(name.lower())
            if filter_field is None:
                raise UnknownFilterFieldError(name)
            try:
                value = filter_field.parse(raw)
            except ValueError as e:
                raise InvalidFilterValueError(name, raw, str(e)) from e
            conditions.append(Condition(
                field=filter_field.name,
                operator=filter_field.operator,
                value=value,
                accessor=filter_field.accessor,
            ))
        return FilterQuery(conditions)

    def filter(self, entries: Iterable[TransactionEntry], tokens: Sequence[str]) -> list[TransactionEntry]:
        return self.parse(tokens).apply(entries)


def split_criteria(text: Optional[str]) -> list[str]:
    return text.split() if text else []


_default_engine = FilterEngine()


def filter_transactions(entries: Iterable[TransactionEntry], tokens: Sequence[str]) -> list[TransactionEntry]:
    return _default_engine.filter(entries, tokens)
