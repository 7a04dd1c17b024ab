from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

ZERO = Decimal("0")
ONE = Decimal("1")


class TrnType(Enum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"

    @classmethod
    def validate(cls, value: str) -> "TrnType":
        normalized = value.strip().lower()
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ValueError("Invalid transaction type.") from exc


class TrnPurpose(Enum):
    TRANSFER_FROM = "transfer_from"
    TRANSFER_TO = "transfer_to"
    FEE = "fee"
    ADJUST_BALANCE = "adjust_balance"


TRANSFER_PURPOSES = frozenset({TrnPurpose.TRANSFER_FROM, TrnPurpose.TRANSFER_TO})


@dataclass(frozen=True)
class Value:
    amount: Decimal
    currency: str


@dataclass(frozen=True)
class Account:
    id: UUID
    name: str | None = None
    currency: str | None = None


@dataclass(frozen=True)
class Category:
    id: UUID
    name: str | None = None


@dataclass(frozen=True)
class Period:
    """Inclusive period [from_, to]."""

    from_: datetime
    to: datetime

    def __post_init__(self) -> None:
        if (self.from_.tzinfo is None) != (self.to.tzinfo is None):
            raise ValueError("Period bounds must both be naive or both timezone-aware.")
        if self.from_ > self.to:
            raise ValueError("Period start must be on or before its end.")

    def to_range(self) -> tuple[datetime, datetime]:
        return self.from_, self.to


@dataclass(frozen=True)
class Transaction:
    id: UUID
    account_id: UUID
    type: TrnType
    value: Value
    purpose: TrnPurpose | None = None
    category_id: UUID | None = None
    to_account_id: UUID | None = None
    date_time: datetime | None = None
    due_date: datetime | None = None
    title: str | None = None

    @property
    def is_transfer_leg(self) -> bool:
        return self.purpose in TRANSFER_PURPOSES


@dataclass(frozen=True)
class Stats:
    balance: Value
    income: Value
    expense: Value
    incomes_count: int
    expenses_count: int

    @classmethod
    def empty(cls, currency: str) -> "Stats":
        return cls(
            balance=Value(amount=ZERO, currency=currency),
            income=Value(amount=ZERO, currency=currency),
            expense=Value(amount=ZERO, currency=currency),
            incomes_count=0,
            expenses_count=0,
        )
