from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Union

from periods import DateLike, local_date


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


Amount = Union[Decimal, int, float, str]


def to_decimal(value: Amount) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount


def cents_to_amount(cents: int) -> Decimal:
    return Decimal(cents) / 100


def amount_to_cents(amount: Amount) -> int:
    return int((to_decimal(amount) * 100).to_integral_value())


@dataclass(frozen=True)
class Transaction:
    date: DateLike
    type: TransactionType
    category_key: str
    amount: Decimal
    description: Optional[str] = None
    id: Optional[int] = None

    def __post_init__(self) -> None:
        # frozen, so coerced values go through object.__setattr__
        try:
            txn_type = TransactionType(self.type)
        except ValueError as exc:
            raise ValueError(f"Unknown transaction type: {self.type!r}") from exc
        object.__setattr__(self, "type", txn_type)

        if not self.category_key or not str(self.category_key).strip():
            raise ValueError("Transaction category key must not be empty")

        amount = to_decimal(self.amount)
        if amount < 0:
            raise ValueError("Transaction amount must be non-negative")
        object.__setattr__(self, "amount", amount)

    @property
    def day(self) -> date:
        return local_date(self.date)

    @property
    def is_income(self) -> bool:
        return self.type == TransactionType.income


@dataclass(frozen=True)
class AssetRecord:
    """A balance snapshot of one asset; liabilities carry negative amounts."""

    date: DateLike
    amount: Decimal
    id: Optional[int] = None
    asset_id: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))

    @property
    def day(self) -> date:
        return local_date(self.date)
