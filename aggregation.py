"""Reductions over a transaction snapshot.

Every function here is pure: it reads the records it is handed and returns
freshly built value objects. Amounts stay ``Decimal``; only percentages are
floats.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Mapping, Union

from periods import Period
from records import AssetRecord, Transaction, TransactionType


ZERO = Decimal("0")


@dataclass(frozen=True)
class Summary:
    total_income: Decimal = ZERO
    total_expense: Decimal = ZERO
    balance: Decimal = ZERO
    count: int = 0


@dataclass(frozen=True)
class CategoryBreakdownEntry:
    category_key: str
    amount: Decimal
    percentage: float


@dataclass(frozen=True)
class Statistics:
    summary: Summary
    expense_breakdown: list[CategoryBreakdownEntry]
    income_breakdown: list[CategoryBreakdownEntry]


@dataclass(frozen=True)
class AssetTrendPoint:
    date: date
    amount: Decimal


def summarize(transactions: Iterable[Transaction]) -> Summary:
    income = ZERO
    expense = ZERO
    count = 0
    for txn in transactions:
        count += 1
        if txn.type == TransactionType.income:
            income += txn.amount
        else:
            expense += txn.amount
    return Summary(
        total_income=income,
        total_expense=expense,
        balance=income - expense,
        count=count,
    )


def breakdown(
    transactions: Iterable[Transaction],
    transaction_type: Union[TransactionType, str],
    *,
    sort_by_amount: bool = True,
) -> list[CategoryBreakdownEntry]:
    """Group one type's transactions by category with their share of the total.

    Categories are reported in order of first appearance; with
    ``sort_by_amount`` (the default) they are then ordered by amount,
    largest first, and ties keep their first-appearance order.
    """
    transaction_type = TransactionType(transaction_type)
    totals: dict[str, Decimal] = {}
    for txn in transactions:
        if txn.type != transaction_type:
            continue
        totals[txn.category_key] = totals.get(txn.category_key, ZERO) + txn.amount

    grand_total = sum(totals.values(), ZERO)
    entries = []
    for key, amount in totals.items():
        percent = float(amount / grand_total * 100) if grand_total else 0.0
        entries.append(
            CategoryBreakdownEntry(category_key=key, amount=amount, percentage=percent)
        )
    if sort_by_amount:
        entries.sort(key=lambda entry: entry.amount, reverse=True)
    return entries


def period_statistics(
    transactions: Iterable[Transaction], period: Period
) -> Statistics:
    in_period = [txn for txn in transactions if period.contains(txn.day)]
    return Statistics(
        summary=summarize(in_period),
        expense_breakdown=breakdown(in_period, TransactionType.expense),
        income_breakdown=breakdown(in_period, TransactionType.income),
    )


def _record_order(record: AssetRecord) -> tuple[date, int]:
    return record.day, record.id or 0


def asset_trend(records: Iterable[AssetRecord]) -> list[AssetTrendPoint]:
    ordered = sorted(records, key=_record_order)
    return [AssetTrendPoint(date=record.day, amount=record.amount) for record in ordered]


def latest_balance(records: Iterable[AssetRecord]) -> Decimal:
    """Balance of the newest record: latest day, then highest id.

    Unsaved records (no id) on the same day fall back to input order.
    """
    latest = None
    for record in records:
        if latest is None or _record_order(record) >= _record_order(latest):
            latest = record
    return latest.amount if latest is not None else ZERO


def net_worth(records_by_asset: Mapping[object, Iterable[AssetRecord]]) -> Decimal:
    return sum(
        (latest_balance(records) for records in records_by_asset.values()), ZERO
    )
