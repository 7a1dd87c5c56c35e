import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable

from periods import days_in_month
from records import Transaction, TransactionType


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DailyBucket:
    day: int
    date: date
    income: Decimal
    expense: Decimal


def build_daily_buckets(
    transactions: Iterable[Transaction], year: int, month: int
) -> list[DailyBucket]:
    last_day = days_in_month(year, month)
    income = [Decimal("0")] * last_day
    expense = [Decimal("0")] * last_day

    dropped = 0
    for txn in transactions:
        day = txn.day
        if day.year != year or day.month != month:
            dropped += 1
            continue
        if txn.type == TransactionType.income:
            income[day.day - 1] += txn.amount
        else:
            expense[day.day - 1] += txn.amount

    if dropped:
        logger.debug(
            f"daily_buckets: year={year} month={month} dropped_out_of_month={dropped}"
        )

    return [
        DailyBucket(
            day=index + 1,
            date=date(year, month, index + 1),
            income=income[index],
            expense=expense[index],
        )
        for index in range(last_day)
    ]
