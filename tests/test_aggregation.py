from datetime import date
from decimal import Decimal

import pytest

from aggregation import (
    AssetTrendPoint,
    CategoryBreakdownEntry,
    Summary,
    asset_trend,
    breakdown,
    latest_balance,
    net_worth,
    period_statistics,
    summarize,
)
from periods import PeriodSpec, resolve
from records import AssetRecord, Transaction


def _txn(type_: str, amount, category: str, day: date = date(2024, 3, 5)) -> Transaction:
    return Transaction(date=day, type=type_, category_key=category, amount=amount)


def test_empty_snapshot_summary_and_breakdown():
    summary = summarize([])
    assert (summary.total_income, summary.total_expense, summary.balance) == (0, 0, 0)
    assert summary.count == 0
    assert breakdown([], "expense") == []


def test_salary_and_food_scenario():
    txns = [
        _txn("income", 1000, "salary"),
        _txn("expense", 300, "food"),
        _txn("expense", 200, "food"),
    ]
    summary = summarize(txns)
    assert summary == Summary(
        total_income=Decimal("1000"),
        total_expense=Decimal("500"),
        balance=Decimal("500"),
        count=3,
    )
    assert breakdown(txns, "expense") == [
        CategoryBreakdownEntry(category_key="food", amount=Decimal("500"), percentage=100.0)
    ]


def test_summary_balance_and_partition():
    txns = [
        _txn("income", "10.10", "salary"),
        _txn("expense", "3.33", "food"),
        _txn("expense", "0.01", "snacks"),
        _txn("income", "0", "other"),
    ]
    summary = summarize(txns)
    assert summary.balance == summary.total_income - summary.total_expense
    assert summary.total_income + summary.total_expense == sum(t.amount for t in txns)


def test_breakdown_percentages_sum_to_hundred():
    txns = [
        _txn("expense", 1, "food"),
        _txn("expense", 1, "transport"),
        _txn("expense", 1, "housing"),
        _txn("income", 50, "salary"),
    ]
    entries = breakdown(txns, "expense")
    assert {entry.category_key for entry in entries} == {"food", "transport", "housing"}
    assert sum(entry.percentage for entry in entries) == pytest.approx(100.0)


def test_breakdown_orders_by_amount_with_stable_ties():
    txns = [
        _txn("expense", 10, "food"),
        _txn("expense", 40, "housing"),
        _txn("expense", 10, "transport"),
        _txn("expense", 5, "food"),
    ]
    keys = [entry.category_key for entry in breakdown(txns, "expense")]
    assert keys == ["housing", "food", "transport"]

    keys = [entry.category_key for entry in breakdown(txns, "expense", sort_by_amount=False)]
    assert keys == ["food", "housing", "transport"]


def test_breakdown_with_zero_total_reports_zero_percent():
    txns = [_txn("expense", 0, "food"), _txn("expense", 0, "snacks")]
    entries = breakdown(txns, "expense")
    assert [entry.percentage for entry in entries] == [0.0, 0.0]


def test_aggregation_is_pure():
    txns = [_txn("income", 100, "salary"), _txn("expense", 40, "food")]
    before = list(txns)
    assert summarize(txns) == summarize(txns)
    assert breakdown(txns, "expense") == breakdown(txns, "expense")
    assert txns == before


def test_period_statistics_restricts_to_the_month():
    txns = [
        _txn("income", 1000, "salary", date(2024, 2, 28)),
        _txn("expense", 60, "food", date(2024, 3, 1)),
        _txn("expense", 40, "transport", date(2024, 3, 31)),
        _txn("income", 200, "part_time", date(2024, 3, 15)),
        _txn("expense", 999, "housing", date(2024, 4, 1)),
    ]
    period = resolve(PeriodSpec.calendar_month(2024, 3), date(2024, 4, 2))
    stats = period_statistics(txns, period)
    assert stats.summary.total_income == Decimal("200")
    assert stats.summary.total_expense == Decimal("100")
    assert [e.category_key for e in stats.expense_breakdown] == ["food", "transport"]
    assert [e.percentage for e in stats.expense_breakdown] == pytest.approx([60.0, 40.0])
    assert [e.category_key for e in stats.income_breakdown] == ["part_time"]


def test_asset_trend_sorted_ascending():
    records = [
        AssetRecord(date=date(2024, 3, 1), amount=300),
        AssetRecord(date=date(2024, 1, 1), amount=100),
        AssetRecord(date=date(2024, 2, 1), amount=-50),
    ]
    assert asset_trend(records) == [
        AssetTrendPoint(date=date(2024, 1, 1), amount=Decimal("100")),
        AssetTrendPoint(date=date(2024, 2, 1), amount=Decimal("-50")),
        AssetTrendPoint(date=date(2024, 3, 1), amount=Decimal("300")),
    ]


def test_latest_balance_and_net_worth():
    savings = [
        AssetRecord(date=date(2024, 1, 1), amount=100),
        AssetRecord(date=date(2024, 3, 1), amount=250),
    ]
    credit_card = [AssetRecord(date=date(2024, 2, 1), amount=-80)]
    assert latest_balance(savings) == Decimal("250")
    assert latest_balance([]) == 0
    assert net_worth({"savings": savings, "card": credit_card, "empty": []}) == Decimal("170")


def test_same_day_records_resolve_by_id_in_any_order():
    older = AssetRecord(id=1, date=date(2024, 3, 1), amount=100)
    newer = AssetRecord(id=2, date=date(2024, 3, 1), amount=500)
    assert latest_balance([newer, older]) == Decimal("500")
    assert latest_balance([older, newer]) == Decimal("500")
    assert [point.amount for point in asset_trend([newer, older])] == [
        Decimal("100"),
        Decimal("500"),
    ]
