from datetime import date
from decimal import Decimal

import pytest

from records import AssetRecord, Transaction, TransactionType, amount_to_cents, cents_to_amount


def test_transaction_coerces_type_and_amount():
    txn = Transaction(date=date(2024, 1, 5), type="expense", category_key="food", amount=12.5)
    assert txn.type is TransactionType.expense
    assert txn.amount == Decimal("12.5")
    assert txn.day == date(2024, 1, 5)


def test_transaction_rejects_negative_amount():
    with pytest.raises(ValueError):
        Transaction(date=date(2024, 1, 5), type="income", category_key="salary", amount=-1)


def test_transaction_rejects_empty_category():
    with pytest.raises(ValueError):
        Transaction(date=date(2024, 1, 5), type="income", category_key="  ", amount=1)


def test_transaction_rejects_unknown_type():
    with pytest.raises(ValueError):
        Transaction(date=date(2024, 1, 5), type="transfer", category_key="food", amount=1)


def test_transaction_is_immutable():
    txn = Transaction(date=date(2024, 1, 5), type="income", category_key="salary", amount=1)
    with pytest.raises(AttributeError):
        txn.amount = Decimal("2")


def test_asset_record_allows_negative_balance():
    record = AssetRecord(date=date(2024, 1, 5), amount="-250.75")
    assert record.amount == Decimal("-250.75")


def test_cents_conversion():
    assert amount_to_cents(Decimal("12.34")) == 1234
    assert amount_to_cents(10) == 1000
    assert cents_to_amount(1050) == Decimal("10.5")
