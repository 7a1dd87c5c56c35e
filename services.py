from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from collections.abc import Hashable
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Callable, Optional, TypeVar
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from aggregation import (
    AssetTrendPoint,
    CategoryBreakdownEntry,
    Statistics,
    Summary,
    asset_trend,
    breakdown,
    latest_balance,
    net_worth,
    period_statistics,
    summarize,
)
from calendar_grid import DailyBucket, build_daily_buckets
from config import get_settings
from filters import FilterSpec, build_predicate, filter_transactions
from models import Asset, AssetRecordRow, AutoTransaction, Category, TransactionRow
from periods import DateLike, Period, PeriodSpec, local_today, resolve
from records import AssetRecord, Transaction, TransactionType, amount_to_cents
from recurrence import AutoBillingEngine
from schemas import AssetIn, AssetRecordIn, AutoTransactionIn, CategoryIn, TransactionIn


logger = logging.getLogger(__name__)

T = TypeVar("T")

# (key, name, icon) per type, seeded for every new user
DEFAULT_CATEGORIES: dict[TransactionType, list[tuple[str, str, str]]] = {
    TransactionType.expense: [
        ("food", "Food", "🍔"),
        ("medical", "Medical", "⚕️"),
        ("transport", "Transport", "🚌"),
        ("housing", "Housing", "🏠"),
        ("snacks", "Snacks", "🍿"),
        ("learning", "Learning", "🎓"),
        ("communication", "Communication", "📞"),
        ("social", "Social", "💬"),
        ("investment", "Investment", "📈"),
        ("shopping", "Shopping", "🛒"),
    ],
    TransactionType.income: [
        ("salary", "Salary", "💼"),
        ("part_time", "Part-time", "👨‍💻"),
        ("financial", "Financial", "💰"),
        ("red_packet", "Red packet", "🧧"),
        ("other", "Other", "🎁"),
    ],
}


class RecordNotFound(LookupError):
    pass


def get_current_user_id() -> int:
    return 1


def to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    tz = ZoneInfo(get_settings().timezone)
    return value.astimezone(tz).replace(tzinfo=None)


class CategoryService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self._labels: Optional[dict[str, str]] = None

    def list_all(self) -> list[Category]:
        stmt = (
            select(Category)
            .where(Category.user_id == self.user_id)
            .order_by(Category.type, Category.order, Category.id)
        )
        return self.session.scalars(stmt).all()

    def grouped(self) -> dict[str, list[Category]]:
        groups: dict[str, list[Category]] = {t.value: [] for t in TransactionType}
        for category in self.list_all():
            groups[category.type.value].append(category)
        return groups

    def get_by_key(self, key: str, type: TransactionType) -> Category:
        category = self.session.scalar(
            select(Category).where(
                Category.user_id == self.user_id,
                Category.type == type,
                Category.key == key,
            )
        )
        if not category:
            raise RecordNotFound(f"Category {key!r} not found")
        return category

    def create(self, data: CategoryIn) -> Category:
        existing = self.session.scalar(
            select(Category.id).where(
                Category.user_id == self.user_id,
                Category.type == data.type,
                Category.key == data.key,
            )
        )
        if existing:
            raise ValueError("Category with this key already exists")
        category = Category(
            user_id=self.user_id,
            key=data.key,
            name=data.name.strip(),
            icon=data.icon,
            type=data.type,
            order=data.order,
        )
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        self._labels = None
        return category

    def ensure_defaults(self) -> int:
        has_any = self.session.scalar(
            select(func.count(Category.id)).where(Category.user_id == self.user_id)
        )
        if has_any:
            return 0
        created = 0
        for txn_type, entries in DEFAULT_CATEGORIES.items():
            for order, (key, name, icon) in enumerate(entries):
                self.session.add(
                    Category(
                        user_id=self.user_id,
                        key=key,
                        name=name,
                        icon=icon,
                        type=txn_type,
                        order=order,
                    )
                )
                created += 1
        self.session.commit()
        self._labels = None
        logger.info(f"categories_seeded: user_id={self.user_id} count={created}")
        return created

    def label_for(self, key: str) -> str:
        if self._labels is None:
            labels: dict[str, str] = {}
            for category in self.list_all():
                labels.setdefault(category.key, category.name)
            self._labels = labels
        return self._labels.get(key, key)


class TransactionService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def create(self, data: TransactionIn) -> TransactionRow:
        CategoryService(self.session, self.user_id).get_by_key(
            data.category_key, data.type
        )
        txn = TransactionRow(
            user_id=self.user_id,
            occurred_at=to_local_naive(data.occurred_at),
            type=data.type,
            amount_cents=amount_to_cents(data.amount),
            category_key=data.category_key,
            description=data.description,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_created: id={txn.id} type={txn.type.value} amount_cents={txn.amount_cents}"
        )
        return txn

    def get(self, transaction_id: int) -> TransactionRow:
        txn = self.session.get(TransactionRow, transaction_id)
        if not txn or txn.user_id != self.user_id:
            raise RecordNotFound("Transaction not found")
        return txn

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.session.delete(txn)
        self.session.commit()
        logger.info(f"transaction_deleted: id={transaction_id}")

    def snapshot(self, period: Optional[Period] = None) -> list[Transaction]:
        stmt = (
            select(TransactionRow)
            .where(TransactionRow.user_id == self.user_id)
            .order_by(TransactionRow.occurred_at.desc(), TransactionRow.id.desc())
        )
        if period is not None:
            stmt = stmt.where(
                TransactionRow.occurred_at >= datetime.combine(period.start, time.min),
                TransactionRow.occurred_at
                < datetime.combine(period.end + timedelta(days=1), time.min),
            )
        return [row.to_record() for row in self.session.scalars(stmt).all()]

    def snapshot_version(self) -> tuple[int, Optional[int], Optional[datetime]]:
        row = self.session.execute(
            select(
                func.count(TransactionRow.id),
                func.max(TransactionRow.id),
                func.max(TransactionRow.updated_at),
            ).where(TransactionRow.user_id == self.user_id)
        ).one()
        return int(row[0] or 0), row[1], row[2]

    def list(
        self,
        filter_spec: FilterSpec,
        *,
        now: Optional[DateLike] = None,
        on_date: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        if on_date is not None:
            filter_spec = FilterSpec(
                period=PeriodSpec.custom(on_date, on_date),
                type=filter_spec.type,
                category_key=filter_spec.category_key,
                search_text=filter_spec.search_text,
            )
        now = now or local_today()
        period = resolve(filter_spec.period, now)
        labels = CategoryService(self.session, self.user_id)
        items = filter_transactions(
            self.snapshot(period), filter_spec, now=now, label_for=labels.label_for
        )
        if limit is not None:
            items = items[:limit]
        return items


class AssetService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self) -> list[Asset]:
        stmt = (
            select(Asset)
            .options(selectinload(Asset.records))
            .where(Asset.user_id == self.user_id)
            .order_by(Asset.id)
        )
        return self.session.scalars(stmt).all()

    def get(self, asset_id: int) -> Asset:
        asset = self.session.get(Asset, asset_id)
        if not asset or asset.user_id != self.user_id:
            raise RecordNotFound("Asset not found")
        return asset

    def create(self, data: AssetIn) -> Asset:
        asset = Asset(user_id=self.user_id, name=data.name.strip(), color=data.color)
        self.session.add(asset)
        self.session.commit()
        self.session.refresh(asset)
        return asset

    def delete(self, asset_id: int) -> None:
        asset = self.get(asset_id)
        self.session.delete(asset)
        self.session.commit()

    def _get_record(self, asset_id: int, record_id: int) -> AssetRecordRow:
        self.get(asset_id)
        record = self.session.get(AssetRecordRow, record_id)
        if not record or record.asset_id != asset_id:
            raise RecordNotFound("Asset record not found")
        return record

    def add_record(self, asset_id: int, data: AssetRecordIn) -> AssetRecordRow:
        self.get(asset_id)
        record = AssetRecordRow(
            asset_id=asset_id,
            date=data.date,
            amount_cents=amount_to_cents(data.amount),
        )
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return record

    def update_record(
        self, asset_id: int, record_id: int, data: AssetRecordIn
    ) -> AssetRecordRow:
        record = self._get_record(asset_id, record_id)
        record.date = data.date
        record.amount_cents = amount_to_cents(data.amount)
        self.session.commit()
        self.session.refresh(record)
        return record

    def delete_record(self, asset_id: int, record_id: int) -> None:
        record = self._get_record(asset_id, record_id)
        self.session.delete(record)
        self.session.commit()

    def records_by_asset(self) -> dict[int, list[AssetRecord]]:
        return {
            asset.id: [row.to_record() for row in asset.records]
            for asset in self.list_all()
        }

    def trend(self, asset_id: int) -> list[AssetTrendPoint]:
        asset = self.get(asset_id)
        return asset_trend(row.to_record() for row in asset.records)

    def latest_amount(self, asset: Asset) -> Decimal:
        return latest_balance(row.to_record() for row in asset.records)

    def total(self) -> Decimal:
        return net_worth(self.records_by_asset())


class AutoTransactionService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list(self) -> list[AutoTransaction]:
        stmt = (
            select(AutoTransaction)
            .where(AutoTransaction.user_id == self.user_id)
            .order_by(AutoTransaction.created_at.desc(), AutoTransaction.id.desc())
        )
        return self.session.scalars(stmt).all()

    def get(self, auto_id: int) -> AutoTransaction:
        auto = self.session.get(AutoTransaction, auto_id)
        if not auto or auto.user_id != self.user_id:
            raise RecordNotFound("Auto transaction not found")
        return auto

    def create(self, data: AutoTransactionIn) -> AutoTransaction:
        CategoryService(self.session, self.user_id).get_by_key(
            data.category_key, data.type
        )
        auto = AutoTransaction(
            user_id=self.user_id,
            type=data.type,
            amount_cents=amount_to_cents(data.amount),
            category_key=data.category_key,
            description=data.description,
            frequency=data.frequency,
            day_of_month=data.day_of_month,
            next_execution_date=data.next_execution_date,
            is_active=data.is_active,
        )
        self.session.add(auto)
        self.session.commit()
        self.session.refresh(auto)
        return auto

    def toggle(self, auto_id: int) -> AutoTransaction:
        auto = self.get(auto_id)
        auto.is_active = not auto.is_active
        self.session.commit()
        return auto

    def delete(self, auto_id: int) -> None:
        auto = self.get(auto_id)
        self.session.delete(auto)
        self.session.commit()

    def post_due(self, today: Optional[date] = None) -> int:
        return AutoBillingEngine(self.session).post_due(today)


class MetricsCache:
    """Bounded LRU of derived figures, shared by every MetricsService built on it.

    Keys start with the user id and the snapshot version, so entries computed
    before a write are never served again and age out of the LRU.
    """

    def __init__(self, maxsize: int = 256) -> None:
        self.maxsize = maxsize
        self._entries: OrderedDict[tuple, object] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def get_or_compute(self, key: tuple[Hashable, ...], compute: Callable[[], T]) -> T:
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                return self._entries[key]  # type: ignore[return-value]
        # computed unlocked: computations nest through the same cache
        value = compute()
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            while len(self._entries) > self.maxsize:
                self._entries.popitem(last=False)
        return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class MetricsService:
    """Derived figures over the user's transaction snapshot.

    Results are memoized on the snapshot version plus the request (filter and
    resolved period), so a write to the store makes every earlier result
    unreachable instead of mutating it. Pass an application-wide ``cache`` to
    share results across requests; without one the memo lives as long as the
    instance.
    """

    def __init__(
        self,
        session: Session,
        user_id: Optional[int] = None,
        cache: Optional[MetricsCache] = None,
    ) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.transactions = TransactionService(session, self.user_id)
        self.categories = CategoryService(session, self.user_id)
        self.cache = cache if cache is not None else MetricsCache()

    def _memo(self, key: tuple[Hashable, ...], compute: Callable[[], T]) -> T:
        version = self.transactions.snapshot_version()
        return self.cache.get_or_compute((self.user_id, version) + key, compute)

    def snapshot(self) -> list[Transaction]:
        return self._memo(("snapshot",), self.transactions.snapshot)

    def _filtered(self, filter_spec: FilterSpec, period: Period) -> list[Transaction]:
        predicate = build_predicate(filter_spec, period, self.categories.label_for)
        return self._memo(
            ("filtered", filter_spec, period),
            lambda: [txn for txn in self.snapshot() if predicate(txn)],
        )

    def overall_summary(self) -> Summary:
        return self._memo(("overall",), lambda: summarize(self.snapshot()))

    def summary(
        self, filter_spec: FilterSpec, *, now: Optional[DateLike] = None
    ) -> Summary:
        period = resolve(filter_spec.period, now or local_today())
        return self._memo(
            ("summary", filter_spec, period),
            lambda: summarize(self._filtered(filter_spec, period)),
        )

    def breakdown(
        self,
        filter_spec: FilterSpec,
        transaction_type: TransactionType,
        *,
        now: Optional[DateLike] = None,
    ) -> list[CategoryBreakdownEntry]:
        period = resolve(filter_spec.period, now or local_today())
        return self._memo(
            ("breakdown", filter_spec, period, TransactionType(transaction_type)),
            lambda: breakdown(self._filtered(filter_spec, period), transaction_type),
        )

    def statistics(self, year: int, month: int) -> Statistics:
        period = resolve(PeriodSpec.calendar_month(year, month), local_today())
        return self._memo(
            ("statistics", period),
            lambda: period_statistics(self.snapshot(), period),
        )

    def daily_buckets(self, year: int, month: int) -> list[DailyBucket]:
        return self._memo(
            ("daily", year, month),
            lambda: build_daily_buckets(self.snapshot(), year, month),
        )
