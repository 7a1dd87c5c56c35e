import datetime as dt
from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base
from records import AssetRecord, Transaction, TransactionType, cents_to_amount


class Frequency(str, Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    key: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    icon: Mapped[Optional[str]] = mapped_column(String(16))
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "type", "key", name="uq_category_user_type_key"),
    )


class TransactionRow(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    occurred_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category_key: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    origin_auto_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("auto_transactions.id", ondelete="SET NULL")
    )
    occurrence_date: Mapped[Optional[date]] = mapped_column(Date)

    origin_auto: Mapped[Optional["AutoTransaction"]] = relationship(
        "AutoTransaction", back_populates="transactions"
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "origin_auto_id",
            "occurrence_date",
            name="uq_txn_origin_occurrence",
        ),
        Index("ix_transactions_user_occurred", "user_id", "occurred_at"),
        Index("ix_transactions_user_type_occurred", "user_id", "type", "occurred_at"),
        CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_positive"),
    )

    def to_record(self) -> Transaction:
        return Transaction(
            id=self.id,
            date=self.occurred_at,
            type=self.type,
            category_key=self.category_key,
            amount=cents_to_amount(self.amount_cents),
            description=self.description,
        )


class Asset(Base, TimestampMixin):
    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[Optional[str]] = mapped_column(String(9))

    records: Mapped[list["AssetRecordRow"]] = relationship(
        "AssetRecordRow",
        back_populates="asset",
        cascade="all, delete-orphan",
        order_by="desc(AssetRecordRow.date), desc(AssetRecordRow.id)",
    )


class AssetRecordRow(Base, TimestampMixin):
    __tablename__ = "asset_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    asset_id: Mapped[int] = mapped_column(
        ForeignKey("assets.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    # signed: liabilities are recorded as negative balances
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    asset: Mapped["Asset"] = relationship("Asset", back_populates="records")

    __table_args__ = (Index("ix_asset_records_asset_date", "asset_id", "date"),)

    def to_record(self) -> AssetRecord:
        return AssetRecord(
            id=self.id,
            asset_id=self.asset_id,
            date=self.date,
            amount=cents_to_amount(self.amount_cents),
        )


class AutoTransaction(Base, TimestampMixin):
    __tablename__ = "auto_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category_key: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    frequency: Mapped[Frequency] = mapped_column(SAEnum(Frequency), nullable=False)
    day_of_month: Mapped[Optional[int]] = mapped_column(Integer)
    next_execution_date: Mapped[date] = mapped_column(Date, nullable=False)
    last_execution_date: Mapped[Optional[date]] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    transactions: Mapped[list["TransactionRow"]] = relationship(
        "TransactionRow", back_populates="origin_auto"
    )

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_auto_transactions_amount_positive"),
        Index("ix_auto_transactions_due", "is_active", "next_execution_date"),
    )
