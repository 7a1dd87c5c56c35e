import datetime as dt
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models import Frequency
from records import TransactionType


class CategoryIn(BaseModel):
    key: str = Field(..., min_length=1, max_length=50, pattern=r"^[a-z0-9_]+$")
    name: str = Field(..., min_length=1, max_length=100)
    icon: Optional[str] = Field(default=None, max_length=16)
    type: TransactionType
    order: int = 0


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    name: str
    icon: Optional[str]
    type: TransactionType


class TransactionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    occurred_at: datetime = Field(alias="date")
    type: TransactionType
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    category_key: str = Field(..., min_length=1, max_length=50, alias="categoryKey")
    description: Optional[str] = Field(default=None, max_length=200)


class TransactionOut(BaseModel):
    id: int
    date: datetime
    type: TransactionType
    amount: float
    categoryKey: str
    description: Optional[str]


class SummaryOut(BaseModel):
    totalIncome: float
    totalExpense: float
    balance: float
    count: int


class CategoryStatOut(BaseModel):
    categoryKey: str
    amount: float
    percentage: float


class StatisticsOut(BaseModel):
    summary: SummaryOut
    expenseBreakdown: list[CategoryStatOut]
    incomeBreakdown: list[CategoryStatOut]


class DailyStatOut(BaseModel):
    day: int
    date: dt.date
    income: float
    expense: float


class AssetIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, max_length=9)


class AssetRecordIn(BaseModel):
    date: dt.date
    amount: Decimal = Field(..., max_digits=14, decimal_places=2)


class AssetRecordOut(BaseModel):
    id: int
    date: dt.date
    amount: float


class AssetOut(BaseModel):
    id: int
    name: str
    color: Optional[str]
    latestAmount: float
    records: list[AssetRecordOut]


class AssetListOut(BaseModel):
    totalAssets: float
    assets: list[AssetOut]


class TrendPointOut(BaseModel):
    date: dt.date
    amount: float


class AutoTransactionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: TransactionType
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    category_key: str = Field(..., min_length=1, max_length=50, alias="categoryKey")
    description: Optional[str] = Field(default=None, max_length=200)
    frequency: Frequency
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31, alias="dayOfMonth")
    next_execution_date: date = Field(alias="nextExecutionDate")
    is_active: bool = Field(default=True, alias="isActive")


class AutoTransactionOut(BaseModel):
    id: int
    type: TransactionType
    amount: float
    categoryKey: str
    description: Optional[str]
    frequency: Frequency
    dayOfMonth: Optional[int]
    nextExecutionDate: date
    lastExecutionDate: Optional[date]
    isActive: bool
