import logging
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from sqlalchemy.orm import Session

from aggregation import CategoryBreakdownEntry, Summary
from calendar_grid import DailyBucket
from config import get_settings
from database import SessionLocal, session_scope
from filters import ALL, FilterSpec
from models import Asset, AssetRecordRow, AutoTransaction, TransactionRow
from periods import local_today, parse_period
from records import Transaction, TransactionType, cents_to_amount
from scheduler import SchedulerManager
from schemas import (
    AssetIn,
    AssetListOut,
    AssetOut,
    AssetRecordIn,
    AssetRecordOut,
    AutoTransactionIn,
    AutoTransactionOut,
    CategoryIn,
    CategoryOut,
    CategoryStatOut,
    DailyStatOut,
    StatisticsOut,
    SummaryOut,
    TransactionIn,
    TransactionOut,
    TrendPointOut,
)
from services import (
    AssetService,
    AutoTransactionService,
    CategoryService,
    MetricsCache,
    MetricsService,
    RecordNotFound,
    TransactionService,
)

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


def _load_app_version() -> str:
    try:
        import tomllib
    except ImportError:
        return "unknown"
    try:
        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        return "unknown"
    return str(data.get("project", {}).get("version", "unknown"))


APP_VERSION = _load_app_version()

app = FastAPI(title="Mini Money", version=APP_VERSION)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


scheduler_manager = SchedulerManager()
metrics_cache = MetricsCache()


def metrics_for(db: Session) -> MetricsService:
    return MetricsService(db, cache=metrics_cache)


@app.on_event("startup")
def startup_event():
    with session_scope() as session:
        CategoryService(session).ensure_defaults()
    logger.info(
        f"startup: version={APP_VERSION} scheduler_enabled={settings.scheduler_enabled}"
    )
    if settings.scheduler_enabled:
        scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def filter_from_request(request: Request) -> FilterSpec:
    params = request.query_params
    try:
        period = parse_period(
            params.get("period"),
            params.get("start") or params.get("start_date"),
            params.get("end") or params.get("end_date"),
            year=params.get("year"),
            month=params.get("month"),
        )
        return FilterSpec(
            period=period,
            type=params.get("type") or ALL,
            category_key=params.get("category") or ALL,
            search_text=params.get("search", ""),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def year_month_from_request(request: Request) -> tuple[int, int]:
    today = local_today()
    try:
        year = int(request.query_params.get("year", today.year))
        month = int(request.query_params.get("month", today.month))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid year or month") from exc
    return year, month


def transaction_out(txn: Transaction) -> TransactionOut:
    return TransactionOut(
        id=txn.id,
        date=txn.date,
        type=txn.type,
        amount=float(txn.amount),
        categoryKey=txn.category_key,
        description=txn.description,
    )


def summary_out(summary: Summary) -> SummaryOut:
    return SummaryOut(
        totalIncome=float(summary.total_income),
        totalExpense=float(summary.total_expense),
        balance=float(summary.balance),
        count=summary.count,
    )


def breakdown_out(entries: list[CategoryBreakdownEntry]) -> list[CategoryStatOut]:
    return [
        CategoryStatOut(
            categoryKey=entry.category_key,
            amount=float(entry.amount),
            percentage=entry.percentage,
        )
        for entry in entries
    ]


def bucket_out(bucket: DailyBucket) -> DailyStatOut:
    return DailyStatOut(
        day=bucket.day,
        date=bucket.date,
        income=float(bucket.income),
        expense=float(bucket.expense),
    )


def record_out(record: AssetRecordRow) -> AssetRecordOut:
    return AssetRecordOut(
        id=record.id, date=record.date, amount=float(cents_to_amount(record.amount_cents))
    )


def asset_out(service: AssetService, asset: Asset) -> AssetOut:
    return AssetOut(
        id=asset.id,
        name=asset.name,
        color=asset.color,
        latestAmount=float(service.latest_amount(asset)),
        records=[record_out(record) for record in asset.records],
    )


def auto_out(auto: AutoTransaction) -> AutoTransactionOut:
    return AutoTransactionOut(
        id=auto.id,
        type=auto.type,
        amount=float(cents_to_amount(auto.amount_cents)),
        categoryKey=auto.category_key,
        description=auto.description,
        frequency=auto.frequency,
        dayOfMonth=auto.day_of_month,
        nextExecutionDate=auto.next_execution_date,
        lastExecutionDate=auto.last_execution_date,
        isActive=auto.is_active,
    )


@app.get("/api/categories")
def api_categories(db: Session = Depends(get_db)):
    groups = CategoryService(db).grouped()
    return {
        txn_type: [CategoryOut.model_validate(category) for category in categories]
        for txn_type, categories in groups.items()
    }


@app.post("/api/categories", response_model=CategoryOut, status_code=201)
def api_create_category(payload: CategoryIn, db: Session = Depends(get_db)):
    try:
        category = CategoryService(db).create(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return CategoryOut.model_validate(category)


@app.get("/api/transactions", response_model=list[TransactionOut])
def api_transactions(request: Request, db: Session = Depends(get_db)):
    filter_spec = filter_from_request(request)
    on_date: Optional[date] = None
    limit: Optional[int] = None
    try:
        if request.query_params.get("date"):
            on_date = date.fromisoformat(request.query_params["date"])
        if request.query_params.get("limit"):
            limit = max(int(request.query_params["limit"]), 1)
        items = TransactionService(db).list(filter_spec, on_date=on_date, limit=limit)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return [transaction_out(txn) for txn in items]


@app.post("/api/transactions", response_model=TransactionOut, status_code=201)
def api_create_transaction(payload: TransactionIn, db: Session = Depends(get_db)):
    try:
        row: TransactionRow = TransactionService(db).create(payload)
    except RecordNotFound as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return transaction_out(row.to_record())


@app.delete("/api/transactions/{transaction_id}")
def api_delete_transaction(transaction_id: int, db: Session = Depends(get_db)):
    try:
        TransactionService(db).delete(transaction_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"message": "Transaction deleted successfully"}


@app.get("/api/summary", response_model=SummaryOut)
def api_summary(db: Session = Depends(get_db)):
    return summary_out(metrics_for(db).overall_summary())


@app.get("/api/summary/filtered", response_model=SummaryOut)
def api_filtered_summary(request: Request, db: Session = Depends(get_db)):
    filter_spec = filter_from_request(request)
    try:
        summary = metrics_for(db).summary(filter_spec)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return summary_out(summary)


@app.get("/api/breakdown", response_model=list[CategoryStatOut])
def api_breakdown(request: Request, db: Session = Depends(get_db)):
    filter_spec = filter_from_request(request)
    try:
        txn_type = TransactionType(request.query_params.get("breakdown", "expense"))
        entries = metrics_for(db).breakdown(filter_spec, txn_type)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return breakdown_out(entries)


@app.get("/api/statistics", response_model=StatisticsOut)
def api_statistics(request: Request, db: Session = Depends(get_db)):
    year, month = year_month_from_request(request)
    try:
        stats = metrics_for(db).statistics(year, month)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return StatisticsOut(
        summary=summary_out(stats.summary),
        expenseBreakdown=breakdown_out(stats.expense_breakdown),
        incomeBreakdown=breakdown_out(stats.income_breakdown),
    )


@app.get("/api/daily-stats", response_model=list[DailyStatOut])
def api_daily_stats(request: Request, db: Session = Depends(get_db)):
    year, month = year_month_from_request(request)
    try:
        buckets = metrics_for(db).daily_buckets(year, month)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return [bucket_out(bucket) for bucket in buckets]


@app.get("/api/assets", response_model=AssetListOut)
def api_assets(db: Session = Depends(get_db)):
    service = AssetService(db)
    assets = service.list_all()
    return AssetListOut(
        totalAssets=float(service.total()),
        assets=[asset_out(service, asset) for asset in assets],
    )


@app.post("/api/assets", response_model=AssetOut, status_code=201)
def api_create_asset(payload: AssetIn, db: Session = Depends(get_db)):
    service = AssetService(db)
    return asset_out(service, service.create(payload))


@app.delete("/api/assets/{asset_id}")
def api_delete_asset(asset_id: int, db: Session = Depends(get_db)):
    try:
        AssetService(db).delete(asset_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"message": "Asset deleted successfully"}


@app.post(
    "/api/assets/{asset_id}/records", response_model=AssetRecordOut, status_code=201
)
def api_create_asset_record(
    asset_id: int, payload: AssetRecordIn, db: Session = Depends(get_db)
):
    try:
        record = AssetService(db).add_record(asset_id, payload)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return record_out(record)


@app.put("/api/assets/{asset_id}/records/{record_id}", response_model=AssetRecordOut)
def api_update_asset_record(
    asset_id: int,
    record_id: int,
    payload: AssetRecordIn,
    db: Session = Depends(get_db),
):
    try:
        record = AssetService(db).update_record(asset_id, record_id, payload)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return record_out(record)


@app.delete("/api/assets/{asset_id}/records/{record_id}")
def api_delete_asset_record(
    asset_id: int, record_id: int, db: Session = Depends(get_db)
):
    try:
        AssetService(db).delete_record(asset_id, record_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"message": "Asset record deleted successfully"}


@app.get("/api/assets/{asset_id}/trend", response_model=list[TrendPointOut])
def api_asset_trend(asset_id: int, db: Session = Depends(get_db)):
    try:
        points = AssetService(db).trend(asset_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return [TrendPointOut(date=point.date, amount=float(point.amount)) for point in points]


@app.get("/api/auto-transactions", response_model=list[AutoTransactionOut])
def api_auto_transactions(db: Session = Depends(get_db)):
    return [auto_out(auto) for auto in AutoTransactionService(db).list()]


@app.post("/api/auto-transactions", response_model=AutoTransactionOut, status_code=201)
def api_create_auto_transaction(
    payload: AutoTransactionIn, db: Session = Depends(get_db)
):
    try:
        auto = AutoTransactionService(db).create(payload)
    except RecordNotFound as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return auto_out(auto)


@app.post("/api/auto-transactions/{auto_id}/toggle", response_model=AutoTransactionOut)
def api_toggle_auto_transaction(auto_id: int, db: Session = Depends(get_db)):
    try:
        auto = AutoTransactionService(db).toggle(auto_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return auto_out(auto)


@app.delete("/api/auto-transactions/{auto_id}", status_code=204)
def api_delete_auto_transaction(auto_id: int, db: Session = Depends(get_db)):
    try:
        AutoTransactionService(db).delete(auto_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)
