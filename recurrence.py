import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import AutoTransaction, Frequency, TransactionRow
from periods import add_months, local_today


logger = logging.getLogger(__name__)

# a year of daily occurrences
MAX_CATCH_UP = 366


def calculate_next_date(
    frequency: Frequency, from_date: date, *, day_of_month: Optional[int] = None
) -> date:
    if frequency == Frequency.daily:
        return from_date + timedelta(days=1)
    if frequency == Frequency.weekly:
        return from_date + timedelta(weeks=1)
    if frequency == Frequency.monthly:
        return add_months(from_date, 1, day_of_month)
    return add_months(from_date, 12, day_of_month)


class AutoBillingEngine:
    def __init__(self, session: Session) -> None:
        self.session = session

    def catch_up(self, auto: AutoTransaction, today: Optional[date] = None) -> int:
        today = today or local_today()
        posted = 0
        iterations = 0
        while auto.next_execution_date <= today and iterations < MAX_CATCH_UP:
            occurrence_date = auto.next_execution_date
            if self._post_occurrence(auto, occurrence_date):
                posted += 1
            auto.last_execution_date = occurrence_date
            auto.next_execution_date = calculate_next_date(
                auto.frequency, occurrence_date, day_of_month=auto.day_of_month
            )
            iterations += 1
        if iterations >= MAX_CATCH_UP:
            logger.warning(
                f"auto_billing: auto_id={auto.id} catch_up_limit_reached next={auto.next_execution_date}"
            )
        return posted

    def post_due(self, today: Optional[date] = None) -> int:
        today = today or local_today()
        stmt = (
            select(AutoTransaction)
            .where(
                AutoTransaction.is_active.is_(True),
                AutoTransaction.next_execution_date <= today,
            )
            .order_by(AutoTransaction.next_execution_date, AutoTransaction.id)
        )
        due_ids = [auto.id for auto in self.session.scalars(stmt).all()]
        total = 0
        for auto_id in due_ids:
            auto = self.session.get(AutoTransaction, auto_id)
            try:
                posted = self.catch_up(auto, today)
                self.session.commit()
            except SQLAlchemyError:
                self.session.rollback()
                logger.exception(f"auto_billing: auto_id={auto_id} failed")
                continue
            total += posted
            logger.info(
                f"auto_billing: auto_id={auto_id} user_id={auto.user_id} posted={posted}"
            )
        return total

    def _post_occurrence(self, auto: AutoTransaction, occurrence_date: date) -> bool:
        exists_stmt = (
            select(TransactionRow.id)
            .where(
                TransactionRow.user_id == auto.user_id,
                TransactionRow.origin_auto_id == auto.id,
                TransactionRow.occurrence_date == occurrence_date,
            )
            .limit(1)
        )
        if self.session.execute(exists_stmt).scalar_one_or_none():
            return False

        txn = TransactionRow(
            user_id=auto.user_id,
            occurred_at=datetime.combine(occurrence_date, time(12, 0)),
            type=auto.type,
            amount_cents=auto.amount_cents,
            category_key=auto.category_key,
            description=auto.description,
            origin_auto_id=auto.id,
            occurrence_date=occurrence_date,
        )
        self.session.add(txn)
        self.session.flush()
        return True
