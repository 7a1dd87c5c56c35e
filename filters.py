from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Union

from periods import DateLike, Period, PeriodSpec, resolve
from records import Transaction, TransactionType


LabelResolver = Callable[[str], str]
Predicate = Callable[[Transaction], bool]

ALL = "all"


@dataclass(frozen=True)
class FilterSpec:
    period: PeriodSpec = field(default_factory=PeriodSpec.everything)
    type: Union[str, TransactionType] = ALL
    category_key: str = ALL
    search_text: str = ""

    def __post_init__(self) -> None:
        if self.type != ALL:
            object.__setattr__(self, "type", TransactionType(self.type))


def _identity_label(key: str) -> str:
    return key


def build_predicate(
    filter_spec: FilterSpec,
    period: Period,
    label_for: Optional[LabelResolver] = None,
) -> Predicate:
    label_for = label_for or _identity_label
    wanted_type = filter_spec.type
    wanted_category = filter_spec.category_key
    needle = filter_spec.search_text.lower()

    def matches_text(txn: Transaction) -> bool:
        if txn.description and needle in txn.description.lower():
            return True
        label = label_for(txn.category_key) or ""
        return needle in label.lower()

    def predicate(txn: Transaction) -> bool:
        if wanted_type != ALL and txn.type != wanted_type:
            return False
        if wanted_category != ALL and txn.category_key != wanted_category:
            return False
        if not period.contains(txn.day):
            return False
        if needle and not matches_text(txn):
            return False
        return True

    return predicate


def filter_transactions(
    transactions: Iterable[Transaction],
    filter_spec: FilterSpec,
    *,
    now: DateLike,
    label_for: Optional[LabelResolver] = None,
) -> list[Transaction]:
    period = resolve(filter_spec.period, now)
    predicate = build_predicate(filter_spec, period, label_for)
    return [txn for txn in transactions if predicate(txn)]
