from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from .ledger import LedgerReader
from .utils_dates import DateRange

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


@dataclass(frozen=True)
class CategoryTotal:
    category_id: int | None     # None = uncategorized
    category_name: str | None
    total_amount: Decimal
    transaction_count: int


@dataclass(frozen=True)
class MonthTotal:
    year: int
    month: int          # 1..12
    income: Decimal
    expenses: Decimal


def money(value: Decimal) -> Decimal:
    """Quantize to the stored monetary precision (2 places, half-up)."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def sum_amount(
    ledger: LedgerReader,
    user_id: int,
    date_range: DateRange,
    type_: str | None = None,
    category_id: int | None = None,
) -> Decimal:
    txs = ledger.list_transactions(user_id, date_range, type_=type_, category_id=category_id)
    return money(sum((tx.amount for tx in txs), Decimal("0")))


def count_transactions(
    ledger: LedgerReader,
    user_id: int,
    date_range: DateRange,
    type_: str | None = None,
    category_id: int | None = None,
) -> int:
    return len(ledger.list_transactions(user_id, date_range, type_=type_, category_id=category_id))


def totals_by_category(ledger: LedgerReader, user_id: int, date_range: DateRange) -> list[CategoryTotal]:
    """
    Sums every transaction in range per category, income and expense combined.
    Sorted by total (largest first), then category id with uncategorized last.
    """
    txs = ledger.list_transactions(user_id, date_range)
    names = {c.id: c.name for c in ledger.list_categories(user_id)}

    totals = defaultdict(lambda: Decimal("0"))
    counts = defaultdict(int)
    for tx in txs:
        totals[tx.category_id] += tx.amount
        counts[tx.category_id] += 1

    items = [
        CategoryTotal(
            category_id=cat_id,
            category_name=names.get(cat_id) if cat_id is not None else None,
            total_amount=money(total),
            transaction_count=counts[cat_id],
        )
        for cat_id, total in totals.items()
    ]
    items.sort(key=lambda x: (-x.total_amount, x.category_id is None, x.category_id or 0))
    return items


def totals_by_month(ledger: LedgerReader, user_id: int, date_range: DateRange) -> list[MonthTotal]:
    """
    Income and expense sums per calendar month of the range. Every month in the
    range gets an entry, zero when there was no activity.
    """
    months = date_range.months()
    income = {ym: Decimal("0") for ym in months}
    expenses = {ym: Decimal("0") for ym in months}

    for tx in ledger.list_transactions(user_id, date_range):
        if tx.type == "income":
            income[(tx.date.year, tx.date.month)] += tx.amount
        elif tx.type == "expense":
            expenses[(tx.date.year, tx.date.month)] += tx.amount

    return [
        MonthTotal(year=y, month=m, income=money(income[(y, m)]), expenses=money(expenses[(y, m)]))
        for y, m in months
    ]
