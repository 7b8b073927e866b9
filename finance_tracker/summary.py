from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal

from .aggregator import CategoryTotal, MonthTotal, sum_amount, totals_by_category, totals_by_month
from .ledger import LedgerReader
from .utils_dates import resolve_period


@dataclass(frozen=True)
class Summary:
    total_income: Decimal
    total_expenses: Decimal
    net_income: Decimal
    categories: list[CategoryTotal]
    monthly_data: list[MonthTotal] | None = None    # yearly summaries only


def build_summary(
    ledger: LedgerReader,
    user_id: int,
    period: str,
    year: int,
    month: int | None = None,
) -> Summary:
    rng = resolve_period(period, year, month)

    total_income = sum_amount(ledger, user_id, rng, type_="income")
    total_expenses = sum_amount(ledger, user_id, rng, type_="expense")
    categories = totals_by_category(ledger, user_id, rng)
    monthly_data = totals_by_month(ledger, user_id, rng) if period == "yearly" else None

    return Summary(
        total_income=total_income,
        total_expenses=total_expenses,
        net_income=total_income - total_expenses,
        categories=categories,
        monthly_data=monthly_data,
    )
