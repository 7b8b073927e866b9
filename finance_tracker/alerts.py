from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable

from .aggregator import sum_amount
from .ledger import LedgerReader, LedgerBudget
from .utils_dates import current_period

ALERT_THRESHOLD = Decimal("80")


@dataclass(frozen=True)
class BudgetAlert:
    budget_id: int
    category_name: str | None   # None for overall budgets
    budget_amount: Decimal
    spent_amount: Decimal
    percentage_used: Decimal
    period: str


def percentage_used(spent: Decimal, limit: Decimal) -> Decimal:
    """Unrounded share of the limit that has been spent, in percent."""
    if limit <= 0:
        return Decimal("0")
    return spent / limit * 100


def budget_spend(ledger: LedgerReader, budget: LedgerBudget, today: date) -> Decimal:
    rng = current_period(budget.period, today)
    # overall budgets (no category) count every expense
    return sum_amount(ledger, budget.user_id, rng, type_="expense", category_id=budget.category_id)


def compute_alerts(
    ledger: LedgerReader,
    user_id: int,
    today: Callable[[], date] | None = None,
) -> list[BudgetAlert]:
    """
    Returns alerts for budgets at or above ALERT_THRESHOLD percent of their
    current period, highest usage first.
    """
    if today is None:
        today = date.today

    budgets = ledger.list_budgets(user_id)
    if not budgets:
        return []

    now = today()
    alerts = []
    for b in budgets:
        spent = budget_spend(ledger, b, now)
        pct = percentage_used(spent, b.amount)
        if pct < ALERT_THRESHOLD:
            continue

        alerts.append(BudgetAlert(
            budget_id=b.id,
            category_name=b.category_name,
            budget_amount=b.amount,
            spent_amount=spent,
            percentage_used=pct.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
            period=b.period,
        ))

    alerts.sort(key=lambda a: a.percentage_used, reverse=True)
    return alerts
