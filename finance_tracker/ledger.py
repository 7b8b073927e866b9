from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import DependencyError
from .models import Transaction, Category, Budget
from .utils_dates import DateRange

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerTransaction:
    id: int
    user_id: int
    category_id: int | None
    type: str           # 'income' | 'expense'
    amount: Decimal     # positive, scale 2
    date: date


@dataclass(frozen=True)
class LedgerCategory:
    id: int
    user_id: int
    name: str
    color: str | None
    icon: str | None


@dataclass(frozen=True)
class LedgerBudget:
    id: int
    user_id: int
    category_id: int | None     # None => overall budget
    category_name: str | None
    amount: Decimal
    period: str         # 'monthly' | 'yearly'


def to_decimal(value) -> Decimal:
    # numeric columns may come back as Decimal, float (sqlite) or str
    return Decimal(str(value))


class LedgerReader:
    """
    Read-only view over a user's ledger. Every method re-queries the database;
    persistence failures surface as DependencyError.
    """

    def __init__(self, db: Session):
        self.db = db

    def _all(self, stmt):
        try:
            return list(self.db.execute(stmt).all())
        except SQLAlchemyError as e:
            logger.error("Ledger read failed: %s", e)
            raise DependencyError("Ledger unavailable") from e

    def list_transactions(
        self,
        user_id: int,
        date_range: DateRange,
        type_: str | None = None,
        category_id: int | None = None,
    ) -> list[LedgerTransaction]:
        stmt = select(Transaction).where(
            Transaction.user_id == user_id,
            Transaction.date >= date_range.start,
            Transaction.date <= date_range.end,
        )
        if type_ is not None:
            stmt = stmt.where(Transaction.type == type_)
        if category_id is not None:
            stmt = stmt.where(Transaction.category_id == category_id)

        stmt = stmt.order_by(Transaction.date.asc(), Transaction.id.asc())
        return [
            LedgerTransaction(
                id=tx.id,
                user_id=tx.user_id,
                category_id=tx.category_id,
                type=tx.type,
                amount=to_decimal(tx.amount),
                date=tx.date,
            )
            for (tx,) in self._all(stmt)
        ]

    def list_categories(self, user_id: int) -> list[LedgerCategory]:
        stmt = select(Category).where(Category.user_id == user_id).order_by(Category.id.asc())
        return [
            LedgerCategory(id=c.id, user_id=c.user_id, name=c.name, color=c.color, icon=c.icon)
            for (c,) in self._all(stmt)
        ]

    def list_budgets(self, user_id: int) -> list[LedgerBudget]:
        stmt = (
            select(Budget, Category.name)
            .outerjoin(Category, Budget.category_id == Category.id)
            .where(Budget.user_id == user_id)
            .order_by(Budget.id.asc())
        )
        return [
            LedgerBudget(
                id=b.id,
                user_id=b.user_id,
                category_id=b.category_id,
                category_name=cat_name,
                amount=to_decimal(b.amount),
                period=b.period,
            )
            for b, cat_name in self._all(stmt)
        ]
