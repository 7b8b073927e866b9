from __future__ import annotations

import itertools
import os
from datetime import date
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from finance_tracker.db import Base, get_db
from finance_tracker.ledger import LedgerReader
from finance_tracker.main import app, get_today
from finance_tracker.models import User, Category, Transaction, Budget

# fixed "now" for everything that depends on the current period
TODAY = date(2024, 6, 15)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def ledger(db) -> LedgerReader:
    return LedgerReader(db)


@pytest.fixture
def today():
    return lambda: TODAY


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_today] = lambda: (lambda: TODAY)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    seq = itertools.count(1)

    def _make(email: str | None = None) -> User:
        n = next(seq)
        user = User(
            email=email or f"user{n}@example.com",
            password_hash="hashed",
            first_name="Test",
            last_name="User",
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_category(db):
    def _make(user: User, name: str = "Food") -> Category:
        cat = Category(user_id=user.id, name=name, color="#ff0000", icon="tag")
        db.add(cat)
        db.commit()
        db.refresh(cat)
        return cat

    return _make


@pytest.fixture
def add_tx(db):
    def _add(
        user: User,
        type_: str,
        amount: str,
        on: date,
        category: Category | None = None,
        description: str = "Test transaction",
    ) -> Transaction:
        tx = Transaction(
            user_id=user.id,
            category_id=category.id if category else None,
            type=type_,
            amount=Decimal(amount),
            description=description,
            date=on,
        )
        db.add(tx)
        db.commit()
        db.refresh(tx)
        return tx

    return _add


@pytest.fixture
def add_budget(db):
    def _add(user: User, amount: str, period: str = "monthly", category: Category | None = None) -> Budget:
        b = Budget(
            user_id=user.id,
            category_id=category.id if category else None,
            amount=Decimal(amount),
            period=period,
        )
        db.add(b)
        db.commit()
        db.refresh(b)
        return b

    return _add
