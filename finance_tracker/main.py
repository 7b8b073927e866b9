import logging
import secrets
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Literal

from fastapi import FastAPI, Depends, UploadFile, File, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import select

from .config import CORS_ORIGINS, LOG_LEVEL
from .db import Base, engine, get_db
from .errors import ValidationError, NotFoundError, DependencyError
from .models import User, Category, Transaction, Budget
from .schemas import (
    SignupIn, LoginIn, PasswordResetIn, UserOut,
    CategoryCreate, CategoryUpdate, CategoryOut,
    TransactionCreate, TransactionUpdate, TransactionOut,
    BudgetCreate, BudgetUpdate, BudgetOut,
    SummaryOut, BudgetAlertOut, ImportResult,
)
from .security import hash_password, verify_password
from .importers import read_transactions_csv
from .ledger import LedgerReader
from .summary import Summary, build_summary
from .alerts import BudgetAlert, compute_alerts

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Personal Finance Tracker API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

RESET_MESSAGE = "If an account with that email exists, a password reset link has been sent."


def get_ledger(db: Session = Depends(get_db)) -> LedgerReader:
    return LedgerReader(db)


def get_today():
    return date.today


@app.exception_handler(NotFoundError)
async def not_found_handler(request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(DependencyError)
async def dependency_error_handler(request, exc: DependencyError):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


def to_money(value) -> Decimal:
    amount = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    if amount <= 0:
        raise HTTPException(status_code=400, detail="amount must be at least 0.01")
    return amount


def require_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def require_owned(db: Session, model, obj_id: int, user_id: int, label: str):
    obj = db.get(model, obj_id)
    if not obj or obj.user_id != user_id:
        raise NotFoundError(f"{label} not found")
    return obj


def require_category(db: Session, category_id: int | None, user_id: int) -> None:
    if category_id is None:
        return
    cat = db.get(Category, category_id)
    if not cat or cat.user_id != user_id:
        raise NotFoundError("Category not found or does not belong to user")


@app.get("/health")
def health():
    return {"status": "ok"}


# --- Auth ---

@app.post("/auth/signup", response_model=UserOut, status_code=201)
def signup(payload: SignupIn, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    existing = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=409, detail="Email already registered")

    user = User(
        email=email,
        password_hash=hash_password(payload.password),
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created user %s", user.id)
    return user


@app.post("/auth/login", response_model=UserOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return user


@app.post("/auth/reset-password", response_model=dict)
def reset_password(payload: PasswordResetIn, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()

    # same answer either way so the endpoint can't be used to probe for accounts
    if user:
        token = secrets.token_hex(32)
        logger.info("Password reset requested for user %s", user.id)
        logger.debug("Password reset token for user %s: %s", user.id, token)

    return {"success": True, "message": RESET_MESSAGE}


# --- Categories ---

@app.post("/categories", response_model=CategoryOut, status_code=201)
def create_category(payload: CategoryCreate, db: Session = Depends(get_db)):
    require_user(db, payload.user_id)

    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="name cannot be empty")

    cat = Category(user_id=payload.user_id, name=name, color=payload.color, icon=payload.icon)
    db.add(cat)
    db.commit()
    db.refresh(cat)
    logger.info("Created category %s for user %s", cat.id, cat.user_id)
    return cat


@app.get("/categories", response_model=list[CategoryOut])
def list_categories(user_id: int, db: Session = Depends(get_db)):
    cats = db.execute(
        select(Category).where(Category.user_id == user_id).order_by(Category.name.asc(), Category.id.asc())
    ).scalars().all()
    return list(cats)


@app.patch("/categories/{category_id}", response_model=CategoryOut)
def update_category(category_id: int, payload: CategoryUpdate, db: Session = Depends(get_db)):
    cat = require_owned(db, Category, category_id, payload.user_id, "Category")

    changes = payload.changes()
    if "name" in changes:
        changes["name"] = changes["name"].strip()
        if not changes["name"]:
            raise HTTPException(status_code=400, detail="name cannot be empty")

    for field, value in changes.items():
        setattr(cat, field, value)
    db.commit()
    db.refresh(cat)
    return cat


@app.delete("/categories/{category_id}", response_model=dict)
def delete_category(category_id: int, user_id: int, db: Session = Depends(get_db)):
    cat = require_owned(db, Category, category_id, user_id, "Category")

    # transactions become uncategorized; budgets scoped to the category go with it
    txs = db.execute(select(Transaction).where(Transaction.category_id == category_id)).scalars().all()
    for tx in txs:
        tx.category_id = None
    budgets = db.execute(select(Budget).where(Budget.category_id == category_id)).scalars().all()
    for b in budgets:
        db.delete(b)

    db.delete(cat)
    db.commit()
    logger.info("Deleted category %s (%d transactions uncategorized, %d budgets removed)",
                category_id, len(txs), len(budgets))
    return {"deleted": category_id}


# --- Transactions ---

@app.post("/transactions", response_model=TransactionOut, status_code=201)
def create_transaction(payload: TransactionCreate, db: Session = Depends(get_db)):
    require_user(db, payload.user_id)
    require_category(db, payload.category_id, payload.user_id)

    description = payload.description.strip()
    if not description:
        raise HTTPException(status_code=400, detail="description cannot be empty")

    tx = Transaction(
        user_id=payload.user_id,
        category_id=payload.category_id,
        type=payload.type,
        amount=to_money(payload.amount),
        description=description,
        date=payload.date,
    )
    db.add(tx)
    db.commit()
    db.refresh(tx)
    return tx


@app.get("/transactions", response_model=list[TransactionOut])
def list_transactions(
    user_id: int,
    db: Session = Depends(get_db),
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    category_id: int | None = Query(default=None),
    type: Literal["income", "expense"] | None = Query(default=None),
    min_amount: Decimal | None = Query(default=None),
    max_amount: Decimal | None = Query(default=None),
    search: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    stmt = select(Transaction).where(Transaction.user_id == user_id)

    if start:
        stmt = stmt.where(Transaction.date >= start)
    if end:
        stmt = stmt.where(Transaction.date <= end)
    if category_id is not None:
        stmt = stmt.where(Transaction.category_id == category_id)
    if type:
        stmt = stmt.where(Transaction.type == type)
    if min_amount is not None:
        stmt = stmt.where(Transaction.amount >= min_amount)
    if max_amount is not None:
        stmt = stmt.where(Transaction.amount <= max_amount)
    if search and search.strip():
        stmt = stmt.where(Transaction.description.ilike(f"%{search.strip()}%"))

    stmt = stmt.order_by(Transaction.date.desc(), Transaction.id.desc()).offset(offset).limit(limit)
    return list(db.execute(stmt).scalars().all())


@app.patch("/transactions/{transaction_id}", response_model=TransactionOut)
def update_transaction(transaction_id: int, payload: TransactionUpdate, db: Session = Depends(get_db)):
    tx = require_owned(db, Transaction, transaction_id, payload.user_id, "Transaction")

    changes = payload.changes()
    if "category_id" in changes:
        require_category(db, changes["category_id"], payload.user_id)
    if "amount" in changes:
        changes["amount"] = to_money(changes["amount"])
    if "description" in changes:
        changes["description"] = changes["description"].strip()
        if not changes["description"]:
            raise HTTPException(status_code=400, detail="description cannot be empty")

    for field, value in changes.items():
        setattr(tx, field, value)
    db.commit()
    db.refresh(tx)
    return tx


@app.delete("/transactions/{transaction_id}", response_model=dict)
def delete_transaction(transaction_id: int, user_id: int, db: Session = Depends(get_db)):
    tx = require_owned(db, Transaction, transaction_id, user_id, "Transaction")
    db.delete(tx)
    db.commit()
    return {"deleted": transaction_id}


@app.post("/transactions/import", response_model=ImportResult)
async def import_transactions(user_id: int, file: UploadFile = File(...), db: Session = Depends(get_db)):
    if not file.filename or not file.filename.lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="Please upload a .csv file")
    require_user(db, user_id)

    content = await file.read()
    try:
        records = read_transactions_csv(content)
    except Exception as e:
        raise HTTPException(status_code=400, detail=str(e))

    categories = {
        c.name.lower(): c
        for c in db.execute(select(Category).where(Category.user_id == user_id)).scalars().all()
    }

    created = 0
    for r in records:
        name = r.pop("category")
        category_id = None
        if name:
            cat = categories.get(name.lower())
            if cat is None:
                cat = Category(user_id=user_id, name=name)
                db.add(cat)
                db.flush()
                categories[name.lower()] = cat
                created += 1
            category_id = cat.id

        db.add(Transaction(user_id=user_id, category_id=category_id, **r))

    db.commit()
    logger.info("Imported %d transactions for user %s", len(records), user_id)
    return {"inserted": len(records), "categories_created": created}


# --- Budgets ---

def category_name(db: Session, category_id: int | None) -> str | None:
    if category_id is None:
        return None
    cat = db.get(Category, category_id)
    return cat.name if cat else None


def budget_out(b: Budget, name: str | None) -> BudgetOut:
    return BudgetOut(
        id=b.id,
        user_id=b.user_id,
        category_id=b.category_id,
        category_name=name,
        amount=float(b.amount),
        period=b.period,
        created_at=b.created_at,
        updated_at=b.updated_at,
    )


def find_budget(db: Session, user_id: int, category_id: int | None, period: str) -> Budget | None:
    stmt = select(Budget).where(Budget.user_id == user_id, Budget.period == period)
    if category_id is None:
        stmt = stmt.where(Budget.category_id.is_(None))
    else:
        stmt = stmt.where(Budget.category_id == category_id)
    return db.execute(stmt).scalars().first()


@app.post("/budgets", response_model=BudgetOut, status_code=201)
def create_budget(payload: BudgetCreate, db: Session = Depends(get_db)):
    require_user(db, payload.user_id)
    require_category(db, payload.category_id, payload.user_id)

    if find_budget(db, payload.user_id, payload.category_id, payload.period):
        raise HTTPException(status_code=409, detail="Budget already exists for this category and period")

    b = Budget(
        user_id=payload.user_id,
        category_id=payload.category_id,
        amount=to_money(payload.amount),
        period=payload.period,
    )
    db.add(b)
    db.commit()
    db.refresh(b)
    logger.info("Created %s budget %s for user %s", b.period, b.id, b.user_id)
    return budget_out(b, category_name(db, b.category_id))


@app.get("/budgets", response_model=list[BudgetOut])
def list_budgets(user_id: int, db: Session = Depends(get_db)):
    rows = db.execute(
        select(Budget, Category.name)
        .outerjoin(Category, Budget.category_id == Category.id)
        .where(Budget.user_id == user_id)
        .order_by(Budget.id.asc())
    ).all()
    return [budget_out(b, name) for b, name in rows]


@app.get("/budgets/alerts", response_model=list[BudgetAlertOut])
def budget_alerts(
    user_id: int,
    ledger: LedgerReader = Depends(get_ledger),
    today=Depends(get_today),
):
    return [alert_out(a) for a in compute_alerts(ledger, user_id, today=today)]


@app.patch("/budgets/{budget_id}", response_model=BudgetOut)
def update_budget(budget_id: int, payload: BudgetUpdate, db: Session = Depends(get_db)):
    b = require_owned(db, Budget, budget_id, payload.user_id, "Budget")

    changes = payload.changes()
    if "category_id" in changes:
        require_category(db, changes["category_id"], payload.user_id)
    if "amount" in changes:
        changes["amount"] = to_money(changes["amount"])

    category_id = changes.get("category_id", b.category_id)
    period = changes.get("period", b.period)
    clash = find_budget(db, b.user_id, category_id, period)
    if clash and clash.id != b.id:
        raise HTTPException(status_code=409, detail="Budget already exists for this category and period")

    for field, value in changes.items():
        setattr(b, field, value)
    db.commit()
    db.refresh(b)
    return budget_out(b, category_name(db, b.category_id))


@app.delete("/budgets/{budget_id}", response_model=dict)
def delete_budget(budget_id: int, user_id: int, db: Session = Depends(get_db)):
    b = require_owned(db, Budget, budget_id, user_id, "Budget")
    db.delete(b)
    db.commit()
    return {"deleted": budget_id}


# --- Analytics ---

def summary_out(s: Summary) -> SummaryOut:
    out = {
        "total_income": float(s.total_income),
        "total_expenses": float(s.total_expenses),
        "net_income": float(s.net_income),
        "categories": [
            {
                "category_id": c.category_id,
                "category_name": c.category_name,
                "total_amount": float(c.total_amount),
                "transaction_count": c.transaction_count,
            }
            for c in s.categories
        ],
    }
    # monthly summaries leave monthly_data out of the response entirely
    if s.monthly_data is not None:
        out["monthly_data"] = [
            {"month": m.month, "income": float(m.income), "expenses": float(m.expenses)}
            for m in s.monthly_data
        ]
    return SummaryOut(**out)


def alert_out(a: BudgetAlert) -> BudgetAlertOut:
    return BudgetAlertOut(
        budget_id=a.budget_id,
        category_name=a.category_name,
        budget_amount=float(a.budget_amount),
        spent_amount=float(a.spent_amount),
        percentage_used=float(a.percentage_used),
        period=a.period,
    )


@app.get("/analytics/summary", response_model=SummaryOut, response_model_exclude_unset=True)
def analytics_summary(
    user_id: int,
    period: Literal["monthly", "yearly"],
    year: int = Query(ge=1, le=9999),
    month: int | None = Query(default=None, ge=1, le=12),
    ledger: LedgerReader = Depends(get_ledger),
):
    try:
        s = build_summary(ledger, user_id, period, year, month)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return summary_out(s)
