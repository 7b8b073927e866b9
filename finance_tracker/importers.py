from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from io import BytesIO

import pandas as pd

from .models import TRANSACTION_TYPES

REQUIRED_COLUMNS = {"date", "description", "amount"}


def read_transactions_csv(file_bytes: bytes) -> list[dict]:
    """
    Parses a CSV export into transaction records:
      {date, description, amount (positive Decimal), type, category (name or None)}
    Without a 'type' column the sign of amount decides: negative = expense.
    """
    df = pd.read_csv(BytesIO(file_bytes), dtype=str)
    df.columns = [c.strip().lower() for c in df.columns]

    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise ValueError(f"Missing required columns: {sorted(missing)}")

    df["date"] = pd.to_datetime(df["date"], errors="raise").dt.date
    df["description"] = df["description"].astype(str).str.strip()

    if "type" not in df.columns:
        df["type"] = None
    if "category" not in df.columns:
        df["category"] = None

    records = []
    for i, row in enumerate(df.to_dict("records"), start=1):
        if pd.isna(row["date"]):
            raise ValueError(f"Row {i}: date is required")

        try:
            amount = Decimal(str(row["amount"]).strip())
        except InvalidOperation:
            raise ValueError(f"Row {i}: invalid amount {row['amount']!r}") from None
        if amount.is_nan() or abs(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP) == 0:
            raise ValueError(f"Row {i}: amount must be non-zero")

        tx_type = row["type"]
        if isinstance(tx_type, str) and tx_type.strip():
            tx_type = tx_type.strip().lower()
            if tx_type not in TRANSACTION_TYPES:
                raise ValueError(f"Row {i}: type must be one of: {', '.join(TRANSACTION_TYPES)}")
        else:
            tx_type = "expense" if amount < 0 else "income"

        if not row["description"] or row["description"] == "nan":
            raise ValueError(f"Row {i}: description cannot be empty")

        category = row["category"]
        category = category.strip() if isinstance(category, str) and category.strip() else None

        records.append({
            "date": row["date"],
            "description": row["description"],
            "amount": abs(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
            "type": tx_type,
            "category": category,
        })

    return records
