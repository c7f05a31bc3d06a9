# SMB Payouts - Profit distribution & transfer tracking for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
Database layer for SMB Payouts.

This module provides all low-level accessors for the SQLite database used
by the application. It is responsible for:

- Initializing the database schema.
- CRUD operations on the settings registries (businesses, payment sources,
  expense categories, recipients).
- CRUD operations and filtered listing of expenses.
- Recording monthly revenues per business.
- CRUD operations on revenue-distribution rules.
- CRUD operations on assets.
- Recording the transfer status (unpaid / paid) of each payout line.

The database is the single source of truth for all bookkeeping data. The
distribution engine never reads it directly: higher-level services load
snapshots through the functions below and pass them to the engine.

------------------------------------------------------------------------------
Schema Overview
------------------------------------------------------------------------------

1) businesses / payment_sources / expense_categories / recipients
   Named registries edited from the settings screen.

   Columns:
   - id          INTEGER PRIMARY KEY AUTOINCREMENT
   - name        TEXT    NOT NULL UNIQUE
   - memo        TEXT    NOT NULL DEFAULT ''
   - color       TEXT               -- businesses only (display color)
   - created_at  TEXT    NOT NULL   (ISO datetime, UTC)
   - updated_at  TEXT    NOT NULL

2) expenses
   - id            INTEGER PRIMARY KEY AUTOINCREMENT
   - date          TEXT    NOT NULL  -- ISO date "YYYY-MM-DD"
   - month         TEXT    NOT NULL  -- "YYYY-MM", may differ from date
                                       (statement month of a card import)
   - business      TEXT    NOT NULL DEFAULT ''
   - payment_source TEXT   NOT NULL DEFAULT ''
   - category      TEXT    NOT NULL DEFAULT ''
   - description   TEXT    NOT NULL DEFAULT ''
   - amount_cents  INTEGER NOT NULL
   - memo          TEXT    NOT NULL DEFAULT ''
   - source_data   TEXT    NOT NULL DEFAULT ''  -- e.g. imported file name
   - created_at / updated_at

3) revenues
   One row per (month, business).
   - id, month, business, amount_cents, created_at, updated_at
   - UNIQUE (month, business)

4) revenue_distributions
   - id, business_name, recipient_name,
   - distribution_type TEXT NOT NULL  -- "percentage" | "amount"
   - value             REAL NOT NULL  -- percent points or currency amount
   - memo, created_at, updated_at

5) assets
   - id, asset_type, name, affiliation, current_balance_cents, currency,
     update_date, memo, created_at, updated_at

6) transfer_statuses
   - id, month, recipient_name, business_name,
   - status   TEXT NOT NULL  -- "unpaid" | "paid"
   - paid_at  TEXT           -- UTC timestamp, NULL when unpaid
   - memo, created_at, updated_at
   - UNIQUE (month, recipient_name, business_name)

------------------------------------------------------------------------------
SQLite Notes
------------------------------------------------------------------------------

- All timestamps are stored as ISO-8601 text (UTC).
- Monetary amounts are stored as integer cents; rule values are stored as
  REAL because they can be percentages.
- Foreign key enforcement is explicitly enabled (no foreign keys are
  declared yet: names are used as keys, as in the distribution engine).
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Literal

import pandas as pd

from .engine import DistributionRule, DistributionType
from .periods import parse_month

# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """
    Database configuration for SMB Payouts.

    Attributes
    ----------
    engine:
        Database engine identifier. Only "sqlite" is supported.
    path:
        Path to the SQLite database file.
    """

    engine: str
    path: Path


NamedKind = Literal["business", "payment_source", "expense_category", "recipient"]

_NAMED_TABLES: dict[str, str] = {
    "business": "businesses",
    "payment_source": "payment_sources",
    "expense_category": "expense_categories",
    "recipient": "recipients",
}

TransferState = Literal["unpaid", "paid"]


@dataclass(frozen=True)
class NamedEntity:
    """Row of one of the named registries (business, recipient, ...)."""

    id: int
    kind: str
    name: str
    memo: str
    color: str | None
    created_at: datetime | None
    updated_at: datetime | None


@dataclass(frozen=True)
class Expense:
    """Expense as stored in the database."""

    id: int
    date: date
    month: str
    business: str
    payment_source: str
    category: str
    description: str
    amount: float
    memo: str
    source_data: str
    created_at: datetime | None
    updated_at: datetime | None


@dataclass(frozen=True)
class NewExpense:
    """
    Data required to create an expense.

    `month` defaults to the month of `date` when omitted.
    """

    date: date
    amount: float
    payment_source: str
    business: str = ""
    category: str = ""
    description: str = ""
    memo: str = ""
    source_data: str = ""
    month: str | None = None


@dataclass(frozen=True)
class ExpenseUpdate:
    """
    Fields that can be updated on an existing expense.

    Only non-None values are applied.
    """

    date: date | None = None
    month: str | None = None
    business: str | None = None
    payment_source: str | None = None
    category: str | None = None
    description: str | None = None
    amount: float | None = None
    memo: str | None = None


@dataclass(frozen=True)
class ExpensesFilter:
    """
    Filters used to list expenses. All filters are combined (AND).

    Attributes
    ----------
    month:
        Exact month key.
    start_month, end_month:
        Inclusive month bounds.
    business:
        Exact business name.
    payment_source:
        Exact payment source name.
    category:
        Exact category name.
    description_contains:
        Case-insensitive substring search on the description.
    """

    month: str | None = None
    start_month: str | None = None
    end_month: str | None = None
    business: str | None = None
    payment_source: str | None = None
    category: str | None = None
    description_contains: str | None = None


@dataclass(frozen=True)
class Asset:
    """Asset (bank account, wallet, ...) with its current balance."""

    id: int
    asset_type: str
    name: str
    affiliation: str
    current_balance: float
    currency: str
    update_date: date | None
    memo: str


@dataclass(frozen=True)
class NewAsset:
    asset_type: str
    name: str
    current_balance: float
    affiliation: str = ""
    currency: str = "JPY"
    update_date: date | None = None
    memo: str = ""


@dataclass(frozen=True)
class AssetUpdate:
    asset_type: str | None = None
    name: str | None = None
    affiliation: str | None = None
    current_balance: float | None = None
    currency: str | None = None
    update_date: date | None = None
    memo: str | None = None


@dataclass(frozen=True)
class TransferStatus:
    """Payment state of a payout line (month, business, recipient)."""

    id: int
    month: str
    recipient_name: str
    business_name: str
    status: str
    paid_at: datetime | None
    memo: str


EXPENSE_FRAME_COLUMNS = [
    "id",
    "date",
    "month",
    "business",
    "payment_source",
    "category",
    "description",
    "amount",
    "memo",
    "source_data",
]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _ensure_sqlite(cfg: DatabaseConfig) -> None:
    """Raise if the configuration does not refer to a supported engine."""
    if cfg.engine.lower() != "sqlite":
        msg = (
            f"Unsupported database engine: {cfg.engine!r}. "
            "Only 'sqlite' is supported for now."
        )
        raise ValueError(msg)


def _connect(cfg: DatabaseConfig) -> sqlite3.Connection:
    """
    Open a SQLite connection with foreign keys enabled.

    The caller is responsible for closing the connection.
    """
    _ensure_sqlite(cfg)
    conn = sqlite3.connect(cfg.path)
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def _create_schema_if_needed(conn: sqlite3.Connection) -> None:
    """
    Create tables and indexes if they do not exist yet.

    This function is idempotent and can be called multiple times safely.
    """
    for table in _NAMED_TABLES.values():
        conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id          INTEGER PRIMARY KEY AUTOINCREMENT,
                name        TEXT    NOT NULL UNIQUE,
                memo        TEXT    NOT NULL DEFAULT '',
                color       TEXT,
                created_at  TEXT    NOT NULL,
                updated_at  TEXT    NOT NULL
            );
            """
        )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS expenses (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            date            TEXT    NOT NULL,  -- ISO date 'YYYY-MM-DD'
            month           TEXT    NOT NULL,  -- 'YYYY-MM'
            business        TEXT    NOT NULL DEFAULT '',
            payment_source  TEXT    NOT NULL DEFAULT '',
            category        TEXT    NOT NULL DEFAULT '',
            description     TEXT    NOT NULL DEFAULT '',
            amount_cents    INTEGER NOT NULL,
            memo            TEXT    NOT NULL DEFAULT '',
            source_data     TEXT    NOT NULL DEFAULT '',
            created_at      TEXT    NOT NULL,
            updated_at      TEXT    NOT NULL
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS revenues (
            id            INTEGER PRIMARY KEY AUTOINCREMENT,
            month         TEXT    NOT NULL,
            business      TEXT    NOT NULL,
            amount_cents  INTEGER NOT NULL,
            created_at    TEXT    NOT NULL,
            updated_at    TEXT    NOT NULL,

            UNIQUE (month, business)
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS revenue_distributions (
            id                 INTEGER PRIMARY KEY AUTOINCREMENT,
            business_name      TEXT    NOT NULL,
            recipient_name     TEXT    NOT NULL,
            distribution_type  TEXT    NOT NULL
                CHECK (distribution_type IN ('percentage', 'amount')),
            value              REAL    NOT NULL,
            memo               TEXT    NOT NULL DEFAULT '',
            created_at         TEXT    NOT NULL,
            updated_at         TEXT    NOT NULL
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS assets (
            id                     INTEGER PRIMARY KEY AUTOINCREMENT,
            asset_type             TEXT    NOT NULL,
            name                   TEXT    NOT NULL,
            affiliation            TEXT    NOT NULL DEFAULT '',
            current_balance_cents  INTEGER NOT NULL,
            currency               TEXT    NOT NULL DEFAULT 'JPY',
            update_date            TEXT,
            memo                   TEXT    NOT NULL DEFAULT '',
            created_at             TEXT    NOT NULL,
            updated_at             TEXT    NOT NULL
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS transfer_statuses (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            month           TEXT    NOT NULL,
            recipient_name  TEXT    NOT NULL,
            business_name   TEXT    NOT NULL DEFAULT '',
            status          TEXT    NOT NULL DEFAULT 'unpaid'
                CHECK (status IN ('unpaid', 'paid')),
            paid_at         TEXT,
            memo            TEXT    NOT NULL DEFAULT '',
            created_at      TEXT    NOT NULL,
            updated_at      TEXT    NOT NULL,

            UNIQUE (month, recipient_name, business_name)
        );
        """
    )

    # Indexes
    conn.execute("CREATE INDEX IF NOT EXISTS idx_expenses_month ON expenses(month);")
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_expenses_business ON expenses(business);"
    )
    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_distributions_business
            ON revenue_distributions(business_name);
        """
    )

    conn.commit()


def _to_cents(amount: float) -> int:
    return int(round(float(amount) * 100))


def _from_cents(cents: int) -> float:
    return float(cents) / 100.0


def _to_iso_date(value) -> str:
    """Convert a date-like value to ISO 'YYYY-MM-DD' string."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, pd.Timestamp):
        return value.date().isoformat()
    return date.fromisoformat(str(value)[:10]).isoformat()


def _now_utc_iso() -> str:
    """Return the current UTC datetime as ISO string."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _table_for(kind: str) -> str:
    try:
        return _NAMED_TABLES[kind]
    except KeyError as exc:
        kinds = ", ".join(_NAMED_TABLES)
        raise ValueError(f"Unknown registry kind: {kind!r}. Expected one of: {kinds}.") from exc


def _require_rowcount(cur: sqlite3.Cursor, what: str, row_id: int) -> None:
    if cur.rowcount == 0:
        raise LookupError(f"{what} #{row_id} not found.")


# ---------------------------------------------------------------------------
# Public API: schema
# ---------------------------------------------------------------------------


def init_database(cfg: DatabaseConfig) -> None:
    """
    Initialize the database schema if needed.

    - Creates the SQLite file (and its parent directory) if missing.
    - Creates tables and indexes if they are missing.
    - This function is idempotent: calling it multiple times is safe.

    Raises
    ------
    ValueError
        If cfg.engine is not supported.
    sqlite3.Error
        If schema creation fails.
    """
    cfg.path.parent.mkdir(parents=True, exist_ok=True)

    conn = _connect(cfg)
    try:
        _create_schema_if_needed(conn)
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Named registries (businesses, payment sources, categories, recipients)
# ---------------------------------------------------------------------------


def _row_to_named(kind: str, row: tuple) -> NamedEntity:
    return NamedEntity(
        id=int(row[0]),
        kind=kind,
        name=row[1],
        memo=row[2] or "",
        color=row[3],
        created_at=_parse_ts(row[4]),
        updated_at=_parse_ts(row[5]),
    )


def add_named_entity(
    cfg: DatabaseConfig,
    kind: NamedKind,
    name: str,
    memo: str = "",
    color: str | None = None,
) -> NamedEntity:
    """
    Register a new business, payment source, expense category or recipient.

    Raises
    ------
    ValueError
        If the name is blank or already registered for this kind.
    """
    table = _table_for(kind)
    clean = name.strip()
    if not clean:
        raise ValueError("Name cannot be empty.")

    init_database(cfg)
    now = _now_utc_iso()

    conn = _connect(cfg)
    try:
        try:
            cur = conn.execute(
                f"""
                INSERT INTO {table} (name, memo, color, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?);
                """,
                (clean, memo or "", color, now, now),
            )
        except sqlite3.IntegrityError as exc:
            raise ValueError(f"{kind} {clean!r} already exists.") from exc
        new_id = cur.lastrowid
        conn.commit()
    finally:
        conn.close()

    return NamedEntity(
        id=int(new_id),
        kind=kind,
        name=clean,
        memo=memo or "",
        color=color,
        created_at=_parse_ts(now),
        updated_at=_parse_ts(now),
    )


def list_named_entities(cfg: DatabaseConfig, kind: NamedKind) -> list[NamedEntity]:
    """Return the entries of a registry, ordered by id (creation order)."""
    table = _table_for(kind)
    init_database(cfg)

    conn = _connect(cfg)
    try:
        rows = conn.execute(
            f"""
            SELECT id, name, memo, color, created_at, updated_at
              FROM {table}
             ORDER BY id;
            """
        ).fetchall()
    finally:
        conn.close()

    return [_row_to_named(kind, row) for row in rows]


def update_named_entity(
    cfg: DatabaseConfig,
    kind: NamedKind,
    entity_id: int,
    *,
    name: str | None = None,
    memo: str | None = None,
    color: str | None = None,
) -> None:
    """
    Partially update a registry entry.

    Renaming does not rewrite expenses, revenues or rules that reference the
    old name: names are free text in those tables.
    """
    table = _table_for(kind)
    fields: list[str] = []
    params: list[object] = []

    if name is not None:
        if not name.strip():
            raise ValueError("Name cannot be empty.")
        fields.append("name = ?")
        params.append(name.strip())
    if memo is not None:
        fields.append("memo = ?")
        params.append(memo)
    if color is not None:
        fields.append("color = ?")
        params.append(color)

    if not fields:
        raise ValueError("No fields to update.")

    fields.append("updated_at = ?")
    params.append(_now_utc_iso())
    params.append(entity_id)

    init_database(cfg)
    conn = _connect(cfg)
    try:
        try:
            cur = conn.execute(
                f"UPDATE {table} SET {', '.join(fields)} WHERE id = ?;", params
            )
        except sqlite3.IntegrityError as exc:
            raise ValueError(f"{kind} {name!r} already exists.") from exc
        _require_rowcount(cur, kind, entity_id)
        conn.commit()
    finally:
        conn.close()


def delete_named_entity(cfg: DatabaseConfig, kind: NamedKind, entity_id: int) -> None:
    """Delete a registry entry by id."""
    table = _table_for(kind)
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.execute(f"DELETE FROM {table} WHERE id = ?;", (entity_id,))
        _require_rowcount(cur, kind, entity_id)
        conn.commit()
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------------


def _row_to_expense(row: tuple) -> Expense:
    """
    Convert a raw SELECT row into an Expense.

    Expected column order:
        id, date, month, business, payment_source, category, description,
        amount_cents, memo, source_data, created_at, updated_at
    """
    return Expense(
        id=int(row[0]),
        date=date.fromisoformat(row[1]),
        month=row[2],
        business=row[3] or "",
        payment_source=row[4] or "",
        category=row[5] or "",
        description=row[6] or "",
        amount=_from_cents(row[7]),
        memo=row[8] or "",
        source_data=row[9] or "",
        created_at=_parse_ts(row[10]),
        updated_at=_parse_ts(row[11]),
    )


_EXPENSE_SELECT = """
    SELECT id, date, month, business, payment_source, category, description,
           amount_cents, memo, source_data, created_at, updated_at
      FROM expenses
"""


def _expense_params(new: NewExpense, now: str) -> tuple:
    iso_date = _to_iso_date(new.date)
    month = parse_month(new.month) if new.month else iso_date[:7]
    return (
        iso_date,
        month,
        new.business or "",
        new.payment_source or "",
        new.category or "",
        new.description or "",
        _to_cents(new.amount),
        new.memo or "",
        new.source_data or "",
        now,
        now,
    )


_EXPENSE_INSERT = """
    INSERT INTO expenses (
        date, month, business, payment_source, category, description,
        amount_cents, memo, source_data, created_at, updated_at
    )
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""


def get_expense_by_id(cfg: DatabaseConfig, expense_id: int) -> Expense | None:
    """Load a single expense by id, or None if it does not exist."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        row = conn.execute(_EXPENSE_SELECT + " WHERE id = ?;", (expense_id,)).fetchone()
    finally:
        conn.close()

    return None if row is None else _row_to_expense(row)


def insert_expense(cfg: DatabaseConfig, new_expense: NewExpense) -> Expense:
    """Insert a single expense and return it as stored."""
    init_database(cfg)
    params = _expense_params(new_expense, _now_utc_iso())

    conn = _connect(cfg)
    try:
        cur = conn.execute(_EXPENSE_INSERT, params)
        expense_id = cur.lastrowid
        conn.commit()
    finally:
        conn.close()

    result = get_expense_by_id(cfg, expense_id)
    if result is None:
        msg = f"Expense #{expense_id} was just inserted but could not be reloaded."
        raise RuntimeError(msg)
    return result


def insert_expenses(df: pd.DataFrame, cfg: DatabaseConfig) -> int:
    """
    Insert a batch of expenses from a DataFrame in a single transaction.

    Required columns: date, amount, payment_source. Optional columns: month,
    business, category, description, memo, source_data.

    Returns
    -------
    int
        Number of rows inserted.
    """
    required = {"date", "amount", "payment_source"}
    missing = required.difference(df.columns)
    if missing:
        cols = ", ".join(sorted(missing))
        raise ValueError(f"DataFrame is missing required column(s): {cols}")

    init_database(cfg)
    now = _now_utc_iso()

    def _text(row, col: str) -> str:
        if col not in row or pd.isna(row[col]):
            return ""
        return str(row[col])

    params = []
    for _, row in df.iterrows():
        month = _text(row, "month") or None
        params.append(
            _expense_params(
                NewExpense(
                    date=row["date"],
                    month=month,
                    amount=float(row["amount"]),
                    payment_source=_text(row, "payment_source"),
                    business=_text(row, "business"),
                    category=_text(row, "category"),
                    description=_text(row, "description"),
                    memo=_text(row, "memo"),
                    source_data=_text(row, "source_data"),
                ),
                now,
            )
        )

    conn = _connect(cfg)
    try:
        conn.executemany(_EXPENSE_INSERT, params)
        conn.commit()
    finally:
        conn.close()

    return len(params)


def update_expense(
    cfg: DatabaseConfig,
    expense_id: int,
    update: ExpenseUpdate,
) -> Expense:
    """
    Apply a partial update to an existing expense.

    Raises
    ------
    ValueError
        If no fields are provided for update.
    LookupError
        If the expense does not exist.
    """
    fields: list[str] = []
    params: list[object] = []

    if update.date is not None:
        fields.append("date = ?")
        params.append(_to_iso_date(update.date))
    if update.month is not None:
        fields.append("month = ?")
        params.append(parse_month(update.month))
    for col in ("business", "payment_source", "category", "description", "memo"):
        value = getattr(update, col)
        if value is not None:
            fields.append(f"{col} = ?")
            params.append(value)
    if update.amount is not None:
        fields.append("amount_cents = ?")
        params.append(_to_cents(update.amount))

    if not fields:
        raise ValueError("No fields to update in ExpenseUpdate.")

    fields.append("updated_at = ?")
    params.append(_now_utc_iso())
    params.append(expense_id)

    init_database(cfg)
    conn = _connect(cfg)
    try:
        cur = conn.execute(
            f"""
            UPDATE expenses
               SET {", ".join(fields)}
             WHERE id = ?;
            """,
            params,
        )
        _require_rowcount(cur, "Expense", expense_id)
        conn.commit()
    finally:
        conn.close()

    result = get_expense_by_id(cfg, expense_id)
    if result is None:
        msg = f"Expense #{expense_id} was updated but could not be reloaded."
        raise RuntimeError(msg)
    return result


def delete_expense(cfg: DatabaseConfig, expense_id: int) -> None:
    """Permanently delete an expense."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.execute("DELETE FROM expenses WHERE id = ?;", (expense_id,))
        _require_rowcount(cur, "Expense", expense_id)
        conn.commit()
    finally:
        conn.close()


def load_expenses(
    cfg: DatabaseConfig,
    filters: ExpensesFilter | None = None,
) -> pd.DataFrame:
    """
    Load expenses as a DataFrame, optionally filtered.

    Parameters
    ----------
    cfg:
        Database configuration.
    filters:
        Optional ExpensesFilter. None loads every expense.

    Returns
    -------
    pandas.DataFrame
        Columns: id, date (datetime64[ns]), month, business, payment_source,
        category, description, amount (float), memo, source_data.
        Ordered by date then id. An empty DataFrame with the same columns is
        returned when nothing matches.
    """
    f = filters or ExpensesFilter()
    where: list[str] = []
    params: list[object] = []

    if f.month:
        where.append("month = ?")
        params.append(parse_month(f.month))
    if f.start_month:
        where.append("month >= ?")
        params.append(f.start_month)
    if f.end_month:
        where.append("month <= ?")
        params.append(f.end_month)
    if f.business is not None:
        where.append("business = ?")
        params.append(f.business)
    if f.payment_source is not None:
        where.append("payment_source = ?")
        params.append(f.payment_source)
    if f.category is not None:
        where.append("category = ?")
        params.append(f.category)
    if f.description_contains:
        where.append("LOWER(description) LIKE ?")
        params.append(f"%{f.description_contains.lower()}%")

    sql = """
        SELECT id, date, month, business, payment_source, category,
               description, amount_cents, memo, source_data
          FROM expenses
    """
    if where:
        sql += " WHERE " + " AND ".join(where)
    sql += " ORDER BY date, id;"

    init_database(cfg)
    conn = _connect(cfg)
    try:
        rows = conn.execute(sql, params).fetchall()
    finally:
        conn.close()

    if not rows:
        return pd.DataFrame(columns=EXPENSE_FRAME_COLUMNS)

    raw_columns = list(EXPENSE_FRAME_COLUMNS)
    raw_columns[raw_columns.index("amount")] = "amount_cents"
    df = pd.DataFrame(rows, columns=raw_columns)
    df["date"] = pd.to_datetime(df["date"], format="%Y-%m-%d")
    df["amount"] = df["amount_cents"].astype(float) / 100.0
    return df[EXPENSE_FRAME_COLUMNS]


def has_source_data(cfg: DatabaseConfig, source_label: str) -> bool:
    """Return True if at least one expense was imported from `source_label`."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        row = conn.execute(
            "SELECT 1 FROM expenses WHERE source_data = ? LIMIT 1;", (source_label,)
        ).fetchone()
    finally:
        conn.close()
    return row is not None


# ---------------------------------------------------------------------------
# Revenues
# ---------------------------------------------------------------------------


def set_revenue(cfg: DatabaseConfig, month: str, business: str, amount: float) -> None:
    """Insert or replace the revenue of a business for a month."""
    month_key = parse_month(month)
    if not business.strip():
        raise ValueError("Business name cannot be empty.")

    init_database(cfg)
    now = _now_utc_iso()

    conn = _connect(cfg)
    try:
        conn.execute(
            """
            INSERT INTO revenues (month, business, amount_cents, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (month, business) DO UPDATE
               SET amount_cents = excluded.amount_cents,
                   updated_at   = excluded.updated_at;
            """,
            (month_key, business.strip(), _to_cents(amount), now, now),
        )
        conn.commit()
    finally:
        conn.close()


def get_revenue(cfg: DatabaseConfig, business: str, month: str) -> float:
    """Revenue of a business for a month, 0.0 when none is recorded."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        row = conn.execute(
            "SELECT amount_cents FROM revenues WHERE month = ? AND business = ?;",
            (parse_month(month), business),
        ).fetchone()
    finally:
        conn.close()

    return 0.0 if row is None else _from_cents(row[0])


def load_revenues(
    cfg: DatabaseConfig,
    start_month: str | None = None,
    end_month: str | None = None,
) -> pd.DataFrame:
    """
    Load revenues as a DataFrame with columns month, business, amount.

    Month bounds are inclusive and optional.
    """
    where: list[str] = []
    params: list[object] = []
    if start_month:
        where.append("month >= ?")
        params.append(start_month)
    if end_month:
        where.append("month <= ?")
        params.append(end_month)

    sql = "SELECT month, business, amount_cents FROM revenues"
    if where:
        sql += " WHERE " + " AND ".join(where)
    sql += " ORDER BY month, business;"

    init_database(cfg)
    conn = _connect(cfg)
    try:
        rows = conn.execute(sql, params).fetchall()
    finally:
        conn.close()

    if not rows:
        return pd.DataFrame(columns=["month", "business", "amount"])

    df = pd.DataFrame(rows, columns=["month", "business", "amount_cents"])
    df["amount"] = df["amount_cents"].astype(float) / 100.0
    return df.drop(columns=["amount_cents"])


def delete_revenue(cfg: DatabaseConfig, month: str, business: str) -> None:
    """Delete the revenue of a business for a month."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.execute(
            "DELETE FROM revenues WHERE month = ? AND business = ?;",
            (parse_month(month), business),
        )
        if cur.rowcount == 0:
            raise LookupError(f"No revenue recorded for {business!r} in {month}.")
        conn.commit()
    finally:
        conn.close()


def delete_revenues_for_month(cfg: DatabaseConfig, month: str) -> int:
    """Delete every revenue of a month. Returns the number of rows deleted."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.execute(
            "DELETE FROM revenues WHERE month = ?;", (parse_month(month),)
        )
        conn.commit()
        return cur.rowcount
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Revenue-distribution rules
# ---------------------------------------------------------------------------


def _row_to_rule(row: tuple) -> DistributionRule:
    return DistributionRule(
        id=int(row[0]),
        business_name=row[1],
        recipient_name=row[2],
        distribution_type=DistributionType.parse(row[3]),
        value=float(row[4]),
        memo=row[5] or "",
    )


def _validate_rule(rule: DistributionRule) -> None:
    if not rule.business_name.strip():
        raise ValueError("Distribution rule business name cannot be empty.")
    if not rule.recipient_name.strip():
        raise ValueError("Distribution rule recipient name cannot be empty.")
    if rule.value < 0:
        raise ValueError("Distribution rule value cannot be negative.")
    if rule.distribution_type is DistributionType.PERCENTAGE and rule.value > 100:
        raise ValueError("Percentage rule value must be between 0 and 100.")


def insert_rule(cfg: DatabaseConfig, rule: DistributionRule) -> DistributionRule:
    """
    Insert a distribution rule and return it with its new id.

    Raises
    ------
    ValueError
        If names are blank, the value is negative, or a percentage exceeds 100.
    """
    _validate_rule(rule)
    init_database(cfg)
    now = _now_utc_iso()

    conn = _connect(cfg)
    try:
        cur = conn.execute(
            """
            INSERT INTO revenue_distributions (
                business_name, recipient_name, distribution_type, value,
                memo, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?);
            """,
            (
                rule.business_name.strip(),
                rule.recipient_name.strip(),
                DistributionType.parse(rule.distribution_type).value,
                float(rule.value),
                rule.memo or "",
                now,
                now,
            ),
        )
        rule_id = cur.lastrowid
        conn.commit()
    finally:
        conn.close()

    return DistributionRule(
        id=int(rule_id),
        business_name=rule.business_name.strip(),
        recipient_name=rule.recipient_name.strip(),
        distribution_type=DistributionType.parse(rule.distribution_type),
        value=float(rule.value),
        memo=rule.memo or "",
    )


def update_rule(cfg: DatabaseConfig, rule: DistributionRule) -> None:
    """Replace every field of an existing rule (identified by `rule.id`)."""
    if rule.id is None:
        raise ValueError("Cannot update a distribution rule without id.")
    _validate_rule(rule)

    init_database(cfg)
    conn = _connect(cfg)
    try:
        cur = conn.execute(
            """
            UPDATE revenue_distributions
               SET business_name     = ?,
                   recipient_name    = ?,
                   distribution_type = ?,
                   value             = ?,
                   memo              = ?,
                   updated_at        = ?
             WHERE id = ?;
            """,
            (
                rule.business_name.strip(),
                rule.recipient_name.strip(),
                DistributionType.parse(rule.distribution_type).value,
                float(rule.value),
                rule.memo or "",
                _now_utc_iso(),
                rule.id,
            ),
        )
        _require_rowcount(cur, "Distribution rule", rule.id)
        conn.commit()
    finally:
        conn.close()


def delete_rule(cfg: DatabaseConfig, rule_id: int) -> None:
    """Delete a distribution rule by id."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.execute(
            "DELETE FROM revenue_distributions WHERE id = ?;", (rule_id,)
        )
        _require_rowcount(cur, "Distribution rule", rule_id)
        conn.commit()
    finally:
        conn.close()


def list_rules(
    cfg: DatabaseConfig,
    business_name: str | None = None,
) -> list[DistributionRule]:
    """
    List distribution rules, optionally restricted to one business.

    Rules are returned in creation order, which is also the order in which
    the engine lists recipients.
    """
    sql = """
        SELECT id, business_name, recipient_name, distribution_type, value, memo
          FROM revenue_distributions
    """
    params: tuple = ()
    if business_name is not None:
        sql += " WHERE business_name = ?"
        params = (business_name,)
    sql += " ORDER BY id;"

    init_database(cfg)
    conn = _connect(cfg)
    try:
        rows = conn.execute(sql, params).fetchall()
    finally:
        conn.close()

    return [_row_to_rule(row) for row in rows]


def get_rule(cfg: DatabaseConfig, rule_id: int) -> DistributionRule | None:
    """Return a distribution rule by id, or None if it does not exist."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        row = conn.execute(
            """
            SELECT id, business_name, recipient_name, distribution_type, value, memo
              FROM revenue_distributions
             WHERE id = ?;
            """,
            (rule_id,),
        ).fetchone()
    finally:
        conn.close()

    return _row_to_rule(row) if row else None


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------


def _row_to_asset(row: tuple) -> Asset:
    return Asset(
        id=int(row[0]),
        asset_type=row[1],
        name=row[2],
        affiliation=row[3] or "",
        current_balance=_from_cents(row[4]),
        currency=row[5],
        update_date=date.fromisoformat(row[6]) if row[6] else None,
        memo=row[7] or "",
    )


def insert_asset(cfg: DatabaseConfig, new_asset: NewAsset) -> Asset:
    """Insert an asset and return it as stored."""
    if not new_asset.name.strip():
        raise ValueError("Asset name cannot be empty.")

    init_database(cfg)
    now = _now_utc_iso()
    update_date = new_asset.update_date or datetime.now(timezone.utc).date()

    conn = _connect(cfg)
    try:
        cur = conn.execute(
            """
            INSERT INTO assets (
                asset_type, name, affiliation, current_balance_cents,
                currency, update_date, memo, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                new_asset.asset_type,
                new_asset.name.strip(),
                new_asset.affiliation,
                _to_cents(new_asset.current_balance),
                new_asset.currency,
                _to_iso_date(update_date),
                new_asset.memo,
                now,
                now,
            ),
        )
        asset_id = cur.lastrowid
        conn.commit()
    finally:
        conn.close()

    return Asset(
        id=int(asset_id),
        asset_type=new_asset.asset_type,
        name=new_asset.name.strip(),
        affiliation=new_asset.affiliation,
        current_balance=float(new_asset.current_balance),
        currency=new_asset.currency,
        update_date=date.fromisoformat(_to_iso_date(update_date)),
        memo=new_asset.memo,
    )


def update_asset(cfg: DatabaseConfig, asset_id: int, update: AssetUpdate) -> None:
    """Apply a partial update to an asset."""
    fields: list[str] = []
    params: list[object] = []

    for col in ("asset_type", "name", "affiliation", "currency", "memo"):
        value = getattr(update, col)
        if value is not None:
            fields.append(f"{col} = ?")
            params.append(value)
    if update.current_balance is not None:
        fields.append("current_balance_cents = ?")
        params.append(_to_cents(update.current_balance))
    if update.update_date is not None:
        fields.append("update_date = ?")
        params.append(_to_iso_date(update.update_date))

    if not fields:
        raise ValueError("No fields to update in AssetUpdate.")

    fields.append("updated_at = ?")
    params.append(_now_utc_iso())
    params.append(asset_id)

    init_database(cfg)
    conn = _connect(cfg)
    try:
        cur = conn.execute(
            f"UPDATE assets SET {', '.join(fields)} WHERE id = ?;", params
        )
        _require_rowcount(cur, "Asset", asset_id)
        conn.commit()
    finally:
        conn.close()


def delete_asset(cfg: DatabaseConfig, asset_id: int) -> None:
    """Delete an asset by id."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.execute("DELETE FROM assets WHERE id = ?;", (asset_id,))
        _require_rowcount(cur, "Asset", asset_id)
        conn.commit()
    finally:
        conn.close()


def load_assets(cfg: DatabaseConfig) -> list[Asset]:
    """Return every asset, ordered by type then name."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        rows = conn.execute(
            """
            SELECT id, asset_type, name, affiliation, current_balance_cents,
                   currency, update_date, memo
              FROM assets
             ORDER BY asset_type, name, id;
            """
        ).fetchall()
    finally:
        conn.close()

    return [_row_to_asset(row) for row in rows]


# ---------------------------------------------------------------------------
# Transfer statuses
# ---------------------------------------------------------------------------


def _row_to_transfer_status(row: tuple) -> TransferStatus:
    return TransferStatus(
        id=int(row[0]),
        month=row[1],
        recipient_name=row[2],
        business_name=row[3],
        status=row[4],
        paid_at=_parse_ts(row[5]),
        memo=row[6] or "",
    )


_TRANSFER_SELECT = """
    SELECT id, month, recipient_name, business_name, status, paid_at, memo
      FROM transfer_statuses
"""


def get_transfer_status(
    cfg: DatabaseConfig,
    month: str,
    recipient_name: str,
    business_name: str = "",
) -> TransferStatus | None:
    """Return the status of a payout line, or None if never recorded."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        row = conn.execute(
            _TRANSFER_SELECT
            + " WHERE month = ? AND recipient_name = ? AND business_name = ?;",
            (parse_month(month), recipient_name, business_name),
        ).fetchone()
    finally:
        conn.close()

    return None if row is None else _row_to_transfer_status(row)


def upsert_transfer_status(
    cfg: DatabaseConfig,
    month: str,
    recipient_name: str,
    business_name: str,
    status: TransferState,
    memo: str = "",
    paid_at: datetime | None = None,
) -> TransferStatus:
    """
    Insert or update the status of a payout line.

    `paid_at` defaults to the current UTC time when the status is "paid"
    and is cleared when the status is "unpaid".
    """
    if status not in ("unpaid", "paid"):
        raise ValueError(f"Invalid transfer status: {status!r}.")

    month_key = parse_month(month)
    now = _now_utc_iso()
    if status == "paid":
        paid_at_iso = paid_at.isoformat(timespec="seconds") if paid_at else now
    else:
        paid_at_iso = None

    init_database(cfg)
    conn = _connect(cfg)
    try:
        conn.execute(
            """
            INSERT INTO transfer_statuses (
                month, recipient_name, business_name, status, paid_at, memo,
                created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (month, recipient_name, business_name) DO UPDATE
               SET status     = excluded.status,
                   paid_at    = excluded.paid_at,
                   memo       = excluded.memo,
                   updated_at = excluded.updated_at;
            """,
            (
                month_key,
                recipient_name,
                business_name,
                status,
                paid_at_iso,
                memo,
                now,
                now,
            ),
        )
        conn.commit()
    finally:
        conn.close()

    result = get_transfer_status(cfg, month_key, recipient_name, business_name)
    if result is None:
        raise RuntimeError("Transfer status was just saved but could not be reloaded.")
    return result


def load_transfer_statuses(
    cfg: DatabaseConfig,
    month: str | None = None,
) -> list[TransferStatus]:
    """Return recorded transfer statuses, newest month first."""
    sql = _TRANSFER_SELECT
    params: tuple = ()
    if month:
        sql += " WHERE month = ?"
        params = (parse_month(month),)
    sql += " ORDER BY month DESC, business_name, recipient_name;"

    init_database(cfg)
    conn = _connect(cfg)
    try:
        rows = conn.execute(sql, params).fetchall()
    finally:
        conn.close()

    return [_row_to_transfer_status(row) for row in rows]
