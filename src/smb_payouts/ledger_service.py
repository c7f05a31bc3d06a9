# SMB Payouts - Profit distribution & transfer tracking for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
High-level services for expense import, payout computation and reporting.

This module sits between:
- the low-level database helpers in `db.py` and the CSV readers in `io.py`,
- the pure distribution engine in `engine.py`, and
- user-facing layers such as the CLI.

Responsibilities
----------------
1) Imports
   - Card statements: every row becomes an expense paid by the configured
     payment source. A file whose name was already imported is skipped as a
     whole, so re-running an import is harmless.
   - Expenses CSV files in the application's own layout.

2) Transfers
   - Load revenues, expenses and distribution rules for a period.
   - Run the engine for every business and month in scope.
   - Flatten the results into a transfer report, merged with the recorded
     payment status of each line ("unpaid" until marked as paid).
   - Sum the amounts owed to each recipient across businesses.

3) Profit summary
   - Revenue, expense, gross profit, tax and net profit per month (and
     optionally per business), using the configured tax rate.

Design notes
------------
- The engine never touches the database: this module loads snapshots and
  passes them in. Concurrent edits between loads are not guarded against.
- Names are the join keys everywhere (business, payment source, recipient),
  exactly as stored in the expense and rule tables.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pandas as pd

from .config import AppConfig
from .db import (
    DatabaseConfig,
    Expense,
    ExpensesFilter,
    ExpenseUpdate,
    NewExpense,
    TransferStatus,
)
from .db import delete_expense as _db_delete_expense
from .db import has_source_data as _db_has_source_data
from .db import insert_expense as _db_insert_expense
from .db import insert_expenses as _db_insert_expenses
from .db import list_named_entities as _db_list_named_entities
from .db import list_rules as _db_list_rules
from .db import load_expenses as _db_load_expenses
from .db import load_revenues as _db_load_revenues
from .db import load_transfer_statuses as _db_load_transfer_statuses
from .db import update_expense as _db_update_expense
from .db import upsert_transfer_status as _db_upsert_transfer_status
from .engine import (
    BusinessMonthResult,
    DistributionRule,
    RecipientAmount,
    aggregate_across_businesses,
    compute_all_distributions,
    months_in_scope,
)
from .io import read_card_statement, read_expenses_csv
from .periods import Period, filter_frame_by_period, parse_month
from .reports import (
    financials_to_dataframe,
    profit_summary_frame,
    results_to_dataframe,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportResult:
    """
    Outcome of a file import.

    Attributes
    ----------
    source_label:
        File name recorded as ``source_data`` on the imported expenses.
    inserted:
        Number of expenses inserted.
    skipped:
        1 when the whole file was skipped because it was already imported,
        0 otherwise.
    """

    source_label: str
    inserted: int
    skipped: int


@dataclass(frozen=True)
class DistributionInputs:
    """Snapshot of everything the engine needs for a period."""

    revenues: pd.DataFrame
    expenses: pd.DataFrame
    rules: list[DistributionRule]
    businesses: list[str]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _get_db_config(app_config: AppConfig) -> DatabaseConfig:
    return app_config.database


def _period_bounds(period: Optional[Period]) -> tuple[Optional[str], Optional[str]]:
    if period is None:
        return None, None
    return period.start_month, period.end_month


def _import_frame(
    app_config: AppConfig,
    source_label: str,
    df: pd.DataFrame,
) -> ImportResult:
    db_cfg = _get_db_config(app_config)

    if _db_has_source_data(db_cfg, source_label):
        logger.info("%s was already imported, skipping", source_label)
        return ImportResult(source_label=source_label, inserted=0, skipped=1)

    if df.empty:
        logger.warning("%s holds no expense rows", source_label)
        return ImportResult(source_label=source_label, inserted=0, skipped=0)

    inserted = _db_insert_expenses(df, db_cfg)
    logger.info("Imported %d expense(s) from %s", inserted, source_label)
    return ImportResult(source_label=source_label, inserted=inserted, skipped=0)


# ---------------------------------------------------------------------------
# Imports
# ---------------------------------------------------------------------------


def import_card_statement(
    app_config: AppConfig,
    path: Path,
    business: str = "",
    payment_source: Optional[str] = None,
) -> ImportResult:
    """
    Import a card statement CSV into the expenses table.

    Parameters
    ----------
    app_config:
        Global application configuration (database, import defaults).
    path:
        Statement file. Its name is the duplicate-detection key.
    business:
        Optional business assigned to every imported row. Card imports are
        usually assigned to businesses later, expense by expense.
    payment_source:
        Payment source of the card. Defaults to
        ``app_config.default_payment_source``.

    Returns
    -------
    ImportResult
    """
    path = Path(path)
    source_label = path.name
    if _db_has_source_data(_get_db_config(app_config), source_label):
        logger.info("%s was already imported, skipping", source_label)
        return ImportResult(source_label=source_label, inserted=0, skipped=1)

    df = read_card_statement(
        path,
        payment_source=payment_source or app_config.default_payment_source,
        encoding=app_config.import_encoding,
    )
    if business:
        df["business"] = business
    return _import_frame(app_config, source_label, df)


def import_expenses_csv(app_config: AppConfig, path: Path) -> ImportResult:
    """Import an expenses CSV (application layout) into the expenses table."""
    path = Path(path)
    df = read_expenses_csv(path)
    return _import_frame(app_config, path.name, df)


# ---------------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------------


def list_expenses(
    app_config: AppConfig,
    period: Optional[Period] = None,
    extra_filters: Optional[ExpensesFilter] = None,
) -> pd.DataFrame:
    """
    List expenses for a period, with optional extra filters.

    Rows must match both `extra_filters` (month bounds included) and the
    period.
    """
    df = _db_load_expenses(_get_db_config(app_config), extra_filters)
    return filter_frame_by_period(df, period).reset_index(drop=True)


def create_expense(app_config: AppConfig, new_expense: NewExpense) -> Expense:
    """Create a single expense."""
    return _db_insert_expense(_get_db_config(app_config), new_expense)


def edit_expense(app_config: AppConfig, expense_id: int, update: ExpenseUpdate) -> Expense:
    """Partially update an expense (e.g. assign it to a business)."""
    return _db_update_expense(_get_db_config(app_config), expense_id, update)


def remove_expense(app_config: AppConfig, expense_id: int) -> None:
    _db_delete_expense(_get_db_config(app_config), expense_id)


def expense_details(
    app_config: AppConfig,
    month: str,
    business: str,
    payment_source: Optional[str] = None,
) -> pd.DataFrame:
    """
    Expenses behind a reimbursement line.

    Returns the expenses of `business` for `month`, restricted to one payer
    when `payment_source` is given, ordered by date.
    """
    filters = ExpensesFilter(
        month=parse_month(month),
        business=business,
        payment_source=payment_source,
    )
    return _db_load_expenses(_get_db_config(app_config), filters)


# ---------------------------------------------------------------------------
# Transfers
# ---------------------------------------------------------------------------


def load_distribution_inputs(
    app_config: AppConfig,
    period: Optional[Period] = None,
) -> DistributionInputs:
    """
    Load revenues, expenses, rules and registered businesses.

    Revenues and expenses are restricted to the period (all months when
    `period` is None). Rules are not time-bound.
    """
    db_cfg = _get_db_config(app_config)
    start, end = _period_bounds(period)

    revenues = _db_load_revenues(db_cfg, start, end)
    expenses = _db_load_expenses(
        db_cfg, ExpensesFilter(start_month=start, end_month=end)
    )
    rules = _db_list_rules(db_cfg)
    businesses = [b.name for b in _db_list_named_entities(db_cfg, "business")]

    logger.debug(
        "Loaded %d revenue(s), %d expense(s), %d rule(s) for %s",
        len(revenues),
        len(expenses),
        len(rules),
        period.label if period else "all months",
    )
    return DistributionInputs(
        revenues=revenues,
        expenses=expenses,
        rules=rules,
        businesses=businesses,
    )


def compute_transfers(
    app_config: AppConfig,
    period: Optional[Period] = None,
) -> list[BusinessMonthResult]:
    """
    Compute the payout lines of every business for every month in scope.

    Months are the union of the revenue and expense months of the period.
    """
    inputs = load_distribution_inputs(app_config, period)
    months = months_in_scope(inputs.revenues, inputs.expenses)
    return compute_all_distributions(
        inputs.revenues,
        inputs.expenses,
        inputs.rules,
        businesses=inputs.businesses,
        months=months,
    )


def recipient_totals(
    app_config: AppConfig,
    period: Optional[Period] = None,
) -> dict[str, dict[str, RecipientAmount]]:
    """What each recipient is owed per month, summed across businesses."""
    return aggregate_across_businesses(compute_transfers(app_config, period))


def transfer_report(
    app_config: AppConfig,
    period: Optional[Period] = None,
    hide_zero: Optional[bool] = None,
) -> pd.DataFrame:
    """
    Build the transfer report of a period.

    Parameters
    ----------
    app_config:
        Global application configuration.
    period:
        Reporting period, or None for every month.
    hide_zero:
        Drop lines whose total is zero. Defaults to
        ``app_config.hide_zero_transfers``.

    Returns
    -------
    pandas.DataFrame
        Columns: month, business, recipient, distribution, reimbursement,
        total, status ("unpaid" / "paid"), paid_at (ISO timestamp or "").
    """
    if hide_zero is None:
        hide_zero = app_config.hide_zero_transfers

    df = results_to_dataframe(compute_transfers(app_config, period), hide_zero=hide_zero)

    statuses: dict[tuple[str, str, str], TransferStatus] = {
        (s.month, s.business_name, s.recipient_name): s
        for s in _db_load_transfer_statuses(_get_db_config(app_config))
        if period is None or period.contains(s.month)
    }

    def _status_of(row) -> TransferStatus | None:
        return statuses.get((row["month"], row["business"], row["recipient"]))

    found = [_status_of(row) for _, row in df.iterrows()]
    df["status"] = [s.status if s else "unpaid" for s in found]
    df["paid_at"] = [
        s.paid_at.isoformat() if s and s.paid_at else "" for s in found
    ]
    return df


def mark_transfer(
    app_config: AppConfig,
    month: str,
    business: str,
    recipient: str,
    paid: bool,
    memo: str = "",
) -> TransferStatus:
    """Record a payout line as paid (with the current time) or unpaid."""
    status = "paid" if paid else "unpaid"
    result = _db_upsert_transfer_status(
        _get_db_config(app_config),
        month=month,
        recipient_name=recipient,
        business_name=business,
        status=status,
        memo=memo,
    )
    logger.info("Transfer %s / %s / %s marked as %s", month, business, recipient, status)
    return result


# ---------------------------------------------------------------------------
# Profit summary
# ---------------------------------------------------------------------------


def profit_summary(
    app_config: AppConfig,
    period: Optional[Period] = None,
    tax_rate: Optional[float] = None,
    by_business: bool = False,
) -> pd.DataFrame:
    """
    Revenue, expense, gross profit, tax and net profit for a period.

    Only registered businesses are counted when at least one business is
    registered; otherwise every business found in the data is.

    Parameters
    ----------
    tax_rate:
        Percent applied to positive gross profits. Defaults to
        ``app_config.tax_rate``.
    by_business:
        One row per (month, business) instead of one row per month.
    """
    rate = app_config.tax_rate if tax_rate is None else float(tax_rate)

    inputs = load_distribution_inputs(app_config, period)
    results = compute_all_distributions(
        inputs.revenues,
        inputs.expenses,
        inputs.rules,
        businesses=inputs.businesses,
        months=months_in_scope(inputs.revenues, inputs.expenses),
    )
    financials = financials_to_dataframe(results)
    if inputs.businesses and not financials.empty:
        financials = financials[financials["business"].isin(inputs.businesses)]

    return profit_summary_frame(financials, rate, by_business=by_business)
