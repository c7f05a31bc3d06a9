# SMB Payouts - Profit distribution & transfer tracking for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Report builders for SMB Payouts.

This module turns engine results into flat pandas DataFrames ready to be
printed by the CLI or exported as CSV. It does not compute anything beyond
sums and the tax rule: the distribution logic lives in ``engine``.

The main reports are:

- transfers:      one row per (month, business, recipient),
- recipients:     one row per (month, recipient), summed across businesses,
- financials:     one row per (month, business) with revenue / expense /
                  profit figures,
- profit summary: financials plus tax and net profit.
"""

from collections.abc import Iterable, Mapping, Sequence

import pandas as pd

from .engine import BusinessMonthResult, RecipientAmount, compute_tax, round_money

TRANSFER_COLUMNS = [
    "month",
    "business",
    "recipient",
    "distribution",
    "reimbursement",
    "total",
]
RECIPIENT_TOTAL_COLUMNS = ["month", "recipient", "distribution", "reimbursement", "total"]
FINANCIAL_COLUMNS = [
    "month",
    "business",
    "revenue",
    "expense",
    "profit",
    "total_fixed",
    "profit_after_fixed",
]
PROFIT_SUMMARY_COLUMNS = [
    "month",
    "business",
    "revenue",
    "expense",
    "gross_profit",
    "tax",
    "net_profit",
]


def _amount_row(item: RecipientAmount) -> dict:
    return {
        "recipient": item.recipient_name,
        "distribution": item.distribution_amount,
        "reimbursement": item.expense_reimbursement,
        "total": item.total,
    }


def results_to_dataframe(
    results: Iterable[BusinessMonthResult],
    hide_zero: bool = False,
) -> pd.DataFrame:
    """
    Flatten per-business results into one row per recipient line.

    When `hide_zero` is True, lines whose total is exactly zero are dropped.
    Row order follows the results (month, then business) and the recipient
    order of each result.
    """
    rows = []
    for result in results:
        for item in result.recipients.values():
            if hide_zero and item.total == 0:
                continue
            rows.append(
                {"month": result.month, "business": result.business_name, **_amount_row(item)}
            )

    return pd.DataFrame(rows, columns=TRANSFER_COLUMNS)


def recipient_totals_to_dataframe(
    aggregated: Mapping[str, Mapping[str, RecipientAmount]],
    hide_zero: bool = False,
) -> pd.DataFrame:
    """
    Flatten the output of ``engine.aggregate_across_businesses``.

    Rows are ordered by month; within a month recipients keep the order in
    which they were first seen.
    """
    rows = []
    for by_month in aggregated.values():
        for month, item in by_month.items():
            if hide_zero and item.total == 0:
                continue
            rows.append({"month": month, **_amount_row(item)})

    df = pd.DataFrame(rows, columns=RECIPIENT_TOTAL_COLUMNS)
    return df.sort_values("month", kind="stable").reset_index(drop=True)


def financials_to_dataframe(results: Iterable[BusinessMonthResult]) -> pd.DataFrame:
    """One row of revenue / expense / profit figures per (month, business)."""
    rows = [
        {
            "month": r.month,
            "business": r.business_name,
            "revenue": r.financials.revenue,
            "expense": r.financials.expense,
            "profit": r.financials.profit,
            "total_fixed": r.financials.total_fixed,
            "profit_after_fixed": r.financials.profit_after_fixed,
        }
        for r in results
    ]
    return pd.DataFrame(rows, columns=FINANCIAL_COLUMNS)


def profit_summary_frame(
    financials: pd.DataFrame,
    tax_rate: float,
    by_business: bool = False,
) -> pd.DataFrame:
    """
    Add tax and net profit to a financials DataFrame.

    tax = floor(gross_profit * tax_rate / 100) when the gross profit is
    positive, 0 otherwise; net_profit = gross_profit - tax. Rows without
    revenue nor expense are dropped.

    By default businesses are summed per month first, so the tax is
    computed on the monthly gross profit and the ``business`` column is
    omitted. With `by_business=True` there is one row per (month, business).
    """
    columns = list(PROFIT_SUMMARY_COLUMNS)
    if not by_business:
        columns.remove("business")

    if financials.empty:
        return pd.DataFrame(columns=columns)

    df = financials.copy()
    if not by_business:
        df = df.groupby("month", as_index=False, sort=True)[["revenue", "expense"]].sum()

    df = df[(df["revenue"] != 0) | (df["expense"] != 0)].copy()
    df["gross_profit"] = (df["revenue"] - df["expense"]).round(2)
    df["tax"] = [compute_tax(float(g), tax_rate) for g in df["gross_profit"]]
    df["net_profit"] = df["gross_profit"] - df["tax"]
    return df[columns].reset_index(drop=True)


def profit_totals(summary: pd.DataFrame, tax_rate: float) -> dict[str, float]:
    """
    Overall revenue, expense, gross profit, tax and net profit of a summary.

    The tax is computed once on the overall gross profit, not summed from
    the per-row taxes.
    """
    revenue = float(summary["revenue"].sum()) if not summary.empty else 0.0
    expense = float(summary["expense"].sum()) if not summary.empty else 0.0
    gross = round_money(revenue - expense)
    tax = compute_tax(gross, tax_rate)
    return {
        "revenue": revenue,
        "expense": expense,
        "gross_profit": gross,
        "tax": tax,
        "net_profit": gross - tax,
    }


def with_totals_row(
    df: pd.DataFrame,
    numeric_cols: Sequence[str],
    label_col: str,
    label: str = "Total",
) -> pd.DataFrame:
    """
    Append a totals row summing `numeric_cols`.

    `label_col` receives `label`; other non-numeric columns are left blank.
    An empty DataFrame is returned unchanged.
    """
    if df.empty:
        return df

    totals = {col: "" for col in df.columns}
    for col in numeric_cols:
        totals[col] = float(pd.to_numeric(df[col]).sum())
    totals[label_col] = label

    return pd.concat([df, pd.DataFrame([totals])], ignore_index=True)
