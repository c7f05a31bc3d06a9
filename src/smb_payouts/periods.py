# SMB Payouts - Profit distribution & transfer tracking for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Month and period helpers for SMB Payouts.

All bookkeeping data is keyed by month ("YYYY-MM"). This module defines a
Period value object (an inclusive range of months) and helpers to derive
reporting periods (single month, this month, last month, year to date,
last year, custom range) from CLI arguments.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

import pandas as pd

_MONTH_RE = re.compile(r"^\s*(\d{4})[-/](\d{1,2})\s*$")


@dataclass
class Period:
    """Inclusive range of months with a human-readable label."""

    start_month: str
    end_month: str
    label: str

    def contains(self, month: str) -> bool:
        return self.start_month <= month <= self.end_month


def _today() -> date:
    """Return today's date as a date object (isolated for easier testing)."""
    return datetime.today().date()


def parse_month(value) -> str:
    """
    Validate and normalize a month key.

    Accepts "YYYY-MM", "YYYY/MM" and single-digit months ("2025-3").

    Raises:
        ValueError: if the value is not a valid month.
    """
    match = _MONTH_RE.match(str(value))
    if not match:
        raise ValueError(f"Invalid month: {value!r}. Expected YYYY-MM format.")

    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {value!r}. Month must be in 01..12.")
    return f"{year:04d}-{month:02d}"


def month_of(value: date) -> str:
    """Month key of a date."""
    return f"{value.year:04d}-{value.month:02d}"


def shift_month(month: str, delta: int) -> str:
    """Return the month `delta` months after (or before) `month`."""
    year, mon = (int(p) for p in parse_month(month).split("-"))
    index = year * 12 + (mon - 1) + delta
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def period_month(month: str) -> Period:
    """A single month."""
    m = parse_month(month)
    return Period(start_month=m, end_month=m, label=m)


def period_this_month() -> Period:
    m = month_of(_today())
    return Period(start_month=m, end_month=m, label="This month")


def period_last_month() -> Period:
    m = shift_month(month_of(_today()), -1)
    return Period(start_month=m, end_month=m, label="Last month")


def period_ytd() -> Period:
    """Calendar year to date."""
    today = _today()
    return Period(
        start_month=f"{today.year:04d}-01",
        end_month=month_of(today),
        label="Year to date",
    )


def period_last_year() -> Period:
    prev_year = _today().year - 1
    return Period(
        start_month=f"{prev_year:04d}-01",
        end_month=f"{prev_year:04d}-12",
        label=f"Previous year ({prev_year})",
    )


def period_from_args(args) -> Optional[Period]:
    """
    Determine the reporting period from CLI args.

    Priority (highest to lowest):

        1. args.month (a single month)
        2. args.period (this-month, last-month, ytd, last-year)
        3. args.from_month / args.to_month (custom range, open ends allowed)
        4. None: every month in the data
    """
    month = getattr(args, "month", None)
    if month:
        return period_month(month)

    p = getattr(args, "period", None)
    if p:
        if p == "this-month":
            return period_this_month()
        if p == "last-month":
            return period_last_month()
        if p == "ytd":
            return period_ytd()
        if p == "last-year":
            return period_last_year()
        raise ValueError(f"Unknown period: {p!r}")

    from_raw: Optional[str] = getattr(args, "from_month", None)
    to_raw: Optional[str] = getattr(args, "to_month", None)
    if from_raw or to_raw:
        start = parse_month(from_raw) if from_raw else "0000-01"
        end = parse_month(to_raw) if to_raw else "9999-12"
        if end < start:
            raise ValueError("Custom period end month cannot be before start month.")
        label = f"Custom period ({from_raw or '…'} → {to_raw or '…'})"
        return Period(start_month=start, end_month=end, label=label)

    return None


def filter_frame_by_period(df: pd.DataFrame, period: Optional[Period]) -> pd.DataFrame:
    """
    Keep only the rows whose 'month' column falls within the period.

    Month keys compare correctly as strings, so the filter is a plain
    lexicographic range check. A None period keeps every row.
    """
    if period is None or df.empty:
        return df.copy()

    months = df["month"].astype(str)
    mask = (months >= period.start_month) & (months <= period.end_month)
    return df.loc[mask].copy()
