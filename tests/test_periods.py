from argparse import Namespace
from datetime import date

import pandas as pd
import pytest

import smb_payouts.periods as periods


def test_parse_month_normalizes_formats() -> None:
    assert periods.parse_month("2025-03") == "2025-03"
    assert periods.parse_month("2025/3") == "2025-03"
    assert periods.parse_month(" 2025-12 ") == "2025-12"


@pytest.mark.parametrize("bad", ["2025-13", "2025-00", "25-01", "2025", "March"])
def test_parse_month_rejects_invalid_values(bad) -> None:
    with pytest.raises(ValueError):
        periods.parse_month(bad)


def test_month_of_date() -> None:
    assert periods.month_of(date(2025, 3, 31)) == "2025-03"
    assert periods.month_of(date(999, 12, 1)) == "0999-12"


def test_shift_month_crosses_year_boundaries() -> None:
    assert periods.shift_month("2025-01", -1) == "2024-12"
    assert periods.shift_month("2024-12", 1) == "2025-01"
    assert periods.shift_month("2025-06", 18) == "2026-12"


def test_predefined_periods(monkeypatch) -> None:
    monkeypatch.setattr(periods, "_today", lambda: date(2025, 1, 15))

    assert periods.period_this_month().start_month == "2025-01"
    last = periods.period_last_month()
    assert (last.start_month, last.end_month) == ("2024-12", "2024-12")
    ytd = periods.period_ytd()
    assert (ytd.start_month, ytd.end_month) == ("2025-01", "2025-01")
    last_year = periods.period_last_year()
    assert (last_year.start_month, last_year.end_month) == ("2024-01", "2024-12")


def _args(**kwargs) -> Namespace:
    base = {"month": None, "period": None, "from_month": None, "to_month": None}
    base.update(kwargs)
    return Namespace(**base)


def test_period_from_args_priority(monkeypatch) -> None:
    monkeypatch.setattr(periods, "_today", lambda: date(2025, 6, 1))

    # --month wins over everything else
    p = periods.period_from_args(_args(month="2025-02", period="ytd", from_month="2024-01"))
    assert (p.start_month, p.end_month) == ("2025-02", "2025-02")

    # --period wins over custom bounds
    p = periods.period_from_args(_args(period="last-month", from_month="2024-01"))
    assert (p.start_month, p.end_month) == ("2025-05", "2025-05")

    p = periods.period_from_args(_args(from_month="2025-02", to_month="2025-04"))
    assert (p.start_month, p.end_month) == ("2025-02", "2025-04")

    assert periods.period_from_args(_args()) is None


def test_period_from_args_open_ended_custom_range() -> None:
    p = periods.period_from_args(_args(from_month="2025-03"))

    assert p.contains("2025-03")
    assert p.contains("2031-01")
    assert not p.contains("2025-02")


def test_period_from_args_rejects_reversed_range() -> None:
    with pytest.raises(ValueError):
        periods.period_from_args(_args(from_month="2025-05", to_month="2025-01"))


def test_filter_frame_by_period_inclusive_bounds() -> None:
    df = pd.DataFrame(
        {
            "month": ["2025-01", "2025-02", "2025-03", "2025-04"],
            "amount": [1, 2, 3, 4],
        }
    )
    p = periods.Period(start_month="2025-02", end_month="2025-03", label="Test")

    filtered = periods.filter_frame_by_period(df, p)

    assert filtered["month"].tolist() == ["2025-02", "2025-03"]
    assert len(periods.filter_frame_by_period(df, None)) == 4
