import pandas as pd
import pytest

from smb_payouts.engine import (
    BusinessMonthResult,
    MonthlyBusinessFinancials,
    RecipientAmount,
    aggregate_across_businesses,
)
from smb_payouts.reports import (
    FINANCIAL_COLUMNS,
    TRANSFER_COLUMNS,
    financials_to_dataframe,
    profit_summary_frame,
    profit_totals,
    recipient_totals_to_dataframe,
    results_to_dataframe,
    with_totals_row,
)


def make_result(business, month, revenue, expense, lines) -> BusinessMonthResult:
    recipients = {
        name: RecipientAmount(name, month, business, dist, reimb)
        for name, dist, reimb in lines
    }
    return BusinessMonthResult(
        financials=MonthlyBusinessFinancials(business, month, revenue, expense),
        recipients=recipients,
    )


@pytest.fixture
def results() -> list[BusinessMonthResult]:
    return [
        make_result("Shop", "2025-10", 1000, 200, [("Bob", 400, 0), ("Card", 0, 200)]),
        make_result("Cafe", "2025-10", 0, 0, [("Bob", 0, 0)]),
        make_result("Cafe", "2025-11", 500, 0, [("Bob", 250, 0)]),
    ]


def test_results_to_dataframe(results):
    df = results_to_dataframe(results)

    assert list(df.columns) == TRANSFER_COLUMNS
    assert len(df) == 4
    assert df.iloc[1].to_dict() == {
        "month": "2025-10",
        "business": "Shop",
        "recipient": "Card",
        "distribution": 0,
        "reimbursement": 200,
        "total": 200,
    }

    hidden = results_to_dataframe(results, hide_zero=True)
    assert len(hidden) == 3
    assert "Cafe" not in hidden.loc[hidden["month"] == "2025-10", "business"].tolist()


def test_results_to_dataframe_empty():
    df = results_to_dataframe([])

    assert df.empty
    assert list(df.columns) == TRANSFER_COLUMNS


def test_recipient_totals_to_dataframe(results):
    agg = aggregate_across_businesses(results)

    df = recipient_totals_to_dataframe(agg)

    assert df["month"].tolist() == ["2025-10", "2025-10", "2025-11"]
    assert df["recipient"].tolist() == ["Bob", "Card", "Bob"]
    assert df["total"].tolist() == pytest.approx([400, 200, 250])


def test_financials_to_dataframe(results):
    df = financials_to_dataframe(results)

    assert list(df.columns) == FINANCIAL_COLUMNS
    assert df["profit"].tolist() == pytest.approx([800, 0, 500])


def test_profit_summary_frame_by_business_and_by_month(results):
    financials = financials_to_dataframe(results)

    by_business = profit_summary_frame(financials, 20, by_business=True)
    assert by_business["business"].tolist() == ["Shop", "Cafe"]
    assert by_business["tax"].tolist() == pytest.approx([160, 100])
    assert by_business["net_profit"].tolist() == pytest.approx([640, 400])

    by_month = profit_summary_frame(financials, 20)
    assert "business" not in by_month.columns
    assert by_month["month"].tolist() == ["2025-10", "2025-11"]


def test_profit_summary_frame_break_even_in_cents_is_not_taxed():
    financials = pd.DataFrame(
        {
            "month": ["2025-10", "2025-10"],
            "business": ["A", "B"],
            "revenue": [0.3, 0.0],
            "expense": [0.1, 0.2],
        }
    )

    summary = profit_summary_frame(financials, 20)

    assert summary["gross_profit"].tolist() == [0.0]
    assert summary["tax"].tolist() == [0.0]
    assert profit_totals(summary, 20)["gross_profit"] == 0.0


def test_profit_totals_taxes_the_overall_gross_profit():
    summary = pd.DataFrame(
        {
            "month": ["2025-10", "2025-11"],
            "revenue": [1000.0, 0.0],
            "expense": [0.0, 600.0],
        }
    )

    totals = profit_totals(summary, 20)

    assert totals["gross_profit"] == pytest.approx(400)
    assert totals["tax"] == pytest.approx(80)
    assert totals["net_profit"] == pytest.approx(320)


def test_with_totals_row():
    df = pd.DataFrame({"recipient": ["Bob", "Card"], "total": [100.0, 50.0]})

    out = with_totals_row(df, ["total"], "recipient")

    assert out["recipient"].tolist() == ["Bob", "Card", "Total"]
    assert out["total"].iloc[-1] == pytest.approx(150)
    assert with_totals_row(df.iloc[0:0], ["total"], "recipient").empty
