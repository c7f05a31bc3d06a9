import pandas as pd
import pytest

from smb_payouts.engine import (
    DistributionRule,
    DistributionType,
    compute_all_distributions,
    compute_business_financials,
    compute_monthly_distribution,
    compute_tax,
    months_in_scope,
    percentage_amount,
)

PCT = DistributionType.PERCENTAGE
FIXED = DistributionType.FIXED_AMOUNT


def make_expenses(rows) -> pd.DataFrame:
    """Build an expenses DataFrame from (month, business, payer, amount) tuples."""
    return pd.DataFrame(rows, columns=["month", "business", "payment_source", "amount"])


def rule(recipient, dtype, value, business="A") -> DistributionRule:
    return DistributionRule(
        business_name=business,
        recipient_name=recipient,
        distribution_type=dtype,
        value=value,
    )


def test_fixed_rules_for_same_recipient_are_summed() -> None:
    rules = [rule("Bob", FIXED, 300), rule("Bob", FIXED, 200)]

    out = compute_monthly_distribution("A", "2025-10", 10_000, None, rules)

    assert list(out) == ["Bob"]
    assert out["Bob"].distribution_amount == pytest.approx(500)


def test_percentage_rules_share_the_same_base() -> None:
    rules = [rule("Alice", PCT, 50), rule("Bob", PCT, 50)]

    out = compute_monthly_distribution("A", "2025-10", 1000, None, rules)

    assert out["Alice"].distribution_amount == pytest.approx(500)
    assert out["Bob"].distribution_amount == pytest.approx(500)


def test_percentage_amount_is_floored() -> None:
    out = compute_monthly_distribution("A", "2025-10", 999, None, [rule("Alice", PCT, 33)])

    assert out["Alice"].distribution_amount == pytest.approx(329)


def test_break_even_in_cents_gives_a_zero_share() -> None:
    expenses = make_expenses([("2025-10", "A", "Card", 0.1), ("2025-10", "A", "Card", 0.2)])

    out = compute_monthly_distribution("A", "2025-10", 0.3, expenses, [rule("Bob", PCT, 100)])
    financials = compute_business_financials("A", "2025-10", 0.3, expenses, [])

    assert financials.profit == 0
    assert out["Bob"].distribution_amount == 0
    assert out["Card"].expense_reimbursement == 0.3
    assert compute_tax(0.3 - 0.1 - 0.2, 20) == 0


def test_decimal_profit_is_floored_from_its_value_in_cents() -> None:
    expenses = make_expenses([("2025-10", "A", "Card", 0.3)])

    out = compute_monthly_distribution("A", "2025-10", 10.3, expenses, [rule("Bob", PCT, 50)])

    assert out["Bob"].distribution_amount == 5
    assert percentage_amount(0.57, 100) == 0
    assert compute_tax(10.3 - 0.3, 50) == 5


def test_fixed_amount_is_paid_even_when_profit_is_insufficient() -> None:
    out = compute_monthly_distribution("A", "2025-10", 100, None, [rule("Bob", FIXED, 500)])

    assert out["Bob"].distribution_amount == pytest.approx(500)


def test_fixed_amounts_reduce_the_percentage_base() -> None:
    rules = [rule("Bob", FIXED, 400), rule("Alice", PCT, 50)]

    out = compute_monthly_distribution("A", "2025-10", 1000, None, rules)

    # (1000 - 400) * 50% = 300
    assert out["Alice"].distribution_amount == pytest.approx(300)
    assert out["Bob"].distribution_amount == pytest.approx(400)


def test_payer_is_reimbursed_without_any_rule() -> None:
    expenses = make_expenses(
        [
            ("2025-10", "A", "Alice", 1000),
            ("2025-10", "A", "Alice", 2000),
            ("2025-10", "B", "Alice", 999),
            ("2025-09", "A", "Alice", 999),
        ]
    )

    out = compute_monthly_distribution("A", "2025-10", 0, expenses, [])

    assert list(out) == ["Alice"]
    assert out["Alice"].expense_reimbursement == pytest.approx(3000)
    assert out["Alice"].distribution_amount == 0


def test_month_without_rules_nor_expenses_is_empty() -> None:
    assert compute_monthly_distribution("A", "2025-10", 5000, None, []) == {}
    assert compute_monthly_distribution("A", "2025-10", 0, make_expenses([]), []) == {}


def test_negative_profit_gives_negative_share() -> None:
    expenses = make_expenses([("2025-10", "A", "Card", 1200)])

    out = compute_monthly_distribution("A", "2025-10", 500, expenses, [rule("Bob", PCT, 10)])

    assert out["Bob"].distribution_amount == pytest.approx(-70)
    assert out["Card"].expense_reimbursement == pytest.approx(1200)


def test_negative_base_floors_toward_negative_infinity() -> None:
    out = compute_monthly_distribution("A", "2025-10", -999, None, [rule("Bob", PCT, 33)])

    # floor(-329.67) = -330
    assert out["Bob"].distribution_amount == pytest.approx(-330)


def test_expenses_without_revenue_make_a_negative_profit() -> None:
    expenses = make_expenses([("2025-10", "A", "Card", 300)])

    fin = compute_business_financials("A", "2025-10", 0, expenses, [rule("Bob", FIXED, 100)])

    assert fin.expense == pytest.approx(300)
    assert fin.profit == pytest.approx(-300)
    assert fin.profit_after_fixed == pytest.approx(-400)


def test_recipient_named_like_a_payer_gets_one_merged_line() -> None:
    expenses = make_expenses([("2025-10", "A", "Alice", 200)])
    rules = [rule("Alice", PCT, 10)]

    out = compute_monthly_distribution("A", "2025-10", 1200, expenses, rules)

    assert list(out) == ["Alice"]
    alice = out["Alice"]
    assert alice.distribution_amount == pytest.approx(100)
    assert alice.expense_reimbursement == pytest.approx(200)
    assert alice.total == pytest.approx(300)


def test_blank_payer_counts_as_expense_but_is_not_reimbursed() -> None:
    expenses = make_expenses(
        [
            ("2025-10", "A", "", 100),
            ("2025-10", "A", None, 50),
            ("2025-10", "A", "Card", 20),
        ]
    )

    out = compute_monthly_distribution("A", "2025-10", 1000, expenses, [rule("Bob", PCT, 100)])

    assert list(out) == ["Bob", "Card"]
    assert out["Bob"].distribution_amount == pytest.approx(830)
    assert out["Card"].expense_reimbursement == pytest.approx(20)


def test_rules_of_other_businesses_are_ignored() -> None:
    rules = [rule("Bob", FIXED, 100, business="B"), rule("Alice", PCT, 10)]

    out = compute_monthly_distribution("A", "2025-10", 1000, None, rules)

    assert list(out) == ["Alice"]
    assert out["Alice"].distribution_amount == pytest.approx(100)


def test_output_order_is_rules_then_payers() -> None:
    expenses = make_expenses(
        [
            ("2025-10", "A", "Zed", 10),
            ("2025-10", "A", "Bob", 10),
            ("2025-10", "A", "Amy", 10),
        ]
    )
    rules = [rule("Carl", FIXED, 1), rule("Bob", FIXED, 1)]

    out = compute_monthly_distribution("A", "2025-10", 0, expenses, rules)

    assert list(out) == ["Carl", "Bob", "Zed", "Amy"]
    assert all(item.business_name == "A" for item in out.values())
    assert all(item.month == "2025-10" for item in out.values())


def test_inputs_are_not_mutated() -> None:
    expenses = make_expenses([("2025-10", "A", "Card", 20)])
    snapshot = expenses.copy()
    rules = [rule("Bob", PCT, 50)]

    compute_monthly_distribution("A", "2025-10", 100, expenses, rules)

    pd.testing.assert_frame_equal(expenses, snapshot)
    assert rules == [rule("Bob", PCT, 50)]


def test_missing_expense_columns_raise() -> None:
    bad = pd.DataFrame({"month": ["2025-10"], "amount": [1.0]})

    with pytest.raises(ValueError, match="missing required column"):
        compute_monthly_distribution("A", "2025-10", 0, bad, [])


def test_shop_end_to_end_scenario() -> None:
    expenses = make_expenses([("2025-11", "Shop", "Card", 20_000)])
    rules = [
        rule("Founder", PCT, 60, business="Shop"),
        rule("Partner", FIXED, 10_000, business="Shop"),
    ]

    fin = compute_business_financials("Shop", "2025-11", 100_000, expenses, rules)
    out = compute_monthly_distribution("Shop", "2025-11", 100_000, expenses, rules)

    assert fin.expense == pytest.approx(20_000)
    assert fin.profit == pytest.approx(80_000)
    assert fin.total_fixed == pytest.approx(10_000)
    assert fin.profit_after_fixed == pytest.approx(70_000)

    assert out["Founder"].distribution_amount == pytest.approx(42_000)
    assert out["Partner"].distribution_amount == pytest.approx(10_000)
    assert out["Card"].expense_reimbursement == pytest.approx(20_000)
    assert out["Card"].distribution_amount == 0


def test_compute_tax_only_applies_to_positive_profit() -> None:
    assert compute_tax(80_001, 20) == pytest.approx(16_000)
    assert compute_tax(0, 20) == 0
    assert compute_tax(-5_000, 20) == 0


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("percentage", PCT),
        ("Percent", PCT),
        ("%", PCT),
        ("amount", FIXED),
        ("fixed", FIXED),
        ("fixed-amount", FIXED),
        (FIXED, FIXED),
    ],
)
def test_distribution_type_parse(raw, expected) -> None:
    assert DistributionType.parse(raw) is expected


def test_distribution_type_parse_rejects_unknown_values() -> None:
    with pytest.raises(ValueError, match="Unknown distribution type"):
        DistributionType.parse("share")


def test_months_in_scope_is_union_of_revenue_and_expense_months() -> None:
    revenues = pd.DataFrame(
        {"month": ["2025-10", "2025-08"], "business": ["A", "A"], "amount": [1, 2]}
    )
    expenses = make_expenses([("2025-09", "A", "Card", 1), ("2025-10", "A", "Card", 1)])

    assert months_in_scope(revenues, expenses) == ["2025-08", "2025-09", "2025-10"]
    assert months_in_scope(None, None) == []


def test_compute_all_distributions_covers_every_business_and_month() -> None:
    revenues = pd.DataFrame(
        {
            "month": ["2025-10", "2025-10"],
            "business": ["Shop", "Cafe"],
            "amount": [1000.0, 500.0],
        }
    )
    expenses = make_expenses([("2025-11", "Cafe", "Card", 100)])
    rules = [
        rule("Founder", PCT, 100, business="Shop"),
        rule("Founder", PCT, 100, business="Cafe"),
    ]

    results = compute_all_distributions(revenues, expenses, rules, businesses=["Shop"])

    keys = [(r.month, r.business_name) for r in results]
    assert keys == [
        ("2025-10", "Shop"),
        ("2025-10", "Cafe"),
        ("2025-11", "Shop"),
        ("2025-11", "Cafe"),
    ]

    by_key = {(r.month, r.business_name): r for r in results}
    assert by_key[("2025-10", "Shop")].recipients["Founder"].distribution_amount == 1000
    assert by_key[("2025-10", "Cafe")].recipients["Founder"].distribution_amount == 500

    # Revenue is zero for Cafe in November: only the expense remains.
    nov_cafe = by_key[("2025-11", "Cafe")]
    assert nov_cafe.financials.revenue == 0
    assert nov_cafe.recipients["Founder"].distribution_amount == pytest.approx(-100)
    assert nov_cafe.recipients["Card"].expense_reimbursement == pytest.approx(100)
    assert nov_cafe.total == pytest.approx(0)
