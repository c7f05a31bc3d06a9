from datetime import date

import pytest

from smb_payouts.config import AppConfig
from smb_payouts.db import (
    DatabaseConfig,
    ExpensesFilter,
    ExpenseUpdate,
    NewExpense,
    add_named_entity,
    insert_expense,
    insert_rule,
    load_expenses,
    set_revenue,
)
from smb_payouts.engine import DistributionRule, DistributionType
from smb_payouts.ledger_service import (
    compute_transfers,
    create_expense,
    edit_expense,
    expense_details,
    import_card_statement,
    import_expenses_csv,
    list_expenses,
    load_distribution_inputs,
    mark_transfer,
    profit_summary,
    recipient_totals,
    remove_expense,
    transfer_report,
)
from smb_payouts.periods import Period, period_month


def make_app_config(tmp_path, **overrides) -> AppConfig:
    """AppConfig pointing to a temporary SQLite database."""
    values = {
        "database": DatabaseConfig(engine="sqlite", path=tmp_path / "payouts.sqlite"),
        "currency": "JPY",
        "tax_rate": 20.0,
        "default_payment_source": "AMEX",
        "import_encoding": "shift_jis",
        "display_mode": "table",
        "hide_zero_transfers": True,
        "output_dir": tmp_path / "output",
    }
    values.update(overrides)
    return AppConfig(**values)


def seed_shop(cfg: AppConfig) -> None:
    """The 'Shop' scenario: 100000 revenue, 20000 paid by card, two rules."""
    db = cfg.database
    add_named_entity(db, "business", "Shop")
    set_revenue(db, "2025-11", "Shop", 100_000)
    insert_expense(
        db,
        NewExpense(date=date(2025, 11, 3), amount=20_000, payment_source="Card", business="Shop"),
    )
    insert_rule(db, DistributionRule("Shop", "Founder", DistributionType.PERCENTAGE, 60))
    insert_rule(db, DistributionRule("Shop", "Partner", DistributionType.FIXED_AMOUNT, 10_000))


# ---------------------------------------------------------------------------
# Imports
# ---------------------------------------------------------------------------


def test_card_statement_import_skips_already_imported_files(tmp_path):
    cfg = make_app_config(tmp_path)
    path = tmp_path / "2025-10.csv"
    path.write_bytes(
        (
            "ご利用日,データ処理日,ご利用内容,金額\n"
            '2025/10/02,2025/10/03,AMAZON,"1,234円"\n'
            "2025/10/05,2025/10/06,STARBUCKS,500\n"
        ).encode("shift_jis")
    )

    first = import_card_statement(cfg, path, business="Shop")
    second = import_card_statement(cfg, path, business="Shop")

    assert (first.inserted, first.skipped) == (2, 0)
    assert (second.inserted, second.skipped) == (0, 1)

    df = load_expenses(cfg.database)
    assert len(df) == 2
    assert set(df["payment_source"]) == {"AMEX"}
    assert set(df["business"]) == {"Shop"}
    assert set(df["source_data"]) == {"2025-10.csv"}
    assert df["amount"].sum() == pytest.approx(1734)


def test_card_statement_import_with_explicit_payment_source(tmp_path):
    cfg = make_app_config(tmp_path, import_encoding="utf-8")
    path = tmp_path / "visa_2025-10.csv"
    path.write_text("header,,,\n2025/10/02,,SHOP,100\n", encoding="utf-8")

    import_card_statement(cfg, path, payment_source="VISA")

    df = load_expenses(cfg.database)
    assert df["payment_source"].tolist() == ["VISA"]
    assert df["business"].tolist() == [""]


def test_expenses_csv_import(tmp_path):
    cfg = make_app_config(tmp_path)
    path = tmp_path / "manual.csv"
    path.write_text(
        "date,business,payment_source,amount,description\n"
        "2025-10-01,Shop,Alice,300,Stamps\n"
        "2025-10-02,Cafe,Bob,200,Milk\n",
        encoding="utf-8",
    )

    result = import_expenses_csv(cfg, path)

    assert result.inserted == 2
    assert import_expenses_csv(cfg, path).skipped == 1
    shop = list_expenses(cfg, None, ExpensesFilter(business="Shop"))
    assert shop["description"].tolist() == ["Stamps"]


# ---------------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------------


def test_expense_lifecycle(tmp_path):
    cfg = make_app_config(tmp_path)

    expense = create_expense(
        cfg, NewExpense(date=date(2025, 10, 4), amount=1_500, payment_source="AMEX")
    )
    assert expense.month == "2025-10"
    assert expense.business == ""

    assigned = edit_expense(cfg, expense.id, ExpenseUpdate(business="Shop", month="2025-11"))
    assert assigned.business == "Shop"
    assert assigned.month == "2025-11"
    assert assigned.amount == pytest.approx(1_500)

    november = list_expenses(cfg, period_month("2025-11"))
    assert november["id"].tolist() == [expense.id]

    remove_expense(cfg, expense.id)
    assert list_expenses(cfg).empty
    with pytest.raises(LookupError):
        remove_expense(cfg, expense.id)


def test_list_expenses_combines_period_and_filters(tmp_path):
    cfg = make_app_config(tmp_path)
    for day, month, payer in [(5, 9, "Alice"), (6, 10, "Alice"), (7, 10, "Bob"), (8, 11, "Alice")]:
        create_expense(cfg, NewExpense(date=date(2025, month, day), amount=100, payment_source=payer))

    q4 = Period("2025-10", "2025-12", "Q4")
    alice_q4 = list_expenses(cfg, q4, ExpensesFilter(payment_source="Alice"))
    assert alice_q4["month"].tolist() == ["2025-10", "2025-11"]

    narrowed = list_expenses(cfg, q4, ExpensesFilter(end_month="2025-10"))
    assert narrowed["payment_source"].tolist() == ["Alice", "Bob"]
    assert len(list_expenses(cfg)) == 4


def test_transfer_report_ignores_statuses_outside_the_period(tmp_path):
    cfg = make_app_config(tmp_path)
    seed_shop(cfg)
    set_revenue(cfg.database, "2025-12", "Shop", 100_000)
    mark_transfer(cfg, "2025-12", "Shop", "Founder", paid=True)

    november = transfer_report(cfg, period_month("2025-11"))
    december = transfer_report(cfg, period_month("2025-12"))

    assert set(november["status"]) == {"unpaid"}
    assert december.loc[december["recipient"] == "Founder", "status"].tolist() == ["paid"]


# ---------------------------------------------------------------------------
# Transfers
# ---------------------------------------------------------------------------


def test_shop_scenario_through_the_database(tmp_path):
    cfg = make_app_config(tmp_path)
    seed_shop(cfg)

    results = compute_transfers(cfg, period_month("2025-11"))

    assert len(results) == 1
    shop = results[0]
    assert shop.financials.profit_after_fixed == pytest.approx(70_000)
    assert shop.recipients["Founder"].distribution_amount == pytest.approx(42_000)
    assert shop.recipients["Partner"].distribution_amount == pytest.approx(10_000)
    assert shop.recipients["Card"].expense_reimbursement == pytest.approx(20_000)


def test_period_limits_loaded_data(tmp_path):
    cfg = make_app_config(tmp_path)
    seed_shop(cfg)
    set_revenue(cfg.database, "2025-12", "Shop", 5_000)

    inputs = load_distribution_inputs(cfg, period_month("2025-12"))

    assert inputs.revenues["month"].tolist() == ["2025-12"]
    assert inputs.expenses.empty
    assert len(inputs.rules) == 2
    assert inputs.businesses == ["Shop"]

    everything = compute_transfers(cfg, None)
    assert [r.month for r in everything] == ["2025-11", "2025-12"]


def test_recipient_totals_across_businesses(tmp_path):
    cfg = make_app_config(tmp_path)
    db = cfg.database
    set_revenue(db, "2025-10", "A", 1000)
    set_revenue(db, "2025-10", "B", 2000)
    insert_rule(db, DistributionRule("A", "Bob", DistributionType.FIXED_AMOUNT, 100))
    insert_rule(db, DistributionRule("B", "Bob", DistributionType.FIXED_AMOUNT, 200))

    totals = recipient_totals(cfg)

    assert totals["Bob"]["2025-10"].total == pytest.approx(300)


def test_transfer_report_merges_status_and_hides_zero_lines(tmp_path):
    cfg = make_app_config(tmp_path)
    seed_shop(cfg)
    insert_rule(cfg.database, DistributionRule("Shop", "Ghost", DistributionType.FIXED_AMOUNT, 0))

    report = transfer_report(cfg, period_month("2025-11"))

    assert report["recipient"].tolist() == ["Founder", "Partner", "Card"]
    assert set(report["status"]) == {"unpaid"}
    assert set(report["paid_at"]) == {""}

    mark_transfer(cfg, "2025-11", "Shop", "Founder", paid=True)
    report = transfer_report(cfg, period_month("2025-11"))
    founder = report[report["recipient"] == "Founder"].iloc[0]
    assert founder["status"] == "paid"
    assert founder["paid_at"] != ""

    with_zero = transfer_report(cfg, period_month("2025-11"), hide_zero=False)
    assert "Ghost" in with_zero["recipient"].tolist()


def test_mark_transfer_can_be_reverted(tmp_path):
    cfg = make_app_config(tmp_path)
    seed_shop(cfg)

    mark_transfer(cfg, "2025-11", "Shop", "Card", paid=True)
    status = mark_transfer(cfg, "2025-11", "Shop", "Card", paid=False, memo="bounced")

    assert status.status == "unpaid"
    assert status.paid_at is None
    report = transfer_report(cfg, period_month("2025-11"))
    assert set(report["status"]) == {"unpaid"}


def test_expense_details_per_payer(tmp_path):
    cfg = make_app_config(tmp_path)
    seed_shop(cfg)
    insert_expense(
        cfg.database,
        NewExpense(date=date(2025, 11, 9), amount=500, payment_source="Alice", business="Shop"),
    )

    all_shop = expense_details(cfg, "2025-11", "Shop")
    card_only = expense_details(cfg, "2025-11", "Shop", "Card")

    assert len(all_shop) == 2
    assert card_only["amount"].tolist() == pytest.approx([20_000])


# ---------------------------------------------------------------------------
# Profit summary
# ---------------------------------------------------------------------------


def test_profit_summary_applies_tax_to_positive_profit_only(tmp_path):
    cfg = make_app_config(tmp_path)
    seed_shop(cfg)
    add_named_entity(cfg.database, "business", "Cafe")
    set_revenue(cfg.database, "2025-11", "Cafe", 10_000)
    set_revenue(cfg.database, "2025-12", "Cafe", 0)
    insert_expense(
        cfg.database,
        NewExpense(date=date(2025, 12, 1), amount=3_000, payment_source="Card", business="Cafe"),
    )

    monthly = profit_summary(cfg, Period("2025-11", "2025-12", "Test"))

    assert monthly["month"].tolist() == ["2025-11", "2025-12"]
    nov = monthly.iloc[0]
    assert nov["revenue"] == pytest.approx(110_000)
    assert nov["expense"] == pytest.approx(20_000)
    assert nov["gross_profit"] == pytest.approx(90_000)
    assert nov["tax"] == pytest.approx(18_000)
    assert nov["net_profit"] == pytest.approx(72_000)
    dec = monthly.iloc[1]
    assert dec["gross_profit"] == pytest.approx(-3_000)
    assert dec["tax"] == 0

    by_business = profit_summary(cfg, None, tax_rate=10, by_business=True)
    shop = by_business[by_business["business"] == "Shop"].iloc[0]
    assert shop["tax"] == pytest.approx(8_000)


def test_profit_summary_counts_registered_businesses_only(tmp_path):
    cfg = make_app_config(tmp_path)
    seed_shop(cfg)
    set_revenue(cfg.database, "2025-11", "Unregistered", 50_000)

    monthly = profit_summary(cfg, period_month("2025-11"))

    assert monthly["revenue"].tolist() == pytest.approx([100_000])
