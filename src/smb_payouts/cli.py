# SMB Payouts - Profit distribution & transfer tracking for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Command-Line Interface (CLI) for SMB Payouts.

This module wires together the main building blocks of SMB Payouts:

- global configuration (database, tax rate, import and display options),
- bookkeeping data stored in the database (expenses, revenues, rules,
  settings registries, assets, transfer statuses),
- card statement and expenses CSV import,
- the distribution engine and the report builders.

The CLI is intentionally thin: it does not implement any distribution logic
itself. It parses arguments, calls the service layer and renders DataFrames
as console tables and/or CSV files.


Commands
--------

    init                                 create the database
    import PATH                          import a card statement / expenses CSV
    expenses list|add|update|delete      manage expenses
    revenues list|set|delete             monthly revenue per business
    rules list|add|update|delete         revenue-distribution rules
    settings list|add|update|delete KIND businesses, payment sources,
                                         categories, recipients
    assets list|add|update|delete        account balances
    transfers show|summary|details|mark  payouts and their payment status
    profits                              revenue / expense / tax summary


Period selection
----------------

Reporting commands accept:

- ``--month YYYY-MM``: a single month,
- ``--period``: this-month, last-month, ytd, last-year,
- ``--from-month`` / ``--to-month``: custom range (open ends allowed).

Without any of them, every month found in the data is used.


Display
-------

``--display-mode`` (table, csv, both) overrides ``[display].mode`` of the
configuration file. CSV files are written to ``--output`` or to
``[display].output_dir``.
"""

import argparse
import logging
from dataclasses import replace
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import pandas as pd

from . import __version__
from .config import AppConfig, load_app_config
from .db import (
    AssetUpdate,
    ExpensesFilter,
    ExpenseUpdate,
    NewAsset,
    NewExpense,
    add_named_entity,
    delete_asset,
    delete_named_entity,
    delete_revenue,
    delete_revenues_for_month,
    delete_rule,
    get_rule,
    init_database,
    insert_asset,
    insert_rule,
    list_named_entities,
    list_rules,
    load_assets,
    load_revenues,
    set_revenue,
    update_asset,
    update_named_entity,
    update_rule,
)
from .engine import DistributionRule, DistributionType
from .ledger_service import (
    create_expense,
    edit_expense,
    expense_details,
    import_card_statement,
    import_expenses_csv,
    list_expenses,
    mark_transfer,
    profit_summary,
    recipient_totals,
    remove_expense,
    transfer_report,
)
from .periods import parse_month, period_from_args
from .reports import profit_totals, recipient_totals_to_dataframe, with_totals_row

logger = logging.getLogger(__name__)

_SETTINGS_KINDS = {
    "businesses": "business",
    "payment-sources": "payment_source",
    "categories": "expense_category",
    "recipients": "recipient",
}


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _add_period_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--month", help="Single month (YYYY-MM).")
    parser.add_argument(
        "--period",
        choices=["this-month", "last-month", "ytd", "last-year"],
        help="Predefined reporting period.",
    )
    parser.add_argument(
        "--from-month", dest="from_month", help="Custom period start month (YYYY-MM)."
    )
    parser.add_argument(
        "--to-month", dest="to_month", help="Custom period end month (YYYY-MM)."
    )


def _build_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    ap = argparse.ArgumentParser(
        prog="smb-payouts",
        description=(
            "SMB Payouts - Profit distribution & transfer tracking for SMBs. "
            "Records expenses and revenues per business, applies "
            "revenue-distribution rules and tracks the resulting transfers."
        ),
    )

    # Generic options
    ap.add_argument(
        "--version",
        action="store_true",
        help="Show the installed version of smb_payouts and exit.",
    )
    ap.add_argument(
        "--config",
        dest="config_path",
        help=(
            "Path to the main TOML configuration file. "
            "If omitted, 'smb_payouts_config.toml' in the current directory is used."
        ),
    )
    ap.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    ap.add_argument(
        "--display-mode",
        dest="display_mode",
        choices=["table", "csv", "both"],
        help=(
            "Override the display.mode setting from the configuration file. "
            "'table' prints results to stdout, 'csv' writes CSV files only, "
            "'both' does both."
        ),
    )
    ap.add_argument(
        "--output",
        dest="output_dir",
        help=(
            "Output directory where CSV files will be written when display "
            "mode includes 'csv'. Defaults to display.output_dir."
        ),
    )

    subparsers = ap.add_subparsers(dest="command", metavar="command")

    # ------------------------------------------------------------------
    # init / import
    # ------------------------------------------------------------------
    subparsers.add_parser("init", help="Create the database and its schema.")

    p_import = subparsers.add_parser(
        "import", help="Import expenses from a card statement or expenses CSV."
    )
    p_import.add_argument("path", help="CSV file to import.")
    p_import.add_argument(
        "--format",
        dest="import_format",
        choices=["card", "expenses"],
        default="card",
        help="'card' for a card statement export (default), 'expenses' for "
        "the application's own CSV layout.",
    )
    p_import.add_argument(
        "--business", default="", help="Business assigned to every imported row."
    )
    p_import.add_argument(
        "--payment-source",
        dest="payment_source",
        help="Payment source of the card (defaults to import.default_payment_source).",
    )

    # ------------------------------------------------------------------
    # expenses
    # ------------------------------------------------------------------
    p_expenses = subparsers.add_parser("expenses", help="Manage expenses.")
    expenses_sub = p_expenses.add_subparsers(dest="expenses_command", metavar="action")

    e_list = expenses_sub.add_parser("list", help="List expenses.")
    _add_period_arguments(e_list)
    e_list.add_argument("--business")
    e_list.add_argument("--payment-source", dest="payment_source")
    e_list.add_argument("--category")
    e_list.add_argument("--search", help="Case-insensitive description search.")

    e_add = expenses_sub.add_parser("add", help="Add an expense.")
    e_add.add_argument("--date", required=True, help="Expense date (YYYY-MM-DD).")
    e_add.add_argument("--amount", required=True, type=float)
    e_add.add_argument("--payment-source", dest="payment_source", required=True)
    e_add.add_argument("--business", default="")
    e_add.add_argument("--category", default="")
    e_add.add_argument("--description", default="")
    e_add.add_argument("--memo", default="")
    e_add.add_argument("--month", help="Booking month when it differs from the date.")

    e_update = expenses_sub.add_parser("update", help="Update an expense.")
    e_update.add_argument("id", type=int)
    e_update.add_argument("--date")
    e_update.add_argument("--month")
    e_update.add_argument("--amount", type=float)
    e_update.add_argument("--payment-source", dest="payment_source")
    e_update.add_argument("--business")
    e_update.add_argument("--category")
    e_update.add_argument("--description")
    e_update.add_argument("--memo")

    e_delete = expenses_sub.add_parser("delete", help="Delete an expense.")
    e_delete.add_argument("id", type=int)

    # ------------------------------------------------------------------
    # revenues
    # ------------------------------------------------------------------
    p_revenues = subparsers.add_parser("revenues", help="Monthly revenue per business.")
    revenues_sub = p_revenues.add_subparsers(dest="revenues_command", metavar="action")

    r_list = revenues_sub.add_parser("list", help="List revenues.")
    _add_period_arguments(r_list)

    r_set = revenues_sub.add_parser("set", help="Set the revenue of a business.")
    r_set.add_argument("month")
    r_set.add_argument("business")
    r_set.add_argument("amount", type=float)

    r_delete = revenues_sub.add_parser(
        "delete", help="Delete a revenue (or every revenue of the month)."
    )
    r_delete.add_argument("month")
    r_delete.add_argument("business", nargs="?")

    # ------------------------------------------------------------------
    # rules
    # ------------------------------------------------------------------
    p_rules = subparsers.add_parser("rules", help="Revenue-distribution rules.")
    rules_sub = p_rules.add_subparsers(dest="rules_command", metavar="action")

    ru_list = rules_sub.add_parser("list", help="List distribution rules.")
    ru_list.add_argument("--business")

    ru_add = rules_sub.add_parser("add", help="Add a distribution rule.")
    ru_add.add_argument("business")
    ru_add.add_argument("recipient")
    ru_add.add_argument("type", help="'percentage' or 'amount'.")
    ru_add.add_argument("value", type=float)
    ru_add.add_argument("--memo", default="")

    ru_update = rules_sub.add_parser("update", help="Update a distribution rule.")
    ru_update.add_argument("id", type=int)
    ru_update.add_argument("--business")
    ru_update.add_argument("--recipient")
    ru_update.add_argument("--type", dest="type", help="'percentage' or 'amount'.")
    ru_update.add_argument("--value", type=float)
    ru_update.add_argument("--memo")

    ru_delete = rules_sub.add_parser("delete", help="Delete a distribution rule.")
    ru_delete.add_argument("id", type=int)

    # ------------------------------------------------------------------
    # settings
    # ------------------------------------------------------------------
    p_settings = subparsers.add_parser(
        "settings", help="Businesses, payment sources, categories and recipients."
    )
    settings_sub = p_settings.add_subparsers(dest="settings_command", metavar="action")

    s_list = settings_sub.add_parser("list", help="List a registry.")
    s_list.add_argument("kind", choices=sorted(_SETTINGS_KINDS))

    s_add = settings_sub.add_parser("add", help="Add an entry to a registry.")
    s_add.add_argument("kind", choices=sorted(_SETTINGS_KINDS))
    s_add.add_argument("name")
    s_add.add_argument("--memo", default="")
    s_add.add_argument("--color", help="Display color (businesses only).")

    s_update = settings_sub.add_parser("update", help="Rename or edit a registry entry.")
    s_update.add_argument("kind", choices=sorted(_SETTINGS_KINDS))
    s_update.add_argument("id", type=int)
    s_update.add_argument("--name")
    s_update.add_argument("--memo")
    s_update.add_argument("--color", help="Display color (businesses only).")

    s_delete = settings_sub.add_parser("delete", help="Delete a registry entry.")
    s_delete.add_argument("kind", choices=sorted(_SETTINGS_KINDS))
    s_delete.add_argument("id", type=int)

    # ------------------------------------------------------------------
    # assets
    # ------------------------------------------------------------------
    p_assets = subparsers.add_parser("assets", help="Account balances.")
    assets_sub = p_assets.add_subparsers(dest="assets_command", metavar="action")

    assets_sub.add_parser("list", help="List assets.")

    a_add = assets_sub.add_parser("add", help="Add an asset.")
    a_add.add_argument("--type", dest="asset_type", required=True)
    a_add.add_argument("--name", required=True)
    a_add.add_argument("--balance", type=float, required=True)
    a_add.add_argument("--affiliation", default="")
    a_add.add_argument("--currency", help="Defaults to accounting.currency.")
    a_add.add_argument("--date", dest="update_date", help="Balance date (YYYY-MM-DD).")
    a_add.add_argument("--memo", default="")

    a_update = assets_sub.add_parser("update", help="Update an asset.")
    a_update.add_argument("id", type=int)
    a_update.add_argument("--type", dest="asset_type")
    a_update.add_argument("--name")
    a_update.add_argument("--balance", type=float)
    a_update.add_argument("--affiliation")
    a_update.add_argument("--currency")
    a_update.add_argument("--date", dest="update_date")
    a_update.add_argument("--memo")

    a_delete = assets_sub.add_parser("delete", help="Delete an asset.")
    a_delete.add_argument("id", type=int)

    # ------------------------------------------------------------------
    # transfers
    # ------------------------------------------------------------------
    p_transfers = subparsers.add_parser("transfers", help="Payouts per recipient.")
    transfers_sub = p_transfers.add_subparsers(dest="transfers_command", metavar="action")

    t_show = transfers_sub.add_parser(
        "show", help="Payout lines per business and recipient, with status."
    )
    _add_period_arguments(t_show)
    t_show.add_argument(
        "--show-zero",
        action="store_true",
        help="Also show lines whose total is zero.",
    )

    t_summary = transfers_sub.add_parser(
        "summary", help="Amount owed to each recipient, summed across businesses."
    )
    _add_period_arguments(t_summary)
    t_summary.add_argument("--show-zero", action="store_true")

    t_details = transfers_sub.add_parser(
        "details", help="Expenses behind the reimbursements of a business."
    )
    t_details.add_argument("month")
    t_details.add_argument("business")
    t_details.add_argument("--payment-source", dest="payment_source")

    t_mark = transfers_sub.add_parser("mark", help="Mark a payout line as paid.")
    t_mark.add_argument("month")
    t_mark.add_argument("business")
    t_mark.add_argument("recipient")
    t_mark.add_argument(
        "--unpaid", action="store_true", help="Mark the line as unpaid instead."
    )
    t_mark.add_argument("--memo", default="")

    # ------------------------------------------------------------------
    # profits
    # ------------------------------------------------------------------
    p_profits = subparsers.add_parser(
        "profits", help="Revenue, expense, tax and net profit summary."
    )
    _add_period_arguments(p_profits)
    p_profits.add_argument(
        "--by-business", action="store_true", help="One row per business and month."
    )
    p_profits.add_argument(
        "--tax-rate", type=float, help="Override accounting.tax_rate (percent)."
    )

    return ap


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _parse_optional_date(value: Optional[str]) -> Optional[date]:
    """
    Parse an optional CLI date argument (YYYY-MM-DD).

    Raises
    ------
    SystemExit
        If the date format is invalid.
    """
    if value is None:
        return None

    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        msg = f"Invalid date format: {value!r}. Expected YYYY-MM-DD."
        raise SystemExit(msg) from exc


def _render(
    df: pd.DataFrame,
    title: str,
    file_stem: str,
    args: argparse.Namespace,
    config: AppConfig,
) -> None:
    """Print `df` and/or write it as CSV depending on the display mode."""
    display_mode = args.display_mode or config.display_mode

    if display_mode in {"table", "both"}:
        print()
        print(f"=== {title} ===")
        if df.empty:
            print("(no rows)")
        else:
            print(df.to_string(index=False))

    if display_mode in {"csv", "both"}:
        output_dir = Path(args.output_dir) if args.output_dir else config.output_dir
        output_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")
        path = output_dir / f"{file_stem}_{timestamp}.csv"
        df.to_csv(path, index=False)
        print(f"Wrote {path} ({len(df)} rows)")


def _period_label(args: argparse.Namespace) -> str:
    period = period_from_args(args)
    return "All months" if period is None else period.label


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _handle_import(args: argparse.Namespace, config: AppConfig) -> None:
    path = Path(args.path)
    if not path.is_file():
        raise SystemExit(f"File to import not found: {path}")

    if args.import_format == "expenses":
        result = import_expenses_csv(config, path)
    else:
        result = import_card_statement(
            config,
            path,
            business=args.business,
            payment_source=args.payment_source,
        )

    if result.skipped:
        print(f"Skipped {result.source_label}: already imported.")
    else:
        print(f"Imported {result.inserted} expense(s) from {result.source_label}.")


def _handle_expenses(args: argparse.Namespace, config: AppConfig) -> None:
    subcmd = getattr(args, "expenses_command", None)

    if subcmd == "list":
        period = period_from_args(args)
        filters = ExpensesFilter(
            business=args.business,
            payment_source=args.payment_source,
            category=args.category,
            description_contains=args.search,
        )
        df = list_expenses(config, period, filters)
        print(f"Applied period: {_period_label(args)}")
        if not df.empty:
            df = df.copy()
            df["date"] = df["date"].dt.strftime("%Y-%m-%d")
        _render(df, "Expenses", "expenses", args, config)
        if not df.empty:
            print()
            print(f"Total expenses: {len(df)} | Total amount: {df['amount'].sum():.2f}")

    elif subcmd == "add":
        expense = create_expense(
            config,
            NewExpense(
                date=_parse_optional_date(args.date),
                amount=args.amount,
                payment_source=args.payment_source,
                business=args.business,
                category=args.category,
                description=args.description,
                memo=args.memo,
                month=args.month,
            ),
        )
        print(
            f"Added expense #{expense.id}: {expense.date.isoformat()} "
            f"{expense.amount:.2f} paid by {expense.payment_source}"
        )

    elif subcmd == "update":
        expense = edit_expense(
            config,
            args.id,
            ExpenseUpdate(
                date=_parse_optional_date(args.date),
                month=args.month,
                business=args.business,
                payment_source=args.payment_source,
                category=args.category,
                description=args.description,
                amount=args.amount,
                memo=args.memo,
            ),
        )
        print(f"Updated expense #{expense.id}.")

    elif subcmd == "delete":
        remove_expense(config, args.id)
        print(f"Deleted expense #{args.id}.")

    else:
        print("Available expenses actions are: 'list', 'add', 'update', 'delete'.")


def _handle_revenues(args: argparse.Namespace, config: AppConfig) -> None:
    subcmd = getattr(args, "revenues_command", None)

    if subcmd == "list":
        period = period_from_args(args)
        start = period.start_month if period else None
        end = period.end_month if period else None
        df = load_revenues(config.database, start, end)
        _render(df, f"Revenues - {_period_label(args)}", "revenues", args, config)

    elif subcmd == "set":
        set_revenue(config.database, args.month, args.business, args.amount)
        print(f"Revenue of {args.business} for {parse_month(args.month)}: {args.amount:.2f}")

    elif subcmd == "delete":
        if args.business:
            delete_revenue(config.database, args.month, args.business)
            print(f"Deleted revenue of {args.business} for {parse_month(args.month)}.")
        else:
            count = delete_revenues_for_month(config.database, args.month)
            print(f"Deleted {count} revenue(s) for {parse_month(args.month)}.")

    else:
        print("Available revenues actions are: 'list', 'set', 'delete'.")


def _handle_rules(args: argparse.Namespace, config: AppConfig) -> None:
    subcmd = getattr(args, "rules_command", None)

    if subcmd == "list":
        rules = list_rules(config.database, args.business)
        df = pd.DataFrame(
            [
                {
                    "id": r.id,
                    "business": r.business_name,
                    "recipient": r.recipient_name,
                    "type": r.distribution_type.value,
                    "value": r.value,
                    "memo": r.memo,
                }
                for r in rules
            ],
            columns=["id", "business", "recipient", "type", "value", "memo"],
        )
        _render(df, "Distribution rules", "rules", args, config)

    elif subcmd == "add":
        rule = insert_rule(
            config.database,
            DistributionRule(
                business_name=args.business,
                recipient_name=args.recipient,
                distribution_type=DistributionType.parse(args.type),
                value=args.value,
                memo=args.memo,
            ),
        )
        unit = "%" if not rule.is_fixed else f" {config.currency}"
        print(
            f"Added rule #{rule.id}: {rule.business_name} -> "
            f"{rule.recipient_name} {rule.value:g}{unit}"
        )

    elif subcmd == "update":
        current = get_rule(config.database, args.id)
        if current is None:
            raise LookupError(f"Distribution rule #{args.id} not found.")

        changes = {
            "business_name": args.business,
            "recipient_name": args.recipient,
            "distribution_type": DistributionType.parse(args.type) if args.type else None,
            "value": args.value,
            "memo": args.memo,
        }
        changes = {k: v for k, v in changes.items() if v is not None}
        if not changes:
            raise ValueError("No fields to update.")

        rule = replace(current, **changes)
        update_rule(config.database, rule)
        unit = "%" if not rule.is_fixed else f" {config.currency}"
        print(
            f"Updated rule #{rule.id}: {rule.business_name} -> "
            f"{rule.recipient_name} {rule.value:g}{unit}"
        )

    elif subcmd == "delete":
        delete_rule(config.database, args.id)
        print(f"Deleted rule #{args.id}.")

    else:
        print("Available rules actions are: 'list', 'add', 'update', 'delete'.")


def _handle_settings(args: argparse.Namespace, config: AppConfig) -> None:
    subcmd = getattr(args, "settings_command", None)
    if subcmd is None:
        print("Available settings actions are: 'list', 'add', 'update', 'delete'.")
        return

    kind = _SETTINGS_KINDS[args.kind]

    if subcmd == "list":
        entities = list_named_entities(config.database, kind)
        df = pd.DataFrame(
            [{"id": e.id, "name": e.name, "memo": e.memo, "color": e.color or ""} for e in entities],
            columns=["id", "name", "memo", "color"],
        )
        if kind != "business":
            df = df.drop(columns=["color"])
        _render(df, args.kind.replace("-", " ").capitalize(), args.kind, args, config)

    elif subcmd == "add":
        entity = add_named_entity(
            config.database, kind, args.name, memo=args.memo, color=args.color
        )
        print(f"Added {kind.replace('_', ' ')} #{entity.id}: {entity.name}")

    elif subcmd == "update":
        update_named_entity(
            config.database,
            kind,
            args.id,
            name=args.name,
            memo=args.memo,
            color=args.color,
        )
        print(f"Updated {kind.replace('_', ' ')} #{args.id}.")

    elif subcmd == "delete":
        delete_named_entity(config.database, kind, args.id)
        print(f"Deleted {kind.replace('_', ' ')} #{args.id}.")


def _handle_assets(args: argparse.Namespace, config: AppConfig) -> None:
    subcmd = getattr(args, "assets_command", None)

    if subcmd == "list":
        assets = load_assets(config.database)
        df = pd.DataFrame(
            [
                {
                    "id": a.id,
                    "type": a.asset_type,
                    "name": a.name,
                    "affiliation": a.affiliation,
                    "balance": a.current_balance,
                    "currency": a.currency,
                    "updated": a.update_date.isoformat() if a.update_date else "",
                    "memo": a.memo,
                }
                for a in assets
            ],
            columns=[
                "id",
                "type",
                "name",
                "affiliation",
                "balance",
                "currency",
                "updated",
                "memo",
            ],
        )
        _render(df, "Assets", "assets", args, config)
        if not df.empty:
            print()
            for currency, total in df.groupby("currency")["balance"].sum().items():
                print(f"Total {currency}: {total:,.2f}")

    elif subcmd == "add":
        asset = insert_asset(
            config.database,
            NewAsset(
                asset_type=args.asset_type,
                name=args.name,
                current_balance=args.balance,
                affiliation=args.affiliation,
                currency=args.currency or config.currency,
                update_date=_parse_optional_date(args.update_date),
                memo=args.memo,
            ),
        )
        print(f"Added asset #{asset.id}: {asset.name}")

    elif subcmd == "update":
        update_asset(
            config.database,
            args.id,
            AssetUpdate(
                asset_type=args.asset_type,
                name=args.name,
                affiliation=args.affiliation,
                current_balance=args.balance,
                currency=args.currency,
                update_date=_parse_optional_date(args.update_date),
                memo=args.memo,
            ),
        )
        print(f"Updated asset #{args.id}.")

    elif subcmd == "delete":
        delete_asset(config.database, args.id)
        print(f"Deleted asset #{args.id}.")

    else:
        print("Available assets actions are: 'list', 'add', 'update', 'delete'.")


def _handle_transfers(args: argparse.Namespace, config: AppConfig) -> None:
    subcmd = getattr(args, "transfers_command", None)

    if subcmd == "show":
        period = period_from_args(args)
        hide_zero = False if args.show_zero else None
        df = transfer_report(config, period, hide_zero=hide_zero)
        _render(df, f"Transfers - {_period_label(args)}", "transfers", args, config)
        if not df.empty:
            unpaid = df[df["status"] == "unpaid"]
            print()
            print(
                f"Lines: {len(df)} | Unpaid: {len(unpaid)} | "
                f"Unpaid amount: {unpaid['total'].sum():,.2f} {config.currency}"
            )

    elif subcmd == "summary":
        period = period_from_args(args)
        hide_zero = config.hide_zero_transfers and not args.show_zero
        df = recipient_totals_to_dataframe(
            recipient_totals(config, period), hide_zero=hide_zero
        )
        df = with_totals_row(df, ["distribution", "reimbursement", "total"], "recipient")
        _render(
            df,
            f"Transfers per recipient - {_period_label(args)}",
            "transfers_summary",
            args,
            config,
        )

    elif subcmd == "details":
        df = expense_details(config, args.month, args.business, args.payment_source)
        if not df.empty:
            df = df.copy()
            df["date"] = df["date"].dt.strftime("%Y-%m-%d")
            df = df[["id", "date", "payment_source", "category", "description", "amount"]]
        _render(
            df,
            f"Expenses of {args.business} - {parse_month(args.month)}",
            "expense_details",
            args,
            config,
        )

    elif subcmd == "mark":
        status = mark_transfer(
            config,
            args.month,
            args.business,
            args.recipient,
            paid=not args.unpaid,
            memo=args.memo,
        )
        when = f" at {status.paid_at.isoformat()}" if status.paid_at else ""
        print(
            f"{status.month} {status.business_name} -> {status.recipient_name}: "
            f"{status.status}{when}"
        )

    else:
        print("Available transfers actions are: 'show', 'summary', 'details', 'mark'.")


def _handle_profits(args: argparse.Namespace, config: AppConfig) -> None:
    period = period_from_args(args)
    rate = config.tax_rate if args.tax_rate is None else args.tax_rate

    df = profit_summary(config, period, tax_rate=rate, by_business=args.by_business)
    _render(df, f"Profits - {_period_label(args)} (tax {rate:g}%)", "profits", args, config)

    totals = profit_totals(df, rate)
    print()
    print(
        f"Revenue: {totals['revenue']:,.0f} | Expense: {totals['expense']:,.0f} | "
        f"Gross profit: {totals['gross_profit']:,.0f} | Tax: {totals['tax']:,.0f} | "
        f"Net profit: {totals['net_profit']:,.0f} {config.currency}"
    )


_HANDLERS = {
    "import": _handle_import,
    "expenses": _handle_expenses,
    "revenues": _handle_revenues,
    "rules": _handle_rules,
    "settings": _handle_settings,
    "assets": _handle_assets,
    "transfers": _handle_transfers,
    "profits": _handle_profits,
}


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for the SMB Payouts CLI.

    Parses command-line arguments, configures logging, loads the application
    configuration, initializes the database and dispatches to the handler of
    the requested command. Domain errors (invalid values, unknown ids,
    missing files) are reported as a one-line message with a non-zero exit
    status.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    # --version: short-circuit and exit early.
    if args.version:
        print(f"smb_payouts version {__version__}")
        return

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return

    try:
        config = load_app_config(args.config_path)
        init_database(config.database)

        if args.command == "init":
            print(f"Database ready at {config.database.path}")
            return

        _HANDLERS[args.command](args, config)
    except (ValueError, LookupError, FileNotFoundError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        raise SystemExit(f"Error: {exc}") from exc


if __name__ == "__main__":
    main()
