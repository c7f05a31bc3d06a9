# SMB Payouts - Profit distribution & transfer tracking for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Core distribution engine for SMB Payouts.

This module computes what each recipient is owed for a given business and
month. It is a set of pure functions over data that has already been loaded
by the caller (database layer, CSV import, tests): nothing here performs
I/O, and inputs are never mutated.

The engine orchestrates three responsibilities:

1. Monthly business financials
   ----------------------------
   For one business and one month:

       profit             = revenue - total expenses (any payer)
       total_fixed        = sum of the FixedAmount rule values
       profit_after_fixed = profit - total_fixed

   `profit_after_fixed` is computed once and is the common base of every
   percentage rule of the business. Percentage rules are *not* applied to a
   shrinking remainder: two 50% rules on a base of 1000 both receive 500.

2. Recipient amounts
   ------------------
   - FixedAmount rule  -> the rule value, paid whether or not the profit
     covers it.
   - Percentage rule   -> floor(profit_after_fixed * value / 100). The
     mathematical floor is used, so a negative base gives a negative amount
     rounded toward negative infinity (no clamping to zero).
   - Several rules for the same recipient are summed.
   - Every payment source that paid at least one expense of the business in
     that month is reimbursed the sum of those expenses. Recipients and
     payment sources share a single namespace keyed by name: a recipient
     named like a payment source receives both amounts on one line.

3. Aggregation
   ------------
   `aggregate_across_businesses()` sums the per-business amounts of each
   recipient, month by month. It is a plain addition (no netting between
   businesses).

Key components
--------------
- DistributionType / DistributionRule :
    Revenue-distribution settings of a business.
- MonthlyBusinessFinancials :
    Derived revenue / expense / profit figures for a business and a month.
- RecipientAmount :
    Output line for a recipient (distribution + reimbursement).
- BusinessMonthResult :
    Financials and recipient lines for one business and one month, as
    produced by `compute_all_distributions()`.

Expenses are passed as a pandas DataFrame with at least the columns
``month``, ``business``, ``payment_source`` and ``amount`` (the layout
returned by ``db.load_expenses`` and ``io.read_card_statement``). Revenues
are passed as a DataFrame with ``month``, ``business`` and ``amount``.
"""

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import pandas as pd

EXPENSE_COLUMNS = ["month", "business", "payment_source", "amount"]
REVENUE_COLUMNS = ["month", "business", "amount"]

# Amounts are stored in cents; sums are rounded back to that precision.
MONEY_DECIMALS = 2
_SHARE_DECIMALS = 6


def round_money(value: float) -> float:
    """Round a currency amount to cents, dropping float noise from sums."""
    return round(float(value), MONEY_DECIMALS) + 0.0


class DistributionType(str, Enum):
    """How a distribution rule value must be interpreted."""

    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "amount"

    @classmethod
    def parse(cls, value: "str | DistributionType") -> "DistributionType":
        """
        Parse a distribution type from its stored or user-facing name.

        Accepts the stored values ("percentage", "amount") as well as the
        aliases "percent", "%", "fixed" and "fixed_amount".
        """
        if isinstance(value, DistributionType):
            return value

        raw = str(value).strip().lower().replace("-", "_")
        aliases = {
            "percentage": cls.PERCENTAGE,
            "percent": cls.PERCENTAGE,
            "%": cls.PERCENTAGE,
            "amount": cls.FIXED_AMOUNT,
            "fixed": cls.FIXED_AMOUNT,
            "fixed_amount": cls.FIXED_AMOUNT,
        }
        try:
            return aliases[raw]
        except KeyError as exc:
            raise ValueError(
                f"Unknown distribution type: {value!r}. "
                "Expected 'percentage' or 'amount'."
            ) from exc


@dataclass(frozen=True)
class DistributionRule:
    """
    Revenue-distribution rule of a business.

    Attributes
    ----------
    business_name :
        Business the rule applies to.
    recipient_name :
        Who receives the allocation.
    distribution_type :
        Percentage of the profit after fixed amounts, or a fixed amount.
    value :
        Percentage points (0-100) or a currency amount.
    id, memo :
        Persistence metadata, ignored by the computation.
    """

    business_name: str
    recipient_name: str
    distribution_type: DistributionType
    value: float
    id: Optional[int] = None
    memo: str = ""

    @property
    def is_fixed(self) -> bool:
        return self.distribution_type is DistributionType.FIXED_AMOUNT


@dataclass(frozen=True)
class MonthlyBusinessFinancials:
    """Revenue, expense and profit figures of a business for one month."""

    business_name: str
    month: str
    revenue: float
    expense: float
    total_fixed: float = 0.0

    @property
    def profit(self) -> float:
        return round_money(self.revenue - self.expense)

    @property
    def profit_after_fixed(self) -> float:
        return round_money(self.profit - self.total_fixed)


@dataclass(frozen=True)
class RecipientAmount:
    """
    Amount owed to a recipient for a month.

    `business_name` is None for lines produced by
    `aggregate_across_businesses()`.
    """

    recipient_name: str
    month: str
    business_name: Optional[str]
    distribution_amount: float = 0.0
    expense_reimbursement: float = 0.0

    @property
    def total(self) -> float:
        return round_money(self.distribution_amount + self.expense_reimbursement)


@dataclass(frozen=True)
class BusinessMonthResult:
    """Financials and recipient amounts for one business and one month."""

    financials: MonthlyBusinessFinancials
    recipients: dict[str, RecipientAmount] = field(default_factory=dict)

    @property
    def business_name(self) -> str:
        return self.financials.business_name

    @property
    def month(self) -> str:
        return self.financials.month

    @property
    def total_distribution(self) -> float:
        return sum(r.distribution_amount for r in self.recipients.values())

    @property
    def total_reimbursement(self) -> float:
        return sum(r.expense_reimbursement for r in self.recipients.values())

    @property
    def total(self) -> float:
        return self.total_distribution + self.total_reimbursement


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _expenses_for(expenses: Optional[pd.DataFrame], business: str, month: str):
    """Return the expense rows of a business and month (may be empty)."""
    if expenses is None or expenses.empty:
        return pd.DataFrame(columns=EXPENSE_COLUMNS)

    missing = set(EXPENSE_COLUMNS).difference(expenses.columns)
    if missing:
        cols = ", ".join(sorted(missing))
        raise ValueError(f"Expenses DataFrame is missing required column(s): {cols}")

    mask = (expenses["business"] == business) & (expenses["month"] == month)
    return expenses.loc[mask]


def _rules_for(rules: Iterable[DistributionRule], business: str):
    return [r for r in rules if r.business_name == business]


def _is_blank(value) -> bool:
    if value is None:
        return True
    try:
        if pd.isna(value):
            return True
    except (TypeError, ValueError):
        pass
    return str(value).strip() == ""


def _floor_share(base: float, percent: float) -> float:
    # Rounded first so that 0.57 * 100 floors to 57, not 56.
    return float(math.floor(round(base * percent / 100, _SHARE_DECIMALS)))


def percentage_amount(base: float, percent: float) -> float:
    """Share of `base` for a percentage rule, floored (fractions dropped)."""
    return _floor_share(round_money(base), percent)


def compute_tax(gross_profit: float, tax_rate: float) -> float:
    """
    Tax owed on a gross profit.

    Returns floor(gross_profit * tax_rate / 100) when the gross profit is
    positive, otherwise 0.
    """
    gross = round_money(gross_profit)
    if gross <= 0:
        return 0.0
    return _floor_share(gross, tax_rate)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def compute_business_financials(
    business: str,
    month: str,
    revenue: float,
    expenses: Optional[pd.DataFrame],
    rules: Iterable[DistributionRule],
) -> MonthlyBusinessFinancials:
    """
    Compute the financial figures of a business for one month.

    Args:
        business: Business name.
        month: Month key ("YYYY-MM").
        revenue: Revenue recorded for the business and month (0 if none).
        expenses: Expense records (any business / month, filtered here).
        rules: Distribution rules (rules of other businesses are ignored).

    Returns:
        A MonthlyBusinessFinancials instance.
    """
    rows = _expenses_for(expenses, business, month)
    expense_total = float(pd.to_numeric(rows["amount"]).sum()) if len(rows) else 0.0
    total_fixed = sum(float(r.value) for r in _rules_for(rules, business) if r.is_fixed)

    return MonthlyBusinessFinancials(
        business_name=business,
        month=month,
        revenue=round_money(revenue or 0.0),
        expense=round_money(expense_total),
        total_fixed=round_money(total_fixed),
    )


def compute_monthly_distribution(
    business: str,
    month: str,
    revenue: float,
    expenses: Optional[pd.DataFrame],
    rules: Iterable[DistributionRule],
) -> dict[str, RecipientAmount]:
    """Compute what each recipient is owed for a business and a month.

    Steps:
        1. profit = revenue - sum of the business+month expenses.
        2. total_fixed = sum of the FixedAmount rule values.
        3. profit_after_fixed = profit - total_fixed (shared base).
        4. Each rule adds its amount to its recipient: the value for a
           FixedAmount rule, floor(profit_after_fixed * value / 100) for a
           Percentage rule.
        5. Each payment source of the business+month expenses is reimbursed
           the sum of the expenses it paid, on the recipient line with the
           same name.

    Args:
        business: Business name.
        month: Month key ("YYYY-MM").
        revenue: Revenue of the business for the month (0 if none).
        expenses: Expense records with columns month, business,
            payment_source, amount. Rows of other businesses or months are
            ignored.
        rules: Distribution rules of the business.

    Returns:
        A dictionary {recipient_name -> RecipientAmount}, in rule order
        followed by payment sources in order of first appearance. Empty when
        the business has no rule and no expense for the month.
    """
    business_rules = _rules_for(rules, business)
    financials = compute_business_financials(
        business, month, revenue, expenses, business_rules
    )
    base = financials.profit_after_fixed

    distribution: dict[str, float] = {}
    reimbursement: dict[str, float] = {}

    # Distribution shares: every percentage rule reads the same base.
    for rule in business_rules:
        if rule.is_fixed:
            amount = float(rule.value)
        else:
            amount = percentage_amount(base, float(rule.value))
        distribution[rule.recipient_name] = round_money(
            distribution.get(rule.recipient_name, 0.0) + amount
        )

    # Reimbursements: payers are matched to recipients by name.
    rows = _expenses_for(expenses, business, month)
    for payer, group in rows.groupby("payment_source", sort=False, dropna=True):
        if _is_blank(payer):
            continue
        name = str(payer)
        total = float(pd.to_numeric(group["amount"]).sum())
        reimbursement[name] = round_money(reimbursement.get(name, 0.0) + total)

    out: dict[str, RecipientAmount] = {}
    for name in list(distribution) + [n for n in reimbursement if n not in distribution]:
        out[name] = RecipientAmount(
            recipient_name=name,
            month=month,
            business_name=business,
            distribution_amount=distribution.get(name, 0.0),
            expense_reimbursement=reimbursement.get(name, 0.0),
        )
    return out


def aggregate_across_businesses(
    per_business_results: Iterable[Mapping[str, RecipientAmount]],
) -> dict[str, dict[str, RecipientAmount]]:
    """
    Sum recipient amounts across businesses, month by month.

    Parameters
    ----------
    per_business_results :
        Iterable of dictionaries as returned by
        `compute_monthly_distribution()` (one per business and month).
        `BusinessMonthResult` instances are accepted as well.

    Returns
    -------
    dict[str, dict[str, RecipientAmount]]
        {recipient_name -> {month -> RecipientAmount}} where each line has
        `business_name=None` and holds the summed distribution and
        reimbursement amounts.
    """
    totals: dict[str, dict[str, tuple[float, float]]] = {}

    for result in per_business_results:
        if isinstance(result, BusinessMonthResult):
            result = result.recipients
        for item in result.values():
            by_month = totals.setdefault(item.recipient_name, {})
            dist, reimb = by_month.get(item.month, (0.0, 0.0))
            by_month[item.month] = (
                round_money(dist + item.distribution_amount),
                round_money(reimb + item.expense_reimbursement),
            )

    return {
        name: {
            month: RecipientAmount(
                recipient_name=name,
                month=month,
                business_name=None,
                distribution_amount=dist,
                expense_reimbursement=reimb,
            )
            for month, (dist, reimb) in sorted(by_month.items())
        }
        for name, by_month in totals.items()
    }


def months_in_scope(
    revenues: Optional[pd.DataFrame],
    expenses: Optional[pd.DataFrame],
) -> list[str]:
    """Return the sorted union of the months present in revenues and expenses."""
    months: set[str] = set()
    for df in (revenues, expenses):
        if df is not None and not df.empty and "month" in df.columns:
            months.update(str(m) for m in df["month"].dropna() if str(m).strip())
    return sorted(months)


def revenue_lookup(revenues: Optional[pd.DataFrame]) -> dict[tuple[str, str], float]:
    """Build a {(business, month) -> revenue} lookup from a revenues DataFrame."""
    if revenues is None or revenues.empty:
        return {}

    missing = set(REVENUE_COLUMNS).difference(revenues.columns)
    if missing:
        cols = ", ".join(sorted(missing))
        raise ValueError(f"Revenues DataFrame is missing required column(s): {cols}")

    grouped = revenues.groupby(["business", "month"])["amount"].sum()
    return {(str(b), str(m)): round_money(v) for (b, m), v in grouped.items()}


def compute_all_distributions(
    revenues: Optional[pd.DataFrame],
    expenses: Optional[pd.DataFrame],
    rules: Sequence[DistributionRule],
    businesses: Optional[Sequence[str]] = None,
    months: Optional[Sequence[str]] = None,
) -> list[BusinessMonthResult]:
    """
    Run `compute_monthly_distribution()` for every business and month.

    Businesses are the given ones (registration order) followed by any other
    business name found in revenues, expenses or rules (sorted). Months are
    the given ones, or the union of revenue and expense months.

    Returns:
        One BusinessMonthResult per (month, business), ordered by month then
        business. Results without any recipient line are included; callers
        decide whether to display them.
    """
    revenue_by_key = revenue_lookup(revenues)

    seen: set[str] = set()
    if revenues is not None and not revenues.empty:
        seen.update(str(b) for b in revenues["business"].dropna())
    if expenses is not None and not expenses.empty and "business" in expenses.columns:
        seen.update(str(b) for b in expenses["business"].dropna())
    seen.update(r.business_name for r in rules)

    ordered = list(businesses or [])
    ordered += sorted(b for b in seen if b not in ordered and b.strip())

    scope = list(months) if months is not None else months_in_scope(revenues, expenses)

    results: list[BusinessMonthResult] = []
    for month in scope:
        for business in ordered:
            revenue = revenue_by_key.get((business, month), 0.0)
            results.append(
                BusinessMonthResult(
                    financials=compute_business_financials(
                        business, month, revenue, expenses, rules
                    ),
                    recipients=compute_monthly_distribution(
                        business, month, revenue, expenses, rules
                    ),
                )
            )
    return results
