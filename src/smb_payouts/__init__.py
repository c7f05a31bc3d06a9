# SMB Payouts - Profit distribution & transfer tracking for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
SMB Payouts
-----------

A Python-based bookkeeping and payout application designed for small
businesses that run several activities ("businesses") and share their
monthly profit with partners, investors or themselves.

Main capabilities:
- recording of expenses, monthly revenues and assets per business,
- import of card statements (CSV) as expenses,
- revenue-distribution rules per business (percentage or fixed amount),
- a pure distribution engine computing, per business and per month, what
  each recipient is owed (profit share + reimbursement of the expenses
  they paid),
- cross-business aggregation of recipient payouts,
- transfer tracking (unpaid / paid) per month, business and recipient,
- profit summaries with a configurable tax rate,
- a database-first architecture (SQLite) and a command-line interface.

SMB Payouts separates computation (engine), configuration (TOML), and
presentation (CLI), making it suitable for scripting and automation.


Version: 0.2.0

Usage:
    python -m smb_payouts.cli --help
"""

__all__ = ["engine", "periods", "reports", "io", "db", "config", "ledger_service"]

__version__ = "0.2.0"
