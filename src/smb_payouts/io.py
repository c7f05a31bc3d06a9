# SMB Payouts - Profit distribution & transfer tracking for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
I/O module for SMB Payouts.

This module reads expense records from CSV files and normalizes them into
the expense layout used by the database layer and the distribution engine.

Supported inputs
----------------

1) Card statement export
   ---------------------
   The monthly statement downloaded from the card issuer's website. The
   layout is fixed and has no trustworthy header:

   - the first row is skipped (header or statement title),
   - rows with fewer than 4 columns are skipped,
   - column 0: usage date, "YYYY/MM/DD",
   - column 2: merchant / description,
   - column 3: amount, possibly formatted as "1,234円".

   The statement month is taken from a "YYYY-MM" fragment in the file name
   (e.g. ``2025-10.csv``). Without one, the month of each row's date is used.
   Files are usually Shift_JIS encoded; UTF-8 is tried when the configured
   encoding cannot decode the file.

2) Expenses CSV
   ------------
   The application's own layout (column names are case-insensitive):

       date, payment_source, amount
       [, month, business, category, description, memo]

Output schema
-------------
Both readers return a pandas DataFrame with the columns listed in
``EXPENSE_IMPORT_COLUMNS``:

    - ``date``           (datetime64[ns])
    - ``month``          (str, "YYYY-MM")
    - ``business``       (str)
    - ``payment_source`` (str)
    - ``category``       (str)
    - ``description``    (str)
    - ``amount``         (float)
    - ``memo``           (str)
    - ``source_data``    (str, file name of the import)
"""

import csv
import io
import logging
import os
import re
from pathlib import Path
from typing import Union

import pandas as pd

logger = logging.getLogger(__name__)

EXPENSE_IMPORT_COLUMNS = [
    "date",
    "month",
    "business",
    "payment_source",
    "category",
    "description",
    "amount",
    "memo",
    "source_data",
]

_FILENAME_MONTH_RE = re.compile(r"(\d{4})-(\d{2})")
_STATEMENT_DATE_RE = re.compile(r"(\d{4})/(\d{1,2})/(\d{1,2})")
_LEADING_NUMBER_RE = re.compile(r"\s*([-+]?(?:\d+(?:\.\d*)?|\.\d+))")

_COLUMN_ALIASES = {
    "paymentsource": "payment_source",
    "payment source": "payment_source",
    "payer": "payment_source",
    "label": "description",
}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _decode(raw: bytes, encoding: str, path: Path) -> str:
    """Decode file content, falling back to UTF-8."""
    try:
        return raw.decode(encoding)
    except (UnicodeDecodeError, LookupError):
        logger.info("Could not decode %s as %s, retrying as UTF-8", path.name, encoding)

    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ValueError(
            f"Cannot decode {path.name}: neither {encoding} nor UTF-8."
        ) from exc


def month_from_filename(name: str) -> str:
    """Return the "YYYY-MM" fragment of a file name, or "" if there is none."""
    match = _FILENAME_MONTH_RE.search(name)
    if not match:
        return ""
    return f"{match.group(1)}-{match.group(2)}"


def parse_statement_amount(value: str) -> float:
    """
    Parse a card statement amount such as "1,234円".

    Thousands separators and the yen sign are removed and the leading number
    is kept. Anything unparsable yields 0.
    """
    cleaned = str(value or "").replace(",", "").replace("円", "")
    match = _LEADING_NUMBER_RE.match(cleaned)
    if not match:
        return 0.0
    return float(match.group(1))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def read_card_statement(
    path: Union[str, "os.PathLike[str]"],
    *,
    payment_source: str = "AMEX",
    encoding: str = "shift_jis",
) -> pd.DataFrame:
    """
    Read a card statement CSV and return normalized expense rows.

    Parameters
    ----------
    path:
        Path to the statement file. Its name is recorded as ``source_data``
        and may carry the statement month.
    payment_source:
        Payment source assigned to every row.
    encoding:
        Expected file encoding. UTF-8 is tried when decoding fails.

    Returns
    -------
    pandas.DataFrame
        Columns as in ``EXPENSE_IMPORT_COLUMNS``; business, category and memo
        are empty. Rows whose date cannot be read are skipped.
    """
    path = Path(path)
    text = _decode(path.read_bytes(), encoding, path)
    file_month = month_from_filename(path.name)

    # Rows are ragged; each keeps its own field count, trailing empties included.
    rows = [r for r in csv.reader(io.StringIO(text)) if any(c.strip() for c in r)]

    records = []
    for line_no, row in enumerate(rows[1:], start=2):
        if len(row) < 4:
            logger.debug("%s: row %d has %d column(s), skipped", path.name, line_no, len(row))
            continue

        match = _STATEMENT_DATE_RE.search(row[0])
        if not match:
            logger.warning(
                "%s: row %d has an unreadable date %r, skipped", path.name, line_no, row[0]
            )
            continue
        year, mon, day = (int(g) for g in match.groups())

        records.append(
            {
                "date": pd.Timestamp(year=year, month=mon, day=day),
                "month": file_month or f"{year:04d}-{mon:02d}",
                "business": "",
                "payment_source": payment_source,
                "category": "",
                "description": row[2].strip(),
                "amount": parse_statement_amount(row[3]),
                "memo": "",
                "source_data": path.name,
            }
        )

    if not records:
        return pd.DataFrame(columns=EXPENSE_IMPORT_COLUMNS)

    df = pd.DataFrame.from_records(records, columns=EXPENSE_IMPORT_COLUMNS)
    df["date"] = pd.to_datetime(df["date"])
    return df


def read_expenses_csv(path: Union[str, "os.PathLike[str]"]) -> pd.DataFrame:
    """
    Read expenses from a CSV file in the application's own layout.

    Required columns: date, payment_source, amount. Optional columns: month,
    business, category, description, memo. Column names are case-insensitive
    and "paymentSource" / "payer" are accepted for payment_source.

    Returns
    -------
    pandas.DataFrame
        Columns as in ``EXPENSE_IMPORT_COLUMNS``. ``month`` defaults to the
        month of ``date``.

    Raises
    ------
    ValueError
        If required columns are missing or dates / amounts cannot be parsed.
    """
    path = Path(path)
    df = pd.read_csv(path, dtype=str, keep_default_na=False)

    df.columns = [c.lower().strip() for c in df.columns]
    df = df.rename(columns={k: v for k, v in _COLUMN_ALIASES.items() if k in df.columns})

    required = {"date", "payment_source", "amount"}
    missing = required.difference(df.columns)
    if missing:
        cols = ", ".join(sorted(missing))
        raise ValueError(
            f"Invalid expenses CSV structure, missing column(s): {cols}. "
            "Expected at least: date, payment_source, amount."
        )

    d = df.copy()
    try:
        d["date"] = pd.to_datetime(d["date"], errors="raise")
    except (ValueError, TypeError) as exc:
        raise ValueError("Invalid values in 'date' column.") from exc

    d["amount"] = pd.to_numeric(d["amount"].str.replace(",", ""), errors="coerce")
    if d["amount"].isna().any():
        raise ValueError("Invalid numeric values in 'amount' column.")

    for col in ("business", "category", "description", "memo", "month"):
        if col not in d.columns:
            d[col] = ""
        d[col] = d[col].astype(str).str.strip()

    derived = d["date"].dt.strftime("%Y-%m")
    d["month"] = d["month"].where(d["month"] != "", derived)
    d["payment_source"] = d["payment_source"].astype(str).str.strip()
    d["source_data"] = path.name

    return d[EXPENSE_IMPORT_COLUMNS].reset_index(drop=True)
