# SMB Payouts - Profit distribution & transfer tracking for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for SMB Payouts.

This module is responsible for:
- loading the application configuration from a TOML file,
- exposing the typed AppConfig dataclass used by the rest of the application.
"""

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .db import DatabaseConfig

DEFAULT_CONFIG_FILE = "smb_payouts_config.toml"
DISPLAY_MODES = ("table", "csv", "both")


@dataclass(frozen=True)
class AppConfig:
    """
    Application-wide configuration for SMB Payouts.

    This aggregates:
    - the database configuration (where all bookkeeping data is stored),
    - the presentation currency and the tax rate used for profit summaries,
    - card statement import defaults,
    - display options for the CLI.
    """

    database: DatabaseConfig
    currency: str
    tax_rate: float
    default_payment_source: str
    import_encoding: str
    display_mode: str
    hide_zero_transfers: bool
    output_dir: Path


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, Mapping):
        return {}
    return section


def load_app_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load the SMB Payouts application configuration from a TOML file.

    Expected top-level sections in the TOML file
    --------------------------------------------
    [database]
        Database engine ("sqlite") and SQLite file path.

    [accounting]
        Presentation currency (default "JPY") and tax rate in percent
        applied to positive gross profits (default 20).

    [import]
        Payment source assigned to card statement rows (default "AMEX") and
        the statement file encoding (default "shift_jis").

    [display]
        Output mode ("table", "csv" or "both"), whether zero transfer lines
        are hidden, and the directory where CSV exports are written.

    Every section is optional. All file paths are resolved relative to the
    directory of the TOML file itself.

    Parameters
    ----------
    config_path : str, optional
        Path to the TOML configuration file. Defaults to
        ``smb_payouts_config.toml`` in the current directory.

    Returns
    -------
    AppConfig
        Parsed and validated application configuration.

    Raises
    ------
    FileNotFoundError
        If the configuration file does not exist.
    ValueError
        If the file cannot be parsed or holds invalid values.
    """
    if config_path is None:
        config_file = Path(DEFAULT_CONFIG_FILE).resolve()
    else:
        config_file = Path(config_path).resolve()

    raw = _load_toml(config_file)
    base_dir = config_file.parent

    # 1) Database section
    database_section = _section(raw, "database")
    db_engine = str(database_section.get("engine") or "sqlite")
    db_path_raw = database_section.get("path") or "data/db/smb_payouts.sqlite"
    db_path = (base_dir / str(db_path_raw)).resolve()
    database_config = DatabaseConfig(engine=db_engine, path=db_path)

    # 2) Accounting section
    accounting_section = _section(raw, "accounting")
    currency = str(accounting_section.get("currency") or "JPY")
    try:
        tax_rate = float(accounting_section.get("tax_rate", 20))
    except (TypeError, ValueError) as exc:
        raise ValueError(
            "Invalid value for 'accounting.tax_rate' in the configuration. "
            "Expected a number."
        ) from exc
    if not 0 <= tax_rate <= 100:
        raise ValueError("'accounting.tax_rate' must be between 0 and 100.")

    # 3) Import section
    import_section = _section(raw, "import")
    default_payment_source = str(
        import_section.get("default_payment_source") or "AMEX"
    )
    import_encoding = str(import_section.get("encoding") or "shift_jis")

    # 4) Display options
    display_section = _section(raw, "display")
    display_mode = str(display_section.get("mode", "table"))
    if display_mode not in DISPLAY_MODES:
        modes = ", ".join(DISPLAY_MODES)
        raise ValueError(
            f"Invalid display mode {display_mode!r} in the configuration. "
            f"Expected one of: {modes}."
        )
    hide_zero_transfers = bool(display_section.get("hide_zero_transfers", True))
    output_dir_raw = display_section.get("output_dir") or "data/output"
    output_dir = (base_dir / str(output_dir_raw)).resolve()

    return AppConfig(
        database=database_config,
        currency=currency,
        tax_rate=tax_rate,
        default_payment_source=default_payment_source,
        import_encoding=import_encoding,
        display_mode=display_mode,
        hide_zero_transfers=hide_zero_transfers,
        output_dir=output_dir,
    )
