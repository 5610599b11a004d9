"""Data access layer for the truck ledger.

This module provides low-level helpers that read from and write to the
``truck_ledger.xlsx`` master workbook. Business logic belongs elsewhere.

The public API is designed around three responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Workbook lifecycle: opening, validating, and persisting the Excel file.
3. Sheet operations: loading structured records and appending, replacing or
   removing individual rows.
"""


from __future__ import annotations

import configparser
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional, Sequence

from openpyxl.workbook import Workbook
import openpyxl

from . import log
from .constants import SheetName


CONFIG_FILE_NAME = "config.ini"
CUSTOMERS_SHEET = SheetName.CUSTOMERS.value
TRUCKS_SHEET = SheetName.TRUCKS.value
TRUCK_TRANSACTIONS_SHEET = SheetName.TRUCK_TRANSACTIONS.value
ADDITIONAL_TRUCK_TRANSACTIONS_SHEET = SheetName.ADDITIONAL_TRUCK_TRANSACTIONS.value
TRANSACTION_KEY_COLUMN = "TransactionID"


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    company_name: str
    schema_version: str
    print_dir: Path


@dataclass(frozen=True)
class CustomerRow:
    """In-memory view of a row from the ``Customers`` sheet."""

    customer_id: str
    initial: str


@dataclass(frozen=True)
class TruckRow:
    """In-memory view of a row from the ``Trucks`` sheet."""

    truck_id: str
    name: str


@dataclass(frozen=True)
class CustomerRef:
    """Canonical customer reference stored on every truck transaction."""

    customer_id: str
    initial: str


@dataclass(frozen=True)
class TruckTransactionRow:
    """In-memory view of a row from the ``TruckTransactions`` sheet."""

    transaction_id: str
    date_iso: str
    container_no: str
    invoice_no: str
    destination: str
    cost: Decimal
    selling_price: Decimal
    income: Optional[Decimal]
    pph: Decimal
    customer: CustomerRef
    bon: str
    details: str
    truck_id: str
    is_printed_bon: bool
    is_printed_invoice: bool
    editable_by_user_until: Optional[str]


@dataclass(frozen=True)
class AdditionalTruckTransactionRow:
    """In-memory view of a row from the ``AdditionalTruckTransactions`` sheet."""

    transaction_id: str
    date_iso: str
    truck_id: Optional[str]
    details: str
    cost: Decimal
    selling_price: Decimal


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification. When no explicit path is given the function
    walks up from the current working directory toward the filesystem root
    looking for a file named ``CONFIG_FILE_NAME``. The first match that exists
    on disk is considered authoritative.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search.

    Returns:
        Path: The path provided by the caller or the discovered configuration
            file.

    Raises:
        FileNotFoundError: If the search exhausts all parent directories without
            finding ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Args:
        config_path (Path): Path to the configuration file, relative or
            absolute.

    Returns:
        configparser.ConfigParser: Initialized parser containing the raw
            configuration data.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = config_path.expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path)
    return parser


def _anchor_path(raw: str, base_path: Optional[Path]) -> Path:
    path = Path(raw)
    if not path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        path = (base_path / path).resolve()
    return path


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    Relative ``DataFile`` and ``OutputDir`` entries are expanded against
    ``base_path`` when provided, or against the current working directory as a
    fallback. The ``[Printing]`` section is optional; print artifacts default
    to a ``prints`` folder next to the configuration.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory used as the anchor for relative
            paths.

    Returns:
        ConfigSettings: Immutable settings container.

    Raises:
        KeyError: If one of the required sections or options is missing from the
            configuration.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        company_name = parser.get("System", "CompanyName")
        schema_version = parser.get("System", "SchemaVersion")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    print_dir_raw = parser.get("Printing", "OutputDir", fallback="prints")

    return ConfigSettings(
        data_file=_anchor_path(data_file_raw, base_path),
        company_name=company_name,
        schema_version=schema_version,
        print_dir=_anchor_path(print_dir_raw, base_path),
    )


def open_workbook(data_file: Path) -> Workbook:
    """Open the master Excel workbook and return a live ``openpyxl`` workbook.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist after expansion and
            resolution.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    wb = openpyxl.load_workbook(data_file)
    return wb


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Persist the workbook to disk, creating parent directories on demand."""

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)


def refresh_workbook(data_file: Path) -> Workbook:
    """Reload the workbook from disk, discarding any unsaved in-memory changes."""

    return open_workbook(data_file)


def _iter_sheet(workbook: Workbook, sheet_name: str) -> Iterable[Sequence[object]]:
    sheet = workbook[sheet_name]
    for raw in sheet.iter_rows(min_row=2, values_only=True):
        # skip fully empty rows
        if any(cell is not None for cell in raw):
            yield raw


def iter_customers(workbook: Workbook) -> Iterable[CustomerRow]:
    """Iterate over customer records stored on the ``Customers`` worksheet."""

    for raw in _iter_sheet(workbook, CUSTOMERS_SHEET):
        yield deserialize_customer(raw)


def iter_trucks(workbook: Workbook) -> Iterable[TruckRow]:
    """Iterate over the ``Trucks`` worksheet and yield typed records."""

    for raw in _iter_sheet(workbook, TRUCKS_SHEET):
        yield deserialize_truck(raw)


def iter_truck_transactions(workbook: Workbook) -> Iterable[TruckTransactionRow]:
    """Stream truck transaction records from the ``TruckTransactions`` sheet.

    Header and fully blank rows are skipped. Each remaining row is converted
    into a :class:`TruckTransactionRow` via :func:`deserialize_truck_transaction`
    so monetary columns arrive as :class:`~decimal.Decimal` instances and the
    two customer columns are folded into a :class:`CustomerRef`.

    Args:
        workbook (Workbook): Workbook containing the transaction sheet.

    Yields:
        TruckTransactionRow: Normalized transaction record per populated row.
    """

    for raw in _iter_sheet(workbook, TRUCK_TRANSACTIONS_SHEET):
        yield deserialize_truck_transaction(raw)


def iter_additional_truck_transactions(workbook: Workbook) -> Iterable[AdditionalTruckTransactionRow]:
    """Stream miscellaneous cost records from ``AdditionalTruckTransactions``."""

    for raw in _iter_sheet(workbook, ADDITIONAL_TRUCK_TRANSACTIONS_SHEET):
        yield deserialize_additional_truck_transaction(raw)


def append_customer(workbook: Workbook, record: CustomerRow) -> None:
    """Append a customer record to the ``Customers`` worksheet."""

    workbook[CUSTOMERS_SHEET].append(serialize_customer(record))


def append_truck(workbook: Workbook, record: TruckRow) -> None:
    """Append a truck record to the ``Trucks`` worksheet."""

    workbook[TRUCKS_SHEET].append(serialize_truck(record))


def append_truck_transaction(workbook: Workbook, record: TruckTransactionRow) -> None:
    """Append a truck transaction to the ``TruckTransactions`` worksheet.

    Numerical fields remain :class:`~decimal.Decimal` instances after
    serialization, allowing Excel to preserve precision when the workbook is
    saved.
    """

    workbook[TRUCK_TRANSACTIONS_SHEET].append(serialize_truck_transaction(record))


def append_additional_truck_transaction(workbook: Workbook, record: AdditionalTruckTransactionRow) -> None:
    """Append a miscellaneous cost record to its worksheet."""

    workbook[ADDITIONAL_TRUCK_TRANSACTIONS_SHEET].append(
        serialize_additional_truck_transaction(record)
    )


def replace_truck_transaction(workbook: Workbook, record: TruckTransactionRow) -> None:
    """Overwrite every column of an existing truck transaction row.

    The row is located by ``TransactionID`` and rewritten in place using the
    same column ordering as :func:`serialize_truck_transaction`.

    Args:
        workbook (Workbook): Workbook containing the transaction sheet.
        record (TruckTransactionRow): Replacement values; its
            ``transaction_id`` selects the row.

    Raises:
        KeyError: If no row carries ``record.transaction_id``.
    """

    row_index = locate_row(workbook, TRUCK_TRANSACTIONS_SHEET, TRANSACTION_KEY_COLUMN, record.transaction_id)
    if row_index is None:
        raise KeyError(f"Truck transaction not found: {record.transaction_id}")

    sheet = workbook[TRUCK_TRANSACTIONS_SHEET]
    for column, value in enumerate(serialize_truck_transaction(record), start=1):
        # Worksheet.cell ignores value=None, so assign directly to blank cleared fields.
        sheet.cell(row=row_index, column=column).value = value


def delete_truck_transaction(workbook: Workbook, transaction_id: str) -> None:
    """Remove the row holding ``transaction_id`` from ``TruckTransactions``.

    Raises:
        KeyError: If the transaction does not exist.
    """

    row_index = locate_row(workbook, TRUCK_TRANSACTIONS_SHEET, TRANSACTION_KEY_COLUMN, transaction_id)
    if row_index is None:
        raise KeyError(f"Truck transaction not found: {transaction_id}")
    workbook[TRUCK_TRANSACTIONS_SHEET].delete_rows(row_index)
    log.debug("Deleted worksheet row %d for transaction '%s'", row_index, transaction_id)


def locate_row(workbook: Workbook, sheet_name: str, key_column: str, key_value: str) -> Optional[int]:
    """Find a row by matching a key value within the specified worksheet.

    Args:
        workbook (Workbook): Workbook providing access to ``sheet_name``.
        sheet_name (str): Name of the worksheet to search.
        key_column (str): Header title identifying the column that stores the
            lookup key.
        key_value (str): Value to match within the key column.

    Returns:
        int | None: 1-based Excel row index when a match is found, otherwise
            ``None``.

    Raises:
        KeyError: If ``key_column`` is not present in the worksheet header.
    """

    sheet = workbook[sheet_name]
    header_cells = list(sheet[1])
    header_map = {cell.value: idx + 1 for idx, cell in enumerate(header_cells)}
    if key_column not in header_map:
        raise KeyError(f"Unknown column: {key_column}")

    key_col_index = header_map[key_column]

    for row_idx, row in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
        cell_value = row[key_col_index - 1]
        if cell_value is not None and str(cell_value) == key_value:
            return row_idx

    return None


def serialize_customer(record: CustomerRow) -> list[object]:
    """Return ``[CustomerID, Initial]``."""

    return [record.customer_id, record.initial]


def serialize_truck(record: TruckRow) -> list[object]:
    """Return ``[TruckID, TruckName]``."""

    return [record.truck_id, record.name]


def serialize_truck_transaction(record: TruckTransactionRow) -> list[object]:
    """Convert a truck transaction into the worksheet column order.

    The customer reference is split across the ``CustomerID`` and
    ``CustomerInitial`` columns; an absent income stays blank so readers can
    still tell "not entered" apart from zero.
    """

    return [
        record.transaction_id,
        record.date_iso,
        record.container_no,
        record.invoice_no,
        record.destination,
        record.cost,
        record.selling_price,
        record.income,
        record.pph,
        record.customer.customer_id,
        record.customer.initial,
        record.bon,
        record.details,
        record.truck_id,
        record.is_printed_bon,
        record.is_printed_invoice,
        record.editable_by_user_until,
    ]


def serialize_additional_truck_transaction(record: AdditionalTruckTransactionRow) -> list[object]:
    return [
        record.transaction_id,
        record.date_iso,
        record.truck_id,
        record.details,
        record.cost,
        record.selling_price,
    ]


def _to_decimal(raw: object, default: str = "0") -> Decimal:
    return Decimal(str(raw)) if raw is not None else Decimal(default)


def _to_text(raw: object) -> str:
    return str(raw) if raw is not None else ""


def _to_optional_text(raw: object) -> Optional[str]:
    return str(raw) if raw is not None else None


def deserialize_customer(raw_row: Sequence[object]) -> CustomerRow:
    """Convert a raw worksheet row into a :class:`CustomerRow`.

    Both columns are coerced to ``str`` so numeric-looking initials typed into
    Excel do not come back as integers.
    """

    customer_id = raw_row[0]
    initial = raw_row[1]
    return CustomerRow(customer_id=str(customer_id), initial=_to_text(initial))


def deserialize_truck(raw_row: Sequence[object]) -> TruckRow:
    """Convert a raw worksheet row into a :class:`TruckRow`."""

    truck_id = raw_row[0]
    name = raw_row[1]
    return TruckRow(truck_id=str(truck_id), name=_to_text(name))


def deserialize_truck_transaction(raw_row: Sequence[object]) -> TruckTransactionRow:
    """Convert a raw worksheet row into a strongly typed truck transaction.

    Decimal-compatible columns are normalized into :class:`~decimal.Decimal`
    instances, blank income stays ``None``, the print flags are coerced with
    ``bool`` and textual columns default to empty strings.

    Args:
        raw_row (Sequence[object]): Raw cell values in worksheet order.

    Returns:
        TruckTransactionRow: Dataclass reflecting the row contents.
    """

    (
        transaction_id,
        date_iso,
        container_no,
        invoice_no,
        destination,
        cost_raw,
        selling_price_raw,
        income_raw,
        pph_raw,
        customer_id,
        customer_initial,
        bon,
        details,
        truck_id,
        is_printed_bon,
        is_printed_invoice,
        editable_by_user_until,
    ) = raw_row

    return TruckTransactionRow(
        transaction_id=str(transaction_id),
        date_iso=_to_text(date_iso),
        container_no=_to_text(container_no),
        invoice_no=_to_text(invoice_no),
        destination=_to_text(destination),
        cost=_to_decimal(cost_raw),
        selling_price=_to_decimal(selling_price_raw),
        income=(Decimal(str(income_raw)) if income_raw is not None else None),
        pph=_to_decimal(pph_raw),
        customer=CustomerRef(customer_id=_to_text(customer_id), initial=_to_text(customer_initial)),
        bon=_to_text(bon),
        details=_to_text(details),
        truck_id=_to_text(truck_id),
        is_printed_bon=bool(is_printed_bon),
        is_printed_invoice=bool(is_printed_invoice),
        editable_by_user_until=_to_optional_text(editable_by_user_until),
    )


def deserialize_additional_truck_transaction(raw_row: Sequence[object]) -> AdditionalTruckTransactionRow:
    """Convert a raw worksheet row into an :class:`AdditionalTruckTransactionRow`."""

    (
        transaction_id,
        date_iso,
        truck_id,
        details,
        cost_raw,
        selling_price_raw,
    ) = raw_row

    return AdditionalTruckTransactionRow(
        transaction_id=str(transaction_id),
        date_iso=_to_text(date_iso),
        truck_id=_to_optional_text(truck_id),
        details=_to_text(details),
        cost=_to_decimal(cost_raw),
        selling_price=_to_decimal(selling_price_raw),
    )
