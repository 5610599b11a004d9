"""Display projections for transaction tables.

Row views are built by selecting an explicit list of visible fields from a
stored record. Nothing is copied and then pruned, so internal fields such as
ids and print flags stay available to the caller while never reaching the
rendered row.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, Mapping, Sequence, Tuple, Union

from . import data_manager
from .constants import UserRole


Extractor = Callable[[data_manager.TruckTransactionRow], object]


def effective_income(row: data_manager.TruckTransactionRow) -> Decimal:
    """Stored income, or the selling price when none was entered."""
    return row.income if row.income is not None else row.selling_price


TRUCK_TRANSACTION_FIELDS: Mapping[str, Extractor] = {
    "id": lambda row: row.transaction_id,
    "date": lambda row: row.date_iso,
    "containerNo": lambda row: row.container_no,
    "invoiceNo": lambda row: row.invoice_no,
    "destination": lambda row: row.destination,
    "cost": lambda row: row.cost,
    "sellingPrice": lambda row: row.selling_price,
    "income": effective_income,
    "pph": lambda row: row.pph,
    "customer": lambda row: row.customer.initial,
    "bon": lambda row: row.bon,
    "details": lambda row: row.details,
    "truckId": lambda row: row.truck_id,
    "isPrintedBon": lambda row: row.is_printed_bon,
    "isPrintedInvoice": lambda row: row.is_printed_invoice,
    "editableByUserUntil": lambda row: row.editable_by_user_until,
}

MONEY_FIELDS = frozenset({"cost", "sellingPrice", "income", "pph"})

# (field, header) pairs for the customer detail page.
CUSTOMER_DETAIL_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("date", "Tanggal"),
    ("containerNo", "No. Container"),
    ("invoiceNo", "No. Bon"),
    ("destination", "Tujuan"),
    ("cost", "Borongan"),
    ("income", "Pembayaran"),
    ("customer", "EMKL"),
    ("bon", "Bon"),
    ("details", "Info Tambahan"),
)

ADDITIONAL_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("date", "Tanggal"),
    ("details", "Keterangan"),
    ("cost", "Biaya"),
)


@dataclass(frozen=True)
class ColumnVisibility:
    show_print_column: bool
    show_actions_column: bool


@dataclass(frozen=True)
class TableTotals:
    cost: Decimal
    selling_price: Decimal


def customer_detail_columns(role: Union[str, UserRole]) -> Tuple[Tuple[str, str], ...]:
    """Columns of the customer detail table; plain users do not see income."""
    if UserRole(role) is UserRole.USER:
        return tuple(column for column in CUSTOMER_DETAIL_COLUMNS if column[0] != "income")
    return CUSTOMER_DETAIL_COLUMNS


def column_visibility(role: Union[str, UserRole], *, emkl: bool) -> ColumnVisibility:
    """Print buttons show on EMKL tables for non-guests; actions for non-guests."""
    is_guest = UserRole(role) is UserRole.GUEST
    return ColumnVisibility(show_print_column=emkl and not is_guest, show_actions_column=not is_guest)


def format_value(field: str, value: object) -> str:
    if value is None:
        return ""
    if field in MONEY_FIELDS and isinstance(value, Decimal):
        return f"{value:,}"
    if field == "date" and isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value).strftime("%d/%m/%Y")
        except ValueError:
            return value
    return str(value)


def build_row_view(
    row: data_manager.TruckTransactionRow,
    fields: Sequence[str],
    *,
    number: int | None = None,
) -> Dict[str, str]:
    """Project ``row`` onto ``fields`` in the given order.

    Args:
        row (TruckTransactionRow): Stored transaction.
        fields (Sequence[str]): Visible field names from
            :data:`TRUCK_TRANSACTION_FIELDS`.
        number (int | None): Optional 1-based row number, emitted as ``no``.

    Returns:
        dict[str, str]: Display strings keyed by field name.

    Raises:
        KeyError: If a field name is unknown.
    """
    view: Dict[str, str] = {}
    if number is not None:
        view["no"] = str(number)
    for field in fields:
        view[field] = format_value(field, TRUCK_TRANSACTION_FIELDS[field](row))
    return view


def build_table(
    rows: Sequence[data_manager.TruckTransactionRow],
    columns: Sequence[Tuple[str, str]],
) -> list[Dict[str, str]]:
    """Numbered row views for ``rows`` using the fields of ``columns``."""
    fields = [field for field, _ in columns]
    return [build_row_view(row, fields, number=index) for index, row in enumerate(rows, start=1)]


def build_additional_row_view(row: data_manager.AdditionalTruckTransactionRow) -> Dict[str, str]:
    values = {"date": row.date_iso, "details": row.details, "cost": row.cost}
    return {field: format_value(field, values[field]) for field, _ in ADDITIONAL_COLUMNS}


def table_totals(rows: Sequence[data_manager.TruckTransactionRow]) -> TableTotals:
    """Footer sums of cost and selling price for the displayed rows."""
    return TableTotals(
        cost=sum((row.cost for row in rows), Decimal("0")),
        selling_price=sum((row.selling_price for row in rows), Decimal("0")),
    )


def additional_table_total(rows: Sequence[data_manager.AdditionalTruckTransactionRow]) -> Decimal:
    return sum((row.cost for row in rows), Decimal("0"))
