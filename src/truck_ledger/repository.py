"""Workbook-backed persistence boundary.

Every operation the business layer consumes from storage lives here: customer
and truck lookups, truck transaction queries and writes, the autocomplete
feed, and the bulk print operation that exports a printable sheet and flips
the printed flags. Functions read through per-context caches and invalidate
them after every mutation.

The boundary owns the rules the business layer deliberately skips: money
columns must be nonnegative, customers must arrive as resolved references and
transaction ids must exist before they are edited, deleted or printed.
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import openpyxl
from openpyxl.styles import Font

from . import data_manager, log
from .commands import AdditionalTruckTransactionPayload, DateRange, TruckTransactionPayload, as_naive_local
from .constants import PRINT_SUCCESS_STATUS, DocType
from .runtime import RuntimeContext, get_cache_bucket, invalidate_cache


AUTOCOMPLETE_FIELDS = ("container_no", "destination", "customer", "details")

# Columns exported on each printable document, as (header, attribute).
DOCUMENT_COLUMNS: Dict[DocType, Sequence[tuple[str, str]]] = {
    DocType.BON: (
        ("Tanggal", "date_iso"),
        ("No. Container", "container_no"),
        ("No. Bon", "invoice_no"),
        ("Tujuan", "destination"),
        ("Customer", "customer"),
        ("Bon", "bon"),
        ("Borongan", "cost"),
    ),
    DocType.TAGIHAN: (
        ("Tanggal", "date_iso"),
        ("No. Container", "container_no"),
        ("No. Bon", "invoice_no"),
        ("Tujuan", "destination"),
        ("Customer", "customer"),
        ("Harga", "selling_price"),
        ("PPh", "pph"),
    ),
}


def generate_id(prefix: str, *, when: Optional[datetime] = None) -> str:
    """Generate a sortable identifier from a UTC timestamp and a random suffix.

    Returns:
        str: Identifier formed as ``{prefix}{YYYYMMDDHHMMSS}{8 hex chars}``.
    """
    when = when or datetime.now(UTC)
    return f"{prefix}{when.strftime('%Y%m%d%H%M%S')}{uuid.uuid4().hex[:8]}"


def require_nonnegative_money(amount: Optional[Decimal], *, field_name: str) -> None:
    """Validate that a monetary value is nonnegative.

    Raises:
        ValueError: If ``amount`` is less than zero.
    """
    if amount is not None and amount < Decimal("0"):
        log.error("Monetary value validation failed for %s: %s", field_name, amount)
        raise ValueError(f"{field_name} must be zero or positive")


def _ensure_customers_cache(context: RuntimeContext) -> Dict[str, Any]:
    bucket = get_cache_bucket(context, "customers")
    if "all" not in bucket:
        all_customers = list(data_manager.iter_customers(context.workbook))
        bucket["all"] = all_customers
        bucket["by_id"] = {customer.customer_id: customer for customer in all_customers}
        by_initial: Dict[str, data_manager.CustomerRow] = {}
        for customer in all_customers:
            by_initial.setdefault(customer.initial, customer)
        bucket["by_initial"] = by_initial
        log.debug("Populated customers cache with %d entries", len(all_customers))
    return bucket


def _ensure_trucks_cache(context: RuntimeContext) -> Dict[str, Any]:
    bucket = get_cache_bucket(context, "trucks")
    if "all" not in bucket:
        all_trucks = list(data_manager.iter_trucks(context.workbook))
        bucket["all"] = all_trucks
        bucket["by_id"] = {truck.truck_id: truck for truck in all_trucks}
        log.debug("Populated trucks cache with %d entries", len(all_trucks))
    return bucket


def _ensure_transactions_cache(context: RuntimeContext) -> Dict[str, Any]:
    """Populate the truck transaction cache bucket on demand.

    The bucket holds ``all`` rows in sheet order and a ``by_id`` mapping for
    primary key lookups used by edit, delete and print.
    """
    bucket = get_cache_bucket(context, "truck_transactions")
    if "all" not in bucket:
        all_transactions = list(data_manager.iter_truck_transactions(context.workbook))
        bucket["all"] = all_transactions
        bucket["by_id"] = {row.transaction_id: row for row in all_transactions}
        log.debug("Populated truck transactions cache with %d entries", len(all_transactions))
    return bucket


def _ensure_additional_cache(context: RuntimeContext) -> Dict[str, Any]:
    bucket = get_cache_bucket(context, "additional_truck_transactions")
    if "all" not in bucket:
        bucket["all"] = list(data_manager.iter_additional_truck_transactions(context.workbook))
        log.debug("Populated additional truck transactions cache with %d entries", len(bucket["all"]))
    return bucket


def _transaction_moment(row: data_manager.TruckTransactionRow) -> Optional[datetime]:
    if not row.date_iso:
        return None
    try:
        return as_naive_local(datetime.fromisoformat(row.date_iso))
    except ValueError:
        log.warning("Transaction '%s' carries an unparsable date '%s'", row.transaction_id, row.date_iso)
        return None


def _within(rows: Iterable[data_manager.TruckTransactionRow], date_range: Optional[DateRange]) -> List[data_manager.TruckTransactionRow]:
    if date_range is None:
        return list(rows)
    selected = []
    for row in rows:
        moment = _transaction_moment(row)
        if moment is not None and date_range.contains(moment):
            selected.append(row)
    return selected


# ---------------------------------------------------------------------------
# Customer and truck lookups
# ---------------------------------------------------------------------------


def get_customer_by_initial(context: RuntimeContext, initial: str) -> Optional[data_manager.CustomerRow]:
    """Return the customer registered under ``initial`` or ``None``."""
    return _ensure_customers_cache(context)["by_initial"].get(initial)


def get_trucks(context: RuntimeContext) -> List[data_manager.TruckRow]:
    """Return every truck in sheet order."""
    return list(_ensure_trucks_cache(context)["all"])


def add_customer(context: RuntimeContext, *, initial: str, customer_id: Optional[str] = None) -> data_manager.CustomerRow:
    """Register a customer under a unique initial.

    Raises:
        ValueError: If the initial is blank or already registered.
    """
    initial = initial.strip()
    if not initial:
        raise ValueError("Customer initial must not be empty")
    if get_customer_by_initial(context, initial) is not None:
        log.warning("Customer initial '%s' is already registered", initial)
        raise ValueError(f"Customer initial already registered: {initial}")

    record = data_manager.CustomerRow(customer_id=customer_id or generate_id("C"), initial=initial)
    data_manager.append_customer(context.workbook, record)
    invalidate_cache(context, "customers")
    log.info("Registered customer '%s' (%s)", record.initial, record.customer_id)
    return record


def add_truck(context: RuntimeContext, *, name: str, truck_id: Optional[str] = None) -> data_manager.TruckRow:
    """Register a truck.

    Raises:
        ValueError: If the name is blank or the id is already taken.
    """
    name = name.strip()
    if not name:
        raise ValueError("Truck name must not be empty")
    record = data_manager.TruckRow(truck_id=truck_id or generate_id("K"), name=name)
    if record.truck_id in _ensure_trucks_cache(context)["by_id"]:
        raise ValueError(f"Truck id already registered: {record.truck_id}")

    data_manager.append_truck(context.workbook, record)
    invalidate_cache(context, "trucks")
    log.info("Registered truck '%s' (%s)", record.name, record.truck_id)
    return record


# ---------------------------------------------------------------------------
# Truck transactions
# ---------------------------------------------------------------------------


def _build_truck_transaction_row(
    payload: TruckTransactionPayload,
    *,
    transaction_id: str,
    is_printed_bon: bool = False,
    is_printed_invoice: bool = False,
) -> data_manager.TruckTransactionRow:
    if not payload.has_resolved_customer:
        log.error("Refusing to persist unresolved customer '%s'", payload.customer)
        raise TypeError("Customer must be resolved to a CustomerRef before persistence")
    require_nonnegative_money(payload.cost, field_name="cost")
    require_nonnegative_money(payload.selling_price, field_name="selling_price")

    return data_manager.TruckTransactionRow(
        transaction_id=transaction_id,
        date_iso=payload.date.isoformat(),
        container_no=payload.container_no,
        invoice_no=payload.invoice_no,
        destination=payload.destination,
        cost=payload.cost,
        selling_price=payload.selling_price,
        income=payload.income,
        pph=payload.pph,
        customer=payload.customer,
        bon=payload.bon,
        details=payload.details,
        truck_id=payload.truck_id,
        is_printed_bon=is_printed_bon,
        is_printed_invoice=is_printed_invoice,
        editable_by_user_until=(
            payload.editable_by_user_until.isoformat() if payload.editable_by_user_until is not None else None
        ),
    )


def create_truck_transaction(context: RuntimeContext, payload: TruckTransactionPayload) -> data_manager.TruckTransactionRow:
    """Append a new truck transaction with both printed flags cleared.

    Raises:
        TypeError: If ``payload.customer`` is still a raw initial.
        ValueError: If cost or selling price is negative.
    """
    record = _build_truck_transaction_row(payload, transaction_id=generate_id("TT"))
    data_manager.append_truck_transaction(context.workbook, record)
    invalidate_cache(context, "truck_transactions")
    log.info(
        "Recorded truck transaction '%s' for truck '%s' (cost=%s, selling_price=%s)",
        record.transaction_id,
        record.truck_id,
        record.cost,
        record.selling_price,
    )
    return record


def edit_truck_transaction(context: RuntimeContext, payload: TruckTransactionPayload) -> data_manager.TruckTransactionRow:
    """Rewrite an existing truck transaction, keeping its printed flags.

    Raises:
        KeyError: If ``payload.transaction_id`` is missing or unknown.
        TypeError: If ``payload.customer`` is still a raw initial.
        ValueError: If cost or selling price is negative.
    """
    if payload.transaction_id is None:
        raise KeyError("Editing requires a transaction id")
    existing = _ensure_transactions_cache(context)["by_id"].get(payload.transaction_id)
    if existing is None:
        log.warning("Edit requested for unknown transaction '%s'", payload.transaction_id)
        raise KeyError(f"Truck transaction not found: {payload.transaction_id}")

    record = _build_truck_transaction_row(
        payload,
        transaction_id=existing.transaction_id,
        is_printed_bon=existing.is_printed_bon,
        is_printed_invoice=existing.is_printed_invoice,
    )
    data_manager.replace_truck_transaction(context.workbook, record)
    invalidate_cache(context, "truck_transactions")
    log.info("Edited truck transaction '%s'", record.transaction_id)
    return record


def delete_truck_transaction(context: RuntimeContext, transaction_id: str) -> None:
    """Remove a truck transaction.

    Raises:
        KeyError: If the transaction does not exist.
    """
    data_manager.delete_truck_transaction(context.workbook, transaction_id)
    invalidate_cache(context, "truck_transactions")
    log.info("Deleted truck transaction '%s'", transaction_id)


def get_truck_transactions(context: RuntimeContext) -> List[data_manager.TruckTransactionRow]:
    """Return every truck transaction in sheet order."""
    return list(_ensure_transactions_cache(context)["all"])


def get_grouped_truck_transactions(context: RuntimeContext, date_range: DateRange) -> List[data_manager.TruckTransactionRow]:
    """Return the raw rows whose date falls inside ``date_range`` (inclusive).

    Rows with a blank or unparsable date never match a window.
    """
    return _within(_ensure_transactions_cache(context)["all"], date_range)


def get_truck_transactions_by_customer_id(
    context: RuntimeContext,
    customer_id: str,
    date_range: Optional[DateRange] = None,
) -> List[data_manager.TruckTransactionRow]:
    """Return a customer's transactions, optionally limited to a window."""
    rows = (row for row in _ensure_transactions_cache(context)["all"] if row.customer.customer_id == customer_id)
    return _within(rows, date_range)


def get_truck_transactions_by_truck_id(context: RuntimeContext, truck_id: str) -> List[data_manager.TruckTransactionRow]:
    """Return the transactions hauled by one truck."""
    return [row for row in _ensure_transactions_cache(context)["all"] if row.truck_id == truck_id]


def get_truck_transaction_auto_complete(context: RuntimeContext) -> Dict[str, List[str]]:
    """Collect distinct, non-empty values per form field in first-seen order.

    Returns:
        dict[str, list[str]]: Keys are ``container_no``, ``destination``,
            ``customer`` (initials) and ``details``.
    """
    suggestions: Dict[str, Dict[str, None]] = {name: {} for name in AUTOCOMPLETE_FIELDS}
    for row in _ensure_transactions_cache(context)["all"]:
        values = {
            "container_no": row.container_no,
            "destination": row.destination,
            "customer": row.customer.initial,
            "details": row.details,
        }
        for name, value in values.items():
            if value:
                suggestions[name].setdefault(value, None)
    return {name: list(values) for name, values in suggestions.items()}


# ---------------------------------------------------------------------------
# Additional (miscellaneous) truck transactions
# ---------------------------------------------------------------------------


def create_additional_truck_transaction(
    context: RuntimeContext,
    payload: AdditionalTruckTransactionPayload,
) -> data_manager.AdditionalTruckTransactionRow:
    """Append a miscellaneous cost record.

    Raises:
        ValueError: If cost or selling price is negative.
    """
    require_nonnegative_money(payload.cost, field_name="cost")
    require_nonnegative_money(payload.selling_price, field_name="selling_price")
    record = data_manager.AdditionalTruckTransactionRow(
        transaction_id=generate_id("AT"),
        date_iso=payload.date.isoformat(),
        truck_id=payload.truck_id,
        details=payload.details,
        cost=payload.cost,
        selling_price=payload.selling_price,
    )
    data_manager.append_additional_truck_transaction(context.workbook, record)
    invalidate_cache(context, "additional_truck_transactions")
    log.info("Recorded additional truck transaction '%s' (cost=%s)", record.transaction_id, record.cost)
    return record


def get_misc_truck_transactions_by_truck_id(
    context: RuntimeContext,
    truck_id: str,
) -> List[data_manager.AdditionalTruckTransactionRow]:
    """Return the miscellaneous cost records tagged with ``truck_id``."""
    return [row for row in _ensure_additional_cache(context)["all"] if row.truck_id == truck_id]


# ---------------------------------------------------------------------------
# Printing
# ---------------------------------------------------------------------------


def _cell_value(row: data_manager.TruckTransactionRow, attribute: str) -> object:
    value = getattr(row, attribute)
    if isinstance(value, data_manager.CustomerRef):
        return value.initial
    return value


def export_document(
    destination_dir: Path,
    doc_type: DocType,
    rows: Sequence[data_manager.TruckTransactionRow],
    *,
    when: Optional[datetime] = None,
) -> Path:
    """Write the printable sheet for ``rows`` and return its path."""
    when = when or datetime.now(UTC)
    columns = DOCUMENT_COLUMNS[doc_type]

    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = doc_type.value.capitalize()
    bold_font = Font(bold=True)
    for column_index, (header, _) in enumerate(columns, start=1):
        cell = sheet.cell(row=1, column=column_index, value=header)
        cell.font = bold_font
    for row in rows:
        sheet.append([_cell_value(row, attribute) for _, attribute in columns])

    destination = Path(destination_dir).expanduser().resolve() / f"{doc_type.value}_{when.strftime('%Y%m%d%H%M%S%f')}.xlsx"
    data_manager.save_workbook(workbook, destination)
    return destination


def print_transaction(context: RuntimeContext, transaction_ids: Sequence[str], doc_type: str) -> str:
    """Export a printable document for the given transactions and mark them.

    The request is all-or-nothing: an unknown document type or any unknown id
    is reported through the returned status and nothing is exported or
    flagged. On success ``is_printed_bon`` (for ``bon``) or
    ``is_printed_invoice`` (for ``tagihan``) is set on every row.

    Args:
        context (RuntimeContext): Runtime context providing workbook access.
        transaction_ids (Sequence[str]): Ordered transaction identifiers.
        doc_type (str): ``"bon"`` or ``"tagihan"``.

    Returns:
        str: ``PRINT_SUCCESS_STATUS`` on success, otherwise a short reason.

    Raises:
        OSError: If the printable document cannot be written.
    """
    try:
        document = DocType(doc_type)
    except ValueError:
        log.warning("Print rejected: unknown document type '%s'", doc_type)
        return f"Unknown document type: {doc_type}"
    if not transaction_ids:
        return "No transactions to print"

    by_id = _ensure_transactions_cache(context)["by_id"]
    missing = [transaction_id for transaction_id in transaction_ids if transaction_id not in by_id]
    if missing:
        log.warning("Print rejected: unknown transactions %s", ", ".join(missing))
        return f"Transaction not found: {', '.join(missing)}"

    rows = [by_id[transaction_id] for transaction_id in transaction_ids]
    path = export_document(context.settings.print_dir, document, rows)

    flag = "is_printed_bon" if document is DocType.BON else "is_printed_invoice"
    for row in rows:
        if not getattr(row, flag):
            data_manager.replace_truck_transaction(context.workbook, replace(row, **{flag: True}))
    invalidate_cache(context, "truck_transactions")
    log.info("Printed %s for %d transactions to '%s'", document.value, len(rows), path)
    return PRINT_SUCCESS_STATUS
