"""Business logic layer for the truck ledger.

This module resolves customer references before any truck transaction is
written, delegates reads and writes to the persistence boundary in
:mod:`truck_ledger.repository`, and aggregates cost and selling price per
truck for the summary report.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Dict, List, Optional

from . import data_manager, log, repository
from .commands import AdditionalTruckTransactionPayload, DateRange, TruckTransactionPayload
from .constants import CUSTOMER_NOT_REGISTERED_MESSAGE
from .runtime import RuntimeContext


class BusinessRuleViolation(Exception):
    """Raised when a requested operation violates a domain constraint."""


class ValidationError(BusinessRuleViolation):
    """Raised when a write is rejected before reaching persistence."""


class NotFoundError(ValidationError):
    """Raised when a referenced customer cannot be located."""


@dataclass(frozen=True)
class TruckTotals:
    """Accumulated cost and selling price for one truck."""

    cost: Decimal
    selling_price: Decimal


TransactionSummary = Dict[str, TruckTotals]


def resolve_customer(context: RuntimeContext, payload: TruckTransactionPayload) -> TruckTransactionPayload:
    """Swap the payload's customer initial for a canonical reference.

    The lookup is the only read performed; the payload itself is never
    mutated. A payload that already carries a :class:`CustomerRef` is checked
    again by its initial so an edit cannot smuggle in a stale reference.

    Args:
        context (RuntimeContext): Runtime context providing boundary access.
        payload (TruckTransactionPayload): Transaction intent whose
            ``customer`` holds the initial typed by the operator.

    Returns:
        TruckTransactionPayload: Copy of ``payload`` whose ``customer`` is a
            :class:`~truck_ledger.data_manager.CustomerRef`.

    Raises:
        NotFoundError: If no customer is registered under the initial.
    """
    initial = payload.customer.initial if payload.has_resolved_customer else payload.customer
    customer = repository.get_customer_by_initial(context, initial)
    if customer is None:
        log.warning("Customer lookup failed for initial '%s'", initial)
        raise NotFoundError(CUSTOMER_NOT_REGISTERED_MESSAGE)
    return replace(
        payload,
        customer=data_manager.CustomerRef(customer_id=customer.customer_id, initial=customer.initial),
    )


def create_truck_transaction(context: RuntimeContext, payload: TruckTransactionPayload) -> data_manager.TruckTransactionRow:
    """Resolve the customer and persist a new truck transaction.

    No duplicate detection or date checks happen here; those belong to the
    persistence boundary, whose failures propagate unchanged.

    Raises:
        NotFoundError: If the customer initial is not registered. Nothing is
            written in that case.
    """
    resolved = resolve_customer(context, payload)
    return repository.create_truck_transaction(context, resolved)


def edit_truck_transaction(context: RuntimeContext, payload: TruckTransactionPayload) -> data_manager.TruckTransactionRow:
    """Resolve the customer and rewrite an existing truck transaction.

    The transaction id travels with the resolved payload to the boundary.

    Raises:
        NotFoundError: If the customer initial is not registered. Nothing is
            written in that case.
    """
    resolved = resolve_customer(context, payload)
    return repository.edit_truck_transaction(context, resolved)


def create_additional_truck_transaction(
    context: RuntimeContext,
    payload: AdditionalTruckTransactionPayload,
) -> data_manager.AdditionalTruckTransactionRow:
    """Persist a miscellaneous truck cost; these carry no customer."""
    return repository.create_additional_truck_transaction(context, payload)


def list_truck_transactions(context: RuntimeContext) -> List[data_manager.TruckTransactionRow]:
    return repository.get_truck_transactions(context)


def list_customer_transactions(
    context: RuntimeContext,
    customer_id: str,
    date_range: Optional[DateRange] = None,
) -> List[data_manager.TruckTransactionRow]:
    return repository.get_truck_transactions_by_customer_id(context, customer_id, date_range)


def list_truck_transactions_for_truck(context: RuntimeContext, truck_id: str) -> List[data_manager.TruckTransactionRow]:
    return repository.get_truck_transactions_by_truck_id(context, truck_id)


def list_misc_transactions_for_truck(context: RuntimeContext, truck_id: str) -> List[data_manager.AdditionalTruckTransactionRow]:
    return repository.get_misc_truck_transactions_by_truck_id(context, truck_id)


def get_auto_complete(context: RuntimeContext) -> Dict[str, List[str]]:
    return repository.get_truck_transaction_auto_complete(context)


def summarize_truck_transactions(context: RuntimeContext, date_range: DateRange) -> TransactionSummary:
    """Sum cost and selling price per truck name for a reporting window.

    The raw rows for ``date_range`` and the truck list are each fetched once.
    Every row is matched to the first truck sharing its ``truck_id``; rows
    without a match are logged and skipped so a dangling reference never
    blocks the report. Values are added exactly as stored, with no rounding.

    Args:
        context (RuntimeContext): Runtime context providing boundary access.
        date_range (DateRange): Inclusive reporting window.

    Returns:
        dict[str, TruckTotals]: Totals keyed by truck name, in order of first
            appearance. Compare results as mappings; the order carries no
            meaning.
    """
    transactions = repository.get_grouped_truck_transactions(context, date_range)
    trucks = repository.get_trucks(context)

    names_by_id: Dict[str, str] = {}
    for truck in trucks:
        names_by_id.setdefault(truck.truck_id, truck.name)

    summary: TransactionSummary = {}
    for transaction in transactions:
        truck_name = names_by_id.get(transaction.truck_id)
        if not truck_name:
            log.warning("Truck id not found %s", transaction.truck_id)
            continue

        current = summary.get(truck_name)
        if current is None:
            summary[truck_name] = TruckTotals(
                cost=transaction.cost,
                selling_price=transaction.selling_price,
            )
        else:
            summary[truck_name] = TruckTotals(
                cost=current.cost + transaction.cost,
                selling_price=current.selling_price + transaction.selling_price,
            )

    log.debug("Summarized %d transactions into %d trucks", len(transactions), len(summary))
    return summary
