"""Integration tests describing the end-to-end truck ledger workflows.

These scenarios run the persistence boundary, the business layer, the print
workflow and the CLI against a real temporary workbook.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest

from truck_ledger import cli, constants, core_logic, repository, runtime, selection
from truck_ledger.commands import resolve_date_range


def test_record_summarize_and_print_cycle(runtime_context, payload_factory):
    """Walk through registration, recording, reporting and printing."""

    context = runtime_context
    repository.add_customer(context, initial="ABC", customer_id="C1")
    repository.add_truck(context, name="Truck A", truck_id="T1")
    repository.add_truck(context, name="Truck B", truck_id="T2")

    # Persist and reload so later steps read what was written to disk.
    runtime.persist_context(context)
    context = runtime.refresh_context(context)

    first = core_logic.create_truck_transaction(
        context, payload_factory(cost=Decimal("100"), selling_price=Decimal("150"))
    )
    core_logic.create_truck_transaction(
        context, payload_factory(cost=Decimal("50"), selling_price=Decimal("80"), date=datetime(2025, 3, 20))
    )
    core_logic.create_truck_transaction(
        context, payload_factory(cost=Decimal("200"), selling_price=Decimal("300"), truck_id="T2")
    )
    # Outside the reporting window.
    core_logic.create_truck_transaction(
        context, payload_factory(cost=Decimal("999"), selling_price=Decimal("999"), date=datetime(2025, 4, 2))
    )

    window = resolve_date_range("2025-03-01", "2025-03-31")
    summary = core_logic.summarize_truck_transactions(context, window)
    assert summary == {
        "Truck A": core_logic.TruckTotals(cost=Decimal("150"), selling_price=Decimal("230")),
        "Truck B": core_logic.TruckTotals(cost=Decimal("200"), selling_price=Decimal("300")),
    }

    table = selection.TruckTransactionTable(
        context,
        lambda ctx: core_logic.list_customer_transactions(ctx, "C1", window),
        notify=lambda _: None,
    )
    assert len(table.rows) == 3
    table.toggle(first.transaction_id)
    outcome = table.print_selected("bon")

    assert outcome.ok
    assert table.selection.selected_ids() == [first.transaction_id]

    runtime.persist_context(context)
    reloaded = runtime.refresh_context(context)
    printed = {row.transaction_id: row.is_printed_bon for row in core_logic.list_truck_transactions(reloaded)}
    assert printed[first.transaction_id] is True
    assert sum(printed.values()) == 1


def test_unknown_customer_leaves_workbook_untouched(runtime_context, payload_factory):
    with pytest.raises(core_logic.NotFoundError, match=constants.CUSTOMER_NOT_REGISTERED_MESSAGE):
        core_logic.create_truck_transaction(runtime_context, payload_factory(customer="XYZ"))

    assert core_logic.list_truck_transactions(runtime_context) == []


def test_cli_round_trip(config_file, capsys):
    """Each CLI invocation saves its writes for the next one to read."""

    base = ["--config", str(config_file)]

    assert cli.main([*base, "add-customer", "--initial", "ABC", "--customer-id", "C1"]) == 0
    assert cli.main([*base, "add-truck", "--name", "Truck A", "--truck-id", "T1"]) == 0
    capsys.readouterr()

    record = [
        "record",
        "--date", "2025-03-10",
        "--container-no", "CONT-001",
        "--invoice-no", "INV-001",
        "--destination", "Tanjung Priok",
        "--cost", "100",
        "--selling-price", "150",
        "--customer", "ABC",
        "--truck-id", "T1",
    ]
    assert cli.main([*base, *record]) == 0
    transaction_id = capsys.readouterr().out.strip()
    assert transaction_id.startswith("TT")

    assert cli.main([*base, "summary", "--start-date", "2025-03-01", "--end-date", "2025-03-31"]) == 0
    assert "Truck A: cost=100 selling_price=150" in capsys.readouterr().out

    assert cli.main([*base, "print", "--doc-type", "tagihan", transaction_id]) == 0
    assert constants.PRINT_SUCCESS_STATUS in capsys.readouterr().out

    assert cli.main([*base, "print", "--doc-type", "bon", "ghost"]) == cli.PRINT_FAILED_EXIT_CODE
    assert constants.PRINT_RETRY_MESSAGE in capsys.readouterr().out

    unknown = [*record]
    unknown[unknown.index("ABC")] = "XYZ"
    assert cli.main([*base, *unknown]) == 2

    context = runtime.load_runtime_context(config_file)
    rows = core_logic.list_truck_transactions(context)
    assert [row.transaction_id for row in rows] == [transaction_id]
    assert rows[0].is_printed_invoice is True
    assert rows[0].is_printed_bon is False
