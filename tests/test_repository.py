"""Tests for the workbook-backed persistence boundary."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal

import openpyxl
import pytest

from truck_ledger import constants, data_manager, repository, runtime
from truck_ledger.commands import AdditionalTruckTransactionPayload, DateRange


@pytest.fixture
def customer(runtime_context):
    return repository.add_customer(runtime_context, initial="ABC", customer_id="C1")


@pytest.fixture
def resolved_payload(payload_factory, customer):
    return payload_factory(customer=data_manager.CustomerRef(customer.customer_id, customer.initial))


def test_add_customer_rejects_duplicate_initial(runtime_context, customer):
    with pytest.raises(ValueError):
        repository.add_customer(runtime_context, initial="ABC")


def test_get_customer_by_initial_returns_none_when_absent(runtime_context, customer):
    assert repository.get_customer_by_initial(runtime_context, "ABC") == customer
    assert repository.get_customer_by_initial(runtime_context, "XYZ") is None


def test_get_trucks_returns_sheet_order(runtime_context):
    repository.add_truck(runtime_context, name="Truck B", truck_id="T2")
    repository.add_truck(runtime_context, name="Truck A", truck_id="T1")

    assert [truck.truck_id for truck in repository.get_trucks(runtime_context)] == ["T2", "T1"]


def test_create_truck_transaction_persists_resolved_customer(runtime_context, resolved_payload):
    created = repository.create_truck_transaction(runtime_context, resolved_payload)

    stored = repository.get_truck_transactions(runtime_context)
    assert stored == [created]
    assert created.customer == data_manager.CustomerRef("C1", "ABC")
    assert created.is_printed_bon is False
    assert created.is_printed_invoice is False
    assert created.transaction_id.startswith("TT")


def test_create_truck_transaction_refuses_raw_customer(runtime_context, payload_factory):
    with pytest.raises(TypeError):
        repository.create_truck_transaction(runtime_context, payload_factory(customer="ABC"))
    assert repository.get_truck_transactions(runtime_context) == []


@pytest.mark.parametrize("field_name", ["cost", "selling_price"])
def test_create_truck_transaction_rejects_negative_money(runtime_context, resolved_payload, field_name):
    with pytest.raises(ValueError):
        repository.create_truck_transaction(
            runtime_context, replace(resolved_payload, **{field_name: Decimal("-1")})
        )


def test_edit_truck_transaction_keeps_printed_flags(runtime_context, resolved_payload):
    created = repository.create_truck_transaction(runtime_context, resolved_payload)
    assert repository.print_transaction(runtime_context, [created.transaction_id], "bon") == constants.PRINT_SUCCESS_STATUS

    edited = repository.edit_truck_transaction(
        runtime_context,
        replace(resolved_payload, transaction_id=created.transaction_id, destination="Cikarang"),
    )

    assert edited.destination == "Cikarang"
    assert edited.is_printed_bon is True
    assert repository.get_truck_transactions(runtime_context) == [edited]


def test_edit_truck_transaction_clears_optional_fields_on_disk(runtime_context, resolved_payload):
    """Blanking optional fields on edit must blank the stored cells too."""

    created = repository.create_truck_transaction(
        runtime_context,
        replace(
            resolved_payload,
            income=Decimal("999"),
            bon="B-9",
            details="Urgent",
            editable_by_user_until=datetime(2025, 3, 11, 17, 0),
        ),
    )
    runtime.persist_context(runtime_context)
    context = runtime.refresh_context(runtime_context)

    edited = repository.edit_truck_transaction(
        context,
        replace(resolved_payload, transaction_id=created.transaction_id),
    )
    runtime.persist_context(context)
    stored = repository.get_truck_transactions(runtime.refresh_context(context))

    assert edited.income is None
    assert stored == [edited]
    assert stored[0].income is None
    assert stored[0].editable_by_user_until is None
    assert stored[0].bon == ""
    assert stored[0].details == ""


def test_edit_truck_transaction_sets_optional_fields_on_disk(runtime_context, resolved_payload):
    created = repository.create_truck_transaction(runtime_context, resolved_payload)

    edited = repository.edit_truck_transaction(
        runtime_context,
        replace(
            resolved_payload,
            transaction_id=created.transaction_id,
            income=Decimal("120"),
            bon="B-2",
            details="Night haul",
            editable_by_user_until=datetime(2025, 3, 12, 8, 30),
        ),
    )
    runtime.persist_context(runtime_context)
    stored = repository.get_truck_transactions(runtime.refresh_context(runtime_context))

    assert stored == [edited]
    assert stored[0].income == Decimal("120")
    assert stored[0].editable_by_user_until == "2025-03-12T08:30:00"


def test_edit_truck_transaction_unknown_id_raises(runtime_context, resolved_payload):
    with pytest.raises(KeyError):
        repository.edit_truck_transaction(runtime_context, replace(resolved_payload, transaction_id="nope"))


def test_delete_truck_transaction(runtime_context, resolved_payload):
    created = repository.create_truck_transaction(runtime_context, resolved_payload)

    repository.delete_truck_transaction(runtime_context, created.transaction_id)

    assert repository.get_truck_transactions(runtime_context) == []


def test_get_grouped_truck_transactions_filters_by_window(runtime_context, resolved_payload):
    inside = repository.create_truck_transaction(runtime_context, replace(resolved_payload, date=datetime(2025, 3, 15, 8)))
    repository.create_truck_transaction(runtime_context, replace(resolved_payload, date=datetime(2025, 4, 1)))

    window = DateRange(start=datetime(2025, 3, 1), end=datetime(2025, 3, 31, 23, 59, 59))

    assert repository.get_grouped_truck_transactions(runtime_context, window) == [inside]


def test_get_truck_transactions_by_customer_and_truck(runtime_context, resolved_payload):
    other = repository.add_customer(runtime_context, initial="XYZ", customer_id="C2")
    mine = repository.create_truck_transaction(runtime_context, resolved_payload)
    theirs = repository.create_truck_transaction(
        runtime_context,
        replace(resolved_payload, customer=data_manager.CustomerRef(other.customer_id, other.initial), truck_id="T2"),
    )

    assert repository.get_truck_transactions_by_customer_id(runtime_context, "C1") == [mine]
    assert repository.get_truck_transactions_by_truck_id(runtime_context, "T2") == [theirs]


def test_misc_transactions_are_listed_per_truck(runtime_context):
    payload = AdditionalTruckTransactionPayload(date=datetime(2025, 3, 2), details="Ban", cost=Decimal("300"), truck_id="T1")
    created = repository.create_additional_truck_transaction(runtime_context, payload)
    repository.create_additional_truck_transaction(runtime_context, replace(payload, truck_id=None))

    assert repository.get_misc_truck_transactions_by_truck_id(runtime_context, "T1") == [created]


def test_auto_complete_collects_distinct_values(runtime_context, resolved_payload):
    repository.create_truck_transaction(runtime_context, resolved_payload)
    repository.create_truck_transaction(runtime_context, replace(resolved_payload, destination="Cikarang", details="Urgent"))
    repository.create_truck_transaction(runtime_context, resolved_payload)

    suggestions = repository.get_truck_transaction_auto_complete(runtime_context)

    assert suggestions["destination"] == ["Tanjung Priok", "Cikarang"]
    assert suggestions["customer"] == ["ABC"]
    assert suggestions["details"] == ["Urgent"]
    assert suggestions["container_no"] == ["CONT-001"]


def test_print_transaction_sets_matching_flag_and_exports(runtime_context, resolved_payload):
    first = repository.create_truck_transaction(runtime_context, resolved_payload)
    second = repository.create_truck_transaction(runtime_context, resolved_payload)

    status = repository.print_transaction(runtime_context, [first.transaction_id, second.transaction_id], "tagihan")

    assert status == constants.PRINT_SUCCESS_STATUS
    rows = repository.get_truck_transactions(runtime_context)
    assert all(row.is_printed_invoice for row in rows)
    assert not any(row.is_printed_bon for row in rows)

    exports = list(runtime_context.settings.print_dir.glob("tagihan_*.xlsx"))
    assert len(exports) == 1
    sheet = openpyxl.load_workbook(exports[0]).active
    assert sheet.cell(row=1, column=1).value == "Tanggal"
    assert sheet.max_row == 3


def test_print_transaction_unknown_id_changes_nothing(runtime_context, resolved_payload):
    created = repository.create_truck_transaction(runtime_context, resolved_payload)

    status = repository.print_transaction(runtime_context, [created.transaction_id, "ghost"], "bon")

    assert status != constants.PRINT_SUCCESS_STATUS
    assert "ghost" in status
    assert repository.get_truck_transactions(runtime_context)[0].is_printed_bon is False


def test_print_transaction_unknown_doc_type(runtime_context, resolved_payload):
    created = repository.create_truck_transaction(runtime_context, resolved_payload)

    assert repository.print_transaction(runtime_context, [created.transaction_id], "memo") != constants.PRINT_SUCCESS_STATUS


def test_writes_survive_persist_and_refresh(runtime_context, resolved_payload):
    created = repository.create_truck_transaction(runtime_context, resolved_payload)
    runtime.persist_context(runtime_context)

    reloaded = runtime.refresh_context(runtime_context)

    assert [row.transaction_id for row in repository.get_truck_transactions(reloaded)] == [created.transaction_id]
