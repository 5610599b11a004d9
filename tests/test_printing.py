"""Tests for the print workflow and its status interpretation."""

from __future__ import annotations

from unittest.mock import Mock, call

import pytest

from truck_ledger import constants, data_manager, printing, repository
from truck_ledger.constants import DocType


@pytest.fixture
def boundary(monkeypatch):
    """Replace the print boundary with a mock answering ``Print Success``."""

    print_transaction = Mock(return_value=constants.PRINT_SUCCESS_STATUS)
    monkeypatch.setattr(repository, "print_transaction", print_transaction)
    return print_transaction


def test_print_success_reports_ok_and_notifies(context, boundary):
    notices = []

    outcome = printing.print_transactions(context, ["id1", "id2", "id3"], "bon", notify=notices.append)

    assert isinstance(outcome, printing.PrintSuccess)
    assert outcome.ok
    assert outcome.transaction_ids == ("id1", "id2", "id3")
    assert notices == [constants.LOADING_MESSAGE, constants.PRINT_SUCCESS_STATUS]
    boundary.assert_called_once_with(context, ["id1", "id2", "id3"], "bon")


@pytest.mark.parametrize("doc_type", ["bon", "tagihan", DocType.TAGIHAN])
def test_any_other_status_is_a_failure(context, boundary, doc_type):
    """Only the exact success literal counts, whatever the document type."""

    boundary.return_value = "Error"
    notify = Mock()

    outcome = printing.print_transactions(context, ["id1"], doc_type, notify=notify)

    assert isinstance(outcome, printing.PrintFailure)
    assert not outcome.ok
    assert outcome.reason == "Error"
    assert notify.call_args_list == [call(constants.LOADING_MESSAGE), call(constants.PRINT_RETRY_MESSAGE)]


@pytest.mark.parametrize("status", ["print success", "Print Success ", None, True])
def test_near_miss_statuses_fail(status):
    outcome = printing.interpret_print_status(status, ["id1"], DocType.BON)

    assert isinstance(outcome, printing.PrintFailure)


def test_empty_batch_is_rejected_before_boundary(context, boundary):
    with pytest.raises(ValueError):
        printing.print_transactions(context, [], "bon")
    boundary.assert_not_called()


def test_unknown_doc_type_is_rejected_before_boundary(context, boundary):
    with pytest.raises(ValueError):
        printing.print_transactions(context, ["id1"], "memo")
    boundary.assert_not_called()


def test_storage_error_becomes_failure(context, boundary):
    boundary.side_effect = OSError("disk full")
    notices = []

    outcome = printing.print_transactions(context, ["id1"], "tagihan", notify=notices.append)

    assert isinstance(outcome, printing.PrintFailure)
    assert "disk full" in outcome.reason
    assert notices[-1] == constants.PRINT_RETRY_MESSAGE


def test_default_notifier_logs(context, boundary, caplog):
    with caplog.at_level("INFO", logger="truck_ledger"):
        printing.print_transactions(context, ["id1"], "bon")

    assert constants.LOADING_MESSAGE in caplog.text


def test_print_against_real_workbook_marks_rows(runtime_context, payload_factory):
    customer = repository.add_customer(runtime_context, initial="ABC")
    payload = payload_factory(customer=data_manager.CustomerRef(customer.customer_id, customer.initial))
    created = repository.create_truck_transaction(runtime_context, payload)

    outcome = printing.print_transactions(runtime_context, [created.transaction_id], "bon", notify=lambda _: None)

    assert outcome.ok
    assert repository.get_truck_transactions(runtime_context)[0].is_printed_bon is True
