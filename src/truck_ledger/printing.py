"""Print workflow coordination.

Requests a bon (receipt) or tagihan (invoice) for a batch of truck
transactions and turns the boundary's status string into an explicit
outcome. Producing the document and flipping the printed flags is the
boundary's job; this module only validates the request and interprets the
answer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union

from . import log, repository
from .constants import LOADING_MESSAGE, PRINT_RETRY_MESSAGE, PRINT_SUCCESS_STATUS, DocType
from .runtime import RuntimeContext


Notifier = Callable[[str], None]


@dataclass(frozen=True)
class PrintSuccess:
    """The boundary confirmed the print."""

    transaction_ids: tuple[str, ...]
    doc_type: DocType
    message: str = PRINT_SUCCESS_STATUS

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class PrintFailure:
    """The boundary answered with anything but the success literal.

    ``message`` is what users see; ``reason`` keeps the raw status or error so
    callers and logs can tell causes apart.
    """

    transaction_ids: tuple[str, ...]
    doc_type: DocType
    reason: str
    message: str = PRINT_RETRY_MESSAGE

    @property
    def ok(self) -> bool:
        return False


PrintOutcome = Union[PrintSuccess, PrintFailure]


def _log_notice(message: str) -> None:
    log.info("%s", message)


def interpret_print_status(status: object, transaction_ids: Sequence[str], doc_type: DocType) -> PrintOutcome:
    """Map a boundary status to an outcome; only the exact literal succeeds."""
    ids = tuple(transaction_ids)
    if status == PRINT_SUCCESS_STATUS:
        return PrintSuccess(transaction_ids=ids, doc_type=doc_type)
    return PrintFailure(transaction_ids=ids, doc_type=doc_type, reason=str(status))


def print_transactions(
    context: RuntimeContext,
    transaction_ids: Sequence[str],
    doc_type: Union[str, DocType],
    *,
    notify: Optional[Notifier] = None,
) -> PrintOutcome:
    """Request a printed document for ``transaction_ids``.

    A loading notice goes to ``notify`` before the request and the outcome
    message after it. Storage errors raised by the boundary are reported as a
    failure just like a rejected status, so callers always get an outcome.

    Args:
        context (RuntimeContext): Runtime context providing boundary access.
        transaction_ids (Sequence[str]): Ordered, non-empty transaction ids.
        doc_type (str | DocType): ``"bon"`` or ``"tagihan"``.
        notify (Callable[[str], None] | None): Receives user-facing notices.
            Defaults to the package logger.

    Returns:
        PrintSuccess | PrintFailure: Interpreted boundary answer.

    Raises:
        ValueError: If no ids are given or ``doc_type`` is unknown.
    """
    notify = notify or _log_notice
    ids = tuple(transaction_ids)
    if not ids:
        raise ValueError("At least one transaction must be selected for printing")
    document = DocType(doc_type)

    notify(LOADING_MESSAGE)
    try:
        status = repository.print_transaction(context, list(ids), document.value)
    except (OSError, KeyError, ValueError) as exc:
        log.exception("Print request for %s failed", document.value)
        status = f"{type(exc).__name__}: {exc}"

    outcome = interpret_print_status(status, ids, document)
    if not outcome.ok:
        log.warning("Print of %s for %s failed: %s", document.value, ", ".join(ids), outcome.reason)
    notify(outcome.message)
    return outcome
