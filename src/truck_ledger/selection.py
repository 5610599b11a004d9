"""Row selection for batch printing.

Selection lives only as long as the displayed transaction list. Every toggle
produces a new :class:`SelectionState`; the previous one is never modified, so
an observer holding a reference always sees a consistent snapshot. A selected
row is queued for batch printing and may not be edited or deleted until it is
toggled back or the list is reloaded. Printing the selection leaves it in
place.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Union

from . import data_manager, log, printing
from .constants import DocType
from .runtime import RuntimeContext


class RowState(str, Enum):
    IDLE = "idle"
    SELECTED = "selected"


@dataclass(frozen=True)
class RowActions:
    """Which actions a row offers right now."""

    can_edit: bool
    can_delete: bool
    can_print: bool


@dataclass(frozen=True)
class SelectionState:
    """Immutable mapping from row id to :class:`RowState`, in display order."""

    row_ids: tuple[str, ...]
    states: Mapping[str, RowState]

    def state_of(self, row_id: str) -> RowState:
        try:
            return self.states[row_id]
        except KeyError as exc:
            raise KeyError(f"Unknown row: {row_id}") from exc

    def is_selected(self, row_id: str) -> bool:
        return self.state_of(row_id) is RowState.SELECTED

    def selected_ids(self) -> List[str]:
        return [row_id for row_id in self.row_ids if self.states[row_id] is RowState.SELECTED]


def load_selection(row_ids: Iterable[str]) -> SelectionState:
    """Start a fresh selection with every row idle.

    Duplicate ids collapse onto their first position.
    """
    ordered = tuple(dict.fromkeys(row_ids))
    return SelectionState(
        row_ids=ordered,
        states=MappingProxyType({row_id: RowState.IDLE for row_id in ordered}),
    )


def toggle(state: SelectionState, row_id: str) -> SelectionState:
    """Return a new state with ``row_id`` flipped and every other row unchanged.

    Raises:
        KeyError: If ``row_id`` is not part of the loaded rows.
    """
    current = state.state_of(row_id)
    updated = dict(state.states)
    updated[row_id] = RowState.IDLE if current is RowState.SELECTED else RowState.SELECTED
    return SelectionState(row_ids=state.row_ids, states=MappingProxyType(updated))


def actions_for(state: SelectionState, row_id: str) -> RowActions:
    """Edit and delete are disabled while a row is selected; printing never is."""
    selected = state.is_selected(row_id)
    return RowActions(can_edit=not selected, can_delete=not selected, can_print=True)


def print_selected(
    context: RuntimeContext,
    state: SelectionState,
    doc_type: Union[str, DocType],
    *,
    notify: Optional[printing.Notifier] = None,
) -> printing.PrintOutcome:
    """Print every selected row in display order; the selection is kept.

    Raises:
        ValueError: If nothing is selected or ``doc_type`` is unknown.
    """
    return printing.print_transactions(context, state.selected_ids(), doc_type, notify=notify)


def print_row(
    context: RuntimeContext,
    row_id: str,
    doc_type: Union[str, DocType],
    *,
    notify: Optional[printing.Notifier] = None,
) -> printing.PrintOutcome:
    """Print a single row regardless of its selection state."""
    return printing.print_transactions(context, [row_id], doc_type, notify=notify)


RowLoader = Callable[[RuntimeContext], Sequence[data_manager.TruckTransactionRow]]


class TruckTransactionTable:
    """Displayed truck transactions plus their committed selection.

    ``loader`` fetches the rows from the source of truth; each :meth:`reload`
    replaces both the rows and the selection.
    """

    def __init__(
        self,
        context: RuntimeContext,
        loader: RowLoader,
        *,
        notify: Optional[printing.Notifier] = None,
    ) -> None:
        self.context = context
        self._loader = loader
        self._notify = notify
        self.rows: List[data_manager.TruckTransactionRow] = []
        self.selection = load_selection(())
        self.reload()

    def reload(self) -> None:
        self.rows = list(self._loader(self.context))
        self.selection = load_selection(row.transaction_id for row in self.rows)
        log.debug("Loaded %d rows into the transaction table", len(self.rows))

    def toggle(self, row_id: str) -> SelectionState:
        self.selection = toggle(self.selection, row_id)
        return self.selection

    def actions_for(self, row_id: str) -> RowActions:
        return actions_for(self.selection, row_id)

    def print_selected(self, doc_type: Union[str, DocType]) -> printing.PrintOutcome:
        return print_selected(self.context, self.selection, doc_type, notify=self._notify)

    def print_row(self, row_id: str, doc_type: Union[str, DocType]) -> printing.PrintOutcome:
        return print_row(self.context, row_id, doc_type, notify=self._notify)
