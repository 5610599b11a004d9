"""User intents and report queries consumed by the business layer.

Commands are immutable dataclasses. A :class:`TruckTransactionPayload` enters
the system with ``customer`` holding the initial typed by the operator and
only reaches the persistence boundary after the business layer has swapped it
for a :class:`~truck_ledger.data_manager.CustomerRef`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional, Union

from .data_manager import CustomerRef


@dataclass(frozen=True)
class TruckTransactionPayload:
    """User intent for creating or editing a truck transaction."""

    date: Union[date, datetime]
    container_no: str
    invoice_no: str
    destination: str
    cost: Decimal
    selling_price: Decimal
    customer: Union[str, CustomerRef]
    truck_id: str
    income: Optional[Decimal] = None
    pph: Decimal = Decimal("0")
    bon: str = ""
    details: str = ""
    editable_by_user_until: Optional[datetime] = None
    transaction_id: Optional[str] = None

    @property
    def has_resolved_customer(self) -> bool:
        return isinstance(self.customer, CustomerRef)


@dataclass(frozen=True)
class AdditionalTruckTransactionPayload:
    """User intent for recording a miscellaneous truck cost."""

    date: Union[date, datetime]
    details: str
    cost: Decimal
    selling_price: Decimal = Decimal("0")
    truck_id: Optional[str] = None


@dataclass(frozen=True)
class DateRange:
    """Inclusive reporting window expressed as two naive local datetimes."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError("End date must not precede start date")

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


def as_naive_local(moment: Union[date, datetime]) -> datetime:
    """Normalize dates and aware datetimes into comparable naive local values."""
    if not isinstance(moment, datetime):
        return datetime.combine(moment, time.min)
    if moment.tzinfo is not None:
        return moment.astimezone().replace(tzinfo=None)
    return moment


def default_date_range(now: Optional[datetime] = None) -> DateRange:
    """Return the window from the start of the month to the end of today."""
    current = as_naive_local(now) if now is not None else datetime.now()
    start = current.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    end = datetime.combine(current.date(), time.max)
    return DateRange(start=start, end=end)


def resolve_date_range(
    start_date: Optional[Union[str, date, datetime]] = None,
    end_date: Optional[Union[str, date, datetime]] = None,
    *,
    now: Optional[datetime] = None,
) -> DateRange:
    """Build a :class:`DateRange` from optional ISO-8601 values.

    Missing bounds fall back to :func:`default_date_range`. A date-only end
    bound covers the whole day, matching how the date picker used to set the
    end of the window to 23:59:59.

    Raises:
        ValueError: If a string bound is not valid ISO-8601 or the window is
            inverted.
    """
    defaults = default_date_range(now)

    def _coerce(raw, fallback: datetime, *, end_of_day: bool) -> datetime:
        if raw is None:
            return fallback
        if isinstance(raw, str):
            parsed = datetime.fromisoformat(raw)
            if end_of_day and "T" not in raw and " " not in raw:
                return datetime.combine(parsed.date(), time.max)
            return as_naive_local(parsed)
        if end_of_day and not isinstance(raw, datetime):
            return datetime.combine(raw, time.max)
        return as_naive_local(raw)

    return DateRange(
        start=_coerce(start_date, defaults.start, end_of_day=False),
        end=_coerce(end_date, defaults.end, end_of_day=True),
    )
