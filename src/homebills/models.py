"""Domain types for recurring bills and their concrete occurrences.

A ``Schedule`` is the recurring bill definition (``automatic_bills`` in the
storage schema); an ``Occurrence`` is one concrete bill instance due on a
specific date (``bill_records``).
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any

from homebills.exceptions import InvalidDayListError

CENTS = Decimal("0.01")


class Frequency(str, Enum):
    """How often a schedule fires."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class OccurrenceStatus(str, Enum):
    """Payment status of a bill occurrence."""

    UNPAID = "unpaid"
    PAID = "paid"


class ReminderScheduleType(str, Enum):
    """Delivery style of a reminder."""

    ONCE = "once"
    CRON = "cron"


def to_amount(value: Any) -> Decimal:
    """Coerce a monetary value to a two-place Decimal."""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"invalid amount {value!r}") from e
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_day_list(raw: str | Iterable[Any] | None) -> tuple[int, ...]:
    """Parse a day-of-month list into a sorted tuple of unique days.

    Accepts the comma separated storage form ("5, 20") or any iterable of
    ints/strings. Empty input yields an empty tuple.

    Raises:
        InvalidDayListError: An entry is not an integer in 1..31.
    """
    if raw is None:
        return ()
    entries: Iterable[Any] = raw.split(",") if isinstance(raw, str) else raw

    days: set[int] = set()
    for entry in entries:
        if isinstance(entry, str):
            entry = entry.strip()
            if not entry:
                continue
        if isinstance(entry, bool):
            raise InvalidDayListError(raw, entry)
        try:
            day = int(entry)
        except (TypeError, ValueError) as e:
            raise InvalidDayListError(raw, entry) from e
        if not 1 <= day <= 31:
            raise InvalidDayListError(raw, entry)
        days.add(day)
    return tuple(sorted(days))


def format_day_list(days: Iterable[int]) -> str | None:
    """Render days in the comma separated storage form."""
    ordered = sorted(set(days))
    if not ordered:
        return None
    return ",".join(str(d) for d in ordered)


@dataclass
class Tag:
    """A label shared by schedules and occurrences."""

    id: int
    name: str
    color: str | None = None


@dataclass
class Schedule:
    """Recurring bill definition."""

    id: int | None
    profile_id: int
    name: str
    amount: Decimal
    frequency: Frequency
    due_days: tuple[int, ...] = ()
    generation_days: tuple[int, ...] = ()
    due_day: int | None = None  # legacy single due day
    description: str | None = None
    next_trigger_date: date | None = None
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        self.amount = to_amount(self.amount)
        self.frequency = Frequency(self.frequency)
        self.due_days = parse_day_list(self.due_days)
        self.generation_days = parse_day_list(self.generation_days)

    @property
    def effective_due_days(self) -> tuple[int, ...]:
        """Due days, falling back to the legacy single due day."""
        if self.due_days:
            return self.due_days
        if self.due_day is not None:
            return (self.due_day,)
        return ()

    @property
    def trigger_days(self) -> tuple[int, ...]:
        """Days that drive the trigger cadence (generation days win)."""
        return self.generation_days or self.effective_due_days

    @property
    def has_cycle_mapping(self) -> bool:
        """True when separate generation and due days are both configured."""
        return bool(self.generation_days) and bool(self.due_days)


@dataclass
class Occurrence:
    """A concrete bill instance due on a specific date."""

    id: int | None
    profile_id: int
    name: str
    amount: Decimal
    due_date: date
    schedule_id: int | None = None
    status: OccurrenceStatus = OccurrenceStatus.UNPAID
    description: str | None = None
    paid_date: datetime | None = None
    document_ref: str | None = None
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        self.amount = to_amount(self.amount)
        self.status = OccurrenceStatus(self.status)

    @property
    def is_paid(self) -> bool:
        return self.status == OccurrenceStatus.PAID

    @property
    def has_document(self) -> bool:
        return bool(self.document_ref)


@dataclass
class Transaction:
    """An observed bank transaction, possibly linked to an occurrence."""

    id: int
    profile_id: int
    amount: Decimal
    transaction_date: date
    description: str | None = None
    bill_record_id: int | None = None

    def __post_init__(self) -> None:
        self.amount = to_amount(self.amount)


@dataclass
class Reminder:
    """A user-facing reminder (to-do style when ``scheduled_at`` is None)."""

    id: int | None
    title: str
    body: str
    schedule_type: ReminderScheduleType = ReminderScheduleType.ONCE
    scheduled_at: datetime | None = None
    is_active: bool = True
    profile_id: int = 1
    created_at: datetime | None = None


@dataclass(frozen=True)
class MatchResult:
    """Outcome of matching a transaction to a schedule's billing cycle."""

    duplicate: bool
    bill_record_id: int | None = None
    existing_bill_record_id: int | None = None
    due_date: date | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"duplicate": self.duplicate}
        if self.bill_record_id is not None:
            result["bill_record_id"] = self.bill_record_id
        if self.existing_bill_record_id is not None:
            result["existing_bill_record_id"] = self.existing_bill_record_id
        return result


@dataclass
class CycleReport:
    """Summary of one daily cycle run."""

    started_at: datetime
    generated: list[Occurrence] = field(default_factory=list)
    reminders: list[Reminder] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors
