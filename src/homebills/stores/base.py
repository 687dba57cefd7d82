"""Collaborator interfaces consumed by the scheduling components.

Every method is a coroutine: each read or write is a suspension point and
no component holds a lock across one.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from homebills.models import (
    Occurrence,
    Reminder,
    ReminderScheduleType,
    Schedule,
    Tag,
    Transaction,
)

SCHEDULE_FIELDS = frozenset(
    {
        "name",
        "amount",
        "description",
        "frequency",
        "due_days",
        "generation_days",
        "due_day",
        "next_trigger_date",
    }
)
OCCURRENCE_FIELDS = frozenset(
    {"name", "amount", "description", "due_date", "status", "paid_date", "document_ref"}
)


class BillStore(ABC):
    """Persistence for schedules and occurrences."""

    # === Schedules ===

    @abstractmethod
    async def list_schedules(self, profile_id: int | None = None) -> list[Schedule]:
        """List schedules newest first, optionally for one profile."""

    @abstractmethod
    async def list_due_schedules(self, as_of: date) -> list[Schedule]:
        """List schedules whose next trigger date is on or before ``as_of``."""

    @abstractmethod
    async def get_schedule(self, schedule_id: int) -> Schedule | None:
        """Fetch a schedule by id."""

    @abstractmethod
    async def insert_schedule(self, schedule: Schedule) -> int:
        """Persist a new schedule and return its id."""

    @abstractmethod
    async def update_schedule(self, schedule_id: int, changes: dict[str, Any]) -> None:
        """Apply field changes (keys from ``SCHEDULE_FIELDS``)."""

    @abstractmethod
    async def delete_schedule(self, schedule_id: int) -> None:
        """Delete a schedule; its occurrences are kept."""

    # === Occurrences ===

    @abstractmethod
    async def list_occurrences(self, profile_id: int | None = None) -> list[Occurrence]:
        """List occurrences by ascending due date."""

    @abstractmethod
    async def get_occurrence(self, occurrence_id: int) -> Occurrence | None:
        """Fetch an occurrence by id."""

    @abstractmethod
    async def insert_occurrence(self, occurrence: Occurrence) -> int:
        """Persist a new occurrence and return its id."""

    @abstractmethod
    async def update_occurrence(
        self, occurrence_id: int, changes: dict[str, Any]
    ) -> None:
        """Apply field changes (keys from ``OCCURRENCE_FIELDS``)."""

    @abstractmethod
    async def find_occurrences_in_period(
        self, schedule_id: int, amount: Decimal, start: date, end: date
    ) -> list[Occurrence]:
        """Occurrences of a schedule with ``amount`` due within [start, end]."""

    @abstractmethod
    async def list_paid_without_document(self, created_after: datetime) -> list[Occurrence]:
        """Paid occurrences created after ``created_after`` with no document."""


class TagStore(ABC):
    """Many-to-many tag links for schedules and occurrences."""

    @abstractmethod
    async def tags_for_schedule(self, schedule_id: int) -> list[Tag]:
        """Current tags of a schedule, by name."""

    @abstractmethod
    async def set_tags_for_schedule(
        self, schedule_id: int, tag_ids: Sequence[int]
    ) -> None:
        """Replace the tag set of a schedule."""

    @abstractmethod
    async def tags_for_occurrence(self, occurrence_id: int) -> list[Tag]:
        """Current tags of an occurrence, by name."""

    @abstractmethod
    async def set_tags_for_occurrence(
        self, occurrence_id: int, tag_ids: Sequence[int]
    ) -> None:
        """Replace the tag set of an occurrence."""


class ReminderStore(ABC):
    """Reminder creation and lookup."""

    @abstractmethod
    async def create_reminder(
        self,
        title: str,
        body: str,
        schedule_type: ReminderScheduleType = ReminderScheduleType.ONCE,
        scheduled_at: datetime | None = None,
        profile_id: int | None = None,
    ) -> Reminder:
        """Create a reminder and return it."""

    @abstractmethod
    async def find_active_by_title(self, title: str) -> list[Reminder]:
        """Active reminders whose title equals ``title`` exactly."""


class TransactionStore(ABC):
    """Observed bank transactions."""

    @abstractmethod
    async def get_transaction(self, transaction_id: int) -> Transaction | None:
        """Fetch a transaction by id."""

    @abstractmethod
    async def update_transaction(
        self, transaction_id: int, *, bill_record_id: int | None
    ) -> None:
        """Link (or unlink) a transaction to an occurrence."""


def check_fields(changes: dict[str, Any], allowed: frozenset[str]) -> None:
    """Reject unknown field names in an update."""
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"unknown fields: {', '.join(sorted(unknown))}")
