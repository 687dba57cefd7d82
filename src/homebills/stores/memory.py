"""In-memory implementation of the collaborator interfaces."""

from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from homebills.config import get_settings
from homebills.models import (
    Occurrence,
    OccurrenceStatus,
    Reminder,
    ReminderScheduleType,
    Schedule,
    Tag,
    Transaction,
    to_amount,
)
from homebills.stores.base import (
    OCCURRENCE_FIELDS,
    SCHEDULE_FIELDS,
    BillStore,
    ReminderStore,
    TagStore,
    TransactionStore,
    check_fields,
)


class MemoryStore(BillStore, TagStore, ReminderStore, TransactionStore):
    """Dict-backed store holding every table in process memory.

    Records are copied on the way in and out, so callers never share
    mutable state with the store.
    """

    def __init__(self, now: Callable[[], datetime] | None = None):
        self._now = now or datetime.now
        self._schedules: dict[int, Schedule] = {}
        self._occurrences: dict[int, Occurrence] = {}
        self._transactions: dict[int, Transaction] = {}
        self._reminders: dict[int, Reminder] = {}
        self._tags: dict[int, Tag] = {}
        self._schedule_tags: dict[int, list[int]] = {}
        self._occurrence_tags: dict[int, list[int]] = {}
        self._next_ids: dict[str, int] = {}

    def _next_id(self, table: str) -> int:
        self._next_ids[table] = self._next_ids.get(table, 0) + 1
        return self._next_ids[table]

    # === Seeding helpers ===

    def add_tag(self, name: str, color: str | None = None) -> Tag:
        tag = Tag(id=self._next_id("tags"), name=name, color=color)
        self._tags[tag.id] = tag
        return replace(tag)

    def add_transaction(
        self,
        amount: Decimal | str | float,
        transaction_date: date,
        profile_id: int = 1,
        description: str | None = None,
    ) -> Transaction:
        tx = Transaction(
            id=self._next_id("transactions"),
            profile_id=profile_id,
            amount=to_amount(amount),
            transaction_date=transaction_date,
            description=description,
        )
        self._transactions[tx.id] = tx
        return replace(tx)

    # === Schedules ===

    async def list_schedules(self, profile_id: int | None = None) -> list[Schedule]:
        rows = [
            s
            for s in self._schedules.values()
            if profile_id is None or s.profile_id == profile_id
        ]
        rows.sort(key=lambda s: (s.created_at or datetime.min, s.id or 0), reverse=True)
        return [replace(s) for s in rows]

    async def list_due_schedules(self, as_of: date) -> list[Schedule]:
        rows = [
            s
            for s in self._schedules.values()
            if s.next_trigger_date is not None and s.next_trigger_date <= as_of
        ]
        rows.sort(key=lambda s: s.id or 0)
        return [replace(s) for s in rows]

    async def get_schedule(self, schedule_id: int) -> Schedule | None:
        schedule = self._schedules.get(schedule_id)
        return replace(schedule) if schedule else None

    async def insert_schedule(self, schedule: Schedule) -> int:
        schedule_id = self._next_id("schedules")
        self._schedules[schedule_id] = replace(
            schedule, id=schedule_id, created_at=schedule.created_at or self._now()
        )
        return schedule_id

    async def update_schedule(self, schedule_id: int, changes: dict[str, Any]) -> None:
        check_fields(changes, SCHEDULE_FIELDS)
        current = self._schedules.get(schedule_id)
        if current is not None and changes:
            self._schedules[schedule_id] = replace(current, **changes)

    async def delete_schedule(self, schedule_id: int) -> None:
        self._schedules.pop(schedule_id, None)
        self._schedule_tags.pop(schedule_id, None)

    # === Occurrences ===

    async def list_occurrences(self, profile_id: int | None = None) -> list[Occurrence]:
        rows = [
            o
            for o in self._occurrences.values()
            if profile_id is None or o.profile_id == profile_id
        ]
        rows.sort(key=lambda o: (o.due_date, o.id or 0))
        return [replace(o) for o in rows]

    async def get_occurrence(self, occurrence_id: int) -> Occurrence | None:
        occurrence = self._occurrences.get(occurrence_id)
        return replace(occurrence) if occurrence else None

    async def insert_occurrence(self, occurrence: Occurrence) -> int:
        occurrence_id = self._next_id("occurrences")
        self._occurrences[occurrence_id] = replace(
            occurrence,
            id=occurrence_id,
            created_at=occurrence.created_at or self._now(),
        )
        return occurrence_id

    async def update_occurrence(
        self, occurrence_id: int, changes: dict[str, Any]
    ) -> None:
        check_fields(changes, OCCURRENCE_FIELDS)
        current = self._occurrences.get(occurrence_id)
        if current is not None and changes:
            self._occurrences[occurrence_id] = replace(current, **changes)

    async def find_occurrences_in_period(
        self, schedule_id: int, amount: Decimal, start: date, end: date
    ) -> list[Occurrence]:
        wanted = to_amount(amount)
        return [
            replace(o)
            for o in sorted(self._occurrences.values(), key=lambda o: o.id or 0)
            if o.schedule_id == schedule_id
            and o.amount == wanted
            and start <= o.due_date <= end
        ]

    async def list_paid_without_document(self, created_after: datetime) -> list[Occurrence]:
        return [
            replace(o)
            for o in sorted(self._occurrences.values(), key=lambda o: o.id or 0)
            if o.status == OccurrenceStatus.PAID
            and not o.document_ref
            and o.created_at is not None
            and o.created_at > created_after
        ]

    # === Tags ===

    async def tags_for_schedule(self, schedule_id: int) -> list[Tag]:
        return self._resolve_tags(self._schedule_tags.get(schedule_id, []))

    async def set_tags_for_schedule(
        self, schedule_id: int, tag_ids: Sequence[int]
    ) -> None:
        self._schedule_tags[schedule_id] = list(dict.fromkeys(tag_ids))

    async def tags_for_occurrence(self, occurrence_id: int) -> list[Tag]:
        return self._resolve_tags(self._occurrence_tags.get(occurrence_id, []))

    async def set_tags_for_occurrence(
        self, occurrence_id: int, tag_ids: Sequence[int]
    ) -> None:
        self._occurrence_tags[occurrence_id] = list(dict.fromkeys(tag_ids))

    def _resolve_tags(self, tag_ids: list[int]) -> list[Tag]:
        tags = [replace(self._tags[t]) for t in tag_ids if t in self._tags]
        return sorted(tags, key=lambda t: t.name)

    # === Reminders ===

    async def create_reminder(
        self,
        title: str,
        body: str,
        schedule_type: ReminderScheduleType = ReminderScheduleType.ONCE,
        scheduled_at: datetime | None = None,
        profile_id: int | None = None,
    ) -> Reminder:
        reminder = Reminder(
            id=self._next_id("reminders"),
            title=title,
            body=body,
            schedule_type=ReminderScheduleType(schedule_type),
            scheduled_at=scheduled_at,
            profile_id=(
                profile_id if profile_id is not None else get_settings().default_profile_id
            ),
            created_at=self._now(),
        )
        self._reminders[reminder.id] = reminder
        return replace(reminder)

    async def find_active_by_title(self, title: str) -> list[Reminder]:
        return [
            replace(r)
            for r in self._reminders.values()
            if r.is_active and r.title == title
        ]

    def deactivate_reminder(self, reminder_id: int) -> None:
        self._reminders[reminder_id].is_active = False

    @property
    def reminders(self) -> list[Reminder]:
        return [replace(r) for r in self._reminders.values()]

    # === Transactions ===

    async def get_transaction(self, transaction_id: int) -> Transaction | None:
        tx = self._transactions.get(transaction_id)
        return replace(tx) if tx else None

    async def update_transaction(
        self, transaction_id: int, *, bill_record_id: int | None
    ) -> None:
        tx = self._transactions.get(transaction_id)
        if tx is not None:
            tx.bill_record_id = bill_record_id
