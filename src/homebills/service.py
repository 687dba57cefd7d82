"""In-process API over recurring bills, occurrences and reconciliation.

``BillService`` receives its collaborators by construction; nothing here
reaches for global state beyond settings defaults.
"""

from collections.abc import Callable, Iterable, Sequence
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

import structlog

from homebills.config import get_settings
from homebills.dates import next_date
from homebills.documents import MissingDocumentSweeper
from homebills.exceptions import NotFoundError
from homebills.generation import BillGenerationEngine
from homebills.models import (
    CycleReport,
    Frequency,
    MatchResult,
    Occurrence,
    OccurrenceStatus,
    Schedule,
    parse_day_list,
    to_amount,
)
from homebills.reconciler import TransactionReconciler
from homebills.scheduler import BillScheduler, Clock
from homebills.stores.base import (
    SCHEDULE_FIELDS,
    BillStore,
    ReminderStore,
    TagStore,
    TransactionStore,
    check_fields,
)

logger = structlog.get_logger(__name__)

DAY_LIST_FIELDS = ("due_days", "generation_days")


class BillService:
    """Schedules, occurrences, reconciliation and the daily cycle."""

    def __init__(
        self,
        bills: BillStore,
        tags: TagStore,
        reminders: ReminderStore,
        transactions: TransactionStore,
        now: Callable[[], datetime] | None = None,
        missing_document_window_days: int | None = None,
    ):
        self._bills = bills
        self._tags = tags
        self._now = now or datetime.now
        self.engine = BillGenerationEngine(bills, tags, now=self._now)
        self.reconciler = TransactionReconciler(bills, tags, transactions, now=self._now)
        self.sweeper = MissingDocumentSweeper(
            bills,
            reminders,
            window_days=missing_document_window_days,
            now=self._now,
        )
        self._logger = logger.bind(component="bill_service")

    @classmethod
    def from_store(cls, store: Any, **kwargs: Any) -> "BillService":
        """Build a service over one object implementing all four interfaces."""
        return cls(store, store, store, store, **kwargs)

    # === Schedules ===

    async def list_schedules(self, profile_id: int) -> list[Schedule]:
        return await self._bills.list_schedules(profile_id)

    async def get_schedule(self, schedule_id: int) -> Schedule:
        schedule = await self._bills.get_schedule(schedule_id)
        if schedule is None:
            raise NotFoundError("schedule", schedule_id)
        return schedule

    async def create_schedule(
        self,
        *,
        profile_id: int,
        name: str,
        amount: Decimal | str | float,
        frequency: Frequency | str = Frequency.MONTHLY,
        due_days: str | Iterable[int] | None = None,
        generation_days: str | Iterable[int] | None = None,
        due_day: int | None = None,
        description: str | None = None,
        tag_ids: Sequence[int] = (),
    ) -> Schedule:
        """Create a recurring bill and compute its first trigger date.

        The first trigger is the next generation day (or due day) on or after
        today. Without a due-day list the legacy ``due_day`` is used.

        Raises:
            InvalidDayListError: A day list contains a malformed entry.
            ValueError: No due day was supplied.
        """
        due = parse_day_list(due_days)
        if due_day is None:
            due_day = due[0] if due else None
        if not due and due_day is None:
            raise ValueError("a schedule needs at least one due day")

        schedule = Schedule(
            id=None,
            profile_id=profile_id,
            name=name,
            amount=to_amount(amount),
            frequency=Frequency(frequency),
            due_days=due,
            generation_days=parse_day_list(generation_days),
            due_day=due_day,
            description=description,
            created_at=self._now(),
        )
        schedule.next_trigger_date = next_date(
            schedule.frequency, schedule.trigger_days, self._now().date()
        )
        schedule.id = await self._bills.insert_schedule(schedule)
        if tag_ids:
            await self._tags.set_tags_for_schedule(schedule.id, tag_ids)

        self._logger.info(
            "schedule_created",
            schedule_id=schedule.id,
            name=name,
            frequency=schedule.frequency.value,
            next_trigger_date=schedule.next_trigger_date.isoformat(),
        )
        return schedule

    async def update_schedule(
        self,
        schedule_id: int,
        *,
        reset_trigger: bool = False,
        tag_ids: Sequence[int] | None = None,
        **changes: Any,
    ) -> Schedule:
        """Edit a schedule.

        The trigger date is kept as-is so an edit never skips or repeats a
        period, unless ``reset_trigger`` asks for it to be recomputed from
        today using the edited day lists.
        """
        check_fields(changes, SCHEDULE_FIELDS)
        schedule = await self.get_schedule(schedule_id)

        for key in DAY_LIST_FIELDS:
            if key in changes:
                changes[key] = parse_day_list(changes[key])
        if "amount" in changes:
            changes["amount"] = to_amount(changes["amount"])
        if "frequency" in changes:
            changes["frequency"] = Frequency(changes["frequency"])

        for key, value in changes.items():
            setattr(schedule, key, value)
        if reset_trigger:
            schedule.next_trigger_date = next_date(
                schedule.frequency, schedule.trigger_days, self._now().date()
            )
            changes["next_trigger_date"] = schedule.next_trigger_date

        await self._bills.update_schedule(schedule_id, changes)
        if tag_ids is not None:
            await self._tags.set_tags_for_schedule(schedule_id, tag_ids)

        self._logger.info(
            "schedule_updated",
            schedule_id=schedule_id,
            fields=sorted(changes),
            reset_trigger=reset_trigger,
        )
        return schedule

    async def delete_schedule(self, schedule_id: int) -> None:
        """Delete a schedule; its past occurrences are kept."""
        await self._bills.delete_schedule(schedule_id)
        self._logger.info("schedule_deleted", schedule_id=schedule_id)

    async def generate_occurrence_now(
        self, schedule_id: int, target_date: date
    ) -> Occurrence:
        """Manually create an occurrence due on ``target_date``."""
        return await self.engine.generate_for_date(schedule_id, target_date)

    # === Occurrences ===

    async def list_occurrences(self, profile_id: int) -> list[Occurrence]:
        return await self._bills.list_occurrences(profile_id)

    async def get_occurrence(self, occurrence_id: int) -> Occurrence:
        occurrence = await self._bills.get_occurrence(occurrence_id)
        if occurrence is None:
            raise NotFoundError("occurrence", occurrence_id)
        return occurrence

    async def create_occurrence(
        self,
        *,
        name: str,
        amount: Decimal | str | float,
        due_date: date,
        profile_id: int | None = None,
        schedule_id: int | None = None,
        description: str | None = None,
        status: OccurrenceStatus | str = OccurrenceStatus.UNPAID,
    ) -> Occurrence:
        """Create a one-off (manual) occurrence."""
        occurrence = Occurrence(
            id=None,
            profile_id=profile_id or get_settings().default_profile_id,
            schedule_id=schedule_id,
            name=name,
            amount=to_amount(amount),
            description=description,
            due_date=due_date,
            status=OccurrenceStatus(status),
            created_at=self._now(),
        )
        occurrence.id = await self._bills.insert_occurrence(occurrence)
        self._logger.info("occurrence_created", occurrence_id=occurrence.id, name=name)
        return occurrence

    async def update_occurrence(self, occurrence_id: int, **changes: Any) -> Occurrence:
        """Edit name, amount, description, due date or status."""
        occurrence = await self.get_occurrence(occurrence_id)
        if "amount" in changes:
            changes["amount"] = to_amount(changes["amount"])
        if "status" in changes:
            changes["status"] = OccurrenceStatus(changes["status"])
        await self._bills.update_occurrence(occurrence_id, changes)
        for key, value in changes.items():
            setattr(occurrence, key, value)
        return occurrence

    async def mark_paid(self, occurrence_id: int) -> Occurrence:
        """Mark an occurrence paid as of now."""
        return await self.update_occurrence(
            occurrence_id, status=OccurrenceStatus.PAID, paid_date=self._now()
        )

    async def attach_document(self, occurrence_id: int, document_ref: str) -> Occurrence:
        """Record the storage key of an occurrence's receipt or document."""
        return await self.update_occurrence(occurrence_id, document_ref=document_ref)

    # === Reconciliation ===

    async def match_transaction_to_schedule(
        self, transaction_id: int, schedule_id: int, profile_id: int
    ) -> MatchResult:
        return await self.reconciler.match(transaction_id, schedule_id, profile_id)

    # === Background work ===

    async def run_daily_cycle(self) -> CycleReport:
        """Generate due bills, then sweep for missing documents.

        Each step's failure is logged and recorded in the report; neither
        step blocks the other and nothing is raised to the caller.
        """
        report = CycleReport(started_at=self._now())
        try:
            report.generated = await self.engine.generate_due()
        except Exception as e:
            report.errors["generation"] = str(e)
            self._logger.exception("bill_generation_failed", error=str(e))
        try:
            report.reminders = await self.sweeper.sweep()
        except Exception as e:
            report.errors["missing_documents"] = str(e)
            self._logger.exception("document_sweep_failed", error=str(e))

        self._logger.info(
            "daily_cycle_completed",
            generated=len(report.generated),
            reminders=len(report.reminders),
            failed=sorted(report.errors),
        )
        return report

    def create_scheduler(
        self, clock: Clock | None = None, run_at: time | None = None
    ) -> BillScheduler:
        """Build a scheduler that runs the daily cycle on activation and daily."""
        scheduler = BillScheduler(clock=clock, run_at=run_at)
        scheduler.add_job("daily_cycle", self.run_daily_cycle)
        return scheduler
