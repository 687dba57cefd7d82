"""Reminders for paid bills that still lack a receipt or document."""

from collections.abc import Callable
from datetime import datetime, timedelta

import structlog

from homebills.config import get_settings
from homebills.models import Occurrence, Reminder, ReminderScheduleType
from homebills.stores.base import BillStore, ReminderStore

logger = structlog.get_logger(__name__)


def reminder_title(occurrence: Occurrence) -> str:
    return f"Missing Document: {occurrence.name}"


def reminder_body(occurrence: Occurrence) -> str:
    return (
        f"Please upload the receipt/document for bill #{occurrence.id} "
        f"({occurrence.name} - ${occurrence.amount})"
    )


class MissingDocumentSweeper:
    """Requests one reminder per paid, document-less occurrence.

    Deduplication is by exact reminder title among active reminders, so
    two bills sharing a name share a reminder and renaming a bill yields a
    fresh one.
    """

    def __init__(
        self,
        bills: BillStore,
        reminders: ReminderStore,
        window_days: int | None = None,
        now: Callable[[], datetime] | None = None,
    ):
        self._bills = bills
        self._reminders = reminders
        self._window = timedelta(
            days=(
                window_days
                if window_days is not None
                else get_settings().missing_document_window_days
            )
        )
        self._now = now or datetime.now
        self._logger = logger.bind(component="document_sweeper")

    async def sweep(self, now: datetime | None = None) -> list[Reminder]:
        """Create reminders for recent paid occurrences without a document.

        Returns:
            The reminders created by this sweep.
        """
        cutoff = (now or self._now()) - self._window
        candidates = await self._bills.list_paid_without_document(cutoff)

        created: list[Reminder] = []
        for occurrence in candidates:
            title = reminder_title(occurrence)
            if await self._reminders.find_active_by_title(title):
                continue
            reminder = await self._reminders.create_reminder(
                title,
                reminder_body(occurrence),
                schedule_type=ReminderScheduleType.ONCE,
                scheduled_at=None,
                profile_id=occurrence.profile_id,
            )
            created.append(reminder)
            self._logger.info(
                "missing_document_reminder_created",
                occurrence_id=occurrence.id,
                reminder_id=reminder.id,
                title=title,
            )

        self._logger.info(
            "document_sweep_completed", candidates=len(candidates), created=len(created)
        )
        return created
