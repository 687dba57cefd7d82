"""Materialize bill occurrences from recurring schedules.

The sweep runs no duplicate check of its own: each schedule's
``next_trigger_date`` is the only guard, so a trigger date that fails to
advance (or is reset backwards) produces a second occurrence for the same
period on the next sweep.
"""

from collections.abc import Callable
from datetime import date, datetime

import structlog

from homebills.cycles import generation_due_date
from homebills.dates import advance_trigger
from homebills.exceptions import NotFoundError
from homebills.models import Occurrence, OccurrenceStatus, Schedule
from homebills.stores.base import BillStore, TagStore

logger = structlog.get_logger(__name__)


async def snapshot_tags(tags: TagStore, schedule_id: int, occurrence_id: int) -> int:
    """Copy a schedule's current tags onto an occurrence.

    The copy is point-in-time; later tag edits on the schedule do not
    propagate. Returns the number of tags copied.
    """
    current = await tags.tags_for_schedule(schedule_id)
    if current:
        await tags.set_tags_for_occurrence(occurrence_id, [t.id for t in current])
    return len(current)


class BillGenerationEngine:
    """Creates due occurrences and advances each schedule's trigger date."""

    def __init__(
        self,
        bills: BillStore,
        tags: TagStore,
        now: Callable[[], datetime] | None = None,
    ):
        self._bills = bills
        self._tags = tags
        self._now = now or datetime.now
        self._logger = logger.bind(component="generation_engine")

    async def generate_due(self, now: datetime | None = None) -> list[Occurrence]:
        """Sweep every schedule whose trigger date is on or before ``now``.

        Schedules are processed one after another; a schedule that is
        several periods behind catches up by one period per sweep.

        Returns:
            The occurrences created by this sweep.
        """
        as_of = (now or self._now()).date()
        due = await self._bills.list_due_schedules(as_of)
        self._logger.info("generation_sweep_starting", as_of=as_of.isoformat(), due=len(due))

        generated: list[Occurrence] = []
        for schedule in due:
            generated.append(await self._generate(schedule))

        self._logger.info("generation_sweep_completed", generated=len(generated))
        return generated

    async def _generate(self, schedule: Schedule) -> Occurrence:
        assert schedule.id is not None and schedule.next_trigger_date is not None
        trigger = schedule.next_trigger_date
        due_date = generation_due_date(schedule, trigger)

        occurrence = await self._create(schedule, due_date)

        next_trigger = advance_trigger(schedule.frequency, schedule.trigger_days, trigger)
        await self._bills.update_schedule(
            schedule.id, {"next_trigger_date": next_trigger}
        )

        self._logger.info(
            "occurrence_generated",
            schedule_id=schedule.id,
            occurrence_id=occurrence.id,
            name=schedule.name,
            due_date=due_date.isoformat(),
            next_trigger_date=next_trigger.isoformat(),
        )
        return occurrence

    async def generate_for_date(self, schedule_id: int, target_date: date) -> Occurrence:
        """Create an occurrence due on ``target_date`` outside the timer.

        The schedule's trigger date is left untouched.

        Raises:
            NotFoundError: The schedule does not exist.
        """
        schedule = await self._bills.get_schedule(schedule_id)
        if schedule is None:
            raise NotFoundError("schedule", schedule_id)

        occurrence = await self._create(schedule, target_date)
        self._logger.info(
            "occurrence_generated_manually",
            schedule_id=schedule_id,
            occurrence_id=occurrence.id,
            due_date=target_date.isoformat(),
        )
        return occurrence

    async def _create(self, schedule: Schedule, due_date: date) -> Occurrence:
        assert schedule.id is not None
        occurrence = Occurrence(
            id=None,
            profile_id=schedule.profile_id,
            schedule_id=schedule.id,
            name=schedule.name,
            amount=schedule.amount,
            description=schedule.description,
            due_date=due_date,
            status=OccurrenceStatus.UNPAID,
            created_at=self._now(),
        )
        occurrence.id = await self._bills.insert_occurrence(occurrence)
        await snapshot_tags(self._tags, schedule.id, occurrence.id)
        return occurrence
