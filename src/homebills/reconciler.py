"""Match observed bank transactions to a schedule's billing cycle."""

from collections.abc import Callable
from datetime import datetime

import structlog

from homebills.cycles import reconciliation_due_date
from homebills.dates import month_bounds
from homebills.exceptions import NotFoundError
from homebills.generation import snapshot_tags
from homebills.models import MatchResult, Occurrence, OccurrenceStatus
from homebills.stores.base import BillStore, TagStore, TransactionStore

logger = structlog.get_logger(__name__)


class TransactionReconciler:
    """Links a transaction to the occurrence for its billing cycle.

    At most one occurrence exists per (schedule, calendar month of the due
    date, schedule amount): when one is already present the match is
    reported as a duplicate and nothing is written.
    """

    def __init__(
        self,
        bills: BillStore,
        tags: TagStore,
        transactions: TransactionStore,
        now: Callable[[], datetime] | None = None,
    ):
        self._bills = bills
        self._tags = tags
        self._transactions = transactions
        self._now = now or datetime.now
        self._logger = logger.bind(component="reconciler")

    async def match(
        self, transaction_id: int, schedule_id: int, profile_id: int
    ) -> MatchResult:
        """Match a transaction to a schedule, creating a paid occurrence.

        Args:
            transaction_id: The observed transaction.
            schedule_id: The recurring bill it pays.
            profile_id: Profile that owns the new occurrence.

        Returns:
            MatchResult with ``duplicate=True`` and the existing occurrence id,
            or ``duplicate=False`` and the new occurrence id.

        Raises:
            NotFoundError: The transaction or schedule does not exist.
        """
        transaction = await self._transactions.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError("transaction", transaction_id)

        schedule = await self._bills.get_schedule(schedule_id)
        if schedule is None:
            raise NotFoundError("schedule", schedule_id)

        due_date = reconciliation_due_date(schedule, transaction.transaction_date)
        month_start, month_end = month_bounds(due_date)

        existing = await self._bills.find_occurrences_in_period(
            schedule_id, schedule.amount, month_start, month_end
        )
        if existing:
            self._logger.info(
                "duplicate_occurrence_skipped",
                transaction_id=transaction_id,
                schedule_id=schedule_id,
                existing_occurrence_id=existing[0].id,
                due_date=due_date.isoformat(),
            )
            return MatchResult(
                duplicate=True,
                existing_bill_record_id=existing[0].id,
                due_date=due_date,
            )

        occurrence = Occurrence(
            id=None,
            profile_id=profile_id,
            schedule_id=schedule_id,
            name=schedule.name,
            amount=schedule.amount,
            description=schedule.description,
            due_date=due_date,
            status=OccurrenceStatus.PAID,
            created_at=self._now(),
        )
        occurrence_id = await self._bills.insert_occurrence(occurrence)
        await snapshot_tags(self._tags, schedule_id, occurrence_id)
        await self._transactions.update_transaction(
            transaction_id, bill_record_id=occurrence_id
        )
        await self._bills.update_occurrence(
            occurrence_id,
            {"status": OccurrenceStatus.PAID, "paid_date": self._now()},
        )

        self._logger.info(
            "transaction_matched",
            transaction_id=transaction_id,
            schedule_id=schedule_id,
            occurrence_id=occurrence_id,
            due_date=due_date.isoformat(),
        )
        return MatchResult(duplicate=False, bill_record_id=occurrence_id, due_date=due_date)
