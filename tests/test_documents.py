"""Tests for the missing-document sweep."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from homebills.documents import MissingDocumentSweeper, reminder_body, reminder_title
from homebills.models import Occurrence, OccurrenceStatus, ReminderScheduleType


async def _add_paid(store, clock, age_days: int = 10, **kwargs) -> Occurrence:
    defaults = dict(
        id=None,
        profile_id=1,
        name="Electric",
        amount=Decimal("84.20"),
        due_date=date(2024, 2, 26),
        status=OccurrenceStatus.PAID,
        created_at=clock.now() - timedelta(days=age_days),
    )
    defaults.update(kwargs)
    occurrence = Occurrence(**defaults)
    occurrence.id = await store.insert_occurrence(occurrence)
    return occurrence


@pytest.fixture
def sweeper(store, clock):
    return MissingDocumentSweeper(store, store, window_days=30, now=clock.now)


class TestSweep:
    """Tests for MissingDocumentSweeper.sweep."""

    @pytest.mark.asyncio
    async def test_scenario_d_one_reminder_then_none(self, store, clock, sweeper):
        """A 10-day-old paid bill without a document gets exactly one reminder."""
        occurrence = await _add_paid(store, clock)

        first = await sweeper.sweep()
        second = await sweeper.sweep()

        assert len(first) == 1
        assert second == []
        assert len(store.reminders) == 1

        reminder = first[0]
        assert reminder.title == "Missing Document: Electric"
        assert reminder.body == (
            f"Please upload the receipt/document for bill #{occurrence.id} "
            "(Electric - $84.20)"
        )
        assert reminder.schedule_type is ReminderScheduleType.ONCE
        assert reminder.scheduled_at is None

    @pytest.mark.asyncio
    async def test_outside_window_ignored(self, store, clock, sweeper):
        await _add_paid(store, clock, age_days=45)

        assert await sweeper.sweep() == []

    @pytest.mark.asyncio
    async def test_unpaid_ignored(self, store, clock, sweeper):
        await _add_paid(store, clock, status=OccurrenceStatus.UNPAID)

        assert await sweeper.sweep() == []

    @pytest.mark.asyncio
    async def test_with_document_ignored(self, store, clock, sweeper):
        await _add_paid(store, clock, document_ref="bills/2024/electric.pdf")

        assert await sweeper.sweep() == []

    @pytest.mark.asyncio
    async def test_dismissed_reminder_is_recreated(self, store, clock, sweeper):
        await _add_paid(store, clock)
        first = await sweeper.sweep()
        store.deactivate_reminder(first[0].id)

        again = await sweeper.sweep()

        assert len(again) == 1
        assert again[0].id != first[0].id

    @pytest.mark.asyncio
    async def test_same_name_shares_a_reminder(self, store, clock, sweeper):
        """Deduplication keys on the title, not on the bill."""
        await _add_paid(store, clock, due_date=date(2024, 2, 1))
        await _add_paid(store, clock, due_date=date(2024, 3, 1))

        created = await sweeper.sweep()

        assert len(created) == 1

    @pytest.mark.asyncio
    async def test_renamed_bill_gets_new_reminder(self, store, clock, sweeper):
        occurrence = await _add_paid(store, clock)
        await sweeper.sweep()
        await store.update_occurrence(occurrence.id, {"name": "Electricity"})

        created = await sweeper.sweep()

        assert [r.title for r in created] == ["Missing Document: Electricity"]

    @pytest.mark.asyncio
    async def test_reminder_uses_occurrence_profile(self, store, clock, sweeper):
        await _add_paid(store, clock, profile_id=4)

        created = await sweeper.sweep()

        assert created[0].profile_id == 4

    @pytest.mark.asyncio
    async def test_zero_window_is_kept(self, store, clock, monkeypatch):
        """An explicit zero window is not replaced by the configured default."""
        monkeypatch.setenv("HOMEBILLS_MISSING_DOCUMENT_WINDOW_DAYS", "30")
        await _add_paid(store, clock, age_days=1)

        sweeper = MissingDocumentSweeper(store, store, window_days=0, now=clock.now)

        assert sweeper._window == timedelta(0)
        assert await sweeper.sweep() == []

    def test_window_defaults_to_settings(self, store, monkeypatch):
        monkeypatch.setenv("HOMEBILLS_MISSING_DOCUMENT_WINDOW_DAYS", "7")

        sweeper = MissingDocumentSweeper(store, store)

        assert sweeper._window == timedelta(days=7)


def test_title_and_body_format():
    occurrence = Occurrence(
        id=12, profile_id=1, name="Gas", amount=Decimal("40"), due_date=date(2024, 1, 1)
    )

    assert reminder_title(occurrence) == "Missing Document: Gas"
    assert reminder_body(occurrence) == (
        "Please upload the receipt/document for bill #12 (Gas - $40.00)"
    )
