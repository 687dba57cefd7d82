"""Tests for the SQLite-backed store."""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from homebills.exceptions import StorageError
from homebills.models import Occurrence, OccurrenceStatus
from homebills.service import BillService
from homebills.stores.sqlite import SQLiteStore

NOW = datetime(2024, 3, 6, 8, 0)


def _service(store: SQLiteStore, now: datetime = NOW) -> BillService:
    return BillService.from_store(store, now=lambda: now)


class TestSQLiteStore:
    """End-to-end tests of the service over SQLiteStore."""

    @pytest.mark.asyncio
    async def test_schedule_round_trip(self, tmp_path):
        async with SQLiteStore(tmp_path / "bills.db") as store:
            service = _service(store)
            created = await service.create_schedule(
                profile_id=1,
                name="Credit card",
                amount="250.00",
                due_days="5",
                generation_days="25",
                description="Visa",
            )

            loaded = await service.get_schedule(created.id)

        assert loaded.name == "Credit card"
        assert loaded.amount == Decimal("250.00")
        assert loaded.due_days == (5,)
        assert loaded.generation_days == (25,)
        assert loaded.due_day == 5
        assert loaded.next_trigger_date == date(2024, 3, 25)
        assert loaded.created_at == NOW

    @pytest.mark.asyncio
    async def test_data_survives_reopen(self, tmp_path):
        path = tmp_path / "bills.db"
        async with SQLiteStore(path) as store:
            await _service(store).create_schedule(
                profile_id=1, name="Rent", amount="1200", due_days=[5, 20]
            )

        async with SQLiteStore(path) as store:
            schedules = await store.list_schedules(1)

        assert [s.due_days for s in schedules] == [(5, 20)]

    @pytest.mark.asyncio
    async def test_generation_sweep(self, tmp_path):
        async with SQLiteStore(tmp_path / "bills.db") as store:
            service = _service(store, now=datetime(2024, 3, 1, 9, 0))
            tag = await store.add_tag("housing")
            schedule = await service.create_schedule(
                profile_id=1, name="Rent", amount="1200", due_days=[5], tag_ids=[tag.id]
            )

            later = _service(store, now=datetime(2024, 3, 6, 9, 0))
            report = await later.run_daily_cycle()
            again = await later.run_daily_cycle()

            occurrence = report.generated[0]
            tags = await store.tags_for_occurrence(occurrence.id)
            stored_schedule = await store.get_schedule(schedule.id)

        assert report.ok
        assert again.generated == []
        assert occurrence.due_date == date(2024, 3, 5)
        assert [t.name for t in tags] == ["housing"]
        assert stored_schedule.next_trigger_date == date(2024, 4, 5)

    @pytest.mark.asyncio
    async def test_reconciliation_dedup(self, tmp_path):
        async with SQLiteStore(tmp_path / "bills.db") as store:
            service = _service(store)
            schedule = await service.create_schedule(
                profile_id=1, name="Internet", amount="50", due_days=[10]
            )
            first = await store.add_transaction("50", date(2024, 4, 2))
            second = await store.add_transaction("50", date(2024, 4, 20))

            created = await service.match_transaction_to_schedule(first.id, schedule.id, 1)
            duplicate = await service.match_transaction_to_schedule(second.id, schedule.id, 1)

            occurrence = await service.get_occurrence(created.bill_record_id)
            linked = await store.get_transaction(first.id)
            unlinked = await store.get_transaction(second.id)

        assert duplicate.duplicate is True
        assert duplicate.existing_bill_record_id == created.bill_record_id
        assert occurrence.status is OccurrenceStatus.PAID
        assert occurrence.paid_date == NOW
        assert occurrence.due_date == date(2024, 4, 10)
        assert linked.bill_record_id == occurrence.id
        assert unlinked.bill_record_id is None

    @pytest.mark.asyncio
    async def test_missing_document_sweep(self, tmp_path):
        async with SQLiteStore(tmp_path / "bills.db") as store:
            service = _service(store)
            await store.insert_occurrence(
                Occurrence(
                    id=None,
                    profile_id=1,
                    name="Electric",
                    amount=Decimal("84.20"),
                    due_date=date(2024, 2, 26),
                    status=OccurrenceStatus.PAID,
                    created_at=NOW - timedelta(days=10),
                )
            )

            first = await service.sweeper.sweep()
            second = await service.sweeper.sweep()
            active = await store.find_active_by_title("Missing Document: Electric")

        assert len(first) == 1
        assert second == []
        assert len(active) == 1

    @pytest.mark.asyncio
    async def test_update_and_delete(self, tmp_path):
        async with SQLiteStore(tmp_path / "bills.db") as store:
            service = _service(store)
            schedule = await service.create_schedule(
                profile_id=1, name="Gym", amount="35", due_days=[1]
            )
            await service.update_schedule(schedule.id, due_days="15,1", frequency="monthly")
            updated = await store.get_schedule(schedule.id)

            occurrence = await service.generate_occurrence_now(schedule.id, date(2024, 3, 1))
            await service.attach_document(occurrence.id, "receipts/gym.pdf")
            await service.delete_schedule(schedule.id)

            remaining = await service.list_occurrences(1)

        assert updated.due_days == (1, 15)
        assert [o.document_ref for o in remaining] == ["receipts/gym.pdf"]
        assert store._conn is None

    @pytest.mark.asyncio
    async def test_closed_store_raises_storage_error(self, tmp_path):
        store = SQLiteStore(tmp_path / "bills.db")

        with pytest.raises(StorageError):
            await store.list_schedules()

    def test_default_path_from_settings(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOMEBILLS_DATABASE_PATH", str(tmp_path / "env.db"))

        store = SQLiteStore()

        assert store.db_path == str(tmp_path / "env.db")

    @pytest.mark.asyncio
    async def test_timestamps_follow_injected_clock(self, tmp_path):
        async with SQLiteStore(tmp_path / "bills.db", now=lambda: NOW) as store:
            occurrence_id = await store.insert_occurrence(
                Occurrence(
                    id=None,
                    profile_id=1,
                    name="Water",
                    amount=Decimal("30"),
                    due_date=date(2024, 3, 2),
                )
            )
            reminder = await store.create_reminder("Missing Document: Water", "body")
            occurrence = await store.get_occurrence(occurrence_id)

        assert occurrence.created_at == NOW
        assert reminder.created_at == NOW
