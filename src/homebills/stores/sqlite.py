"""SQLite implementation of the collaborator interfaces.

Blocking ``sqlite3`` calls run in a worker thread via ``asyncio.to_thread``
so the event loop stays responsive. A single connection is shared and
guarded by a thread lock.
"""

import asyncio
import sqlite3
import threading
from collections.abc import Callable, Sequence
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

import structlog

from homebills.config import get_settings
from homebills.exceptions import StorageError
from homebills.models import (
    Occurrence,
    OccurrenceStatus,
    Reminder,
    ReminderScheduleType,
    Schedule,
    Tag,
    Transaction,
    format_day_list,
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

logger = structlog.get_logger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS automatic_bills (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    profile_id INTEGER NOT NULL DEFAULT 1,
    name TEXT NOT NULL,
    amount TEXT NOT NULL,
    description TEXT,
    frequency TEXT NOT NULL DEFAULT 'monthly',
    due_day INTEGER,
    due_dates TEXT,
    generation_days TEXT,
    next_due_date TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS bill_records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    automatic_bill_id INTEGER,
    profile_id INTEGER NOT NULL DEFAULT 1,
    name TEXT NOT NULL,
    amount TEXT NOT NULL,
    description TEXT,
    due_date TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'unpaid',
    paid_date TEXT,
    document_path TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_bill_records_auto_due
    ON bill_records(automatic_bill_id, due_date);

CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    color TEXT
);

CREATE TABLE IF NOT EXISTS automatic_bills_tags (
    automatic_bill_id INTEGER NOT NULL,
    tag_id INTEGER NOT NULL,
    PRIMARY KEY (automatic_bill_id, tag_id)
);

CREATE TABLE IF NOT EXISTS bill_records_tags (
    bill_record_id INTEGER NOT NULL,
    tag_id INTEGER NOT NULL,
    PRIMARY KEY (bill_record_id, tag_id)
);

CREATE TABLE IF NOT EXISTS reminders (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    body TEXT NOT NULL,
    schedule_type TEXT NOT NULL DEFAULT 'once',
    scheduled_at TEXT,
    cron_expr TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    profile_id INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    profile_id INTEGER NOT NULL DEFAULT 1,
    type TEXT NOT NULL DEFAULT 'expense',
    amount TEXT NOT NULL,
    description TEXT,
    transaction_date TEXT NOT NULL,
    reference TEXT,
    bill_record_id INTEGER
);
"""

# Model attribute -> column, where they differ.
SCHEDULE_COLUMNS = {
    "due_days": "due_dates",
    "next_trigger_date": "next_due_date",
}
OCCURRENCE_COLUMNS = {"document_ref": "document_path"}


def _to_db(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(to_amount(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, tuple):
        return format_day_list(value)
    if hasattr(value, "value"):  # enums
        return value.value
    return value


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value[:10]) if value else None


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_schedule(row: sqlite3.Row) -> Schedule:
    return Schedule(
        id=row["id"],
        profile_id=row["profile_id"],
        name=row["name"],
        amount=Decimal(row["amount"]),
        frequency=row["frequency"],
        due_days=row["due_dates"],
        generation_days=row["generation_days"],
        due_day=row["due_day"],
        description=row["description"],
        next_trigger_date=_parse_date(row["next_due_date"]),
        created_at=_parse_datetime(row["created_at"]),
    )


def _row_to_occurrence(row: sqlite3.Row) -> Occurrence:
    return Occurrence(
        id=row["id"],
        profile_id=row["profile_id"],
        schedule_id=row["automatic_bill_id"],
        name=row["name"],
        amount=Decimal(row["amount"]),
        description=row["description"],
        due_date=_parse_date(row["due_date"]),  # type: ignore[arg-type]
        status=row["status"],
        paid_date=_parse_datetime(row["paid_date"]),
        document_ref=row["document_path"],
        created_at=_parse_datetime(row["created_at"]),
    )


def _row_to_reminder(row: sqlite3.Row) -> Reminder:
    return Reminder(
        id=row["id"],
        title=row["title"],
        body=row["body"],
        schedule_type=ReminderScheduleType(row["schedule_type"]),
        scheduled_at=_parse_datetime(row["scheduled_at"]),
        is_active=bool(row["is_active"]),
        profile_id=row["profile_id"],
        created_at=_parse_datetime(row["created_at"]),
    )


def _row_to_transaction(row: sqlite3.Row) -> Transaction:
    return Transaction(
        id=row["id"],
        profile_id=row["profile_id"],
        amount=Decimal(row["amount"]),
        transaction_date=_parse_date(row["transaction_date"]),  # type: ignore[arg-type]
        description=row["description"],
        bill_record_id=row["bill_record_id"],
    )


class SQLiteStore(BillStore, TagStore, ReminderStore, TransactionStore):
    """SQLite storage for schedules, occurrences, tags, reminders and transactions."""

    def __init__(
        self,
        db_path: str | Path | None = None,
        now: Callable[[], datetime] | None = None,
    ):
        self.db_path = str(db_path or get_settings().database_path)
        self._now = now or datetime.now
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()
        self._logger = logger.bind(component="sqlite_store", db_path=self.db_path)

    async def open(self) -> "SQLiteStore":
        """Open the connection and create missing tables."""
        if self._conn is None:
            self._conn = await asyncio.to_thread(self._connect)
            self._logger.info("store_opened")
        return self

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            if self.db_path != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(SCHEMA_SQL)
            conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"cannot open database {self.db_path}: {e}") from e
        return conn

    async def close(self) -> None:
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await asyncio.to_thread(conn.close)
            self._logger.info("store_closed")

    async def __aenter__(self) -> "SQLiteStore":
        return await self.open()

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # === Low-level helpers ===

    def _run(self, sql: str, params: Sequence[Any], fetch: bool) -> Any:
        if self._conn is None:
            raise StorageError("store is not open")
        with self._lock:
            try:
                cursor = self._conn.execute(sql, [_to_db(p) for p in params])
                rows = cursor.fetchall() if fetch else None
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                raise StorageError(str(e)) from e
        return rows if fetch else cursor.lastrowid

    async def _query(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        return await asyncio.to_thread(self._run, sql, params, True)

    async def _execute(self, sql: str, params: Sequence[Any] = ()) -> int | None:
        return await asyncio.to_thread(self._run, sql, params, False)

    async def _update(
        self,
        table: str,
        row_id: int,
        changes: dict[str, Any],
        columns: dict[str, str],
    ) -> None:
        if not changes:
            return
        assignments = ", ".join(f"{columns.get(k, k)} = ?" for k in changes)
        await self._execute(
            f"UPDATE {table} SET {assignments} WHERE id = ?",
            [*changes.values(), row_id],
        )

    # === Seeding helpers ===

    async def add_tag(self, name: str, color: str | None = None) -> Tag:
        tag_id = await self._execute(
            "INSERT INTO tags (name, color) VALUES (?, ?)", [name, color]
        )
        return Tag(id=tag_id, name=name, color=color)  # type: ignore[arg-type]

    async def add_transaction(
        self,
        amount: Decimal | str | float,
        transaction_date: date,
        profile_id: int = 1,
        description: str | None = None,
    ) -> Transaction:
        tx_id = await self._execute(
            "INSERT INTO transactions (profile_id, amount, description, transaction_date) "
            "VALUES (?, ?, ?, ?)",
            [profile_id, to_amount(amount), description, transaction_date],
        )
        return Transaction(
            id=tx_id,  # type: ignore[arg-type]
            profile_id=profile_id,
            amount=to_amount(amount),
            transaction_date=transaction_date,
            description=description,
        )

    # === Schedules ===

    async def list_schedules(self, profile_id: int | None = None) -> list[Schedule]:
        if profile_id is None:
            rows = await self._query(
                "SELECT * FROM automatic_bills ORDER BY created_at DESC, id DESC"
            )
        else:
            rows = await self._query(
                "SELECT * FROM automatic_bills WHERE profile_id = ? "
                "ORDER BY created_at DESC, id DESC",
                [profile_id],
            )
        return [_row_to_schedule(r) for r in rows]

    async def list_due_schedules(self, as_of: date) -> list[Schedule]:
        rows = await self._query(
            "SELECT * FROM automatic_bills "
            "WHERE next_due_date IS NOT NULL AND next_due_date <= ? ORDER BY id",
            [as_of],
        )
        return [_row_to_schedule(r) for r in rows]

    async def get_schedule(self, schedule_id: int) -> Schedule | None:
        rows = await self._query(
            "SELECT * FROM automatic_bills WHERE id = ?", [schedule_id]
        )
        return _row_to_schedule(rows[0]) if rows else None

    async def insert_schedule(self, schedule: Schedule) -> int:
        schedule_id = await self._execute(
            "INSERT INTO automatic_bills (profile_id, name, amount, description, "
            "frequency, due_day, due_dates, generation_days, next_due_date, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                schedule.profile_id,
                schedule.name,
                schedule.amount,
                schedule.description,
                schedule.frequency,
                schedule.due_day,
                schedule.due_days,
                schedule.generation_days,
                schedule.next_trigger_date,
                schedule.created_at or self._now(),
            ],
        )
        return schedule_id  # type: ignore[return-value]

    async def update_schedule(self, schedule_id: int, changes: dict[str, Any]) -> None:
        check_fields(changes, SCHEDULE_FIELDS)
        await self._update("automatic_bills", schedule_id, changes, SCHEDULE_COLUMNS)

    async def delete_schedule(self, schedule_id: int) -> None:
        await self._execute(
            "DELETE FROM automatic_bills_tags WHERE automatic_bill_id = ?", [schedule_id]
        )
        await self._execute("DELETE FROM automatic_bills WHERE id = ?", [schedule_id])

    # === Occurrences ===

    async def list_occurrences(self, profile_id: int | None = None) -> list[Occurrence]:
        if profile_id is None:
            rows = await self._query(
                "SELECT * FROM bill_records ORDER BY due_date ASC, id ASC"
            )
        else:
            rows = await self._query(
                "SELECT * FROM bill_records WHERE profile_id = ? "
                "ORDER BY due_date ASC, id ASC",
                [profile_id],
            )
        return [_row_to_occurrence(r) for r in rows]

    async def get_occurrence(self, occurrence_id: int) -> Occurrence | None:
        rows = await self._query(
            "SELECT * FROM bill_records WHERE id = ?", [occurrence_id]
        )
        return _row_to_occurrence(rows[0]) if rows else None

    async def insert_occurrence(self, occurrence: Occurrence) -> int:
        occurrence_id = await self._execute(
            "INSERT INTO bill_records (automatic_bill_id, profile_id, name, amount, "
            "description, due_date, status, paid_date, document_path, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                occurrence.schedule_id,
                occurrence.profile_id,
                occurrence.name,
                occurrence.amount,
                occurrence.description,
                occurrence.due_date,
                occurrence.status,
                occurrence.paid_date,
                occurrence.document_ref,
                occurrence.created_at or self._now(),
            ],
        )
        return occurrence_id  # type: ignore[return-value]

    async def update_occurrence(
        self, occurrence_id: int, changes: dict[str, Any]
    ) -> None:
        check_fields(changes, OCCURRENCE_FIELDS)
        await self._update("bill_records", occurrence_id, changes, OCCURRENCE_COLUMNS)

    async def find_occurrences_in_period(
        self, schedule_id: int, amount: Decimal, start: date, end: date
    ) -> list[Occurrence]:
        rows = await self._query(
            "SELECT * FROM bill_records WHERE automatic_bill_id = ? AND amount = ? "
            "AND due_date >= ? AND due_date <= ? ORDER BY id",
            [schedule_id, to_amount(amount), start, end],
        )
        return [_row_to_occurrence(r) for r in rows]

    async def list_paid_without_document(self, created_after: datetime) -> list[Occurrence]:
        rows = await self._query(
            "SELECT * FROM bill_records WHERE status = ? "
            "AND (document_path IS NULL OR document_path = '') "
            "AND created_at > ? ORDER BY id",
            [OccurrenceStatus.PAID, created_after],
        )
        return [_row_to_occurrence(r) for r in rows]

    # === Tags ===

    async def tags_for_schedule(self, schedule_id: int) -> list[Tag]:
        rows = await self._query(
            "SELECT t.* FROM tags t "
            "INNER JOIN automatic_bills_tags abt ON t.id = abt.tag_id "
            "WHERE abt.automatic_bill_id = ? ORDER BY t.name ASC",
            [schedule_id],
        )
        return [Tag(id=r["id"], name=r["name"], color=r["color"]) for r in rows]

    async def set_tags_for_schedule(
        self, schedule_id: int, tag_ids: Sequence[int]
    ) -> None:
        await self._execute(
            "DELETE FROM automatic_bills_tags WHERE automatic_bill_id = ?", [schedule_id]
        )
        for tag_id in dict.fromkeys(tag_ids):
            await self._execute(
                "INSERT INTO automatic_bills_tags (automatic_bill_id, tag_id) VALUES (?, ?)",
                [schedule_id, tag_id],
            )

    async def tags_for_occurrence(self, occurrence_id: int) -> list[Tag]:
        rows = await self._query(
            "SELECT t.* FROM tags t "
            "INNER JOIN bill_records_tags brt ON t.id = brt.tag_id "
            "WHERE brt.bill_record_id = ? ORDER BY t.name ASC",
            [occurrence_id],
        )
        return [Tag(id=r["id"], name=r["name"], color=r["color"]) for r in rows]

    async def set_tags_for_occurrence(
        self, occurrence_id: int, tag_ids: Sequence[int]
    ) -> None:
        await self._execute(
            "DELETE FROM bill_records_tags WHERE bill_record_id = ?", [occurrence_id]
        )
        for tag_id in dict.fromkeys(tag_ids):
            await self._execute(
                "INSERT INTO bill_records_tags (bill_record_id, tag_id) VALUES (?, ?)",
                [occurrence_id, tag_id],
            )

    # === Reminders ===

    async def create_reminder(
        self,
        title: str,
        body: str,
        schedule_type: ReminderScheduleType = ReminderScheduleType.ONCE,
        scheduled_at: datetime | None = None,
        profile_id: int | None = None,
    ) -> Reminder:
        if profile_id is None:
            profile_id = get_settings().default_profile_id
        reminder_id = await self._execute(
            "INSERT INTO reminders (title, body, schedule_type, scheduled_at, "
            "profile_id, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            [title, body, schedule_type, scheduled_at, profile_id, self._now()],
        )
        rows = await self._query("SELECT * FROM reminders WHERE id = ?", [reminder_id])
        return _row_to_reminder(rows[0])

    async def find_active_by_title(self, title: str) -> list[Reminder]:
        rows = await self._query(
            "SELECT * FROM reminders WHERE title = ? AND is_active = 1", [title]
        )
        return [_row_to_reminder(r) for r in rows]

    # === Transactions ===

    async def get_transaction(self, transaction_id: int) -> Transaction | None:
        rows = await self._query(
            "SELECT * FROM transactions WHERE id = ?", [transaction_id]
        )
        return _row_to_transaction(rows[0]) if rows else None

    async def update_transaction(
        self, transaction_id: int, *, bill_record_id: int | None
    ) -> None:
        await self._execute(
            "UPDATE transactions SET bill_record_id = ? WHERE id = ?",
            [bill_record_id, transaction_id],
        )
