"""Collaborator interfaces and their implementations."""

from homebills.stores.base import BillStore, ReminderStore, TagStore, TransactionStore
from homebills.stores.memory import MemoryStore
from homebills.stores.sqlite import SQLiteStore

__all__ = [
    "BillStore",
    "TagStore",
    "ReminderStore",
    "TransactionStore",
    "MemoryStore",
    "SQLiteStore",
]
