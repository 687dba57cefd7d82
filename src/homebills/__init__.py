"""homebills - recurring bill scheduling and transaction reconciliation."""

__version__ = "0.1.0"

from homebills.config import configure_logging, get_settings
from homebills.cycles import observation_due_date, reconciliation_due_date
from homebills.dates import advance_trigger, next_date
from homebills.documents import MissingDocumentSweeper
from homebills.exceptions import (
    HomeBillsError,
    InvalidDayListError,
    NotFoundError,
    StorageError,
)
from homebills.generation import BillGenerationEngine
from homebills.models import (
    Frequency,
    MatchResult,
    Occurrence,
    OccurrenceStatus,
    Reminder,
    Schedule,
    Tag,
    Transaction,
)
from homebills.reconciler import TransactionReconciler
from homebills.scheduler import BillScheduler, Clock, SystemClock
from homebills.service import BillService
from homebills.stores import MemoryStore, SQLiteStore

__all__ = [
    # Version
    "__version__",
    # Models
    "Frequency",
    "Schedule",
    "Occurrence",
    "OccurrenceStatus",
    "Transaction",
    "Tag",
    "Reminder",
    "MatchResult",
    # Date logic
    "next_date",
    "advance_trigger",
    "observation_due_date",
    "reconciliation_due_date",
    # Components
    "BillGenerationEngine",
    "TransactionReconciler",
    "MissingDocumentSweeper",
    "BillScheduler",
    "Clock",
    "SystemClock",
    "BillService",
    # Stores
    "MemoryStore",
    "SQLiteStore",
    # Errors
    "HomeBillsError",
    "NotFoundError",
    "StorageError",
    "InvalidDayListError",
    # Config
    "get_settings",
    "configure_logging",
]
