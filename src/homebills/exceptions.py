"""Exception hierarchy for the bill scheduling engine."""

from typing import Any


class HomeBillsError(Exception):
    """Base exception for homebills errors."""

    pass


class NotFoundError(HomeBillsError):
    """A referenced schedule, occurrence or transaction does not exist."""

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class StorageError(HomeBillsError):
    """The backing store failed to read or write."""

    pass


class InvalidDayListError(HomeBillsError, ValueError):
    """A day-of-month list contained a non-numeric or out-of-range entry."""

    def __init__(self, raw: Any, entry: Any):
        super().__init__(f"invalid day-of-month entry {entry!r} in {raw!r}")
        self.raw = raw
        self.entry = entry
