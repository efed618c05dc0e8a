"""
Per-date overrides of a recurring series.

Each (series, date) is in exactly one state: no exception, cancelled,
modified or moved. `ExceptionSet` holds at most one exception per date;
putting a second exception for the same date replaces the first.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Dict, Iterable, Iterator, Mapping, Optional

from .shared import parse_date, to_date


class ExceptionType(str, Enum):
    CANCELLED = "cancelled"
    MODIFIED = "modified"
    MOVED = "moved"


@dataclass(frozen=True)
class RecurrenceException:
    date: date
    type: ExceptionType
    modified_event_id: Optional[str] = None

    def __post_init__(self):
        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "date", to_date(self.date))
        object.__setattr__(self, "type", ExceptionType(self.type))
        if self.modified_event_id is not None:
            object.__setattr__(self, "modified_event_id", str(self.modified_event_id))

    @property
    def is_cancelled(self) -> bool:
        return self.type == ExceptionType.CANCELLED

    @classmethod
    def from_record(cls, record: Mapping) -> "RecurrenceException":
        """
        Build from a store row such as
        {"parent_event_id": ..., "exception_date": "2024-01-03",
         "exception_type": "cancelled", "modified_event_id": None}.
        """
        raw_date = record.get("date", record.get("exception_date"))
        day = parse_date(raw_date)
        if day is None:
            raise ValueError(f"invalid exception date: {raw_date!r}")
        return cls(
            date=day,
            type=ExceptionType(record.get("type", record.get("exception_type"))),
            modified_event_id=record.get("modified_event_id"),
        )


class ExceptionSet:
    """Date-keyed, at-most-one-per-day collection of exceptions."""

    def __init__(self, exceptions: Iterable[RecurrenceException] = ()):
        self._by_date: Dict[date, RecurrenceException] = {}
        for exc in exceptions:
            self._by_date[exc.date] = exc

    @classmethod
    def coerce(
        cls, exceptions: "ExceptionSet | Iterable[RecurrenceException] | None"
    ) -> "ExceptionSet":
        if isinstance(exceptions, ExceptionSet):
            return exceptions
        return cls(exceptions or ())

    def lookup(self, day: date | datetime) -> Optional[RecurrenceException]:
        return self._by_date.get(to_date(day))

    def state(self, day: date | datetime) -> Optional[ExceptionType]:
        exc = self.lookup(day)
        return exc.type if exc else None

    def put(self, exception: RecurrenceException) -> "ExceptionSet":
        """Return a new set with `exception` created or replaced for its date."""
        updated = ExceptionSet(self)
        updated._by_date[exception.date] = exception
        return updated

    def remove(self, day: date | datetime) -> "ExceptionSet":
        """Return a new set with no exception for `day`."""
        updated = ExceptionSet(self)
        updated._by_date.pop(to_date(day), None)
        return updated

    def __iter__(self) -> Iterator[RecurrenceException]:
        return iter(sorted(self._by_date.values(), key=lambda e: e.date))

    def __len__(self) -> int:
        return len(self._by_date)

    def __contains__(self, day) -> bool:
        return to_date(day) in self._by_date
