"""
Expand a rule and its base event into concrete occurrences.

The walk goes one calendar day at a time from the anchor day. It stops at
the earliest of the rule's UNTIL, the caller's query end and the horizon
(two years after the anchor by default), or once the occurrence limit
(COUNT or max_instances, whichever is smaller) is used up. Cancelled days
count toward the limit without producing an instance.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from dateutil.relativedelta import relativedelta

from .matcher import matches
from .overlay import ExceptionSet, ExceptionType, RecurrenceException
from .rule import RecurrenceRule
from .shared import combine, to_date

DEFAULT_MAX_INSTANCES = 365
DEFAULT_HORIZON_YEARS = 2

ONE_DAY = timedelta(days=1)


@dataclass
class RecurrenceInstance:
    start: datetime
    end: datetime
    is_exception: bool = False
    exception_type: Optional[ExceptionType] = None
    modified_event_id: Optional[str] = None

    @property
    def date(self) -> date:
        return self.start.date()


def _walk_end(
    anchor: date,
    rule: RecurrenceRule,
    query_end: Optional[date | datetime],
    horizon_years: int,
) -> date:
    bounds = [anchor + relativedelta(years=horizon_years)]
    if rule.until is not None:
        bounds.append(to_date(rule.until))
    if query_end is not None:
        bounds.append(to_date(query_end))
    return min(bounds)


def generate(
    anchor_start: datetime,
    anchor_end: datetime,
    rule: RecurrenceRule,
    exceptions: ExceptionSet | Iterable[RecurrenceException] | None = (),
    query_end: Optional[date | datetime] = None,
    max_instances: int = DEFAULT_MAX_INSTANCES,
    horizon_years: int = DEFAULT_HORIZON_YEARS,
) -> List[RecurrenceInstance]:
    """
    Return the occurrences of `rule` for the event anchor_start..anchor_end.

    Instances are ordered by start. Each keeps the anchor's time of day and
    duration; modified and moved days are flagged but keep the computed
    slot, the replacement event is resolved by the caller.
    """
    overrides = ExceptionSet.coerce(exceptions)
    duration = anchor_end - anchor_start
    time_of_day = anchor_start.timetz()
    anchor = anchor_start.date()

    limit = max_instances
    if rule.count:
        limit = min(rule.count, max_instances)

    last_day = _walk_end(anchor, rule, query_end, horizon_years)

    instances: List[RecurrenceInstance] = []
    used = 0
    day = anchor
    while used < limit and day <= last_day:
        if matches(day, rule, anchor):
            used += 1
            start = combine(day, time_of_day)
            exception = overrides.lookup(day)
            if exception is None:
                instances.append(RecurrenceInstance(start=start, end=start + duration))
            elif not exception.is_cancelled:
                instances.append(
                    RecurrenceInstance(
                        start=start,
                        end=start + duration,
                        is_exception=True,
                        exception_type=exception.type,
                        modified_event_id=exception.modified_event_id,
                    )
                )
        day += ONE_DAY

    return instances


def instances_between(
    instances: Iterable[RecurrenceInstance],
    window_start: datetime,
    window_end: datetime,
) -> List[RecurrenceInstance]:
    """Keep instances whose start lies in [window_start, window_end]."""
    return [i for i in instances if window_start <= i.start <= window_end]
