from datetime import date, datetime

from .rule import Frequency, RecurrenceRule
from .shared import month_index, to_date, weekday_code


def _passes_frequency(day: date, rule: RecurrenceRule, anchor: date) -> bool:
    interval = rule.interval or 1
    freq = rule.frequency

    if freq == Frequency.DAILY:
        return (day - anchor).days % interval == 0

    if freq == Frequency.WEEKLY:
        # weeks are counted from the anchor day, not from a calendar week start
        if ((day - anchor).days // 7) % interval != 0:
            return False
        # without BYDAY a weekly rule repeats on the anchor's weekday
        return bool(rule.by_day) or day.weekday() == anchor.weekday()

    if freq == Frequency.MONTHLY:
        if (month_index(day) - month_index(anchor)) % interval != 0:
            return False
        if rule.by_month_day:
            return day.day in rule.by_month_day
        # no rollover: months without the anchor's day are skipped
        return day.day == anchor.day

    if freq == Frequency.YEARLY:
        if (day.year - anchor.year) % interval != 0:
            return False
        return day.month == anchor.month and day.day == anchor.day

    return False


def matches(
    candidate: date | datetime, rule: RecurrenceRule, anchor: date | datetime
) -> bool:
    """
    Is `candidate` an occurrence of `rule` for a series starting on `anchor`?

    Only calendar days are compared; any time of day is dropped.
    """
    day = to_date(candidate)
    anchor = to_date(anchor)

    if day < anchor:
        return False

    if not _passes_frequency(day, rule, anchor):
        return False

    if rule.by_day and weekday_code(day) not in rule.by_day:
        return False

    # month+day equality above still applies; BYMONTH only narrows it
    if rule.frequency == Frequency.YEARLY and rule.by_month:
        if day.month not in rule.by_month:
            return False

    return True
