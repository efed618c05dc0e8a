"""
Recurrence rules and their RRULE-style text form.

A rule is stored on its base event as a string such as

    FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;UNTIL=20240115

`parse` turns that string into a `RecurrenceRule`, `serialize` goes the
other way. Both only know the keys listed in `RULE_KEYS`; anything else
in the text is ignored.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional

from .shared import (
    WEEKDAY_CODES,
    WEEKDAY_NAMES_EN,
    WEEKDAY_NAMES_ZH,
    fmt_compact_date,
    parse_date,
)

RULE_KEYS = ("FREQ", "INTERVAL", "BYDAY", "BYMONTHDAY", "BYMONTH", "COUNT", "UNTIL")


class Frequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


def _nonempty(values) -> Optional[list]:
    if not values:
        return None
    return list(values)


@dataclass
class RecurrenceRule:
    frequency: Frequency
    interval: int = 1
    by_day: Optional[List[str]] = None
    by_month_day: Optional[List[int]] = None
    by_month: Optional[List[int]] = None
    count: Optional[int] = None
    until: Optional[date] = None

    def __post_init__(self):
        if isinstance(self.frequency, str) and not isinstance(
            self.frequency, Frequency
        ):
            self.frequency = Frequency(self.frequency.upper())
        # an empty filter is the same as no filter
        self.by_day = _nonempty(self.by_day)
        self.by_month_day = _nonempty(self.by_month_day)
        self.by_month = _nonempty(self.by_month)

    def __str__(self) -> str:
        return serialize(self)


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.valid


def _int_or_none(text: str) -> Optional[int]:
    try:
        return int(text.strip())
    except ValueError:
        return None


def _int_list(text: str) -> List[int]:
    values = []
    for part in text.split(","):
        value = _int_or_none(part)
        if value is not None:
            values.append(value)
    return values


def _weekday_list(text: str) -> List[str]:
    codes = []
    for part in text.split(","):
        code = part.strip().upper()
        if code in WEEKDAY_CODES:
            codes.append(code)
    return codes


def parse(text: Optional[str]) -> Optional[RecurrenceRule]:
    """
    Parse 'KEY=VALUE;...' text into a RecurrenceRule.

    Never raises: unknown keys and malformed values are skipped, and
    None is returned when no usable FREQ is present.
    """
    if not text or not text.strip():
        return None

    s = text.strip()
    if s.upper().startswith("RRULE:"):
        s = s[len("RRULE:") :]

    values: dict = {}
    for part in s.split(";"):
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        key = key.strip().upper()
        value = value.strip()

        if key == "FREQ":
            # HOURLY and finer are not supported
            if value.upper() in Frequency.__members__:
                values["frequency"] = Frequency[value.upper()]
        elif key == "INTERVAL":
            interval = _int_or_none(value)
            if interval is not None:
                values["interval"] = interval
        elif key == "BYDAY":
            values["by_day"] = _weekday_list(value)
        elif key == "BYMONTHDAY":
            values["by_month_day"] = _int_list(value)
        elif key == "BYMONTH":
            values["by_month"] = _int_list(value)
        elif key == "COUNT":
            count = _int_or_none(value)
            if count is not None:
                values["count"] = count
        elif key == "UNTIL":
            until = parse_date(value)
            if until is not None:
                values["until"] = until

    if "frequency" not in values:
        return None
    return RecurrenceRule(**values)


def serialize(rule: RecurrenceRule) -> str:
    """Render a rule with keys in a fixed order so the output is stable."""
    parts = [f"FREQ={Frequency(rule.frequency).value}"]

    if rule.interval and rule.interval > 1:
        parts.append(f"INTERVAL={rule.interval}")
    if rule.by_day:
        parts.append(f"BYDAY={','.join(rule.by_day)}")
    if rule.by_month_day:
        parts.append(f"BYMONTHDAY={','.join(str(d) for d in rule.by_month_day)}")
    if rule.by_month:
        parts.append(f"BYMONTH={','.join(str(m) for m in rule.by_month)}")

    if rule.count:
        parts.append(f"COUNT={rule.count}")
    elif rule.until:
        parts.append(f"UNTIL={fmt_compact_date(rule.until)}")

    return ";".join(parts)


def validate(rule: RecurrenceRule, today: Optional[date] = None) -> ValidationResult:
    """
    Check a rule before it is stored. Reports problems; never raises and
    never changes the rule.
    """
    errors = []
    if today is None:
        today = date.today()

    if not rule.frequency:
        errors.append("frequency is required")

    if rule.interval is not None and rule.interval < 1:
        errors.append("interval must be a positive integer")

    if rule.count is not None and rule.count < 1:
        errors.append("count must be a positive integer")

    if rule.until is not None and rule.until < today:
        errors.append("until date cannot be earlier than today")

    if rule.by_month_day and any(not 1 <= d <= 31 for d in rule.by_month_day):
        errors.append("month days must be between 1 and 31")

    if rule.by_month and any(not 1 <= m <= 12 for m in rule.by_month):
        errors.append("months must be between 1 and 12")

    if rule.by_day and any(d not in WEEKDAY_CODES for d in rule.by_day):
        errors.append(f"weekdays must be from {', '.join(WEEKDAY_CODES)}")

    return ValidationResult(valid=not errors, errors=errors)


def _ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def _describe_zh(rule: RecurrenceRule) -> str:
    interval = rule.interval or 1
    freq = rule.frequency

    if freq == Frequency.DAILY:
        text = "每天" if interval == 1 else f"每{interval}天"
    elif freq == Frequency.WEEKLY:
        text = "每周" if interval == 1 else f"每{interval}周"
        if rule.by_day:
            text += "、".join(WEEKDAY_NAMES_ZH.get(d, d) for d in rule.by_day)
    elif freq == Frequency.MONTHLY:
        text = "每月" if interval == 1 else f"每{interval}月"
        if rule.by_month_day:
            text += "、".join(str(d) for d in rule.by_month_day) + "号"
    else:
        text = "每年" if interval == 1 else f"每{interval}年"

    if rule.count:
        text += f"，共{rule.count}次"
    elif rule.until:
        u = rule.until
        text += f"，直到{u.year}/{u.month}/{u.day}"
    return text


def _describe_en(rule: RecurrenceRule) -> str:
    interval = rule.interval or 1
    freq = rule.frequency
    unit = {
        Frequency.DAILY: "day",
        Frequency.WEEKLY: "week",
        Frequency.MONTHLY: "month",
        Frequency.YEARLY: "year",
    }[freq]

    if interval == 1:
        text = "Every day" if freq == Frequency.DAILY else freq.value.capitalize()
    else:
        text = f"Every {interval} {unit}s"

    if freq == Frequency.WEEKLY and rule.by_day:
        text += " on " + ", ".join(WEEKDAY_NAMES_EN.get(d, d) for d in rule.by_day)
    elif freq == Frequency.MONTHLY and rule.by_month_day:
        text += " on the " + ", ".join(_ordinal(d) for d in rule.by_month_day)

    if rule.count:
        text += f", {rule.count} times"
    elif rule.until:
        text += f", until {rule.until.isoformat()}"
    return text


def describe(rule: Optional[RecurrenceRule], lang: str = "zh") -> str:
    """A short human readable rendering of a rule."""
    if rule is None:
        return ""
    if lang == "en":
        return _describe_en(rule)
    return _describe_zh(rule)
