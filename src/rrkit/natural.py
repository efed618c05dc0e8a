"""
Best-effort translation of short phrases such as "每两周", "weekdays" or
"every month on the 15th" into a RecurrenceRule.

The recognizer is an ordered table of (pattern, builder) pairs and the first
pattern that matches wins. Plain frequency words come first, then their
parameterized variants, then the derived categories. Plain patterns use
lookaheads so they do not claim phrases that a later, more specific entry
owns.
"""

import re
from typing import Callable, List, Optional, Tuple

from .rule import Frequency, RecurrenceRule

_CN_DIGITS = {
    "零": 0,
    "一": 1,
    "二": 2,
    "两": 2,
    "三": 3,
    "四": 4,
    "五": 5,
    "六": 6,
    "七": 7,
    "八": 8,
    "九": 9,
}

_EN_NUMBERS = {
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
}

_CN_WEEKDAYS = {
    "一": "MO",
    "二": "TU",
    "三": "WE",
    "四": "TH",
    "五": "FR",
    "六": "SA",
    "日": "SU",
    "天": "SU",
}

_EN_WEEKDAYS = {
    "mon": "MO",
    "tues": "TU",
    "wednes": "WE",
    "thurs": "TH",
    "fri": "FR",
    "satur": "SA",
    "sun": "SU",
}

NUM = r"(\d+|[零一二两三四五六七八九十]+|one|two|three|four|five|six|seven|eight|nine|ten|eleven|twelve)"
EN_DAY = r"(mon|tues|wednes|thurs|fri|satur|sun)day"

# a day of the month, "15", "15号" or "十五日"; "3次" (three times) is not a day
_CN_DAY = "[零一二三四五六七八九十]"
MONTH_DAY = rf"(\d{{1,2}}(?!\d)|{_CN_DAY}+(?!{_CN_DAY}))\s*[号日]?(?!\s*次)"


def to_number(token: str) -> Optional[int]:
    """'3', '三', '十二', 'three' -> int; None if the token is not a number."""
    token = token.strip().lower()
    if token.isdigit():
        return int(token)
    if token in _EN_NUMBERS:
        return _EN_NUMBERS[token]
    if not token or any(c not in _CN_DIGITS and c != "十" for c in token):
        return None
    if "十" not in token:
        value = 0
        for c in token:
            value = value * 10 + _CN_DIGITS[c]
        return value
    tens, _, ones = token.partition("十")
    return (_CN_DIGITS.get(tens, 1) if tens else 1) * 10 + (
        _CN_DIGITS.get(ones, 0) if ones else 0
    )


def _every(frequency: Frequency, **extra) -> Callable[[re.Match], RecurrenceRule]:
    def build(match: re.Match) -> RecurrenceRule:
        return RecurrenceRule(frequency=frequency, **extra)

    return build


def _every_n(frequency: Frequency) -> Callable[[re.Match], RecurrenceRule]:
    def build(match: re.Match) -> RecurrenceRule:
        token = next(g for g in match.groups() if g)
        return RecurrenceRule(frequency=frequency, interval=to_number(token))

    return build


def _on_weekday(match: re.Match) -> RecurrenceRule:
    cn, en = match.group(1), match.group(2)
    code = _CN_WEEKDAYS[cn] if cn else _EN_WEEKDAYS[en.lower()]
    return RecurrenceRule(frequency=Frequency.WEEKLY, by_day=[code])


def _on_month_day(match: re.Match) -> RecurrenceRule:
    token = next(g for g in match.groups() if g)
    return RecurrenceRule(frequency=Frequency.MONTHLY, by_month_day=[to_number(token)])


def _compile(pattern: str) -> re.Pattern:
    return re.compile(pattern, re.IGNORECASE)


PATTERNS: List[Tuple[re.Pattern, Callable[[re.Match], RecurrenceRule]]] = [
    # daily
    (_compile(r"每天|每日|\bdaily\b|\bevery\s+day\b"), _every(Frequency.DAILY)),
    (
        _compile(rf"每{NUM}[天日]|\bevery\s+{NUM}\s+days\b"),
        _every_n(Frequency.DAILY),
    ),
    # weekly
    (
        _compile(r"每(?:周|星期)(?![一二三四五六日天末](?!次))|(?<![-\w])weekly\b|\bevery\s+week\b"),
        _every(Frequency.WEEKLY),
    ),
    (
        _compile(rf"每{NUM}(?:个)?(?:周|星期)|\bevery\s+{NUM}\s+weeks\b"),
        _every_n(Frequency.WEEKLY),
    ),
    # weekdays / weekends
    (
        _compile(r"工作日|\bweekdays?\b"),
        _every(Frequency.WEEKLY, by_day=["MO", "TU", "WE", "TH", "FR"]),
    ),
    (
        _compile(r"周末|\bweekends?\b"),
        _every(Frequency.WEEKLY, by_day=["SA", "SU"]),
    ),
    # a specific weekday
    (
        _compile(rf"每(?:周|星期)([一二三四五六日天])(?!次)|\b(?:every|each)\s+{EN_DAY}s?\b"),
        _on_weekday,
    ),
    # monthly
    (
        _compile(
            rf"每(?:个)?月(?!\s*{MONTH_DAY})|\bmonthly\b(?!\s+on\b)|\bevery\s+month\b(?!\s+on\b)"
        ),
        _every(Frequency.MONTHLY),
    ),
    (
        _compile(rf"每{NUM}(?:个)?月|\bevery\s+{NUM}\s+months\b"),
        _every_n(Frequency.MONTHLY),
    ),
    (
        _compile(
            rf"每(?:个)?月\s*{MONTH_DAY}"
            r"|\b(?:every\s+month|monthly)\s+on\s+the\s+(\d{1,2})(?:st|nd|rd|th)?\b"
        ),
        _on_month_day,
    ),
    # yearly
    (
        _compile(r"每年|\byearly\b|\bannually\b|\bevery\s+year\b"),
        _every(Frequency.YEARLY),
    ),
    # biweekly
    (
        _compile(r"双周|隔周|\bbi-?weekly\b|\bevery\s+other\s+week\b"),
        _every(Frequency.WEEKLY, interval=2),
    ),
]


def recognize(text: Optional[str]) -> Optional[RecurrenceRule]:
    """
    Return the rule for the first pattern that matches `text`, or None
    when nothing matches. None means "could not infer", not an error.
    """
    if not text or not text.strip():
        return None
    for pattern, build in PATTERNS:
        match = pattern.search(text)
        if match:
            return build(match)
    return None
