import inspect
import textwrap
import shutil
import os
from datetime import date, datetime, time, timedelta
from pathlib import Path
from dateutil.parser import parse as dateutil_parse

from rrkit.rrkit_env import RrkitEnvironment, RrkitConfig

# date.weekday() order
WEEKDAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")

WEEKDAY_NAMES_ZH = {
    "MO": "周一",
    "TU": "周二",
    "WE": "周三",
    "TH": "周四",
    "FR": "周五",
    "SA": "周六",
    "SU": "周日",
}

WEEKDAY_NAMES_EN = {
    "MO": "Mon",
    "TU": "Tue",
    "WE": "Wed",
    "TH": "Thu",
    "FR": "Fri",
    "SA": "Sat",
    "SU": "Sun",
}

_LOG_ENABLED = True


def to_date(value: date | datetime) -> date:
    """Reduce a datetime to its calendar day; dates pass through."""
    if isinstance(value, datetime):
        return value.date()
    return value


def weekday_code(day: date) -> str:
    return WEEKDAY_CODES[day.weekday()]


def combine(day: date, time_of_day: time) -> datetime:
    """Attach a time of day (and its tzinfo, if any) to a calendar day."""
    return datetime.combine(day, time_of_day)


def month_index(day: date) -> int:
    return day.year * 12 + (day.month - 1)


def fmt_compact_date(day: date) -> str:
    return day.strftime("%Y%m%d")


def parse_date(value: str | date | datetime | None) -> date | None:
    """
    Accept 'YYYYMMDD', 'YYYYMMDDTHHMMSS[Z]', 'YYYY-MM-DD' and friends.
    Returns None on failure.
    """
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return to_date(value)
    s = str(value).strip()
    if not s:
        return None
    try:
        return dateutil_parse(s, yearfirst=True, dayfirst=False).date()
    except (ValueError, OverflowError):
        return None


def parse_datetime(value: str | datetime) -> datetime:
    """User-facing datetime parser; raises ValueError on failure."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    try:
        return dateutil_parse(str(value).strip(), yearfirst=True, dayfirst=False)
    except OverflowError as e:
        raise ValueError(str(e)) from e


def format_time_range(start: datetime, end: datetime | None, ampm: bool = False) -> str:
    def _fmt(dt: datetime) -> str:
        if ampm:
            return dt.strftime("%I:%M%p").lstrip("0").lower()
        return dt.strftime("%H:%M")

    if end is None or end == start:
        return _fmt(start)
    if end.date() != start.date():
        return f"{_fmt(start)}-{end.strftime('%Y-%m-%d')} {_fmt(end)}"
    return f"{_fmt(start)}-{_fmt(end)}"


def duration_in_words(td: timedelta) -> str:
    seconds = int(td.total_seconds())
    if seconds <= 0:
        return "0m"
    days, rem = divmod(seconds, 86400)
    hours, rem = divmod(rem, 3600)
    minutes = rem // 60
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    return "".join(parts) or "0m"


def configure_logging(config: RrkitConfig) -> None:
    global _LOG_ENABLED
    _LOG_ENABLED = config.log.enabled


def _get_runtime_home() -> Path:
    override = os.environ.get("RRKIT_HOME")
    if override:
        return Path(override).expanduser()
    return RrkitEnvironment().home


def _resolve_log_file_path(file_path: str | Path) -> Path:
    path = Path(file_path)
    if path.is_absolute():
        return path
    return _get_runtime_home() / path


def _default_log_relative_path(kind: str) -> Path:
    """Return logs/log_<YYMMDD>.md style paths under the runtime home."""
    suffix = datetime.now().strftime("%y%m%d")
    return Path("logs") / f"{kind}_{suffix}.md"


def log_msg(
    msg: str,
    file_path: str | Path | None = None,
    print_output: bool = False,
):
    """
    Log a message and save it directly to a file.

    Args:
        msg (str): The message to log.
        file_path (str | Path | None, optional): Overrides the default path when
            provided. Defaults to ``None`` which writes to ``logs/log_<YYMMDD>.md``.
        print_output (bool, optional): If True, also print to console.
    """
    if not _LOG_ENABLED and not print_output:
        return

    frame = inspect.stack()[1].frame
    func_name = frame.f_code.co_name

    # Default: just function name
    caller_name = func_name

    # Detect instance/class/static context
    if "self" in frame.f_locals:  # instance method
        cls_name = frame.f_locals["self"].__class__.__name__
        caller_name = f"{cls_name}.{func_name}"
    elif "cls" in frame.f_locals:  # classmethod
        cls_name = frame.f_locals["cls"].__name__
        caller_name = f"{cls_name}.{func_name}"

    lines = [
        f"- {datetime.now().strftime('%H:%M:%S')} log_msg ({caller_name}):  ",
    ]
    lines.extend(
        [
            f"\n{x}"
            for x in textwrap.wrap(
                msg.strip(),
                width=max(shutil.get_terminal_size()[0] - 6, 40),
                initial_indent="   ",
                subsequent_indent="   ",
            )
        ]
    )
    lines.append("\n\n")

    if _LOG_ENABLED:
        # Best-effort file logging; fall back to console when the file is unwritable.
        if file_path is None:
            file_path = _default_log_relative_path("log")
        log_path = _resolve_log_file_path(file_path)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(log_path, "a", encoding="utf-8") as f:
                f.writelines(lines)
        except OSError:
            print_output = True

    if print_output:
        print("".join(lines))
