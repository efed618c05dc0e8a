import os
import sqlite3
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Tuple

from rrkit.rrkit_env import RrkitEnvironment

from .generator import RecurrenceInstance, generate, instances_between
from .overlay import ExceptionSet, ExceptionType, RecurrenceException
from .rule import RecurrenceRule, parse, serialize, validate
from .shared import combine, fmt_compact_date, log_msg, parse_date, to_date

DT_FMT = "%Y%m%dT%H%M%S"


class EventNotFound(LookupError):
    pass


class RuleValidationError(ValueError):
    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("invalid recurrence rule: " + "; ".join(self.errors))


def utc_now_string() -> str:
    """Return current UTC time as 'YYYYMMDDTHHMMSS'."""
    return datetime.now(timezone.utc).strftime(DT_FMT)


def _fmt_dt(dt: datetime) -> str:
    return dt.strftime(DT_FMT)


def _parse_dt(s: str) -> datetime:
    return datetime.strptime(s, DT_FMT)


@dataclass
class EventRecord:
    id: int
    title: str
    start: datetime
    end: datetime
    recurrence_rule: Optional[str] = None
    recurrence_end_date: Optional[date] = None
    recurrence_count: Optional[int] = None
    parent_event_id: Optional[int] = None

    @property
    def rule(self) -> Optional[RecurrenceRule]:
        rule = parse(self.recurrence_rule)
        # the rule text drops UNTIL when COUNT is set; the column keeps it
        if rule is not None and rule.until is None and self.recurrence_end_date:
            rule = replace(rule, until=self.recurrence_end_date)
        return rule


class DatabaseManager:
    """
    SQLite store for base events and their per-date exceptions.

    The recurrence engine itself never touches the database: this class
    loads the rows, hands them to `generate`, and records the caller's
    cancel/modify/move decisions as exception rows.
    """

    def __init__(self, db_path: str, env: RrkitEnvironment, reset: bool = False):
        self.db_path = str(db_path)
        self.env = env
        self.generation = env.config.generation

        if reset and os.path.exists(self.db_path):
            os.remove(self.db_path)

        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self.cursor = self.conn.cursor()
        self.setup_database()

    def close(self):
        self.conn.close()

    def setup_database(self):
        """
        Create (if missing) the Events and EventExceptions tables.

        Datetimes are stored as local-naive 'YYYYMMDDTHHMMSS' text, dates
        as 'YYYYMMDD'.
        """
        self.cursor.execute("""
            CREATE TABLE IF NOT EXISTS Events (
                id                   INTEGER PRIMARY KEY AUTOINCREMENT,
                title                TEXT NOT NULL,
                start_dt             TEXT NOT NULL,
                end_dt               TEXT NOT NULL,
                recurrence_rule      TEXT,                 -- 'FREQ=...;...' or NULL
                recurrence_end_date  TEXT,                 -- 'YYYYMMDD'
                recurrence_count     INTEGER,
                parent_event_id      INTEGER,              -- set for modified instances
                created              TEXT,                 -- 'YYYYMMDDTHHMMSS' UTC
                modified             TEXT,                 -- 'YYYYMMDDTHHMMSS' UTC
                FOREIGN KEY (parent_event_id) REFERENCES Events(id) ON DELETE CASCADE
            );
        """)
        self.cursor.execute("""
            CREATE TABLE IF NOT EXISTS EventExceptions (
                id                 INTEGER PRIMARY KEY AUTOINCREMENT,
                parent_event_id    INTEGER NOT NULL,
                exception_date     TEXT NOT NULL,          -- 'YYYYMMDD'
                exception_type     TEXT NOT NULL CHECK (exception_type IN ('cancelled','modified','moved')),
                modified_event_id  INTEGER,
                UNIQUE (parent_event_id, exception_date),
                FOREIGN KEY (parent_event_id) REFERENCES Events(id) ON DELETE CASCADE
            );
        """)
        self.cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_exceptions_parent
            ON EventExceptions(parent_event_id);
        """)
        self.conn.commit()

    # ---------------- events ----------------

    def add_event(
        self,
        title: str,
        start: datetime,
        end: datetime,
        rule: Optional[RecurrenceRule] = None,
        parent_event_id: Optional[int] = None,
    ) -> int:
        try:
            timestamp = utc_now_string()
            self.cursor.execute(
                """
                INSERT INTO Events (
                    title, start_dt, end_dt, recurrence_rule, recurrence_end_date,
                    recurrence_count, parent_event_id, created, modified
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    title,
                    _fmt_dt(start),
                    _fmt_dt(end),
                    serialize(rule) if rule else None,
                    fmt_compact_date(rule.until) if rule and rule.until else None,
                    rule.count if rule else None,
                    parent_event_id,
                    timestamp,  # created
                    timestamp,  # modified
                ),
            )
            self.conn.commit()
            return self.cursor.lastrowid
        except sqlite3.Error as e:
            log_msg(f"Error adding event {title!r}: {e}")
            raise

    def create_recurring_event(
        self,
        title: str,
        start: datetime,
        end: datetime,
        rule: RecurrenceRule,
        today: Optional[date] = None,
    ) -> int:
        result = validate(rule, today=today)
        if not result.valid:
            raise RuleValidationError(result.errors)
        record_id = self.add_event(title, start, end, rule)
        log_msg(f"created series {record_id} {title!r} with {serialize(rule)}")
        return record_id

    def get_event(self, event_id: int) -> EventRecord:
        row = self.cursor.execute(
            "SELECT * FROM Events WHERE id = ?", (event_id,)
        ).fetchone()
        if row is None:
            raise EventNotFound(f"no event with id {event_id}")
        return EventRecord(
            id=row["id"],
            title=row["title"],
            start=_parse_dt(row["start_dt"]),
            end=_parse_dt(row["end_dt"]),
            recurrence_rule=row["recurrence_rule"],
            recurrence_end_date=parse_date(row["recurrence_end_date"]),
            recurrence_count=row["recurrence_count"],
            parent_event_id=row["parent_event_id"],
        )

    def update_rule(self, event_id: int, rule: Optional[RecurrenceRule]):
        self.get_event(event_id)
        self.cursor.execute(
            """
            UPDATE Events
            SET recurrence_rule = ?, recurrence_end_date = ?, recurrence_count = ?,
                modified = ?
            WHERE id = ?
            """,
            (
                serialize(rule) if rule else None,
                fmt_compact_date(rule.until) if rule and rule.until else None,
                rule.count if rule else None,
                utc_now_string(),
                event_id,
            ),
        )
        self.conn.commit()

    # ---------------- exceptions ----------------

    def get_exceptions(self, event_id: int) -> List[RecurrenceException]:
        rows = self.cursor.execute(
            """
            SELECT parent_event_id, exception_date, exception_type, modified_event_id
            FROM EventExceptions
            WHERE parent_event_id = ?
            ORDER BY exception_date
            """,
            (event_id,),
        ).fetchall()
        return [RecurrenceException.from_record(dict(row)) for row in rows]

    def put_exception(self, event_id: int, exception: RecurrenceException):
        """Create or replace the exception for `exception.date`."""
        self.get_event(event_id)
        self._drop_replaced_child(event_id, exception.date, exception.modified_event_id)
        self.cursor.execute(
            """
            INSERT INTO EventExceptions (
                parent_event_id, exception_date, exception_type, modified_event_id
            ) VALUES (?, ?, ?, ?)
            ON CONFLICT (parent_event_id, exception_date) DO UPDATE SET
                exception_type = excluded.exception_type,
                modified_event_id = excluded.modified_event_id
            """,
            (
                event_id,
                fmt_compact_date(exception.date),
                exception.type.value,
                int(exception.modified_event_id)
                if exception.modified_event_id is not None
                else None,
            ),
        )
        self.conn.commit()
        log_msg(f"series {event_id}: {exception.type.value} on {exception.date}")

    def remove_exception(self, event_id: int, day: date | datetime) -> bool:
        day = to_date(day)
        self._drop_replaced_child(event_id, day, None)
        self.cursor.execute(
            "DELETE FROM EventExceptions WHERE parent_event_id = ? AND exception_date = ?",
            (event_id, fmt_compact_date(day)),
        )
        removed = self.cursor.rowcount > 0
        self.conn.commit()
        return removed

    def _drop_replaced_child(
        self, event_id: int, day: date, keep_id: Optional[str]
    ):
        row = self.cursor.execute(
            """
            SELECT modified_event_id FROM EventExceptions
            WHERE parent_event_id = ? AND exception_date = ?
            """,
            (event_id, fmt_compact_date(day)),
        ).fetchone()
        if row is None or row["modified_event_id"] is None:
            return
        if keep_id is not None and str(row["modified_event_id"]) == str(keep_id):
            return
        self.cursor.execute(
            "DELETE FROM Events WHERE id = ? AND parent_event_id = ?",
            (row["modified_event_id"], event_id),
        )

    # ---------------- series operations ----------------

    def get_instances(
        self,
        event_id: int,
        window_start: datetime,
        window_end: datetime,
    ) -> Tuple[List[RecurrenceInstance], Optional[RecurrenceRule]]:
        event = self.get_event(event_id)
        rule = event.rule
        if rule is None:
            return [], None

        instances = generate(
            event.start,
            event.end,
            rule,
            ExceptionSet(self.get_exceptions(event_id)),
            query_end=window_end,
            max_instances=self.generation.query_limit,
            horizon_years=self.generation.horizon_years,
        )
        in_window = instances_between(instances, window_start, window_end)
        log_msg(
            f"series {event_id} {rule}: {len(instances)} generated, {len(in_window)} in window"
        )
        return in_window, rule

    def _instance_slot(self, event: EventRecord, day: date) -> Tuple[datetime, datetime]:
        start = combine(day, event.start.timetz())
        return start, start + (event.end - event.start)

    def _override_instance(
        self,
        event_id: int,
        day: date | datetime,
        kind: ExceptionType,
        title: Optional[str],
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> int:
        event = self.get_event(event_id)
        day = to_date(day)
        slot_start, slot_end = self._instance_slot(event, day)
        start = start or slot_start
        end = end or (start + (slot_end - slot_start))
        child_id = self.add_event(
            title or event.title, start, end, parent_event_id=event_id
        )
        self.put_exception(
            event_id,
            RecurrenceException(date=day, type=kind, modified_event_id=str(child_id)),
        )
        return child_id

    def modify_instance(
        self,
        event_id: int,
        day: date | datetime,
        title: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> int:
        """Store a replacement event for one occurrence; returns its id."""
        return self._override_instance(
            event_id, day, ExceptionType.MODIFIED, title, start, end
        )

    def move_instance(
        self,
        event_id: int,
        day: date | datetime,
        start: datetime,
        end: Optional[datetime] = None,
    ) -> int:
        return self._override_instance(
            event_id, day, ExceptionType.MOVED, None, start, end
        )

    def cancel_instance(self, event_id: int, day: date | datetime):
        self.put_exception(
            event_id,
            RecurrenceException(date=to_date(day), type=ExceptionType.CANCELLED),
        )

    def restore_instance(self, event_id: int, day: date | datetime) -> bool:
        """Remove any exception for `day`; returns True if one existed."""
        self.get_event(event_id)
        return self.remove_exception(event_id, day)

    def delete_series(self, event_id: int):
        self.get_event(event_id)
        self.cursor.execute(
            "DELETE FROM EventExceptions WHERE parent_event_id = ?", (event_id,)
        )
        self.cursor.execute("DELETE FROM Events WHERE parent_event_id = ?", (event_id,))
        self.cursor.execute("DELETE FROM Events WHERE id = ?", (event_id,))
        self.conn.commit()
        log_msg(f"deleted series {event_id}")

    def split_series(
        self,
        event_id: int,
        from_day: date | datetime,
        rule: Optional[RecurrenceRule] = None,
        title: Optional[str] = None,
        today: Optional[date] = None,
    ) -> int:
        """
        End the series no later than the day before `from_day` and start a
        new one on `from_day`. The new series uses `rule`, or the old rule
        without its COUNT. Returns the new series id.
        """
        event = self.get_event(event_id)
        old_rule = event.rule
        if old_rule is None:
            raise RuleValidationError([f"event {event_id} is not recurring"])

        from_day = to_date(from_day)
        new_rule = rule or replace(old_rule, count=None)
        result = validate(new_rule, today=today)
        if not result.valid:
            raise RuleValidationError(result.errors)

        # the old series keeps its COUNT; only its end date moves earlier
        last_day = from_day - timedelta(days=1)
        if old_rule.until is not None:
            last_day = min(old_rule.until, last_day)
        self.update_rule(event_id, replace(old_rule, until=last_day))
        start, end = self._instance_slot(event, from_day)
        new_id = self.add_event(title or event.title, start, end, new_rule)
        log_msg(f"split series {event_id} at {from_day}: new series {new_id}")
        return new_id
