import pytest
from datetime import date, datetime

from rrkit.overlay import ExceptionSet, ExceptionType, RecurrenceException


@pytest.mark.unit
class TestRecurrenceException:
    def test_normalizes_fields(self):
        exc = RecurrenceException(datetime(2024, 1, 2, 9, 0), "moved", 7)

        assert exc.date == date(2024, 1, 2)
        assert exc.type is ExceptionType.MOVED
        assert exc.modified_event_id == "7"
        assert not exc.is_cancelled

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            RecurrenceException(date(2024, 1, 2), "postponed")

    def test_from_record(self):
        exc = RecurrenceException.from_record(
            {
                "parent_event_id": "1",
                "exception_date": "2024-01-03",
                "exception_type": "cancelled",
                "modified_event_id": None,
            }
        )

        assert exc == RecurrenceException(date(2024, 1, 3), ExceptionType.CANCELLED)
        assert exc.is_cancelled

    def test_from_record_short_keys(self):
        exc = RecurrenceException.from_record(
            {"date": "20240105", "type": "modified", "modified_event_id": "9"}
        )

        assert exc.date == date(2024, 1, 5)
        assert exc.modified_event_id == "9"

    def test_from_record_bad_date(self):
        with pytest.raises(ValueError):
            RecurrenceException.from_record({"date": "not a date", "type": "cancelled"})


@pytest.mark.unit
class TestExceptionSet:
    def test_one_exception_per_date(self):
        exceptions = ExceptionSet(
            [
                RecurrenceException(date(2024, 1, 2), ExceptionType.CANCELLED),
                RecurrenceException(date(2024, 1, 2), ExceptionType.MODIFIED, "5"),
            ]
        )

        assert len(exceptions) == 1
        assert exceptions.state(date(2024, 1, 2)) == ExceptionType.MODIFIED

    def test_put_replaces_and_leaves_original(self):
        original = ExceptionSet(
            [RecurrenceException(date(2024, 1, 2), ExceptionType.CANCELLED)]
        )

        updated = original.put(
            RecurrenceException(date(2024, 1, 2), ExceptionType.MOVED, "8")
        )

        assert updated.state(date(2024, 1, 2)) == ExceptionType.MOVED
        assert original.state(date(2024, 1, 2)) == ExceptionType.CANCELLED

    def test_remove_restores_plain_state(self):
        exceptions = ExceptionSet(
            [RecurrenceException(date(2024, 1, 2), ExceptionType.CANCELLED)]
        )

        cleared = exceptions.remove(datetime(2024, 1, 2, 9, 0))

        assert date(2024, 1, 2) not in cleared
        assert cleared.lookup(date(2024, 1, 2)) is None
        assert date(2024, 1, 2) in exceptions

    def test_remove_missing_date_is_a_no_op(self):
        assert len(ExceptionSet().remove(date(2024, 1, 2))) == 0

    def test_iterates_in_date_order(self):
        exceptions = ExceptionSet(
            [
                RecurrenceException(date(2024, 3, 1), ExceptionType.CANCELLED),
                RecurrenceException(date(2024, 1, 1), ExceptionType.CANCELLED),
                RecurrenceException(date(2024, 2, 1), ExceptionType.CANCELLED),
            ]
        )

        assert [e.date.month for e in exceptions] == [1, 2, 3]

    def test_coerce(self):
        exceptions = ExceptionSet()

        assert ExceptionSet.coerce(exceptions) is exceptions
        assert len(ExceptionSet.coerce(None)) == 0
