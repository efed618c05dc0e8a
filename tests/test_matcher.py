import pytest
from datetime import date, datetime

from rrkit.matcher import matches
from rrkit.rule import Frequency, RecurrenceRule, parse


@pytest.mark.unit
class TestFrequencyGate:
    def test_nothing_before_anchor(self):
        rule = RecurrenceRule(Frequency.DAILY)

        assert not matches(date(2023, 12, 31), rule, date(2024, 1, 1))
        assert matches(date(2024, 1, 1), rule, date(2024, 1, 1))

    def test_daily_interval(self):
        rule = RecurrenceRule(Frequency.DAILY, interval=3)
        anchor = date(2024, 1, 1)

        assert matches(date(2024, 1, 4), rule, anchor)
        assert not matches(date(2024, 1, 3), rule, anchor)
        assert matches(date(2024, 3, 1), rule, anchor)  # 60 days

    def test_weekly_interval_counts_from_anchor(self):
        rule = RecurrenceRule(Frequency.WEEKLY, interval=2)
        anchor = date(2024, 1, 3)  # Wednesday

        assert matches(date(2024, 1, 17), rule, anchor)
        assert matches(date(2024, 1, 31), rule, anchor)
        assert not matches(date(2024, 1, 10), rule, anchor)
        assert not matches(date(2024, 1, 24), rule, anchor)

    def test_weekly_without_byday_uses_anchor_weekday(self):
        rule = RecurrenceRule(Frequency.WEEKLY)
        anchor = date(2024, 1, 3)

        assert not matches(date(2024, 1, 4), rule, anchor)
        assert matches(date(2024, 1, 10), rule, anchor)

    def test_weekly_byday_with_interval(self):
        rule = parse("FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,FR")
        anchor = date(2024, 1, 1)  # Monday

        assert matches(date(2024, 1, 5), rule, anchor)  # week 0
        assert not matches(date(2024, 1, 8), rule, anchor)  # week 1
        assert not matches(date(2024, 1, 12), rule, anchor)  # week 1
        assert matches(date(2024, 1, 15), rule, anchor)  # week 2
        assert matches(date(2024, 1, 19), rule, anchor)

    def test_monthly_same_day_without_rollover(self):
        rule = RecurrenceRule(Frequency.MONTHLY)
        anchor = date(2024, 1, 31)

        assert not matches(date(2024, 2, 29), rule, anchor)
        assert not matches(date(2024, 4, 30), rule, anchor)
        assert matches(date(2024, 3, 31), rule, anchor)

    def test_monthly_interval(self):
        rule = RecurrenceRule(Frequency.MONTHLY, interval=2)
        anchor = date(2024, 11, 15)

        assert not matches(date(2024, 12, 15), rule, anchor)
        assert matches(date(2025, 1, 15), rule, anchor)  # across the year

    def test_monthly_by_month_day(self):
        rule = RecurrenceRule(Frequency.MONTHLY, by_month_day=[1, 15])
        anchor = date(2024, 1, 10)

        assert not matches(anchor, rule, anchor)
        assert matches(date(2024, 1, 15), rule, anchor)
        assert matches(date(2024, 2, 1), rule, anchor)
        assert not matches(date(2024, 2, 10), rule, anchor)

    def test_yearly(self):
        rule = RecurrenceRule(Frequency.YEARLY)
        anchor = date(2024, 3, 10)

        assert matches(date(2025, 3, 10), rule, anchor)
        assert not matches(date(2025, 3, 11), rule, anchor)
        assert not matches(date(2025, 4, 10), rule, anchor)

    def test_yearly_interval(self):
        rule = RecurrenceRule(Frequency.YEARLY, interval=2)
        anchor = date(2024, 3, 10)

        assert not matches(date(2025, 3, 10), rule, anchor)
        assert matches(date(2026, 3, 10), rule, anchor)

    def test_leap_day_anchor_only_matches_leap_years(self):
        rule = RecurrenceRule(Frequency.YEARLY)
        anchor = date(2024, 2, 29)

        assert not matches(date(2025, 2, 28), rule, anchor)
        assert matches(date(2028, 2, 29), rule, anchor)

    def test_zero_interval_behaves_like_one(self):
        rule = RecurrenceRule(Frequency.DAILY, interval=0)

        assert matches(date(2024, 1, 2), rule, date(2024, 1, 1))


@pytest.mark.unit
class TestSecondaryFilters:
    def test_byday_on_daily(self):
        rule = RecurrenceRule(Frequency.DAILY, by_day=["SA", "SU"])
        anchor = date(2024, 1, 1)

        assert matches(date(2024, 1, 6), rule, anchor)
        assert matches(date(2024, 1, 7), rule, anchor)
        assert not matches(date(2024, 1, 5), rule, anchor)

    def test_byday_on_monthly(self):
        rule = RecurrenceRule(Frequency.MONTHLY, by_month_day=[13], by_day=["FR"])
        anchor = date(2024, 1, 1)

        assert not matches(date(2024, 2, 13), rule, anchor)  # Tuesday
        assert matches(date(2024, 9, 13), rule, anchor)  # Friday

    def test_bymonth_keeps_yearly_month_and_day(self):
        anchor = date(2024, 3, 10)

        same_month = RecurrenceRule(Frequency.YEARLY, by_month=[3, 9])
        assert matches(date(2025, 3, 10), same_month, anchor)
        assert not matches(date(2025, 9, 10), same_month, anchor)

        other_month = RecurrenceRule(Frequency.YEARLY, by_month=[4])
        assert not matches(date(2025, 3, 10), other_month, anchor)

    def test_bymonth_ignored_for_other_frequencies(self):
        rule = RecurrenceRule(Frequency.MONTHLY, by_month=[5])

        assert matches(date(2024, 2, 15), rule, date(2024, 1, 15))


@pytest.mark.unit
def test_time_of_day_is_ignored():
    rule = RecurrenceRule(Frequency.DAILY, interval=2)
    anchor = datetime(2024, 1, 1, 23, 30)

    assert matches(datetime(2024, 1, 3, 0, 15), rule, anchor)
    assert not matches(datetime(2024, 1, 2, 23, 59), rule, anchor)
    assert matches(datetime(2024, 1, 1, 0, 0), rule, anchor)
