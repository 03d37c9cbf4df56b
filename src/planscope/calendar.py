"""Working-day calendar arithmetic.

All schedule math is done in integer working-day offsets from an origin date.
Offsets count working days in the half-open interval [origin, day), so a task
occupying offsets [es, ef) starts on ``day_at(origin, es)`` and its last
working day is ``day_at(origin, ef - 1)``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import date, timedelta
from typing import Protocol

DAYS_PER_WEEK = 7
_ONE_DAY = timedelta(days=1)


class HolidayCalendar(Protocol):
    """Source of non-working dates in addition to the weekly pattern."""

    def holidays_in(self, start: date, end: date) -> set[date]:
        """Return holidays falling in [start, end)."""
        ...


class FixedHolidayCalendar:
    """Holiday calendar backed by an explicit list of dates."""

    def __init__(self, holidays: Iterable[date] | None = None):
        self._holidays = frozenset(holidays or ())

    def holidays_in(self, start: date, end: date) -> set[date]:
        return {d for d in self._holidays if start <= d < end}


def week_start(day: date) -> date:
    """Return the Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def is_week_start(day: date) -> bool:
    return day.weekday() == 0


def weeks_overlapping(start: date, end: date) -> Iterator[date]:
    """Yield the Monday of every week overlapping [start, end)."""
    current = week_start(start)
    while current < end:
        yield current
        current += timedelta(days=DAYS_PER_WEEK)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every date in [start, end)."""
    current = start
    while current < end:
        yield current
        current += _ONE_DAY


class WorkCalendar:
    """Weekly working pattern plus an optional holiday calendar.

    The default is Monday-Friday with no holidays (weekends skipped only).
    """

    def __init__(
        self,
        working_weekdays: Iterable[int] | None = None,
        holidays: HolidayCalendar | None = None,
    ):
        weekdays = frozenset(working_weekdays if working_weekdays is not None else range(5))
        if not weekdays:
            raise ValueError("A work calendar needs at least one working weekday")
        self.working_weekdays = weekdays
        self.holidays = holidays or FixedHolidayCalendar()

    def is_working_day(self, day: date) -> bool:
        if day.weekday() not in self.working_weekdays:
            return False
        return not self.holidays.holidays_in(day, day + _ONE_DAY)

    def next_working_day(self, day: date) -> date:
        """Return ``day`` if it is a working day, else the next one."""
        while not self.is_working_day(day):
            day += _ONE_DAY
        return day

    def working_days_between(self, start: date, end: date) -> int:
        """Count working days in [start, end); negative when end < start."""
        if end < start:
            return -self.working_days_between(end, start)

        total_days = (end - start).days
        full_weeks, remainder = divmod(total_days, DAYS_PER_WEEK)
        count = full_weeks * len(self.working_weekdays)

        tail_start = start + timedelta(days=full_weeks * DAYS_PER_WEEK)
        for day in iter_days(tail_start, end):
            if day.weekday() in self.working_weekdays:
                count += 1

        for holiday in self.holidays.holidays_in(start, end):
            if holiday.weekday() in self.working_weekdays:
                count -= 1
        return count

    def day_at(self, origin: date, offset: int) -> date:
        """Return the working day ``offset`` working days after ``origin``.

        ``origin`` is rolled forward to a working day first, so offset 0 is the
        first working day on or after the origin. Negative offsets walk back.
        """
        current = self.next_working_day(origin)
        if offset >= 0:
            remaining = offset
            while remaining > 0:
                current = self.next_working_day(current + _ONE_DAY)
                remaining -= 1
            return current

        remaining = -offset
        while remaining > 0:
            current -= _ONE_DAY
            if self.is_working_day(current):
                remaining -= 1
        return current

    def offset_of(self, origin: date, day: date) -> int:
        """Working-day offset of ``day`` relative to ``origin``."""
        return self.working_days_between(self.next_working_day(origin), day)

    def finish_offset(self, origin: date, finish_day: date) -> int:
        """Exclusive offset for a task whose last working day is ``finish_day``.

        A finish on a non-working day counts as finishing on the last working
        day before it.
        """
        return self.offset_of(origin, finish_day + _ONE_DAY)
