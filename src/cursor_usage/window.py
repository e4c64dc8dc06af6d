"""Reporting time windows in local time."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive millisecond bounds plus the label used in output names."""

    start_ms: int
    end_ms: int
    label: str

    def contains(self, ts_ms: int) -> bool:
        return self.start_ms <= ts_ms <= self.end_ms

    @property
    def span_days(self) -> int:
        """Number of local calendar dates the window touches."""
        start = datetime.fromtimestamp(self.start_ms / 1000).date()
        end = datetime.fromtimestamp(self.end_ms / 1000).date()
        return (end - start).days + 1

    @property
    def is_multi_day(self) -> bool:
        return self.span_days > 1


def format_date(d: date) -> str:
    return d.strftime("%Y-%m-%d")


def _start_of_day_ms(d: date) -> int:
    return int(datetime.combine(d, time.min).timestamp() * 1000)


def _end_of_day_ms(d: date) -> int:
    # time.max carries microseconds; the window is millisecond-inclusive
    return int(datetime.combine(d, time(23, 59, 59, 999000)).timestamp() * 1000)


def _window(start: date, end: date, label: str) -> TimeWindow:
    return TimeWindow(start_ms=_start_of_day_ms(start), end_ms=_end_of_day_ms(end), label=label)


def for_date(d: date) -> TimeWindow:
    return _window(d, d, format_date(d))


def today(now: datetime | None = None) -> TimeWindow:
    now = now or datetime.now()
    return for_date(now.date())


def yesterday(now: datetime | None = None) -> TimeWindow:
    now = now or datetime.now()
    return for_date(now.date() - timedelta(days=1))


def date_range(start: date, end: date) -> TimeWindow:
    return _window(start, end, f"{format_date(start)}_{format_date(end)}")


def this_month(now: datetime | None = None) -> TimeWindow:
    """First day of the current month through today."""
    now = now or datetime.now()
    return date_range(now.date().replace(day=1), now.date())


def last_month(now: datetime | None = None) -> TimeWindow:
    """The whole previous calendar month."""
    now = now or datetime.now()
    last_day = now.date().replace(day=1) - timedelta(days=1)
    return date_range(last_day.replace(day=1), last_day)
