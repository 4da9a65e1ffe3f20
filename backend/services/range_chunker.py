"""Calendar-aligned date range chunking for historical backfills."""

import enum
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo


class Granularity(str, enum.Enum):
    MONTH = "month"
    QUARTER = "quarter"


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


def parse_day(value: date | str) -> date:
    """Accept a date or an ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def days_ago(n: int, tz: str) -> date:
    """The calendar date ``n`` days before today in timezone ``tz``."""
    return datetime.now(ZoneInfo(tz)).date() - timedelta(days=n)


def _next_boundary(day: date, granularity: Granularity) -> date:
    """First day of the month (or quarter) after the one containing ``day``."""
    months = 1 if granularity == Granularity.MONTH else 3
    start_month = day.month if granularity == Granularity.MONTH else 3 * ((day.month - 1) // 3) + 1
    month_index = day.year * 12 + (start_month - 1) + months
    return date(month_index // 12, month_index % 12 + 1, 1)


def chunk_date_range(
    from_date: date | str,
    to_date: date | str,
    granularity: Granularity | str = Granularity.MONTH,
) -> list[DateRange]:
    """Split an inclusive range into contiguous calendar-aligned chunks.

    Only the first and last chunk may be partial. Raises ValueError when
    ``from_date`` is after ``to_date``.
    """
    start = parse_day(from_date)
    end = parse_day(to_date)
    granularity = Granularity(granularity)
    if start > end:
        raise ValueError(f"from_date {start} is after to_date {end}")

    chunks: list[DateRange] = []
    cursor = start
    while cursor <= end:
        chunk_end = min(_next_boundary(cursor, granularity) - timedelta(days=1), end)
        chunks.append(DateRange(cursor, chunk_end))
        cursor = chunk_end + timedelta(days=1)
    return chunks
