"""
Date and time utility functions for farm operations.
Handles the farm-local clock, the working-hours window and display formatting.
"""

from datetime import datetime, date
from typing import Optional
import pytz

from ..config.settings import get_settings

settings = get_settings()

UTC_TZ = pytz.UTC


class FarmClock:
    """
    Farm-local wall clock.

    Services receive a clock instead of calling ``datetime.now`` so the
    off-hours window can be exercised deterministically.
    """

    def __init__(
        self,
        timezone: str = None,
        working_hours_start: int = None,
        working_hours_end: int = None
    ):
        self.tz = pytz.timezone(timezone or settings.FARM_TIMEZONE)
        self.working_hours_start = settings.WORKING_HOURS_START if working_hours_start is None else working_hours_start
        self.working_hours_end = settings.WORKING_HOURS_END if working_hours_end is None else working_hours_end

    def now(self) -> datetime:
        """Current time in the farm's timezone."""
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()

    def to_local(self, dt: datetime) -> datetime:
        """Convert a datetime to farm-local time; naive values are taken as UTC."""
        if dt.tzinfo is None:
            dt = UTC_TZ.localize(dt)
        return dt.astimezone(self.tz)

    def is_off_hours(self, dt: Optional[datetime] = None) -> bool:
        """True before the start hour or from the end hour onwards."""
        local = self.to_local(dt) if dt is not None else self.now()
        return local.hour < self.working_hours_start or local.hour >= self.working_hours_end


class FixedClock(FarmClock):
    """Clock frozen at a given farm-local time."""

    def __init__(self, frozen: datetime, **kwargs):
        super().__init__(**kwargs)
        if frozen.tzinfo is None:
            frozen = self.tz.localize(frozen)
        self.frozen = frozen

    def now(self) -> datetime:
        return self.frozen.astimezone(self.tz)


class DateUtils:
    """Display helpers."""

    @staticmethod
    def format_for_display(dt: datetime, format_type: str = 'datetime', tz=None) -> str:
        """Format datetime for display in different contexts."""
        if not dt:
            return ''

        tz = tz or pytz.timezone(settings.FARM_TIMEZONE)
        if isinstance(dt, datetime):
            if dt.tzinfo is None:
                dt = UTC_TZ.localize(dt)
            dt = dt.astimezone(tz)

        formats = {
            'datetime': '%Y-%m-%d %H:%M:%S',
            'date': '%Y-%m-%d',
            'time': '%H:%M:%S',
            'display': '%d %b %Y, %I:%M %p',
            'short': '%d/%m/%Y',
            'compact': '%Y%m%d',
        }

        return dt.strftime(formats.get(format_type, formats['datetime']))


_default_clock = FarmClock()


def get_clock() -> FarmClock:
    """Process-wide farm clock (overridable as a FastAPI dependency)."""
    return _default_clock


def format_date(dt: datetime, fmt: str = 'datetime') -> str:
    """Quick date formatting."""
    return DateUtils.format_for_display(dt, fmt)
