"""Wall clock used by the booking core and the scheduler."""

from datetime import date, datetime


class Clock:
    """System clock. Tests substitute a subclass with a fixed time."""

    def now(self) -> datetime:
        """Current local time."""
        return datetime.now()

    def today(self) -> date:
        """Current local date."""
        return self.now().date()


system_clock = Clock()
