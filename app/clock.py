from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.errors import InvalidArgument


@dataclass(frozen=True, slots=True)
class TimeProvider:
    """Resolves the caller's reference day from an IANA timezone name."""

    timezone: str = "UTC"

    def today(self) -> date:
        try:
            tz = ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise InvalidArgument(f"Unknown timezone: {self.timezone!r}") from e
        return datetime.now(tz=tz).date()


@dataclass(frozen=True, slots=True)
class FixedClock:
    """Always reports the same day. Used by the reconciliation job and tests."""

    day: date

    def today(self) -> date:
        return self.day
