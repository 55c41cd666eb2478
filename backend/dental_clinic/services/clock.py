from __future__ import annotations

from datetime import date, datetime, tzinfo
from typing import Protocol
from zoneinfo import ZoneInfo

from dental_clinic.core.settings import settings


class Clock(Protocol):
    def now(self) -> datetime: ...

    def today(self) -> date: ...


class SystemClock:
    def __init__(self, tz: tzinfo):
        self.tz = tz

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """Clock pinned to one instant; used by tests and replays."""

    def __init__(self, instant: datetime):
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def today(self) -> date:
        return self.instant.date()


def clinic_tz() -> ZoneInfo:
    return ZoneInfo(settings.clinic_timezone)
