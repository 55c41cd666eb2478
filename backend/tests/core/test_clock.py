from datetime import date, datetime
from zoneinfo import ZoneInfo

from dental_clinic.services.clock import FixedClock, SystemClock


def test_fixed_clock():
    instant = datetime(2026, 3, 10, 23, 30, tzinfo=ZoneInfo("Europe/London"))
    clock = FixedClock(instant)
    assert clock.now() == instant
    assert clock.today() == date(2026, 3, 10)


def test_system_clock_is_timezone_aware():
    clock = SystemClock(ZoneInfo("Europe/London"))
    assert clock.now().tzinfo is not None
    assert clock.today() == clock.now().date()
