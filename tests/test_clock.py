from datetime import datetime, timedelta, timezone

from hydro_gateway.clock import FixedClock, SystemClock


def test_system_clock_is_aware_utc():
    before = datetime.now(timezone.utc)
    now = SystemClock().now()

    assert now.utcoffset() == timedelta(0)
    assert now - before < timedelta(seconds=5)


def test_fixed_clock_advance_and_set():
    clock = FixedClock(datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc))

    assert clock.advance(minutes=5) == datetime(2024, 1, 1, 0, 5, tzinfo=timezone.utc)
    clock.set(datetime(2024, 1, 1, 9, 0, tzinfo=timezone(timedelta(hours=7))))
    assert clock.now() == datetime(2024, 1, 1, 2, 0, tzinfo=timezone.utc)
    assert clock.now().tzinfo == timezone.utc


def test_fixed_clock_treats_naive_start_as_utc():
    clock = FixedClock(datetime(2024, 1, 1, 12, 0))

    assert clock.now() == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
