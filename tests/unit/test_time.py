import pytest

from hunterkit.core.time import ManualClock, ServerClock

pytestmark = pytest.mark.unit


def test_uncalibrated_server_clock_follows_local_clock():
    clock = ManualClock(start_ms=5_000_500)
    sc = ServerClock(clock)
    assert not sc.calibrated
    assert sc.now() == 5_000


def test_calibration_applies_offset_and_keeps_ticking():
    clock = ManualClock(start_ms=1_000)
    sc = ServerClock(clock)
    sc.calibrate(1_700_000_000)
    assert sc.calibrated
    assert sc.now() == 1_700_000_000

    clock.advance(90_000)
    assert sc.now() == 1_700_000_090


def test_recalibration_replaces_offset():
    clock = ManualClock(start_ms=0)
    sc = ServerClock(clock)
    sc.calibrate(100)
    sc.calibrate(50)
    assert sc.now() == 50
    assert sc.offset_ms == 50_000


@pytest.mark.asyncio
async def test_manual_clock_sleep_advances_both_clocks():
    clock = ManualClock(start_ms=10)
    await clock.sleep_ms(250)
    assert clock.now_ms() == 260
    assert clock.mono_ms() == 260
