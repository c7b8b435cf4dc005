import pytest

from calendar_ai.errors import InvalidTimeFormat
from calendar_ai.timecodec import (
    clamp_minutes,
    coerce_time_string,
    minutes_to_pixels,
    minutes_to_time,
    pixels_to_minutes,
    round_to_nearest_increment,
    time_to_minutes,
)


def test_time_to_minutes():
    assert time_to_minutes("09:30") == 570
    assert time_to_minutes("9:05") == 545
    assert time_to_minutes("00:00") == 0


@pytest.mark.parametrize("bad", ["25", "ab:cd", "9.30", "", None])
def test_time_to_minutes_rejects_garbage(bad):
    with pytest.raises(InvalidTimeFormat):
        time_to_minutes(bad)


def test_minutes_to_time_wraps_past_midnight():
    assert minutes_to_time(570) == "09:30"
    assert minutes_to_time(1440) == "00:00"
    assert minutes_to_time(1439) == "23:59"


def test_every_quarter_hour_survives_conversion():
    for minutes in range(0, 1440, 15):
        assert time_to_minutes(minutes_to_time(minutes)) == minutes


def test_clamp_minutes():
    assert clamp_minutes(-5) == 0
    assert clamp_minutes(2000) == 1439
    assert clamp_minutes(600) == 600


def test_pixels_and_minutes_at_default_scale():
    assert minutes_to_pixels(90) == 90.0
    assert pixels_to_minutes(45) == 45
    assert pixels_to_minutes(52) == 45
    assert pixels_to_minutes(53) == 60


def test_pixels_to_minutes_rounds_half_up():
    # 15px at 30-minute snap is exactly half a step
    assert pixels_to_minutes(15, snap_minutes=30) == 30
    assert pixels_to_minutes(120, hour_height_px=120, snap_minutes=30) == 60


def test_pixels_to_minutes_rejects_nonpositive_scale():
    with pytest.raises(ValueError):
        pixels_to_minutes(10, hour_height_px=0)
    with pytest.raises(ValueError):
        pixels_to_minutes(10, snap_minutes=0)


def test_round_to_nearest_increment():
    assert round_to_nearest_increment("10:07") == "10:00"
    assert round_to_nearest_increment("10:08") == "10:15"
    assert round_to_nearest_increment("10:52") == "10:45"
    assert round_to_nearest_increment("10:15", 30) == "10:30"
    assert round_to_nearest_increment("23:53") == "00:00"


def test_round_to_nearest_increment_falls_back_on_bad_input():
    assert round_to_nearest_increment("later") == "12:00"
    assert round_to_nearest_increment(None) == "12:00"


@pytest.mark.parametrize(
    "raw, expected",
    [("9:00", "09:00"), ("9", "09:00"), ("0930", "09:30"), ("14:45", "14:45"), ("noon", "12:00"), (None, "12:00")],
)
def test_coerce_time_string(raw, expected):
    assert coerce_time_string(raw) == expected
