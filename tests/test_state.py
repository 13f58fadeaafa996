import pytest

from tellolink.errors import MalformedTelemetryError
from tellolink.state import Acceleration, Attitude, Snapshot, Velocity, parse_state

LINE = (
    "pitch:8;roll:9;yaw:10;vgx:11;vgy:12;vgz:13;templ:14;temph:15;tof:16;h:17;"
    "bat:18;baro:19.1;time:20;agx:21.1;agy:22.1;agz:23.1;"
)


def test_parse_state_example_line():
    s = parse_state(LINE)

    assert s == Snapshot(
        attitude=Attitude(pitch=8, roll=9, yaw=10),
        velocity=Velocity(x=11, y=12, z=13),
        acceleration=Acceleration(x=21.1, y=22.1, z=23.1),
        barometer=19.1,
        battery=18,
        flight_distance=16,
        flight_time=20,
        height=17,
        lowest_temperature=14,
        highest_temperature=15,
    )


def test_parse_state_accepts_missing_trailing_separator():
    assert parse_state(LINE.rstrip(";")) == parse_state(LINE)


def test_parse_state_negative_values():
    line = LINE.replace("pitch:8", "pitch:-3").replace("agz:23.1", "agz:-998.0")
    s = parse_state(line)
    assert s.attitude.pitch == -3
    assert s.acceleration.z == -998.0


def test_parse_state_is_deterministic():
    assert parse_state(LINE) == parse_state(LINE)


def test_snapshot_to_dict_uses_wire_keys():
    d = parse_state(LINE).to_dict()
    assert d["tof"] == 16
    assert d["baro"] == 19.1
    assert list(d) == [
        "pitch", "roll", "yaw", "vgx", "vgy", "vgz", "templ", "temph",
        "tof", "h", "bat", "baro", "time", "agx", "agy", "agz",
    ]


def test_default_snapshot_is_zeroed():
    s = Snapshot()
    assert s.battery == 0
    assert s.attitude == Attitude(0, 0, 0)
    assert s.acceleration == Acceleration(0.0, 0.0, 0.0)


def test_parse_state_rejects_missing_fields():
    truncated = "pitch:8;roll:9;yaw:10;"
    with pytest.raises(MalformedTelemetryError) as exc:
        parse_state(truncated)
    assert exc.value.field is None
    assert exc.value.line == truncated


def test_parse_state_rejects_extra_fields():
    with pytest.raises(MalformedTelemetryError):
        parse_state("mid:-1;" + LINE)


def test_parse_state_names_bad_value_field():
    with pytest.raises(MalformedTelemetryError) as exc:
        parse_state(LINE.replace("bat:18", "bat:full"))
    assert exc.value.field == "bat"


def test_parse_state_names_out_of_order_field():
    swapped = LINE.replace("pitch:8;roll:9", "roll:9;pitch:8")
    with pytest.raises(MalformedTelemetryError) as exc:
        parse_state(swapped)
    assert exc.value.field == "pitch"


def test_parse_state_rejects_int_field_with_decimal():
    with pytest.raises(MalformedTelemetryError) as exc:
        parse_state(LINE.replace("h:17", "h:17.5"))
    assert exc.value.field == "h"


def test_parse_state_rejects_empty_line():
    with pytest.raises(MalformedTelemetryError):
        parse_state("")


@pytest.mark.parametrize(
    "old, new, key",
    [
        ("bat:18", "bat:1_8", "bat"),
        ("h:17", "h: 17", "h"),
        ("tof:16", "tof:+16", "tof"),
        ("baro:19.1", "baro:nan", "baro"),
        ("agx:21.1", "agx:inf", "agx"),
        ("agy:22.1", "agy:2_2.1", "agy"),
    ],
)
def test_parse_state_rejects_loose_numeric_text(old, new, key):
    with pytest.raises(MalformedTelemetryError) as exc:
        parse_state(LINE.replace(old, new))
    assert exc.value.field == key


def test_parse_state_accepts_integral_float_text():
    s = parse_state(LINE.replace("baro:19.1", "baro:-7"))
    assert s.barometer == -7.0
