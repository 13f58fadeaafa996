import logging

import pytest

from tellolink.config import TelloConfig
from tellolink.events import StateEvent
from tellolink.middleware.event_bus import EventBus
from tellolink.middleware.telemetry import TelemetryChannel
from tellolink.state import Snapshot

LINE = (
    b"pitch:1;roll:2;yaw:3;vgx:4;vgy:5;vgz:6;templ:60;temph:62;tof:10;h:0;"
    b"bat:90;baro:-48.31;time:0;agx:-3.00;agy:1.00;agz:-999.00;\r\n"
)


@pytest.mark.asyncio
async def test_handle_datagram_replaces_snapshot_and_dispatches():
    bus = EventBus()
    seen = []
    bus.on(StateEvent, lambda e: seen.append(e.snapshot))
    channel = TelemetryChannel(bus, TelloConfig())

    snapshot = channel.handle_datagram(LINE)

    assert snapshot is not None
    assert channel.snapshot == snapshot
    assert snapshot.battery == 90
    assert snapshot.barometer == -48.31

    bus.start()
    await bus.stop()
    assert seen == [snapshot]


def test_malformed_datagram_is_logged_and_skipped(caplog):
    bus = EventBus()
    channel = TelemetryChannel(bus, TelloConfig())
    good = channel.handle_datagram(LINE)

    with caplog.at_level(logging.WARNING, logger="tellolink.middleware.telemetry"):
        assert channel.handle_datagram(b"bat:90;") is None

    assert channel.snapshot == good
    assert any("state_parse_fail" in r.getMessage() for r in caplog.records)


def test_initial_snapshot_is_zeroed():
    channel = TelemetryChannel(EventBus(), TelloConfig())
    assert channel.snapshot == Snapshot()
