import asyncio
from typing import Dict, List, Optional

import pytest
import pytest_asyncio

from tellolink.config import configure
from tellolink.drone import Drone

# 设备不回包的命令
SILENT_PREFIXES = ("emergency", "rc ")


class FakeTello(asyncio.DatagramProtocol):
    """本地假设备：记录收到的命令并按 SDK 语法回包。"""

    def __init__(self) -> None:
        self.transport: Optional[asyncio.DatagramTransport] = None
        self.received: List[str] = []
        self.replies: Dict[str, str] = {"speed?": "100.0", "wifi?": "100", "battery?": "87"}
        self.delays: Dict[str, float] = {}
        self.silent = False

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        cmd = data.decode()
        self.received.append(cmd)
        if self.silent or cmd.startswith(SILENT_PREFIXES):
            return
        resp = self.replies.get(cmd, "ok").encode()
        delay = self.delays.get(cmd)
        if delay:
            asyncio.get_running_loop().call_later(delay, self.transport.sendto, resp, addr)
        else:
            self.transport.sendto(resp, addr)

    @property
    def address(self):
        return self.transport.get_extra_info("sockname")[:2]


@pytest_asyncio.fixture
async def fake_tello():
    loop = asyncio.get_running_loop()
    transport, proto = await loop.create_datagram_endpoint(
        FakeTello, local_addr=("127.0.0.1", 0)
    )
    yield proto
    transport.close()


@pytest.fixture
def drone_config(fake_tello):
    host, port = fake_tello.address
    return configure(
        drone_ip=host,
        command_port=port,
        local_host="127.0.0.1",
        response_port=0,
        state_port=0,
        video_port=0,
        default_timeout=2.0,
        movement_timeout=2.0,
        maneuver_timeout=2.0,
    )


@pytest_asyncio.fixture
async def drone(drone_config):
    d = Drone(drone_config)
    await d.start()
    yield d
    await d.close()


@pytest.fixture
def udp_send():
    """向指定地址发送若干数据报。"""

    async def _send(addr, *payloads: bytes) -> None:
        loop = asyncio.get_running_loop()
        transport, _ = await loop.create_datagram_endpoint(
            asyncio.DatagramProtocol, remote_addr=addr
        )
        try:
            for payload in payloads:
                transport.sendto(payload)
                await asyncio.sleep(0)
        finally:
            transport.close()

    return _send
