# telemetry.py — 状态端口读循环与最新快照
from __future__ import annotations

import asyncio
import threading
from typing import Optional

from ..config import TelloConfig
from ..drivers.tello_sdk import UDPChannel
from ..errors import MalformedTelemetryError
from ..events import StateEvent
from ..log import get_logger
from ..state import Snapshot, parse_state
from .event_bus import EventBus

logger = get_logger("middleware.telemetry")


class TelemetryChannel:
    """
    8890 端口的状态流：
      1) 每个数据报 → 去空白 → parse_state()
      2) 解析失败：记录并丢弃，保留上一份快照
      3) 成功：加锁整体替换快照，并发布 StateEvent

    对外：
      - open()/start()/close() 控制套接字与后台任务
      - snapshot 属性同步返回最新快照（不可变对象）
    """

    def __init__(self, bus: EventBus, config: TelloConfig) -> None:
        self._bus = bus
        self._channel = UDPChannel(
            "state", config.state_address, queue_size=config.rx_queue_size
        )
        self._task: Optional[asyncio.Task] = None
        self._snapshot_lock = threading.Lock()
        self._snapshot = Snapshot()

    @property
    def snapshot(self) -> Snapshot:
        with self._snapshot_lock:
            return self._snapshot

    @property
    def local_address(self):
        return self._channel.local_address

    async def open(self) -> None:
        await self._channel.open()

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="TelemetryReader")

    async def close(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._channel.close()

    def handle_datagram(self, data: bytes) -> Optional[Snapshot]:
        line = data.decode("ascii", errors="replace").strip()
        try:
            snapshot = parse_state(line)
        except MalformedTelemetryError as e:
            logger.warning(f"state_parse_fail:{e}")
            return None

        with self._snapshot_lock:
            self._snapshot = snapshot
        self._bus.dispatch(StateEvent(snapshot))
        return snapshot

    async def _run(self) -> None:
        while True:
            try:
                data = await self._channel.recv()
            except OSError as e:
                logger.error(f"reading_state_failed:{e}")
                continue
            if data is None:
                logger.info("state_loop_closed")
                return
            self.handle_datagram(data)
