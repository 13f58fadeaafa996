# video.py — 视频端口读循环与分片重组
"""
Tello 把一帧码流拆成若干 1460 字节的 UDP 分片，最后一片更短：
  - 收到 1460 字节 → 帧未结束，继续累积
  - 收到其他长度（通常 < 1460）→ 最后一片，整帧拷贝出去发布 VideoPacketEvent，缓冲清空

已知限制：
  - 不限制帧大小
  - 最后一片丢包时两帧会被拼成一帧
  - 真实最后一片恰好 1460 字节时同样会与下一帧合并
"""

from __future__ import annotations

import asyncio
from typing import Optional

from ..config import TelloConfig
from ..drivers.tello_sdk import UDPChannel
from ..events import VideoPacketEvent
from ..log import get_logger
from .event_bus import EventBus

logger = get_logger("middleware.video")

FRAGMENT_SIZE = 1460


class FrameAssembler:
    def __init__(self, fragment_size: int = FRAGMENT_SIZE) -> None:
        self._fragment_size = fragment_size
        self._buf = bytearray()

    @property
    def pending(self) -> int:
        return len(self._buf)

    def feed(self, payload: bytes) -> Optional[bytes]:
        """追加一个分片；帧结束时返回整帧（拷贝），否则返回 None。"""
        self._buf += payload
        if len(payload) == self._fragment_size:
            return None
        if not self._buf:
            return None
        frame = bytes(self._buf)
        self._buf.clear()
        return frame

    def reset(self) -> None:
        self._buf.clear()


class VideoChannel:
    """11111 端口的视频流：分片重组后逐帧发布到总线（保持到达顺序）。"""

    def __init__(self, bus: EventBus, config: TelloConfig) -> None:
        self._bus = bus
        self._channel = UDPChannel(
            "video", config.video_address, queue_size=config.video_queue_size
        )
        self._assembler = FrameAssembler()
        self._task: Optional[asyncio.Task] = None

    @property
    def local_address(self):
        return self._channel.local_address

    async def open(self) -> None:
        await self._channel.open()

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="VideoReader")

    async def close(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._channel.close()
        self._assembler.reset()

    def handle_datagram(self, data: bytes) -> Optional[bytes]:
        frame = self._assembler.feed(data)
        if frame is not None:
            self._bus.dispatch(VideoPacketEvent(frame))
        return frame

    async def _run(self) -> None:
        while True:
            try:
                data = await self._channel.recv()
            except OSError as e:
                logger.error(f"reading_video_failed:{e}")
                continue
            if data is None:
                logger.info("video_loop_closed")
                return
            self.handle_datagram(data)
