# drone.py — 生命周期控制 + 对外命令 API
"""
Drone：把三个 UDP 通道与事件总线组合成统一的对外接口。

  start():  启动总线 → 状态端口 → 视频端口（可选）→ 命令端口（connect）
            → 三个读循环 → 发送 'command' 进入 SDK 模式
  close():  取消执行域（等待中的命令立即失败）→ 停读循环 → 停并清空总线
            → 清在途命令 → 关闭所有 socket；之后可再次 start()

状态机：IDLE → STARTING → RUNNING → CLOSING → IDLE
"""

from __future__ import annotations

import asyncio
import enum
from typing import Any, AsyncIterator, List, Optional

from .config import TelloConfig
from .drivers.tello_sdk import UDPChannel
from .errors import StartError, TelloError
from .events import Event, LandEvent, TakeOffEvent
from .log import get_logger
from .middleware.cmd_sequencer import (
    Command,
    CommandSequencer,
    RespHandler,
    expect_ok,
    parse_float_as_int,
    parse_int,
)
from .middleware.event_bus import EventBus, EventKey, Handler
from .middleware.telemetry import TelemetryChannel
from .middleware.video import VideoChannel
from .state import Snapshot

logger = get_logger("drone")

# 翻滚方向
FLIP_BACK = "b"
FLIP_FORWARD = "f"
FLIP_LEFT = "l"
FLIP_RIGHT = "r"
FLIP_DIRECTIONS = (FLIP_BACK, FLIP_FORWARD, FLIP_LEFT, FLIP_RIGHT)

STICK_RANGE = 100


class DroneStatus(enum.Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    CLOSING = "closing"


class Drone:
    def __init__(self, config: Optional[TelloConfig] = None, *, bus: Optional[EventBus] = None) -> None:
        self.config = config or TelloConfig()
        self._bus = bus or EventBus()
        self._sequencer = CommandSequencer()
        self._telemetry = TelemetryChannel(self._bus, self.config)
        self._video: Optional[VideoChannel] = (
            VideoChannel(self._bus, self.config) if self.config.video_enabled else None
        )
        self._cmd_channel: Optional[UDPChannel] = None
        self._reply_task: Optional[asyncio.Task] = None
        self._status = DroneStatus.IDLE

    # ---------------- 属性 ----------------
    @property
    def status(self) -> DroneStatus:
        return self._status

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def sequencer(self) -> CommandSequencer:
        return self._sequencer

    @property
    def telemetry(self) -> TelemetryChannel:
        return self._telemetry

    @property
    def video(self) -> Optional[VideoChannel]:
        return self._video

    @property
    def command_address(self):
        """命令 socket 的本地地址（应答到达处）。"""
        return self._cmd_channel.local_address if self._cmd_channel else None

    def state(self) -> Snapshot:
        """最新的状态快照。"""
        return self._telemetry.snapshot

    def on(self, key: EventKey, handler: Handler) -> Handler:
        return self._bus.on(key, handler)

    def subscribe(self, key: Optional[EventKey] = None, maxsize: int = 100) -> AsyncIterator[Event]:
        return self._bus.subscribe(key, maxsize=maxsize)

    # ---------------- 生命周期 ----------------
    async def start(self) -> None:
        if self._status is not DroneStatus.IDLE:
            logger.debug(f"start_ignored:{self._status.value}")
            return
        self._status = DroneStatus.STARTING
        try:
            await self._open()
        except (OSError, TelloError) as exc:
            logger.error(f"start_failed:{exc}")
            await self._teardown()
            self._status = DroneStatus.IDLE
            raise StartError(f"starting drone failed: {exc}") from exc
        except BaseException:
            await self._teardown()
            self._status = DroneStatus.IDLE
            raise
        self._status = DroneStatus.RUNNING
        logger.info("drone_started")

    async def _open(self) -> None:
        self._bus.start()

        await self._telemetry.open()
        if self._video is not None:
            await self._video.open()

        self._cmd_channel = UDPChannel(
            "cmd",
            self.config.response_address,
            remote_addr=self.config.command_address,
            queue_size=self.config.rx_queue_size,
        )
        await self._cmd_channel.open()
        self._sequencer.attach(self._cmd_channel)

        self._telemetry.start()
        if self._video is not None:
            self._video.start()
        self._reply_task = asyncio.create_task(self._sequencer.run_reply_loop(), name="ReplyReader")

        # 进入 SDK 模式
        await self.command()

    async def close(self) -> None:
        if self._status is not DroneStatus.RUNNING:
            logger.debug(f"close_ignored:{self._status.value}")
            return
        self._status = DroneStatus.CLOSING
        try:
            await self._teardown()
        finally:
            self._status = DroneStatus.IDLE
        logger.info("drone_closed")

    disconnect = close

    async def _teardown(self) -> None:
        # 1) 取消执行域：等待中的命令立即失败
        self._sequencer.cancel_all()

        # 2) 停读循环
        if self._reply_task is not None:
            self._reply_task.cancel()
            try:
                await self._reply_task
            except asyncio.CancelledError:
                pass
            self._reply_task = None
        await self._telemetry.close()
        if self._video is not None:
            await self._video.close()

        # 3) 停并清空总线
        await self._bus.stop()

        # 4) 清在途命令并关闭命令 socket
        self._sequencer.detach()
        self._sequencer.reset()
        if self._cmd_channel is not None:
            self._cmd_channel.close()
            self._cmd_channel = None

    async def __aenter__(self) -> "Drone":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ---------------- 命令 ----------------
    async def send(
        self,
        text: str,
        *,
        timeout: Optional[float] = None,
        canceller: bool = False,
        handler: Optional[RespHandler] = None,
    ) -> Any:
        """发送任意 SDK 文本命令；handler 为 None 时写出即返回。"""
        return await self._sequencer.send(
            Command(text, handler=handler, timeout=timeout, canceller=canceller)
        )

    def _ok_with_event(self, event: Event) -> RespHandler:
        def _handler(resp: str) -> None:
            expect_ok(resp)
            self._bus.dispatch(event)
        return _handler

    async def command(self) -> None:
        await self.send("command", timeout=self.config.default_timeout, handler=expect_ok)

    async def start_video(self) -> None:
        await self.send("streamon", timeout=self.config.default_timeout, handler=expect_ok)

    async def stop_video(self) -> None:
        await self.send("streamoff", timeout=self.config.default_timeout, handler=expect_ok)

    async def emergency(self) -> None:
        """立即停桨。设备不回包，所以不等应答。"""
        await self.send("emergency", timeout=self.config.default_timeout, canceller=True)

    async def take_off(self) -> None:
        await self.send(
            "takeoff",
            timeout=self.config.maneuver_timeout,
            handler=self._ok_with_event(TakeOffEvent()),
        )

    async def land(self) -> None:
        await self.send(
            "land",
            timeout=self.config.maneuver_timeout,
            canceller=True,
            handler=self._ok_with_event(LandEvent()),
        )

    async def _move(self, text: str) -> None:
        await self.send(text, timeout=self.config.movement_timeout, handler=expect_ok)

    async def up(self, x: int) -> None:
        await self._move(f"up {x}")

    async def down(self, x: int) -> None:
        await self._move(f"down {x}")

    async def left(self, x: int) -> None:
        await self._move(f"left {x}")

    async def right(self, x: int) -> None:
        await self._move(f"right {x}")

    async def forward(self, x: int) -> None:
        await self._move(f"forward {x}")

    async def back(self, x: int) -> None:
        await self._move(f"back {x}")

    async def rotate_clockwise(self, x: int) -> None:
        await self._move(f"cw {x}")

    async def rotate_counter_clockwise(self, x: int) -> None:
        await self._move(f"ccw {x}")

    async def flip(self, direction: str) -> None:
        if direction not in FLIP_DIRECTIONS:
            raise ValueError(f"invalid flip direction: {direction!r}")
        await self.send(f"flip {direction}", timeout=self.config.maneuver_timeout, handler=expect_ok)

    async def go(self, x: int, y: int, z: int, speed: int) -> None:
        await self._move(f"go {x} {y} {z} {speed}")

    async def curve(self, x1: int, y1: int, z1: int, x2: int, y2: int, z2: int, speed: int) -> None:
        await self._move(f"curve {x1} {y1} {z1} {x2} {y2} {z2} {speed}")

    async def set_sticks(self, lr: int, fb: int, ud: int, yaw: int) -> None:
        """四通道遥控量，取值 -100..100。设备不回包。"""
        values: List[int] = [max(-STICK_RANGE, min(STICK_RANGE, int(v))) for v in (lr, fb, ud, yaw)]
        await self.send("rc {} {} {} {}".format(*values), timeout=self.config.default_timeout)

    async def set_wifi(self, ssid: str, password: str) -> None:
        await self.send(f"wifi {ssid} {password}", timeout=self.config.default_timeout, handler=expect_ok)

    async def wifi(self) -> int:
        """Wi-Fi 信噪比。"""
        return await self.send("wifi?", timeout=self.config.default_timeout, handler=parse_int)

    async def set_speed(self, x: int) -> None:
        await self.send(f"speed {x}", timeout=self.config.default_timeout, handler=expect_ok)

    async def speed(self) -> int:
        """当前速度 cm/s（设备返回 "100.0"）。"""
        return await self.send("speed?", timeout=self.config.default_timeout, handler=parse_float_as_int)

    async def battery(self) -> int:
        return await self.send("battery?", timeout=self.config.default_timeout, handler=parse_int)


