# src/tellolink/middleware/cmd_sequencer.py
"""
CommandSequencer — 串行命令下发 + 应答关联
- 普通命令：拿到串行锁才写 socket，保证 "一发一收" 的配对
- canceller 命令（emergency / land）：满足条件时作为优先命令绕过串行锁
    1) 在途集合里没有其他 canceller
    2) 不是 "takeoff 在途时的 land"（起飞过程中不能插入降落）
- 每条命令写出前登记自己的应答 Future（FIFO）；读循环收到文本后交给最早的等待者
  → 写出之前到达的陈旧应答不会被后来的命令看到
- 超时 / cancel_all() 都会唤醒等待者并各自抛错
- 每条命令在 send() 时记下当前会话的取消令牌；reset() 换新令牌而不是清除旧令牌，
  旧会话里还在排锁的命令醒来后照样以 Cancelled 失败，不会写进新会话
- 没有 handler 的命令写完即返回（rc / emergency 设备不回包）

依赖：
  drivers.tello_sdk.UDPChannel（命令通道，已 connect 到无人机）
使用：
  seq = CommandSequencer()
  seq.attach(channel)
  task = asyncio.create_task(seq.run_reply_loop())
  resp = await seq.send(Command("command", handler=expect_ok, timeout=5.0))
"""

from __future__ import annotations

import asyncio
import itertools
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Optional, Protocol, Tuple

from ..errors import (
    CommandCancelledError,
    CommandTimeoutError,
    InvalidResponseError,
    NotConnectedError,
    TelloError,
    WriteFailedError,
)
from ..log import get_logger

logger = get_logger("middleware.sequencer")

RespHandler = Callable[[str], Any]

_ids = itertools.count(1)


class CommandChannel(Protocol):
    def send(self, data: bytes) -> None: ...

    async def recv(self) -> Optional[bytes]: ...


# ---------------- 应答处理器 ----------------

def expect_ok(resp: str) -> None:
    if resp != "ok":
        raise InvalidResponseError(resp)


def parse_int(resp: str) -> int:
    # 例如 wifi? → "100"
    return int(resp)


def parse_float_as_int(resp: str) -> int:
    # 例如 speed? → "100.0" → 100
    return int(float(resp))


@dataclass(eq=False)
class Command:
    text: str
    handler: Optional[RespHandler] = None
    timeout: Optional[float] = None  # None / <=0 表示不限时
    canceller: bool = False
    id: int = field(default_factory=lambda: next(_ids))

    @property
    def task_id(self) -> str:
        return f"cmd-{self.id}"


@dataclass(eq=False)
class _ReplyWaiter:
    command: Command
    future: asyncio.Future


class CommandSequencer:
    def __init__(self) -> None:
        self._channel: Optional[CommandChannel] = None
        self._lock = asyncio.Lock()
        self._inflight: set[Command] = set()
        self._waiters: Deque[_ReplyWaiter] = deque()
        self._last_reply: Optional[str] = None
        self._scope = asyncio.Event()  # set() 表示本会话已取消

    # -------- 通道 --------
    def attach(self, channel: CommandChannel) -> None:
        self._channel = channel

    def detach(self) -> None:
        self._channel = None

    @property
    def connected(self) -> bool:
        return self._channel is not None

    @property
    def last_reply(self) -> Optional[str]:
        return self._last_reply

    @property
    def in_flight(self) -> Tuple[Command, ...]:
        return tuple(self._inflight)

    # -------- 优先级 --------
    def is_priority(self, command: Command) -> bool:
        if not command.canceller:
            return False
        for other in self._inflight:
            if other is command:
                continue
            if other.canceller:
                return False
            # takeoff 与 land 不能同时下发
            if command.text == "land" and other.text == "takeoff":
                return False
        return True

    # -------- 对外：发送 --------
    async def send(self, command: Command) -> Any:
        """发送一条命令；有 handler 时等待应答并返回 handler 的结果。"""
        if self._channel is None:
            raise NotConnectedError()

        # 判定与登记之间没有 await，在事件循环上是原子的
        scope = self._scope
        priority = self.is_priority(command)
        self._inflight.add(command)
        try:
            timeout = command.timeout if command.timeout and command.timeout > 0 else None
            try:
                return await asyncio.wait_for(
                    self._run(command, priority, scope), timeout=timeout
                )
            except asyncio.TimeoutError:
                logger.error("ack_timeout", extra={"task_id": command.task_id})
                raise CommandTimeoutError(
                    f"{command.text!r} timed out after {command.timeout}s"
                ) from None
        finally:
            self._inflight.discard(command)

    @staticmethod
    def _check_scope(command: Command, scope: asyncio.Event) -> None:
        if scope.is_set():
            logger.info("cmd_cancelled", extra={"task_id": command.task_id})
            raise CommandCancelledError(f"{command.text!r} cancelled")

    async def _run(self, command: Command, priority: bool, scope: asyncio.Event) -> Any:
        self._check_scope(command, scope)
        if priority:
            logger.info("priority_cmd", extra={"task_id": command.task_id})
            return await self._transmit(command)

        # 同一时刻只允许一条普通命令处于 "写出-等应答"
        async with self._lock:
            self._check_scope(command, scope)
            return await self._transmit(command)

    async def _transmit(self, command: Command) -> Any:
        channel = self._channel
        if channel is None:
            raise NotConnectedError()

        waiter: Optional[_ReplyWaiter] = None
        if command.handler is not None:
            waiter = _ReplyWaiter(command, asyncio.get_running_loop().create_future())
            self._waiters.append(waiter)

        try:
            logger.info(f"send_cmd:{command.text}", extra={"task_id": command.task_id})
            try:
                channel.send(command.text.encode("utf-8"))
            except WriteFailedError:
                raise
            except OSError as exc:
                raise WriteFailedError(f"writing {command.text!r} failed: {exc}") from exc

            if waiter is None:
                return None

            resp = await waiter.future
        finally:
            if waiter is not None:
                self._discard_waiter(waiter)

        logger.info(f"recv_ack:{resp}", extra={"task_id": command.task_id})
        try:
            return command.handler(resp)  # type: ignore[misc]
        except TelloError:
            raise
        except ValueError as exc:
            raise InvalidResponseError(resp, f"parsing failed ({exc})") from exc

    def _discard_waiter(self, waiter: _ReplyWaiter) -> None:
        try:
            self._waiters.remove(waiter)
        except ValueError:
            pass
        if not waiter.future.done():
            waiter.future.cancel()

    # -------- 读循环入口 --------
    def feed_reply(self, text: str) -> None:
        """记录最新应答，并交给最早登记且仍在等待的命令。"""
        self._last_reply = text
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.future.done():
                waiter.future.set_result(text)
                return
        logger.debug(f"ack_unmatched:{text}")

    async def run_reply_loop(self) -> None:
        """命令 socket 的读循环：读错误只记录，取消或 socket 关闭时退出。"""
        channel = self._channel
        if channel is None:
            return
        while True:
            try:
                data = await channel.recv()
            except OSError as e:
                logger.error(f"reading_response_failed:{e}")
                continue
            if data is None:
                logger.info("reply_loop_closed")
                return
            text = data.decode("utf-8", errors="replace").strip()
            logger.debug(f"received_resp:{text}")
            self.feed_reply(text)

    # -------- 生命周期 --------
    def cancel_all(self) -> None:
        """关闭执行域：唤醒所有等待者，本会话中排队或新发的命令一律 Cancelled。"""
        self._scope.set()
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.future.done():
                waiter.future.set_exception(
                    CommandCancelledError(f"{waiter.command.text!r} cancelled")
                )

    def reset(self) -> None:
        """新会话：取消旧会话，清空在途集合与等待者，换一个新的取消令牌。"""
        self.cancel_all()
        self._inflight.clear()
        self._last_reply = None
        self._scope = asyncio.Event()
