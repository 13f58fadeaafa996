# ---------------------------------------------------------------------
# UDP 适配（跨平台）：asyncio.create_datagram_endpoint 版本
# ---------------------------------------------------------------------
from __future__ import annotations

import asyncio
from typing import Optional, Tuple, Union

from ..errors import WriteFailedError
from ..log import get_logger

logger = get_logger("driver.sdk")

Address = Tuple[str, int]

# connection_lost 之后投递的结束标记
_CLOSED = object()

RxItem = Union[bytes, OSError, object]


class _UDPProtocol(asyncio.DatagramProtocol):
    """收包协议：把收到的数据报（或 socket 错误）扔进队列，由读循环消费。"""

    def __init__(self, name: str, rx_queue: asyncio.Queue[RxItem]) -> None:
        self.name = name
        self.rx_queue = rx_queue
        self.transport: Optional[asyncio.DatagramTransport] = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]

    def datagram_received(self, data: bytes, addr: Address) -> None:
        try:
            self.rx_queue.put_nowait(data)
        except asyncio.QueueFull:
            logger.warning(f"{self.name}_rx_drop:queue_full")

    def error_received(self, exc: Exception) -> None:
        # 交给读循环记录并继续（ICMP 不可达等瞬时错误）
        try:
            self.rx_queue.put_nowait(exc)
        except asyncio.QueueFull:
            logger.error(f"{self.name}_udp_error:{exc}")

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc:
            logger.error(f"{self.name}_udp_lost:{exc}")
        # 结束标记必须送达，满队列时挤掉一个旧包
        while True:
            try:
                self.rx_queue.put_nowait(_CLOSED)
                return
            except asyncio.QueueFull:
                try:
                    self.rx_queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass


class UDPChannel:
    """
    单个 UDP 套接字：
      open():  绑定本地端口；给定 remote_addr 时同时 connect（命令通道）
      recv():  下一个数据报；socket 错误以 OSError 抛出；关闭后返回 None
      send():  发送（命令通道无需地址）
      close(): 幂等关闭
    """

    def __init__(
        self,
        name: str,
        local_addr: Address,
        remote_addr: Optional[Address] = None,
        queue_size: int = 64,
    ) -> None:
        self.name = name
        self._local_addr = local_addr
        self._remote_addr = remote_addr
        self._queue_size = queue_size
        self._rx_queue: asyncio.Queue[RxItem] = asyncio.Queue(maxsize=queue_size)
        self._transport: Optional[asyncio.DatagramTransport] = None

    @property
    def closed(self) -> bool:
        return self._transport is None or self._transport.is_closing()

    @property
    def local_address(self) -> Optional[Address]:
        if self._transport is None:
            return None
        sockname = self._transport.get_extra_info("sockname")
        return (sockname[0], sockname[1]) if sockname else None

    async def open(self) -> None:
        """创建 UDP 套接字并启动接收协议；失败时抛 OSError。"""
        if self._transport is not None:
            return
        loop = asyncio.get_running_loop()
        # 每次打开用新队列，避免上一会话的残留
        self._rx_queue = asyncio.Queue(maxsize=self._queue_size)
        transport, _ = await loop.create_datagram_endpoint(
            lambda: _UDPProtocol(self.name, self._rx_queue),
            local_addr=self._local_addr,
            remote_addr=self._remote_addr,
        )
        self._transport = transport
        logger.info(f"{self.name}_udp_bind:{self.local_address}")

    async def recv(self) -> Optional[bytes]:
        if self._transport is None:
            return None
        item = await self._rx_queue.get()
        if item is _CLOSED:
            return None
        if isinstance(item, OSError):
            raise item
        if isinstance(item, Exception):
            raise OSError(str(item)) from item
        return item  # type: ignore[return-value]

    def send(self, data: bytes) -> None:
        transport = self._transport
        if transport is None or transport.is_closing():
            raise WriteFailedError(f"{self.name}: socket is closed")
        try:
            transport.sendto(data)
        except OSError as exc:
            raise WriteFailedError(f"{self.name}: writing failed: {exc}") from exc

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None
            logger.info(f"{self.name}_udp_closed")
