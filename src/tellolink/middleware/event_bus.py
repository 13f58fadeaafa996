"""
event_bus.py — 轻量级发布订阅总线（asyncio）
- on(event_type, handler)：注册回调（同步函数或协程函数均可），同一事件可多个
- dispatch(event)：只入队、立即返回，生产者（读循环/命令应答）永不被订阅者拖慢
- 独立的投递任务按顺序取出事件并分发；协程回调各自成 task，互不阻塞
- subscribe()：异步迭代器订阅（每个订阅者独立队列，满时丢最旧）
- stop()：先投递完已入队的事件，再结束订阅端并清空所有订阅（reset）

使用示例：
  bus = EventBus()
  bus.start()
  bus.on(StateEvent, lambda e: print(e.snapshot.battery))
  bus.dispatch(StateEvent(snapshot))
  await bus.stop()
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Set, Type, Union

from ..events import Event, event_type
from ..log import get_logger

logger = get_logger("middleware.event_bus")

Handler = Callable[[Any], Any]
EventKey = Union[str, Type]

# 内部终止哨兵
_SENTINEL = object()


class _Subscriber:
    """异步迭代订阅者：独立的有界队列，满时丢弃最旧的一条。"""

    def __init__(self, kind: Optional[Type], maxsize: int) -> None:
        self.kind = kind
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    def offer(self, item: Any) -> None:
        if self.queue.full():
            try:
                _ = self.queue.get_nowait()  # 丢弃一个旧的
            except asyncio.QueueEmpty:
                pass
        self.queue.put_nowait(item)


class EventBus:
    def __init__(self, drain_timeout: float = 5.0) -> None:
        self._drain_timeout = drain_timeout  # stop() 等待协程回调的上限
        self._handlers: Dict[Type, List[Handler]] = {}
        self._subs: List[_Subscriber] = []
        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    # -------- 订阅 --------
    def on(self, key: EventKey, handler: Handler) -> Handler:
        kind = event_type(key)
        self._handlers.setdefault(kind, []).append(handler)
        return handler

    def off(self, key: EventKey, handler: Handler) -> None:
        handlers = self._handlers.get(event_type(key), [])
        try:
            handlers.remove(handler)
        except ValueError:
            pass

    async def subscribe(
        self, key: Optional[EventKey] = None, maxsize: int = 100
    ) -> AsyncIterator[Event]:
        """
        通用订阅器：返回一个 async 迭代器，直到 stop() 被调用。
        使用：
          async for ev in bus.subscribe(StateEvent):
              ...
        """
        sub = _Subscriber(event_type(key) if key is not None else None, maxsize)
        if self._stopped:
            # 已关闭则直接塞一个哨兵，订阅端会立即结束
            sub.offer(_SENTINEL)
        self._subs.append(sub)
        logger.info("subscribe")
        try:
            while True:
                item = await sub.queue.get()
                if item is _SENTINEL:
                    break
                yield item
        finally:
            if sub in self._subs:
                self._subs.remove(sub)

    # -------- 发布 --------
    def dispatch(self, event: Event) -> None:
        """只入队，不等待任何订阅者。"""
        if self._stopped:
            logger.debug(f"dispatch_after_stop:{event.name}")
            return
        self._queue.put_nowait(event)

    # -------- 生命周期 --------
    def start(self) -> None:
        if self.running:
            return
        self._stopped = False
        self._worker = asyncio.create_task(self._worker_loop(), name="EventBusWorker")
        logger.info("event_bus_started")

    async def stop(self) -> None:
        """投递完已入队事件 → 等待回调任务（超时则取消）→ 结束订阅端 → 清空订阅。"""
        self._stopped = True
        if self._worker is not None:
            if not self._worker.done():
                self._queue.put_nowait(_SENTINEL)
                try:
                    await self._worker
                except asyncio.CancelledError:
                    pass
            self._worker = None
        if self._pending:
            _, unfinished = await asyncio.wait(list(self._pending), timeout=self._drain_timeout)
            if unfinished:
                logger.warning(f"handler_drain_timeout:{len(unfinished)}")
                for task in unfinished:
                    task.cancel()
                await asyncio.gather(*unfinished, return_exceptions=True)
        for sub in list(self._subs):
            sub.offer(_SENTINEL)
        self.reset()
        logger.info("event_bus_stopped")

    def reset(self) -> None:
        """清空所有回调与订阅者；丢弃未投递事件。"""
        self._handlers.clear()
        self._subs.clear()
        self._queue = asyncio.Queue()

    # -------- 内部 --------
    async def _worker_loop(self) -> None:
        while True:
            event = await self._queue.get()
            if event is _SENTINEL:
                return
            self._deliver(event)

    def _deliver(self, event: Event) -> None:
        for handler in list(self._handlers.get(type(event), [])):
            try:
                r = handler(event)  # 允许 sync/async
            except Exception as e:  # 不让单个订阅者影响总线
                logger.error(f"handler_exception:{event.name}:{e!r}")
                continue
            if inspect.isawaitable(r):
                task = asyncio.ensure_future(self._invoke(event, r))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

        for sub in list(self._subs):
            if sub.kind is None or sub.kind is type(event):
                sub.offer(event)

    async def _invoke(self, event: Event, awaitable: Any) -> None:
        try:
            await awaitable
        except Exception as e:
            logger.error(f"handler_exception:{event.name}:{e!r}")
