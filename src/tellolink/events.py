# events.py — 总线上的事件类型
from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Dict, Type, Union

from .state import Snapshot


@dataclass(frozen=True)
class StateEvent:
    snapshot: Snapshot
    name: ClassVar[str] = "state"


@dataclass(frozen=True)
class VideoPacketEvent:
    """一整帧重组后的视频数据。"""

    packet: bytes
    name: ClassVar[str] = "video.packet"


@dataclass(frozen=True)
class TakeOffEvent:
    name: ClassVar[str] = "take.off"


@dataclass(frozen=True)
class LandEvent:
    name: ClassVar[str] = "land"


Event = Union[StateEvent, VideoPacketEvent, TakeOffEvent, LandEvent]

EVENT_TYPES: Dict[str, Type] = {
    cls.name: cls for cls in (StateEvent, VideoPacketEvent, TakeOffEvent, LandEvent)
}


def event_type(key: Union[str, Type]) -> Type:
    """接受事件类或事件名（如 "state"），返回事件类。"""
    if isinstance(key, str):
        try:
            return EVENT_TYPES[key]
        except KeyError:
            raise ValueError(f"unknown event: {key!r}") from None
    if key not in EVENT_TYPES.values():
        raise ValueError(f"unknown event type: {key!r}")
    return key
