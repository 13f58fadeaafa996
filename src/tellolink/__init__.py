"""tellolink — Tello SDK 客户端：命令串行 + 状态流 + 视频流 + 事件总线。"""

from .config import TelloConfig, configure, load_config
from .drone import (
    FLIP_BACK,
    FLIP_FORWARD,
    FLIP_LEFT,
    FLIP_RIGHT,
    Drone,
    DroneStatus,
)
from .errors import (
    CommandCancelledError,
    CommandTimeoutError,
    InvalidResponseError,
    MalformedTelemetryError,
    NotConnectedError,
    StartError,
    TelloError,
    WriteFailedError,
)
from .events import Event, LandEvent, StateEvent, TakeOffEvent, VideoPacketEvent
from .state import Acceleration, Attitude, Snapshot, Velocity, parse_state

__all__ = [
    "Acceleration",
    "Attitude",
    "CommandCancelledError",
    "CommandTimeoutError",
    "Drone",
    "DroneStatus",
    "Event",
    "FLIP_BACK",
    "FLIP_FORWARD",
    "FLIP_LEFT",
    "FLIP_RIGHT",
    "InvalidResponseError",
    "LandEvent",
    "MalformedTelemetryError",
    "NotConnectedError",
    "Snapshot",
    "StartError",
    "StateEvent",
    "TakeOffEvent",
    "TelloConfig",
    "TelloError",
    "Velocity",
    "VideoPacketEvent",
    "WriteFailedError",
    "configure",
    "load_config",
    "parse_state",
]
