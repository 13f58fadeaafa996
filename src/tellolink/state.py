# state.py — 状态帧模型与解析
"""
Tello 在 8890 端口推送的状态行（分号分隔的 key:value）：

  pitch:%d;roll:%d;yaw:%d;vgx:%d;vgy:%d;vgz:%d;templ:%d;temph:%d;tof:%d;h:%d;
  bat:%d;baro:%f;time:%d;agx:%f;agy:%f;agz:%f;

16 个字段必须按顺序全部解析成功，否则整行作废（MalformedTelemetryError）。
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Tuple

from .errors import MalformedTelemetryError


@dataclass(frozen=True)
class Attitude:
    pitch: int = 0  # 度
    roll: int = 0
    yaw: int = 0


@dataclass(frozen=True)
class Velocity:
    x: int = 0  # cm/s
    y: int = 0
    z: int = 0


@dataclass(frozen=True)
class Acceleration:
    x: float = 0.0  # g
    y: float = 0.0
    z: float = 0.0


@dataclass(frozen=True)
class Snapshot:
    """最近一次成功解析的状态；整体替换，从不局部修改。"""

    attitude: Attitude = field(default_factory=Attitude)
    velocity: Velocity = field(default_factory=Velocity)
    acceleration: Acceleration = field(default_factory=Acceleration)
    barometer: float = 0.0        # cm
    battery: int = 0              # %
    flight_distance: int = 0      # tof, cm
    flight_time: int = 0          # s
    height: int = 0               # cm
    lowest_temperature: int = 0   # °C
    highest_temperature: int = 0  # °C

    def to_dict(self) -> Dict[str, Any]:
        """按线上字段名展开（日志/界面用）。"""
        return {
            "pitch": self.attitude.pitch,
            "roll": self.attitude.roll,
            "yaw": self.attitude.yaw,
            "vgx": self.velocity.x,
            "vgy": self.velocity.y,
            "vgz": self.velocity.z,
            "templ": self.lowest_temperature,
            "temph": self.highest_temperature,
            "tof": self.flight_distance,
            "h": self.height,
            "bat": self.battery,
            "baro": self.barometer,
            "time": self.flight_time,
            "agx": self.acceleration.x,
            "agy": self.acceleration.y,
            "agz": self.acceleration.z,
        }


# 固定顺序的字段表：(key, 类型)
FIELDS: Tuple[Tuple[str, Callable[[str], Any]], ...] = (
    ("pitch", int),
    ("roll", int),
    ("yaw", int),
    ("vgx", int),
    ("vgy", int),
    ("vgz", int),
    ("templ", int),
    ("temph", int),
    ("tof", int),
    ("h", int),
    ("bat", int),
    ("baro", float),
    ("time", int),
    ("agx", float),
    ("agy", float),
    ("agz", float),
)

# %d / %f 的文本形式（不接受下划线、空白、nan/inf）
_PATTERNS = {
    int: re.compile(r"-?\d+"),
    float: re.compile(r"-?\d+(?:\.\d+)?"),
}


def _tokenize(line: str) -> List[str]:
    tokens = line.split(";")
    # 行尾的 ';' 会多出一个空 token
    if tokens and tokens[-1] == "":
        tokens.pop()
    return tokens


def parse_state(line: str) -> Snapshot:
    """把一行状态文本解析为 Snapshot（纯函数）。"""
    tokens = _tokenize(line)
    if len(tokens) != len(FIELDS):
        raise MalformedTelemetryError(
            line, f"expected {len(FIELDS)} fields, got {len(tokens)}"
        )

    values: Dict[str, Any] = {}
    for token, (key, conv) in zip(tokens, FIELDS):
        name, sep, raw = token.partition(":")
        if not sep or name != key:
            raise MalformedTelemetryError(line, f"unexpected token {token!r}", field=key)
        if not _PATTERNS[conv].fullmatch(raw):
            raise MalformedTelemetryError(line, f"bad value {raw!r}", field=key)
        values[key] = conv(raw)

    return Snapshot(
        attitude=Attitude(values["pitch"], values["roll"], values["yaw"]),
        velocity=Velocity(values["vgx"], values["vgy"], values["vgz"]),
        acceleration=Acceleration(values["agx"], values["agy"], values["agz"]),
        barometer=values["baro"],
        battery=values["bat"],
        flight_distance=values["tof"],
        flight_time=values["time"],
        height=values["h"],
        lowest_temperature=values["templ"],
        highest_temperature=values["temph"],
    )
