# config.py — 地址/端口/超时配置
"""
TelloConfig — 与 Tello SDK 默认值一致：
  - 命令端口 8889（本地同样绑定 8889 接收应答）
  - 状态端口 8890（telemetry 文本）
  - 视频端口 11111（分片的原始码流）

可从 INI 文件加载（[tello] 小节），或用 configure(**overrides) 覆盖默认值。
"""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Tuple

SECTION = "tello"


@dataclass(slots=True)
class TelloConfig:
    drone_ip: str = "192.168.10.1"
    command_port: int = 8889
    local_host: str = "0.0.0.0"
    response_port: int = 8889
    state_port: int = 8890
    video_port: int = 11111
    video_enabled: bool = True
    default_timeout: float = 5.0
    movement_timeout: float = 60.0
    maneuver_timeout: float = 20.0
    rx_queue_size: int = 64
    video_queue_size: int = 0  # 0 = 不限；视频分片丢一个整帧就坏了

    @property
    def command_address(self) -> Tuple[str, int]:
        return (self.drone_ip, self.command_port)

    @property
    def response_address(self) -> Tuple[str, int]:
        return (self.local_host, self.response_port)

    @property
    def state_address(self) -> Tuple[str, int]:
        return (self.local_host, self.state_port)

    @property
    def video_address(self) -> Tuple[str, int]:
        return (self.local_host, self.video_port)


def configure(base: TelloConfig | None = None, **overrides: Any) -> TelloConfig:
    """
    基于默认值（或 base）生成新配置：
        cfg = configure(drone_ip="192.168.10.2", video_enabled=False)
    未知字段会抛 TypeError。
    """
    return replace(base or TelloConfig(), **overrides)


def _coerce(name: str, kind: type, raw: str) -> Any:
    if kind is bool:
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"invalid boolean for {name}: {raw!r}")
    try:
        return kind(raw.strip())
    except ValueError as exc:
        raise ValueError(f"invalid value for {name}: {raw!r}") from exc


def load_config(path: Path | str | None = None) -> TelloConfig:
    """读取 INI 配置；文件不存在时返回默认配置。"""
    config = TelloConfig()
    if path is None:
        return config

    path = Path(path)
    if not path.exists():
        return config

    parser = ConfigParser()
    parser.read(path)
    if not parser.has_section(SECTION):
        return config

    kinds = {"str": str, "int": int, "float": float, "bool": bool}
    overrides: dict[str, Any] = {}
    for f in fields(TelloConfig):
        if parser.has_option(SECTION, f.name):
            kind = kinds[f.type] if isinstance(f.type, str) else f.type
            overrides[f.name] = _coerce(f.name, kind, parser.get(SECTION, f.name))
    return replace(config, **overrides)
