# errors.py — 错误分类与错误码
from __future__ import annotations

from typing import Optional

OK = 0
ERR_NOT_CONNECTED = 1101
ERR_WRITE_FAILED = 1102
ERR_START_FAILED = 1103
ERR_TIMEOUT = 1201
ERR_CANCELLED = 1202
ERR_INVALID_RESPONSE = 1301
ERR_MALFORMED_TELEMETRY = 1401
ERR_GENERIC = 1500


class TelloError(Exception):
    """所有 tellolink 错误的基类；code 与上面的错误码一致。"""

    code = ERR_GENERIC


class NotConnectedError(TelloError):
    code = ERR_NOT_CONNECTED

    def __init__(self, message: str = "not connected") -> None:
        super().__init__(message)


class WriteFailedError(TelloError):
    code = ERR_WRITE_FAILED


class StartError(TelloError):
    code = ERR_START_FAILED


class CommandTimeoutError(TelloError):
    code = ERR_TIMEOUT


class CommandCancelledError(TelloError):
    code = ERR_CANCELLED


class InvalidResponseError(TelloError):
    """应答不是 ok，或解析失败；response 保留原始文本。"""

    code = ERR_INVALID_RESPONSE

    def __init__(self, response: str, reason: str = "invalid response") -> None:
        super().__init__(f"{reason}: {response!r}")
        self.response = response


class MalformedTelemetryError(TelloError):
    """状态行与固定格式不符；field 为第一个出错的字段（数量不符时为 None）。"""

    code = ERR_MALFORMED_TELEMETRY

    def __init__(self, line: str, reason: str, field: Optional[str] = None) -> None:
        super().__init__(reason if field is None else f"{field}: {reason}")
        self.line = line
        self.field = field
