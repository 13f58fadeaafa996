# log.py — 统一日志格式（key=value）
from __future__ import annotations

import logging

_ROOT = "tellolink"

_FMT = "ts=%(asctime)s module=%(short_name)s level=%(levelname)s event=%(message)s task_id=%(task_id)s"


class _ContextFilter(logging.Filter):
    """给每条记录补上 task_id / short_name，未传 extra 时也能正常格式化。"""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "task_id"):
            record.task_id = "-"
        record.short_name = record.name[len(_ROOT) + 1:] if record.name.startswith(_ROOT + ".") else record.name
        return True


def _install_default_handler() -> None:
    root = logging.getLogger(_ROOT)
    if root.handlers:
        return
    _h = logging.StreamHandler()
    _h.setFormatter(logging.Formatter(fmt=_FMT, datefmt="%Y-%m-%d %H:%M:%S"))
    _h.addFilter(_ContextFilter())
    root.addHandler(_h)
    root.setLevel(logging.INFO)


def get_logger(module: str) -> logging.Logger:
    """
    返回 tellolink.<module> 日志器，例如 get_logger("driver.sdk")。
    记录可带 extra={"task_id": ...}；缺省为 "-"。
    """
    _install_default_handler()
    return logging.getLogger(f"{_ROOT}.{module}")


def configure_logging(level: str = "INFO") -> None:
    """调整整个 tellolink 命名空间的日志级别（CLI 使用）。"""
    _install_default_handler()
    logging.getLogger(_ROOT).setLevel(getattr(logging, level.upper(), logging.INFO))
