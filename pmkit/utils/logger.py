"""pmkit 日志配置

标准输出只留给 CLI 的结果行，日志一律写 stderr。
PM_LOG_JSON=1 时每条日志输出为一行 JSON，便于流水线采集。
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

HANDLER_NAME = "pmkit"
TEXT_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


class JSONFormatter(logging.Formatter):
    """一行一个对象: {"ts", "level", "logger", "msg"[, "exc"]}"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def _own_handlers(root: logging.Logger) -> list[logging.Handler]:
    return [h for h in root.handlers if h.get_name() == HANDLER_NAME]


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """设置根日志级别并安装 pmkit 的 stderr handler

    重复调用只替换上一次安装的 handler，其他 handler 不受影响。
    """
    reset_logging()
    root = logging.getLogger()
    root.setLevel(_LEVELS.get(level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(TEXT_FORMAT))
    root.addHandler(handler)


def reset_logging() -> None:
    """移除 pmkit 安装的 handler，根日志级别恢复为 WARNING"""
    root = logging.getLogger()
    for handler in _own_handlers(root):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.WARNING)
