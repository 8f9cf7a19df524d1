""".env 文件加载

逐行解析 KEY=VALUE，不覆盖已存在的环境变量，真实环境变量始终优先。
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_dotenv(text: str) -> dict[str, str]:
    """解析 .env 内容

    规则:
      - 跳过空行和 # 开头的注释行
      - 允许 "export " 前缀
      - 去掉成对的单引号或双引号
      - 没有 "=" 或键为空的行忽略
    """
    values: dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].strip()
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        values[key] = value
    return values


def load_dotenv(path: str | Path = ".env") -> dict[str, str]:
    """加载 .env 到 os.environ，返回实际写入的变量；文件不存在时不报错"""
    p = Path(path)
    if not p.is_file():
        return {}
    applied: dict[str, str] = {}
    for key, value in parse_dotenv(p.read_text(encoding="utf-8")).items():
        if key in os.environ:
            continue
        os.environ[key] = value
        applied[key] = value
    if applied:
        logger.debug("已从 %s 加载 %d 个环境变量", p, len(applied))
    return applied
