"""子进程执行与 shell 转义

传输层通过 CommandExecutor 调用 ssh / scp，测试注入假执行器即可，
无需 patch subprocess。
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


class CommandExecutor(Protocol):
    """执行一条命令（字符串按 shell 词法切分，不经过 shell），返回捕获的输出"""

    def execute(self, cmd: str | list[str]) -> CommandResult: ...


class LocalExecutor:
    """在本机以子进程执行命令"""

    def execute(self, cmd: str | list[str]) -> CommandResult:
        args = shlex.split(cmd) if isinstance(cmd, str) else list(cmd)
        logger.debug("执行: %s", shlex.join(args))
        r = subprocess.run(args, capture_output=True, text=True, check=False)
        return CommandResult(r.returncode, r.stdout, r.stderr)


def shell_quote(value: str) -> str:
    """转义拼进远程 shell 命令的路径；空串原样返回"""
    if value == "":
        return ""
    return shlex.quote(value)
