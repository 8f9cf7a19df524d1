"""远程传输实现

- SSHTransport: 通过 ssh / scp 访问远程制品目录
- LocalTransport: 把本地目录当作远程制品目录（离线仓库、测试）

两者都满足 pmkit.core.protocols.Transport 协议。
"""

from __future__ import annotations

import logging
import os
import posixpath
import shutil
from dataclasses import dataclass
from pathlib import Path

from pmkit.core.exceptions import TransportError
from pmkit.utils.shell import CommandExecutor, CommandResult, LocalExecutor, shell_quote

logger = logging.getLogger(__name__)


@dataclass
class SSHConfig:
    """SSH 连接参数"""

    host: str
    port: int = 0
    user: str = ""
    identity: str = ""

    @property
    def target(self) -> str:
        return f"{self.user}@{self.host}" if self.user else self.host

    def ssh_args(self) -> list[str]:
        args: list[str] = []
        if self.port:
            args += ["-p", str(self.port)]
        if self.identity:
            args += ["-i", self.identity]
        return args

    def scp_args(self) -> list[str]:
        args: list[str] = []
        if self.port:
            args += ["-P", str(self.port)]
        if self.identity:
            args += ["-i", self.identity]
        return args


class SSHTransport:
    """基于 ssh / scp 的传输实现"""

    def __init__(
        self, config: SSHConfig, executor: CommandExecutor | None = None,
    ) -> None:
        self.config = config
        self.executor = executor or LocalExecutor()

    def _require_host(self) -> None:
        if not self.config.host:
            raise TransportError("ssh host is required")

    def _exec(self, args: list[str], label: str) -> CommandResult:
        try:
            r = self.executor.execute(args)
        except OSError as e:
            raise TransportError(f"{label} 无法执行: {e}") from e
        if not r.success:
            raise TransportError(
                f"{label} 失败 (rc={r.returncode}): {r.stderr.strip()[:500]}",
                returncode=r.returncode, stderr=r.stderr,
            )
        return r

    def run(self, command: str) -> str:
        self._require_host()
        logger.debug("ssh %s: %s", self.config.target, command)
        args = ["ssh", *self.config.ssh_args(), self.config.target, command]
        return self._exec(args, "ssh 命令").stdout

    def upload(self, local_path: str, remote_dir: str) -> str:
        self._require_host()
        if remote_dir:
            self.run(f"mkdir -p {shell_quote(remote_dir)}")

        remote_path = os.path.basename(local_path)
        if remote_dir:
            remote_path = posixpath.join(remote_dir, remote_path)

        args = [
            "scp", *self.config.scp_args(),
            local_path, f"{self.config.target}:{remote_path}",
        ]
        self._exec(args, "scp 上传")
        logger.info("已上传 %s -> %s:%s", local_path, self.config.target, remote_path)
        return remote_path

    def download(self, remote_path: str, local_dir: str) -> str:
        self._require_host()
        local_dir = local_dir or "."
        try:
            Path(local_dir).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise TransportError(f"无法创建本地目录 {local_dir}: {e}") from e
        local_path = os.path.join(local_dir, posixpath.basename(remote_path))
        args = [
            "scp", *self.config.scp_args(),
            f"{self.config.target}:{remote_path}", local_path,
        ]
        self._exec(args, "scp 下载")
        logger.info("已下载 %s:%s -> %s", self.config.target, remote_path, local_path)
        return local_path


class LocalTransport:
    """本地目录作为制品仓库

    远程路径即本地文件系统路径；run() 在本机执行命令。
    """

    def __init__(self, executor: CommandExecutor | None = None) -> None:
        self.executor = executor or LocalExecutor()

    def run(self, command: str) -> str:
        try:
            r = self.executor.execute(command)
        except OSError as e:
            raise TransportError(f"本地命令无法执行: {e}") from e
        if not r.success:
            raise TransportError(
                f"本地命令失败 (rc={r.returncode}): {r.stderr.strip()[:500]}",
                returncode=r.returncode, stderr=r.stderr,
            )
        return r.stdout

    def upload(self, local_path: str, remote_dir: str) -> str:
        dest_dir = Path(remote_dir or ".")
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
            dest = shutil.copy2(local_path, dest_dir / Path(local_path).name)
        except OSError as e:
            raise TransportError(f"上传失败 {local_path}: {e}") from e
        logger.info("已复制 %s -> %s", local_path, dest)
        return str(dest)

    def download(self, remote_path: str, local_dir: str) -> str:
        dest_dir = Path(local_dir or ".")
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
            dest = dest_dir / Path(remote_path).name
            if Path(remote_path).resolve() != dest.resolve():
                shutil.copy2(remote_path, dest)
        except OSError as e:
            raise TransportError(f"下载失败 {remote_path}: {e}") from e
        logger.info("已复制 %s -> %s", remote_path, dest)
        return str(dest)
