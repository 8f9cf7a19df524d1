"""制品服务 — 打包上传 / 依赖更新

把声明加载、打包器、传输层和依赖解析器串成 CLI 需要的两条流程:

  create:  打包声明 → 制品包 → （配置了主机时）上传到远程目录
  update:  更新声明 → 列出远程目录 → 递归安装依赖闭包
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from pmkit.core.config import Config, get_config
from pmkit.core.exceptions import ConfigError
from pmkit.core.models import InstallResult, Manifest
from pmkit.core.packager import ArchiveBuilder
from pmkit.core.protocols import Transport
from pmkit.core.spec_loader import load_package_spec, load_update_spec
from pmkit.core.updater import Updater
from pmkit.services.transport import LocalTransport, SSHConfig, SSHTransport

logger = logging.getLogger(__name__)


@dataclass
class CreateOutcome:
    """create 流程的结果"""

    archive_path: Path
    manifest: Manifest
    remote_path: str = ""  # 未上传时为空


class PackageService:
    """制品打包与依赖更新服务"""

    def __init__(
        self,
        config: Config | None = None,
        transport: Transport | None = None,
        *,
        local_store: str = "",
    ) -> None:
        self.config = config or get_config()
        self._transport = transport
        self.local_store = local_store

    def transport(self) -> Transport | None:
        """按配置选择传输实现；既无本地仓库也无 SSH 主机时返回 None"""
        if self._transport is not None:
            return self._transport
        if self.local_store:
            return LocalTransport()
        if self.config.ssh_host:
            return SSHTransport(SSHConfig(
                host=self.config.ssh_host,
                port=self.config.ssh_port,
                user=self.config.ssh_user,
                identity=self.config.ssh_key,
            ))
        return None

    def _remote_dir(self) -> str:
        return self.local_store or self.config.remote_dir

    def create(
        self, spec_path: str, *,
        output: str = "", working_dir: str = "", upload: bool = True,
    ) -> CreateOutcome:
        """打包并（可选）上传"""
        spec = load_package_spec(spec_path)
        archive, manifest = ArchiveBuilder(working_dir).build(spec, output)
        outcome = CreateOutcome(archive_path=archive, manifest=manifest)

        if not upload:
            return outcome
        transport = self.transport()
        if transport is None:
            logger.info("未配置 SSH 主机，跳过上传")
            return outcome
        outcome.remote_path = transport.upload(str(archive), self._remote_dir())
        return outcome

    def update(self, spec_path: str, *, local_dir: str = "") -> list[InstallResult]:
        """安装更新声明中的依赖闭包"""
        transport = self.transport()
        if transport is None:
            raise ConfigError("update 需要 SSH 主机 (--ssh-host / PM_SSH_HOST) 或本地仓库")
        deps = load_update_spec(spec_path)
        updater = Updater(
            transport,
            remote_dir=self._remote_dir(),
            local_dir=local_dir or self.config.local_dir,
            max_depth=self.config.max_depth,
        )
        return updater.update(deps)
