"""依赖解析与安装

职责:
- 把远程目录分组为候选集合
- 按声明顺序逐个安装请求的依赖，选出满足约束的最高版本
- 下载、解压制品包，重命名其 manifest.json 避免互相覆盖
- 读取已安装包的清单，深度优先（先序）递归安装传递依赖

冲突与环:
  - 同一次解析中每个包名最多安装一个版本（ResolutionContext.installed）
  - 已安装的包再次被请求时：无约束或约束满足 → 跳过；否则 ConflictError
  - 包（间接）依赖自身时，已安装检查使递归自然终止
  - 首次安装的依赖链长度受 max_depth 限制，超出抛 ResolutionDepthError

任何错误都会立即中止整次解析，已下载/解压的文件保留原样，不做回滚。

用法:
    from pmkit.core.updater import Updater

    results = Updater(transport, remote_dir="/srv/pkgs", local_dir="vendor").update(deps)
"""

from __future__ import annotations

import json
import logging
import os
import re
import tarfile
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from pmkit.core.catalog import RemotePackage, build_catalog, list_remote_packages
from pmkit.core.exceptions import (
    ArchiveError,
    ConflictError,
    NotFoundError,
    ResolutionDepthError,
)
from pmkit.core.models import MANIFEST_NAME, Dependency, InstallResult, Manifest
from pmkit.core.protocols import Transport
from pmkit.core.version import Version, parse_constraint, select_best

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 64

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


@dataclass
class ResolutionContext:
    """单次解析运行的状态，随递归调用显式传递"""

    installed: dict[str, Version] = field(default_factory=dict)
    results: list[InstallResult] = field(default_factory=list)
    chain: list[str] = field(default_factory=list)  # 当前首次安装链


# =========================================================================
# 解压 / 清单
# =========================================================================


def _member_filter(member: tarfile.TarInfo, dest: str) -> tarfile.TarInfo | None:
    """只物化目录和普通文件，拒绝越界路径，保留成员权限位"""
    if not (member.isdir() or member.isreg()):
        logger.debug("跳过非普通成员: %s", member.name)
        return None
    safe = tarfile.data_filter(member, dest)
    return safe.replace(mode=member.mode & 0o777, deep=False)


def extract_archive(archive: str | Path, dest: str | Path) -> None:
    """解压制品包到目标目录，可能覆盖已有同名文件"""
    dest = Path(dest)
    dest.mkdir(parents=True, exist_ok=True)
    try:
        with tarfile.open(archive, "r:*") as tf:
            tf.extractall(path=str(dest), filter=_member_filter)
    except tarfile.FilterError as e:
        raise ArchiveError(f"制品包 {archive} 含有不安全的成员: {e}") from e
    except tarfile.TarError as e:
        raise ArchiveError(f"制品包 {archive} 无法解压: {e}") from e


def manifest_filename(name: str, version: str) -> str:
    """按包名和版本生成不冲突的清单文件名"""
    return (
        f"manifest-{_UNSAFE_CHARS.sub('_', name)}-"
        f"{_UNSAFE_CHARS.sub('_', version)}.json"
    )


def ensure_manifest_unique(directory: str | Path, name: str, version: str) -> str:
    """把解压出的 manifest.json 重命名为包专属文件名

    返回重命名后的路径；不存在 manifest.json 时返回空串。
    """
    src = Path(directory) / MANIFEST_NAME
    if not src.exists():
        return ""
    if src.is_dir():
        raise ArchiveError(f"{src} 是目录，期望是清单文件")
    target = Path(directory) / manifest_filename(name, version)
    os.replace(src, target)
    return str(target)


def load_manifest_dependencies(manifest_path: str) -> list[Dependency]:
    """读取清单中声明的依赖；无清单视为无依赖"""
    if not manifest_path:
        return []
    with open(manifest_path, encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ArchiveError(f"清单文件格式错误 {manifest_path}: {e}") from e
    if not isinstance(data, dict):
        raise ArchiveError(f"清单文件内容不是对象: {manifest_path}")
    deps = data.get("dependencies") or []
    if not isinstance(deps, list) or not all(isinstance(d, dict) for d in deps):
        raise ArchiveError(f"清单文件 dependencies 必须是对象数组: {manifest_path}")
    try:
        return Manifest.from_dict(data).dependencies
    except (TypeError, ValueError) as e:
        raise ArchiveError(f"清单文件格式错误 {manifest_path}: {e}") from e


# =========================================================================
# 解析 / 安装
# =========================================================================


class Updater:
    """依赖解析安装器 - 每次 update() 使用独立的解析上下文"""

    def __init__(
        self,
        transport: Transport,
        remote_dir: str = "",
        local_dir: str = "",
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.transport = transport
        self.remote_dir = remote_dir
        self.local_dir = local_dir or "."
        self.max_depth = max_depth

    def update(self, dependencies: Iterable[Dependency]) -> list[InstallResult]:
        """列出远程目录并安装依赖闭包"""
        entries = list_remote_packages(self.transport, self.remote_dir)
        return self.resolve(dependencies, entries)

    def resolve(
        self, dependencies: Iterable[Dependency], entries: Iterable[RemotePackage],
    ) -> list[InstallResult]:
        """按声明顺序安装依赖，返回安装记录（按安装顺序）"""
        catalog = build_catalog(entries)
        ctx = ResolutionContext()
        for dep in dependencies:
            self.install_package(dep, catalog, ctx)
        logger.info("解析完成: 安装 %d 个包", len(ctx.results))
        return ctx.results

    def install_package(
        self,
        dep: Dependency,
        catalog: dict[str, list[RemotePackage]],
        ctx: ResolutionContext,
    ) -> None:
        installed = ctx.installed.get(dep.name)
        if installed is not None:
            if not dep.version:
                logger.debug("已安装，跳过: %s@%s", dep.name, installed)
                return
            if parse_constraint(dep.version).matches(installed):
                logger.debug(
                    "已安装且满足约束，跳过: %s@%s (%s)",
                    dep.name, installed, dep.version,
                )
                return
            raise ConflictError(dep.name, str(installed), dep.version)

        if self.max_depth and len(ctx.chain) >= self.max_depth:
            raise ResolutionDepthError([*ctx.chain, dep.name], self.max_depth)

        candidates = catalog.get(dep.name) or []
        if not candidates:
            raise NotFoundError(dep.name)
        best = select_best(
            [c.version for c in candidates], dep.version, package=dep.name,
        )
        selected = next(c for c in candidates if c.version is best)
        logger.info(
            "选择 %s@%s (约束: %s)", dep.name, selected.version, dep.version or "最新",
        )

        archive = self.transport.download(selected.path, self.local_dir)
        extract_archive(archive, self.local_dir)
        manifest_path = ensure_manifest_unique(
            self.local_dir, dep.name, str(selected.version),
        )

        ctx.installed[dep.name] = selected.version
        ctx.results.append(InstallResult(
            name=dep.name,
            version=str(selected.version),
            archive_path=archive,
            extracted_to=self.local_dir,
            manifest_path=manifest_path,
        ))
        logger.info("已安装 %s@%s -> %s", dep.name, selected.version, self.local_dir)

        children = load_manifest_dependencies(manifest_path)
        ctx.chain.append(dep.name)
        try:
            for child in children:
                self.install_package(child, catalog, ctx)
        finally:
            ctx.chain.pop()


def resolve(
    dependencies: Iterable[Dependency],
    entries: Iterable[RemotePackage],
    local_dir: str,
    transport: Transport,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[InstallResult]:
    """解析便捷函数：给定远程列表直接安装"""
    return Updater(transport, local_dir=local_dir, max_depth=max_depth).resolve(
        dependencies, entries,
    )
