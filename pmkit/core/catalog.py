"""远程制品目录

把远程目录的平铺列表（ls -1 输出）转换为按包名分组、
按版本降序排列的候选集合。

文件名格式: <name>-<version>.tar.gz，在最后一个 "-" 处切分，
包名本身可以包含 "-"。
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Iterable
from dataclasses import dataclass

from pmkit.core.exceptions import VersionParseError
from pmkit.core.models import ARCHIVE_SUFFIX
from pmkit.core.protocols import Transport
from pmkit.core.version import Version, parse_version
from pmkit.utils.shell import shell_quote

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemotePackage:
    """远程目录中的一个制品包"""

    name: str
    version: Version
    path: str


def parse_archive_name(filename: str) -> tuple[str, Version] | None:
    """解析制品文件名，非制品包或版本无效时返回 None"""
    if not filename.endswith(ARCHIVE_SUFFIX):
        return None
    stem = filename[: -len(ARCHIVE_SUFFIX)]
    name, sep, ver = stem.rpartition("-")
    if not sep or not name:
        return None
    try:
        return name, parse_version(ver)
    except VersionParseError:
        return None


def parse_listing(listing: str, remote_dir: str = ".") -> list[RemotePackage]:
    """解析 ls -1 输出，忽略空行与非制品文件"""
    packages: list[RemotePackage] = []
    for line in listing.splitlines():
        line = line.strip()
        if not line:
            continue
        parsed = parse_archive_name(line)
        if parsed is None:
            logger.debug("跳过非制品文件: %s", line)
            continue
        name, version = parsed
        packages.append(RemotePackage(
            name=name, version=version, path=posixpath.join(remote_dir, line),
        ))
    return packages


def list_remote_packages(transport: Transport, remote_dir: str = "") -> list[RemotePackage]:
    """列出远程目录中的全部制品包"""
    remote_dir = remote_dir or "."
    out = transport.run(f"ls -1 {shell_quote(remote_dir)}")
    packages = parse_listing(out, remote_dir)
    logger.info("远程目录 %s: %d 个制品包", remote_dir, len(packages))
    return packages


def build_catalog(entries: Iterable[RemotePackage]) -> dict[str, list[RemotePackage]]:
    """按包名分组，组内按版本降序（同版本保持列表顺序）"""
    catalog: dict[str, list[RemotePackage]] = {}
    for entry in entries:
        catalog.setdefault(entry.name, []).append(entry)
    for name in catalog:
        catalog[name].sort(key=lambda p: p.version, reverse=True)
    return catalog
