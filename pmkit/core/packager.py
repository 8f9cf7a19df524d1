"""制品打包器

职责:
- 按目标声明顺序遍历工作目录，收集匹配且未被排除的普通文件
- 跨目标去重（先匹配者优先），按路径字典序排序
- 生成清单并写出确定性的 tar.gz 制品包

制品包结构:
  manifest.json          第一个成员，固定权限 0644，时间戳为构建时间
  <相对路径>...           按排序后的顺序写入，保留源文件大小与权限

用法:
    from pmkit.core.packager import ArchiveBuilder

    archive, manifest = ArchiveBuilder("/path/to/work").build(spec)
"""

from __future__ import annotations

import io
import json
import logging
import os
import tarfile
from datetime import datetime, timezone
from pathlib import Path

from pmkit.core.exceptions import NoMatchError
from pmkit.core.models import ARCHIVE_SUFFIX, MANIFEST_NAME, BuildSpec, Manifest, Target
from pmkit.core.pattern import is_excluded, match_path, validate_pattern

logger = logging.getLogger(__name__)

MANIFEST_MODE = 0o644


def _raise(err: OSError) -> None:
    raise err


def archive_filename(name: str, version: str) -> str:
    """默认制品文件名 <name>-<version>.tar.gz"""
    return f"{name}-{version}{ARCHIVE_SUFFIX}"


class ArchiveBuilder:
    """制品打包器 - 文件收集 + 清单 + tar.gz 写出"""

    def __init__(self, working_dir: str | Path = "") -> None:
        self.working_dir = Path(working_dir or os.getcwd())

    # ------------------------------------------------------------------
    # 文件收集
    # ------------------------------------------------------------------

    def _clean_pattern(self, pattern: str) -> str:
        cleaned = pattern.replace(os.sep, "/")
        if cleaned.startswith("./"):
            cleaned = cleaned[2:]
        prefix = self.working_dir.as_posix().rstrip("/") + "/"
        if cleaned.startswith(prefix):
            cleaned = cleaned[len(prefix):]
        return cleaned

    def _walk(self, skip: Path | None = None) -> list[str]:
        """列出工作目录下所有普通文件的相对路径（"/" 分隔）"""
        found: list[str] = []
        for root, dirs, files in os.walk(self.working_dir, onerror=_raise):
            dirs.sort()
            for fname in sorted(files):
                abs_path = Path(root) / fname
                if not abs_path.is_file():
                    continue
                if skip is not None and abs_path.resolve() == skip:
                    continue
                found.append(abs_path.relative_to(self.working_dir).as_posix())
        return found

    def _match_target(self, target: Target, candidates: list[str]) -> list[str]:
        pattern = self._clean_pattern(target.pattern)
        validate_pattern(pattern)
        for ex in target.exclude:
            validate_pattern(ex)
        matched = []
        for rel in candidates:
            if not match_path(pattern, rel):
                continue
            if is_excluded(rel, target.exclude):
                continue
            matched.append(rel)
        logger.info("目标 %s: 匹配 %d 个文件", target.pattern, len(matched))
        return matched

    def collect_files(self, spec: BuildSpec, skip: Path | None = None) -> list[str]:
        """收集全部目标的文件，返回去重后按字典序排序的相对路径列表

        Raises:
            NoMatchError: 所有目标均未匹配到文件
            PatternError: 模式语法错误
        """
        candidates = self._walk(skip)
        seen: set[str] = set()
        files: list[str] = []
        for target in spec.targets:
            for rel in self._match_target(target, candidates):
                if rel in seen:
                    continue
                seen.add(rel)
                files.append(rel)

        files.sort()
        if not files:
            raise NoMatchError(
                f"制品 {spec.name}@{spec.version} 的目标未匹配到任何文件 "
                f"(工作目录: {self.working_dir})"
            )
        return files

    # ------------------------------------------------------------------
    # 打包
    # ------------------------------------------------------------------

    def build(
        self, spec: BuildSpec, output_path: str | Path = "",
        *, now: datetime | None = None,
    ) -> tuple[Path, Manifest]:
        """打包并返回 (制品路径, 清单)

        返回的清单与写入制品包的 manifest.json 是同一个对象序列化而来。
        """
        output = Path(output_path) if output_path else (
            self.working_dir / archive_filename(spec.name, spec.version)
        )
        if not output.is_absolute():
            output = Path(os.getcwd()) / output

        files = self.collect_files(spec, skip=output.resolve())

        manifest = Manifest(
            name=spec.name,
            version=spec.version,
            created_at=now or datetime.now(timezone.utc),
            dependencies=list(spec.dependencies),
            files=files,
        )

        output.parent.mkdir(parents=True, exist_ok=True)
        self._write_archive(output, manifest)
        logger.info(
            "已生成制品包 %s (%d 个文件)", output, len(manifest.files),
        )
        return output, manifest

    def _write_archive(self, output: Path, manifest: Manifest) -> None:
        data = json.dumps(manifest.to_dict(), indent=2, ensure_ascii=False).encode("utf-8")
        mtime = int(manifest.created_at.timestamp())

        with tarfile.open(output, "w:gz", dereference=True) as tf:
            info = tarfile.TarInfo(MANIFEST_NAME)
            info.size = len(data)
            info.mode = MANIFEST_MODE
            info.mtime = mtime
            tf.addfile(info, io.BytesIO(data))

            for rel in manifest.files:
                abs_path = self.working_dir / rel
                with open(abs_path, "rb") as f:
                    # fstat 取元数据：符号链接与硬链接都按普通文件写入
                    member = tf.gettarinfo(arcname=rel, fileobj=f)
                    member.name = rel
                    tf.addfile(member, f)
                logger.debug("  + %s", rel)


def build(
    spec: BuildSpec, working_dir: str | Path = "", output_path: str | Path = "",
) -> tuple[Path, Manifest]:
    """打包便捷函数"""
    return ArchiveBuilder(working_dir).build(spec, output_path)
