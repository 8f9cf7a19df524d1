"""打包 / 更新声明文件加载

支持 YAML 与 JSON 两种格式，按扩展名选择解析器；
其他扩展名先按 JSON 解析，失败再按 YAML 解析。

打包声明:
    name: libfoo
    ver: 1.2.0
    targets:
      - "src/**/*.py"
      - path: "assets/**"
        exclude: ["*.tmp", "assets/cache/*"]
    packets:
      - name: libbar
        ver: ">=2.0"

更新声明:
    packages:
      - name: libfoo
        ver: ">=1.0"
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from pmkit.core.exceptions import ConfigError, ValidationError
from pmkit.core.models import BuildSpec, Dependency, Target
from pmkit.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)


def _load_document(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    if not p.is_file():
        raise ConfigError(f"声明文件不存在: {p}")

    try:
        if p.suffix in (".yaml", ".yml"):
            return load_yaml(p)
        text = p.read_text(encoding="utf-8")
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            data = yaml.safe_load(text)
    except (yaml.YAMLError, ValueError) as e:
        raise ConfigError(f"声明文件解析失败: {p}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"声明文件顶层必须是对象: {p}")
    return data


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_target(raw: Any) -> Target:
    """目标可以是字符串（模式），或 {path, exclude} 对象"""
    if isinstance(raw, str):
        if not raw:
            raise ValidationError("target 模式不能为空")
        return Target(pattern=raw)
    if not isinstance(raw, dict):
        raise ValidationError(f"target 必须是字符串或对象: {raw!r}")

    pattern = raw.get("path")
    if not isinstance(pattern, str) or not pattern:
        raise ValidationError("target 对象必须包含非空的 path")

    exclude = raw.get("exclude")
    if exclude is None:
        excludes: tuple[str, ...] = ()
    elif isinstance(exclude, str):
        excludes = (exclude,)
    elif isinstance(exclude, list):
        if not all(isinstance(e, str) for e in exclude):
            raise ValidationError("exclude 条目必须是字符串")
        # 保序去重
        excludes = tuple(dict.fromkeys(exclude))
    else:
        raise ValidationError("exclude 必须是字符串或字符串数组")
    return Target(pattern=pattern, exclude=excludes)


def parse_dependency(raw: Any) -> Dependency:
    if not isinstance(raw, dict):
        raise ValidationError(f"依赖声明必须是对象: {raw!r}")
    name = _as_text(raw.get("name"))
    if not name:
        raise ValidationError("依赖声明缺少 name")
    return Dependency(name=name, version=_as_text(raw.get("ver")))


def load_package_spec(path: str | Path) -> BuildSpec:
    """加载打包声明，校验 name / ver / targets"""
    data = _load_document(path)

    errors: list[str] = []
    name = _as_text(data.get("name"))
    version = _as_text(data.get("ver"))
    targets_raw = data.get("targets") or []
    if not name:
        errors.append("package spec missing name")
    if not version:
        errors.append("package spec missing version")
    if not isinstance(targets_raw, list) or not targets_raw:
        errors.append("package spec must define at least one target")
    if errors:
        raise ValidationError(f"打包声明无效 {path}: {'; '.join(errors)}", details=errors)

    deps_raw = data.get("packets") or []
    if not isinstance(deps_raw, list):
        raise ValidationError("packets 必须是数组")

    spec = BuildSpec(
        name=name,
        version=version,
        targets=tuple(parse_target(t) for t in targets_raw),
        dependencies=tuple(parse_dependency(d) for d in deps_raw),
    )
    logger.info(
        "已加载打包声明 %s@%s: %d 个目标, %d 个依赖",
        spec.name, spec.version, len(spec.targets), len(spec.dependencies),
    )
    return spec


def load_update_spec(path: str | Path) -> list[Dependency]:
    """加载更新声明，至少包含一个依赖"""
    data = _load_document(path)
    packages = data.get("packages") or []
    if not isinstance(packages, list) or not packages:
        raise ValidationError(f"更新声明无效 {path}: update spec must declare packages")
    deps = [parse_dependency(p) for p in packages]
    logger.info("已加载更新声明: %d 个依赖", len(deps))
    return deps
