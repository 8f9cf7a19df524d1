"""核心数据模型

所有核心数据类集中定义，打包器、远程目录和依赖解析器统一从此处导入。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

MANIFEST_NAME = "manifest.json"
ARCHIVE_SUFFIX = ".tar.gz"


@dataclass(frozen=True)
class Target:
    """文件选择规则：glob 模式 + 排除列表"""

    pattern: str
    exclude: tuple[str, ...] = ()


@dataclass(frozen=True)
class Dependency:
    """依赖声明；version 为空表示取最高版本"""

    name: str
    version: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "ver": self.version}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Dependency:
        ver = data.get("ver", data.get("version", ""))
        return cls(name=str(data.get("name", "")), version="" if ver is None else str(ver))


@dataclass(frozen=True)
class BuildSpec:
    """打包定义（由配置加载器生成，加载后不可变）"""

    name: str
    version: str
    targets: tuple[Target, ...]
    dependencies: tuple[Dependency, ...] = ()


def _format_timestamp(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_timestamp(raw: str) -> datetime:
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return datetime.fromisoformat(raw)


@dataclass
class Manifest:
    """制品清单：每个制品包的第一个成员 manifest.json"""

    name: str
    version: str
    created_at: datetime
    dependencies: list[Dependency] = field(default_factory=list)
    files: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "created_at": _format_timestamp(self.created_at),
            "dependencies": [d.to_dict() for d in self.dependencies],
            "files": list(self.files),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Manifest:
        created = data.get("created_at") or ""
        return cls(
            name=str(data.get("name", "")),
            version=str(data.get("version", "")),
            created_at=(
                _parse_timestamp(str(created)) if created
                else datetime.fromtimestamp(0, tz=timezone.utc)
            ),
            dependencies=[
                Dependency.from_dict(d) for d in (data.get("dependencies") or [])
            ],
            files=list(data.get("files") or []),
        )


@dataclass
class InstallResult:
    """单个已安装包的记录（按安装顺序追加）"""

    name: str
    version: str
    archive_path: str
    extracted_to: str
    manifest_path: str = ""  # 重命名后的清单路径，无清单时为空
