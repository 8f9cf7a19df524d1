"""测试共享 fixture — 本地制品仓库

publish() 用真实的 ArchiveBuilder 打包，把制品包放进本地仓库目录，
解析器测试通过 LocalTransport 访问该目录，无需 SSH。
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from pmkit.core.models import BuildSpec, Dependency, Target
from pmkit.core.packager import ArchiveBuilder, archive_filename
from pmkit.utils.logger import reset_logging

Publish = Callable[..., Path]


@pytest.fixture(autouse=True)
def _clean_logging():
    yield
    reset_logging()


@pytest.fixture()
def store(tmp_path: Path) -> Path:
    d = tmp_path / "store"
    d.mkdir()
    return d


@pytest.fixture()
def publish(tmp_path: Path, store: Path) -> Publish:
    """发布一个制品包到本地仓库

    用法: publish("libfoo", "1.0.0", deps=[("libbar", ">=1.0")], files={"lib/foo.txt": "x"})
    """
    def _publish(
        name: str, version: str,
        deps: list[tuple[str, str]] | None = None,
        files: dict[str, str] | None = None,
    ) -> Path:
        work = tmp_path / "work" / f"{name}-{version}"
        work.mkdir(parents=True)
        payload = files or {f"{name}/VERSION": version}
        for rel, content in payload.items():
            p = work / rel
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(content)
        spec = BuildSpec(
            name=name,
            version=version,
            targets=(Target(pattern="**"),),
            dependencies=tuple(Dependency(n, v) for n, v in (deps or [])),
        )
        archive, _ = ArchiveBuilder(work).build(
            spec, store / archive_filename(name, version),
        )
        return archive

    return _publish
