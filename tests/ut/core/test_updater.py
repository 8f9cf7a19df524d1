"""依赖解析与安装单元测试"""

from __future__ import annotations

import io
import json
import os
import tarfile
from pathlib import Path

import pytest

from pmkit.core.exceptions import (
    ArchiveError,
    ConflictError,
    ConstraintParseError,
    NotFoundError,
    ResolutionDepthError,
)
from pmkit.core.models import Dependency
from pmkit.core.updater import (
    Updater,
    ensure_manifest_unique,
    extract_archive,
    load_manifest_dependencies,
    manifest_filename,
)
from pmkit.services.transport import LocalTransport


def _updater(store: Path, dest: Path, **kwargs) -> Updater:
    return Updater(LocalTransport(), remote_dir=str(store), local_dir=str(dest), **kwargs)


def _installed(results) -> list[tuple[str, str]]:
    return [(r.name, r.version) for r in results]


class TestInstall:
    def test_selects_highest_satisfying(self, publish, store: Path, tmp_path: Path) -> None:
        publish("libfoo", "1.0.0")
        publish("libfoo", "2.0.0")
        dest = tmp_path / "vendor"
        results = _updater(store, dest).update([Dependency("libfoo", ">=1.5.0")])
        assert _installed(results) == [("libfoo", "2.0.0")]
        res = results[0]
        assert res.extracted_to == str(dest)
        assert Path(res.archive_path) == dest / "libfoo-2.0.0.tar.gz"
        assert Path(res.manifest_path) == dest / "manifest-libfoo-2.0.0.json"
        assert (dest / "libfoo/VERSION").read_text() == "2.0.0"
        assert not (dest / "manifest.json").exists()

    def test_no_constraint_takes_latest(self, publish, store: Path, tmp_path: Path) -> None:
        publish("libfoo", "1.9")
        publish("libfoo", "1.10")
        results = _updater(store, tmp_path / "out").update([Dependency("libfoo")])
        assert _installed(results) == [("libfoo", "1.10")]

    def test_depth_first_preorder(self, publish, store: Path, tmp_path: Path) -> None:
        publish("a", "1.0", deps=[("b", ""), ("c", "")])
        publish("b", "1.0", deps=[("d", "")])
        publish("c", "1.0")
        publish("d", "1.0")
        results = _updater(store, tmp_path / "out").update([Dependency("a")])
        assert [r.name for r in results] == ["a", "b", "d", "c"]

    def test_shared_dependency_installed_once(self, publish, store: Path, tmp_path: Path) -> None:
        publish("a", "1.0", deps=[("common", ">=1.0")])
        publish("b", "1.0", deps=[("common", "")])
        publish("common", "1.0")
        publish("common", "1.5")
        results = _updater(store, tmp_path / "out").update(
            [Dependency("a"), Dependency("b")],
        )
        assert _installed(results) == [("a", "1.0"), ("common", "1.5"), ("b", "1.0")]

    def test_manifests_do_not_clobber(self, publish, store: Path, tmp_path: Path) -> None:
        publish("a", "1.0", deps=[("b", "")])
        publish("b", "2.0")
        dest = tmp_path / "out"
        _updater(store, dest).update([Dependency("a")])
        assert sorted(p.name for p in dest.glob("manifest-*.json")) == [
            "manifest-a-1.0.json", "manifest-b-2.0.json",
        ]

    def test_self_cycle_terminates(self, publish, store: Path, tmp_path: Path) -> None:
        publish("x", "1.0", deps=[("x", "")])
        results = _updater(store, tmp_path / "out").update([Dependency("x")])
        assert _installed(results) == [("x", "1.0")]

    def test_mutual_cycle_terminates(self, publish, store: Path, tmp_path: Path) -> None:
        publish("x", "1.0", deps=[("y", "")])
        publish("y", "1.0", deps=[("x", ">=1.0")])
        results = _updater(store, tmp_path / "out").update([Dependency("x")])
        assert _installed(results) == [("x", "1.0"), ("y", "1.0")]

    def test_runs_are_independent(self, publish, store: Path, tmp_path: Path) -> None:
        publish("libfoo", "1.0")
        publish("libfoo", "2.0")
        updater = _updater(store, tmp_path / "out")
        assert _installed(updater.update([Dependency("libfoo", "=1.0")])) == [("libfoo", "1.0")]
        assert _installed(updater.update([Dependency("libfoo", "=2.0")])) == [("libfoo", "2.0")]


class TestFailures:
    def test_conflict(self, publish, store: Path, tmp_path: Path) -> None:
        publish("a", "1.0", deps=[("c", "=1.0")])
        publish("c", "1.0")
        publish("c", "2.0")
        dest = tmp_path / "out"
        with pytest.raises(ConflictError) as exc_info:
            _updater(store, dest).update([Dependency("a"), Dependency("c", "=2.0")])
        err = exc_info.value
        assert (err.package, err.installed, err.constraint) == ("c", "1.0", "=2.0")
        # 不回滚：已安装的文件保留
        assert (dest / "c/VERSION").read_text() == "1.0"

    def test_satisfied_reinstall_is_noop(self, publish, store: Path, tmp_path: Path) -> None:
        publish("a", "1.0", deps=[("c", "=1.0")])
        publish("c", "1.0")
        results = _updater(store, tmp_path / "out").update(
            [Dependency("a"), Dependency("c", "<=1.0.0")],
        )
        assert _installed(results) == [("a", "1.0"), ("c", "1.0")]

    def test_package_missing(self, publish, store: Path, tmp_path: Path) -> None:
        publish("a", "1.0")
        with pytest.raises(NotFoundError, match="nope"):
            _updater(store, tmp_path / "out").update([Dependency("nope")])

    def test_no_version_satisfies(self, publish, store: Path, tmp_path: Path) -> None:
        publish("a", "1.0")
        with pytest.raises(NotFoundError) as exc_info:
            _updater(store, tmp_path / "out").update([Dependency("a", ">1.0")])
        assert exc_info.value.constraint == ">1.0"

    def test_missing_transitive(self, publish, store: Path, tmp_path: Path) -> None:
        publish("a", "1.0", deps=[("ghost", "")])
        with pytest.raises(NotFoundError, match="ghost"):
            _updater(store, tmp_path / "out").update([Dependency("a")])

    def test_bad_constraint(self, publish, store: Path, tmp_path: Path) -> None:
        publish("a", "1.0")
        with pytest.raises(ConstraintParseError):
            _updater(store, tmp_path / "out").update([Dependency("a", ">=x")])

    def test_depth_guard(self, publish, store: Path, tmp_path: Path) -> None:
        for i in range(5):
            publish(f"p{i}", "1.0", deps=[(f"p{i + 1}", "")])
        publish("p5", "1.0")
        with pytest.raises(ResolutionDepthError) as exc_info:
            _updater(store, tmp_path / "out", max_depth=3).update([Dependency("p0")])
        assert exc_info.value.chain == ["p0", "p1", "p2", "p3"]

    def test_depth_guard_disabled(self, publish, store: Path, tmp_path: Path) -> None:
        for i in range(5):
            publish(f"p{i}", "1.0", deps=[(f"p{i + 1}", "")])
        publish("p5", "1.0")
        results = _updater(store, tmp_path / "out", max_depth=0).update([Dependency("p0")])
        assert len(results) == 6


def _raw_archive(path: Path, members: list[tuple[tarfile.TarInfo, bytes]]) -> Path:
    with tarfile.open(path, "w:gz") as tf:
        for info, data in members:
            info.size = len(data)
            tf.addfile(info, io.BytesIO(data))
    return path


def _file(name: str, mode: int = 0o644) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name)
    info.mode = mode
    return info


class TestExtract:
    def test_preserves_mode(self, tmp_path: Path) -> None:
        archive = _raw_archive(tmp_path / "x-1.tar.gz", [
            (_file("bin/tool", 0o755), b"#!/bin/sh\n"),
            (_file("doc/readme", 0o600), b"hi"),
        ])
        dest = tmp_path / "out"
        extract_archive(archive, dest)
        assert os.stat(dest / "bin/tool").st_mode & 0o777 == 0o755
        assert os.stat(dest / "doc/readme").st_mode & 0o777 == 0o600

    def test_overwrites_existing(self, tmp_path: Path) -> None:
        dest = tmp_path / "out"
        dest.mkdir()
        (dest / "f.txt").write_text("old")
        archive = _raw_archive(tmp_path / "x-1.tar.gz", [(_file("f.txt"), b"new")])
        extract_archive(archive, dest)
        assert (dest / "f.txt").read_text() == "new"

    def test_rejects_parent_escape(self, tmp_path: Path) -> None:
        archive = _raw_archive(tmp_path / "x-1.tar.gz", [(_file("../escape.txt"), b"x")])
        with pytest.raises(ArchiveError):
            extract_archive(archive, tmp_path / "out")
        assert not (tmp_path / "escape.txt").exists()

    def test_absolute_member_stays_inside(self, tmp_path: Path) -> None:
        archive = _raw_archive(tmp_path / "x-1.tar.gz", [(_file("/abs.txt"), b"x")])
        dest = tmp_path / "out"
        extract_archive(archive, dest)
        assert (dest / "abs.txt").read_text() == "x"

    def test_skips_symlinks(self, tmp_path: Path) -> None:
        link = tarfile.TarInfo("link")
        link.type = tarfile.SYMTYPE
        link.linkname = "/etc/passwd"
        archive = _raw_archive(tmp_path / "x-1.tar.gz", [(link, b""), (_file("ok.txt"), b"ok")])
        dest = tmp_path / "out"
        extract_archive(archive, dest)
        assert not (dest / "link").exists()
        assert (dest / "ok.txt").read_text() == "ok"

    def test_corrupt_archive(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad-1.tar.gz"
        bad.write_bytes(b"not a tarball")
        with pytest.raises(ArchiveError):
            extract_archive(bad, tmp_path / "out")


class TestManifestHandling:
    @pytest.mark.parametrize(("name", "version", "expected"), [
        ("libfoo", "1.0", "manifest-libfoo-1.0.json"),
        ("org/lib foo", "1.0+b", "manifest-org_lib_foo-1.0_b.json"),
    ])
    def test_filename_sanitized(self, name: str, version: str, expected: str) -> None:
        assert manifest_filename(name, version) == expected

    def test_missing_manifest(self, tmp_path: Path) -> None:
        assert ensure_manifest_unique(tmp_path, "a", "1.0") == ""
        assert load_manifest_dependencies("") == []

    def test_manifest_directory_rejected(self, tmp_path: Path) -> None:
        (tmp_path / "manifest.json").mkdir()
        with pytest.raises(ArchiveError):
            ensure_manifest_unique(tmp_path, "a", "1.0")

    def test_invalid_json(self, tmp_path: Path) -> None:
        p = tmp_path / "m.json"
        p.write_text("{not json")
        with pytest.raises(ArchiveError):
            load_manifest_dependencies(str(p))

    @pytest.mark.parametrize("deps", [
        ["libfoo"],
        {"name": "libfoo"},
        [{"name": "ok"}, 3],
    ])
    def test_malformed_dependencies(self, tmp_path: Path, deps) -> None:
        p = tmp_path / "m.json"
        p.write_text(json.dumps({"name": "a", "version": "1.0", "dependencies": deps}))
        with pytest.raises(ArchiveError, match="dependencies"):
            load_manifest_dependencies(str(p))

    @pytest.mark.parametrize("created", ["yesterday", 1700000000])
    def test_bad_created_at(self, tmp_path: Path, created) -> None:
        p = tmp_path / "m.json"
        p.write_text(json.dumps({"name": "a", "created_at": created}))
        with pytest.raises(ArchiveError):
            load_manifest_dependencies(str(p))

    def test_reads_dependencies_in_order(self, tmp_path: Path) -> None:
        p = tmp_path / "m.json"
        p.write_text(json.dumps({
            "name": "a", "version": "1.0",
            "dependencies": [{"name": "z", "ver": ">=1"}, {"name": "b", "ver": ""}],
        }))
        assert load_manifest_dependencies(str(p)) == [Dependency("z", ">=1"), Dependency("b")]

    def test_package_without_manifest_has_no_deps(self, store: Path, tmp_path: Path) -> None:
        _raw_archive(store / "bare-1.0.tar.gz", [(_file("bare.txt"), b"x")])
        results = _updater(store, tmp_path / "out").update([Dependency("bare")])
        assert _installed(results) == [("bare", "1.0")]
        assert results[0].manifest_path == ""
