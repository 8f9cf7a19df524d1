"""CLI — 打包与依赖更新命令"""

from __future__ import annotations

import functools
import os
from collections.abc import Callable
from typing import Any

import click

from pmkit.core.config import DEFAULT_CONFIG_FILE, Config, default_ssh_key
from pmkit.core.exceptions import PmError
from pmkit.utils.logger import setup_logging


def register(group: click.Group) -> None:
    group.add_command(create)
    group.add_command(update)


def _ssh_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """create / update 共用的 SSH 与配置选项"""
    options = [
        click.option("--config", "-c", "config_path", default=DEFAULT_CONFIG_FILE,
                     help="配置文件路径"),
        click.option("--ssh-host", envvar="PM_SSH_HOST", default="", help="SSH 主机"),
        click.option("--ssh-port", envvar="PM_SSH_PORT", type=int, default=None,
                     help="SSH 端口（默认 22）"),
        click.option("--ssh-user", envvar="PM_SSH_USER", default="", help="SSH 用户"),
        click.option("--ssh-key", envvar="PM_SSH_KEY", default="", help="SSH 私钥路径"),
        click.option("--remote-dir", envvar="PM_REMOTE_DIR", default="",
                     help="远程制品目录"),
    ]
    for opt in reversed(options):
        fn = opt(fn)
    return fn


def _handle_errors(fn: Callable[..., Any]) -> Callable[..., Any]:
    """把业务异常转为 click 友好输出并以非零码退出"""
    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except PmError as e:
            raise click.ClickException(f"[{e.code}] {e}") from e
        except OSError as e:
            raise click.ClickException(f"[IO_ERROR] {e}") from e
    return wrapper


def _build_config(
    config_path: str, ssh_host: str, ssh_port: int | None,
    ssh_user: str, ssh_key: str, remote_dir: str,
) -> Config:
    """配置文件 → 环境变量 → 命令行参数，逐层覆盖"""
    from pmkit.core.config import init_config
    cfg = init_config(config_path)
    # pm.yml 中的 log_level 在此生效（PM_LOG_LEVEL 已在 init_config 中覆盖）
    setup_logging(level=cfg.log_level, json_output=os.getenv("PM_LOG_JSON", "") == "1")
    if ssh_host:
        cfg.ssh_host = ssh_host
    if ssh_port is not None:
        cfg.ssh_port = ssh_port
    if ssh_user:
        cfg.ssh_user = ssh_user
    cfg.ssh_key = ssh_key or cfg.ssh_key or default_ssh_key()
    if remote_dir:
        cfg.remote_dir = remote_dir
    return cfg


@click.command()
@click.argument("spec_path")
@_ssh_options
@click.option("--output", "-o", default="", help="制品包输出路径")
@_handle_errors
def create(
    spec_path: str, config_path: str, ssh_host: str, ssh_port: int | None,
    ssh_user: str, ssh_key: str, remote_dir: str, output: str,
) -> None:
    """按声明打包，配置了 SSH 主机时上传到远程目录"""
    from pmkit.services.package_service import PackageService

    cfg = _build_config(config_path, ssh_host, ssh_port, ssh_user, ssh_key, remote_dir)
    svc = PackageService(cfg)
    outcome = svc.create(spec_path, output=output)
    click.echo(
        f"已生成制品包 {outcome.archive_path}，"
        f"包含 {len(outcome.manifest.files)} 个文件"
    )
    if not outcome.remote_path:
        click.echo("未提供 SSH 主机，跳过上传")
        return
    click.echo(f"已上传到 {outcome.remote_path}")


@click.command()
@click.argument("spec_path")
@_ssh_options
@click.option("--local-dir", envvar="PM_LOCAL_DIR", default="", help="本地解压目录（默认当前目录）")
@click.option("--local-store", default="", help="以本地目录作为制品仓库（不经过 SSH）")
@_handle_errors
def update(
    spec_path: str, config_path: str, ssh_host: str, ssh_port: int | None,
    ssh_user: str, ssh_key: str, remote_dir: str, local_dir: str, local_store: str,
) -> None:
    """解析并安装依赖闭包"""
    from pmkit.services.package_service import PackageService

    cfg = _build_config(config_path, ssh_host, ssh_port, ssh_user, ssh_key, remote_dir)
    svc = PackageService(cfg, local_store=local_store)
    results = svc.update(spec_path, local_dir=local_dir)
    for res in results:
        manifest_info = f", 清单 {res.manifest_path}" if res.manifest_path else ""
        click.echo(
            f"已下载 {res.name} {res.version} 到 {res.extracted_to} "
            f"(制品包 {res.archive_path}{manifest_info})"
        )
