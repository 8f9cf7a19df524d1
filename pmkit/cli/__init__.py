"""pmkit 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

import os

import click

from pmkit import __version__
from pmkit.utils.env import load_dotenv
from pmkit.utils.logger import setup_logging


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """pm - 制品打包与依赖分发工具"""
    # 子命令的 envvar 默认值在此之后解析，.env 需先加载
    load_dotenv(".env")
    setup_logging(
        level=os.getenv("PM_LOG_LEVEL", "INFO"),
        json_output=os.getenv("PM_LOG_JSON", "") == "1",
    )


# 注册各领域子命令
from pmkit.cli.cmd_package import register as _reg_package  # noqa: E402

_reg_package(main)
