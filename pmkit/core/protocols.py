"""领域协议定义

集中定义核心层与外部协作者之间的接口契约（Protocol），
打包器 / 解析器只依赖抽象，不关心命令实际如何执行。

使用 typing.Protocol 而非 ABC，使得测试替身无需继承即可满足协议。
"""

from __future__ import annotations

from typing import Protocol


# =========================================================================
# 传输协议
# =========================================================================

class Transport(Protocol):
    """远程存储传输协议

    三个操作均为同步阻塞调用，失败时抛 TransportError。
    """

    def run(self, command: str) -> str:
        """在远程主机执行命令，返回标准输出"""
        ...

    def upload(self, local_path: str, remote_dir: str) -> str:
        """上传本地文件到远程目录（不存在则创建），返回远程路径"""
        ...

    def download(self, remote_path: str, local_dir: str) -> str:
        """下载远程文件到本地目录，返回本地路径"""
        ...
