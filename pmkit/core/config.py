"""集中配置管理

提供统一的配置入口，优先级从低到高:
  dataclass 默认值 → YAML 配置文件 → PM_* 环境变量 → CLI 参数

CLI 参数由 click 的 envvar 机制直接覆盖，不经过本模块。
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path

import yaml

from pmkit.core.exceptions import ConfigError
from pmkit.core.updater import DEFAULT_MAX_DEPTH
from pmkit.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "pm.yml"

# 环境变量 → 配置字段
ENV_VARS: dict[str, str] = {
    "PM_SSH_HOST": "ssh_host",
    "PM_SSH_PORT": "ssh_port",
    "PM_SSH_USER": "ssh_user",
    "PM_SSH_KEY": "ssh_key",
    "PM_REMOTE_DIR": "remote_dir",
    "PM_LOCAL_DIR": "local_dir",
    "PM_LOG_LEVEL": "log_level",
}

_KEY_CANDIDATES = ("id_ed25519", "id_rsa", "id_ecdsa", "id_dsa")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def default_ssh_key() -> str:
    """返回 ~/.ssh 下第一个存在的私钥文件，找不到返回空串"""
    try:
        home = Path.home()
    except RuntimeError:
        return ""
    for name in _KEY_CANDIDATES:
        candidate = home / ".ssh" / name
        if candidate.is_file():
            return str(candidate)
    return ""


@dataclass
class Config:
    """全局配置"""

    # SSH
    ssh_host: str = ""
    ssh_port: int = 22
    ssh_user: str = ""
    ssh_key: str = ""

    # 目录
    remote_dir: str = ""
    local_dir: str = "."

    # 解析
    max_depth: int = DEFAULT_MAX_DEPTH

    # 日志
    log_level: str = "INFO"

    @classmethod
    def from_file(cls, path: str = DEFAULT_CONFIG_FILE) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        try:
            data = load_yaml(path)
        except (yaml.YAMLError, OSError, ValueError) as e:
            raise ConfigError(f"配置文件无法解析: {path}: {e}") from e
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = sorted(str(k) for k in data if k not in known)
        if unknown:
            logger.warning("忽略未知配置项 %s: %s", path, ", ".join(unknown))
        cfg = cls(**{k: v for k, v in data.items() if k in known})
        cfg._coerce()
        return cfg

    def apply_env(self, environ: dict[str, str] | None = None) -> Config:
        """用 PM_* 环境变量覆盖对应字段（空值忽略）"""
        env = os.environ if environ is None else environ
        for var, attr in ENV_VARS.items():
            val = env.get(var, "")
            if val:
                setattr(self, attr, val)
        self._coerce()
        return self

    def _coerce(self) -> None:
        for name in ("ssh_port", "max_depth"):
            raw = getattr(self, name)
            try:
                setattr(self, name, int(raw))
            except (TypeError, ValueError) as e:
                raise ConfigError(f"配置项 {name} 必须是整数: {raw!r}") from e
        level = str(self.log_level).upper()
        if level not in _LOG_LEVELS:
            raise ConfigError(f"配置项 log_level 无效: {self.log_level!r}")
        self.log_level = level


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值 + 环境变量）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config().apply_env()
    return _current


def init_config(path: str = DEFAULT_CONFIG_FILE) -> Config:
    """从文件初始化全局配置，再叠加环境变量"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path).apply_env()
    logger.info("配置已加载: %s", path)
    return _current


def reset_config() -> None:
    """清除全局配置（测试用）"""
    global _current  # noqa: PLW0603
    _current = None
