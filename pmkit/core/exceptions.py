"""统一异常体系

所有业务异常继承 PmError，替代散落的 ValueError / RuntimeError。
CLI 层据此输出 "Error [CODE]: message" 形式的友好提示。

本地文件系统错误（读取源文件、创建目录、解压写入）直接以 OSError 抛出，
不做包装。
"""

from __future__ import annotations


class PmError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(PmError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(PmError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class PatternError(PmError):
    """glob 模式语法错误"""

    code = "PATTERN_ERROR"


class NoMatchError(PmError):
    """构建目标未匹配到任何文件"""

    code = "NO_MATCH"


class VersionParseError(PmError):
    """版本号格式错误"""

    code = "VERSION_PARSE_ERROR"


class ConstraintParseError(PmError):
    """版本约束格式错误"""

    code = "CONSTRAINT_PARSE_ERROR"


class DependencyError(PmError):
    """依赖包拉取或解析失败"""

    code = "DEPENDENCY_ERROR"


class ConflictError(DependencyError):
    """同一次解析中包已安装的版本不满足新的约束"""

    code = "CONFLICT"

    def __init__(self, package: str, installed: str, constraint: str) -> None:
        super().__init__(
            f"依赖包 {package} 已安装版本 {installed}，"
            f"不满足约束 {constraint}"
        )
        self.package = package
        self.installed = installed
        self.constraint = constraint


class NotFoundError(DependencyError):
    """远程不存在该包，或没有满足约束的版本"""

    code = "NOT_FOUND"

    def __init__(self, package: str, constraint: str = "") -> None:
        if constraint:
            message = f"依赖包 {package} 没有满足约束 {constraint} 的版本"
        else:
            message = f"远程不存在依赖包 {package}"
        super().__init__(message)
        self.package = package
        self.constraint = constraint


class ResolutionDepthError(DependencyError):
    """传递依赖链超过最大解析深度"""

    code = "RESOLUTION_DEPTH"

    def __init__(self, chain: list[str], max_depth: int) -> None:
        super().__init__(
            f"依赖链超过最大深度 {max_depth}: {' -> '.join(chain)}"
        )
        self.chain = chain
        self.max_depth = max_depth


class TransportError(PmError):
    """远程命令或文件传输失败"""

    code = "TRANSPORT_ERROR"

    def __init__(
        self, message: str, *, returncode: int | None = None, stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class ArchiveError(PmError):
    """制品包内容损坏或包含不安全的成员"""

    code = "ARCHIVE_ERROR"
