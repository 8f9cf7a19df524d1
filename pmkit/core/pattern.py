"""路径模式匹配

按 "/" 分段做 shell 风格 glob 匹配（*、?、[...]），
"**" 段匹配零个或多个完整路径段（回溯匹配，非贪婪）。

用途:
  - 收集文件: 目标 pattern 对相对工作目录的路径匹配
  - 排除文件: 含 "/" 的 exclude 匹配完整相对路径，
    不含 "/" 的 exclude 只匹配文件名（与目录无关）
"""

from __future__ import annotations

import fnmatch
import logging
import os
import posixpath
from collections.abc import Iterable

from pmkit.core.exceptions import PatternError

logger = logging.getLogger(__name__)

DOUBLE_STAR = "**"


def _normalize(path: str) -> str:
    # 反斜杠仅在 Windows 上视作分隔符，POSIX 上是普通字符
    if os.sep == "\\":
        return path.replace("\\", "/")
    return path


def _check_segment(segment: str) -> str:
    """校验单段 glob，返回 fnmatch 可用的形式（[^...] 转为 [!...]）"""
    i = 0
    out: list[str] = []
    while i < len(segment):
        ch = segment[i]
        if ch == "[":
            end = segment.find("]", i + 2 if segment[i + 1:i + 2] in ("]", "^", "!") else i + 1)
            if end == -1:
                raise PatternError(f"glob 缺少闭合的 ']': {segment!r}")
            body = segment[i + 1:end]
            if body.startswith("^"):
                body = "!" + body[1:]
            out.append(f"[{body}]")
            i = end + 1
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def validate_pattern(pattern: str) -> None:
    """校验整条模式，语法错误抛 PatternError"""
    for seg in _normalize(pattern).split("/"):
        if seg != DOUBLE_STAR:
            _check_segment(seg)


def match_segment(pattern: str, name: str) -> bool:
    """单段匹配（* 不跨越 "/"）"""
    return fnmatch.fnmatchcase(name, _check_segment(pattern))


def match_path(pattern: str, path: str) -> bool:
    """分段匹配完整路径

    示例:
        >>> match_path("src/**/*.go", "src/a/b.go")
        True
        >>> match_path("src/**/*.go", "lib/a.go")
        False
    """
    pattern = _normalize(pattern)
    path = _normalize(path)
    if pattern == "":
        return path == ""

    p_segs = pattern.split("/")
    t_segs = path.split("/")
    memo: dict[tuple[int, int], bool] = {}

    def _match(pi: int, ti: int) -> bool:
        key = (pi, ti)
        if key in memo:
            return memo[key]
        if pi == len(p_segs):
            result = ti == len(t_segs)
        elif p_segs[pi] == DOUBLE_STAR:
            # 跳过 "**"，或让 "**" 吞掉一个目标段后继续尝试
            result = _match(pi + 1, ti) or (
                ti < len(t_segs) and _match(pi, ti + 1)
            )
        elif ti == len(t_segs):
            result = False
        else:
            result = match_segment(p_segs[pi], t_segs[ti]) and _match(pi + 1, ti + 1)
        memo[key] = result
        return result

    return _match(0, 0)


def is_excluded(rel_path: str, excludes: Iterable[str]) -> bool:
    """判断相对路径是否被任一 exclude 排除"""
    rel_path = _normalize(rel_path)
    base = posixpath.basename(rel_path)
    for ex in excludes:
        if "/" in _normalize(ex):
            if match_path(ex, rel_path):
                logger.debug("排除 %s (路径匹配 %s)", rel_path, ex)
                return True
        elif match_segment(ex, base):
            logger.debug("排除 %s (文件名匹配 %s)", rel_path, ex)
            return True
    return False
