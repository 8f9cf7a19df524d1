"""版本代数

职责:
- 解析点分版本号（如 "1.2.0"），逐段比较
- 解析比较约束（">=1.2"、"<2.0"、"=1.0" 等）
- 从按版本降序排列的候选中选出满足约束的最高版本

比较规则:
  - 段数不同时短的一方补 0 后逐段比较，"1.2" 与 "1.2.0" 相等
  - 每段按整数比较，"1.10" > "1.9"
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from functools import total_ordering

from pmkit.core.exceptions import (
    ConstraintParseError,
    NotFoundError,
    VersionParseError,
)

_SEGMENT_RE = re.compile(r"^[0-9]+$")


@total_ordering
@dataclass(frozen=True, eq=False)
class Version:
    """点分版本号：整数段序列 + 原始文本（用于展示）"""

    parts: tuple[int, ...]
    original: str = ""

    def __str__(self) -> str:
        if self.original:
            return self.original
        return ".".join(str(p) for p in self.parts)

    def _key(self) -> tuple[int, ...]:
        # 去掉尾部的 0，使 1.2 与 1.2.0 的哈希一致
        parts = list(self.parts)
        while parts and parts[-1] == 0:
            parts.pop()
        return tuple(parts)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return compare(self, other) == 0

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return compare(self, other) < 0

    def __hash__(self) -> int:
        return hash(self._key())


def parse_version(text: str) -> Version:
    """解析版本字符串，任一段为空或非整数时抛 VersionParseError"""
    if not text:
        raise VersionParseError("版本号不能为空")
    parts: list[int] = []
    for seg in text.split("."):
        seg = seg.strip()
        if not seg:
            raise VersionParseError(f"版本号包含空段: {text!r}")
        if not _SEGMENT_RE.match(seg):
            raise VersionParseError(f"版本号段不是非负整数: {seg!r} (in {text!r})")
        parts.append(int(seg))
    return Version(parts=tuple(parts), original=text)


def compare(a: Version, b: Version) -> int:
    """比较两个版本，返回 -1 / 0 / 1"""
    length = max(len(a.parts), len(b.parts))
    for i in range(length):
        x = a.parts[i] if i < len(a.parts) else 0
        y = b.parts[i] if i < len(b.parts) else 0
        if x < y:
            return -1
        if x > y:
            return 1
    return 0


# =========================================================================
# 约束
# =========================================================================


class Operator(Enum):
    """约束运算符（封闭集合）"""

    EQ = "="
    EQEQ = "=="
    GT = ">"
    GE = ">="
    LT = "<"
    LE = "<="


# 前缀匹配顺序：长运算符优先，避免 "<=" 被识别成 "<"
_PREFIX_ORDER: tuple[Operator, ...] = (
    Operator.LE, Operator.GE, Operator.LT, Operator.GT,
    Operator.EQEQ, Operator.EQ,
)

_PREDICATES: dict[Operator, Callable[[int], bool]] = {
    Operator.EQ: lambda cmp: cmp == 0,
    Operator.EQEQ: lambda cmp: cmp == 0,
    Operator.GT: lambda cmp: cmp > 0,
    Operator.GE: lambda cmp: cmp >= 0,
    Operator.LT: lambda cmp: cmp < 0,
    Operator.LE: lambda cmp: cmp <= 0,
}

if set(_PREDICATES) != set(Operator):  # pragma: no cover
    raise RuntimeError("每个 Operator 都必须有对应的比较谓词")


@dataclass(frozen=True)
class Constraint:
    """版本约束：运算符 + 版本"""

    op: Operator
    version: Version

    def __str__(self) -> str:
        return f"{self.op.value}{self.version}"

    def matches(self, version: Version) -> bool:
        return _PREDICATES[self.op](compare(version, self.version))


def parse_constraint(text: str) -> Constraint:
    """解析约束字符串；无运算符时视为精确匹配 "="

    示例:
        >>> parse_constraint(">= 1.2")
        Constraint(op=<Operator.GE: '>='>, version=...)
    """
    raw = text.strip()
    if not raw:
        raise ConstraintParseError("版本约束不能为空")

    op = Operator.EQ
    rest = raw
    for candidate in _PREFIX_ORDER:
        if raw.startswith(candidate.value):
            op = candidate
            rest = raw[len(candidate.value):].strip()
            break

    if not rest:
        raise ConstraintParseError(f"版本约束缺少版本号: {text!r}")
    try:
        version = parse_version(rest)
    except VersionParseError as e:
        raise ConstraintParseError(f"版本约束无效 {text!r}: {e}") from e
    return Constraint(op=op, version=version)


def matches(constraint: Constraint, version: Version) -> bool:
    return constraint.matches(version)


def select_best(
    candidates: Sequence[Version], constraint: str | Constraint | None = None,
    *, package: str = "",
) -> Version:
    """从降序候选中选出满足约束的最高版本

    约束为空时直接返回第一个（最高）候选；
    候选为空或无版本满足约束时抛 NotFoundError。
    """
    if not candidates:
        raise NotFoundError(package or "<unknown>")
    if constraint is None or constraint == "":
        return candidates[0]

    c = parse_constraint(constraint) if isinstance(constraint, str) else constraint
    for v in candidates:
        if c.matches(v):
            return v
    raise NotFoundError(package or "<unknown>", str(constraint))
