"""依赖约束字符串解析

语法:
    [namespace/]name [op] version[, op version ...]

支持的运算符: == ~= >= <= > < ~>
"=" 等价于 "=="，"!=" 等价于 "~="，省略运算符时视为 "=="。
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from rockkit.core.exceptions import ValidationError
from rockkit.core.vers import Version, parse_version

OPERATORS = ("==", "~=", ">=", "<=", ">", "<", "~>")
_OP_ALIASES = {"=": "==", "!=": "~="}

_DEP_RE = re.compile(
    r"^\s*(?:(?P<ns>[a-zA-Z0-9._\-]+)/)?"
    r"(?P<name>[a-zA-Z0-9][a-zA-Z0-9._\-]*)"
    r"\s*(?P<rest>.*?)\s*$"
)
_CONSTRAINT_RE = re.compile(r"^\s*(?P<op>==|~=|!=|>=|<=|~>|=|>|<)?\s*(?P<ver>\S+)\s*$")


@dataclass(frozen=True)
class Constraint:
    """单个版本约束，如 >= 1.0"""

    op: str
    version: Version

    def matches(self, version: Version) -> bool:
        if self.op == "==":
            return version == self.version
        if self.op == "~=":
            return version != self.version
        if self.op == ">=":
            return version >= self.version
        if self.op == "<=":
            return version <= self.version
        if self.op == ">":
            return version > self.version
        if self.op == "<":
            return version < self.version
        # ~> 前缀匹配: ~> 5.1 匹配 5.1、5.1.4，不匹配 5.2
        prefix = self.version.segments
        head = version.segments[:len(prefix)]
        head = head + (0,) * (len(prefix) - len(head))
        if head != prefix:
            return False
        if self.version.revision:
            return version.revision == self.version.revision
        return True

    def __str__(self) -> str:
        return f"{self.op} {self.version}"


@dataclass(frozen=True)
class Query:
    """已解析的依赖约束"""

    name: str
    namespace: str | None = None
    constraints: tuple[Constraint, ...] = field(default_factory=tuple)

    @property
    def full_name(self) -> str:
        return f"{self.namespace}/{self.name}" if self.namespace else self.name

    def matches(self, version: str | Version) -> bool:
        """判断给定版本是否满足全部约束"""
        v = version if isinstance(version, Version) else parse_version(version)
        return all(c.matches(v) for c in self.constraints)

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "namespace": self.namespace,
            "constraints": [
                {"op": c.op, "version": str(c.version)} for c in self.constraints
            ],
        }

    def __str__(self) -> str:
        if not self.constraints:
            return self.full_name
        return f"{self.full_name} " + ", ".join(str(c) for c in self.constraints)


def parse_constraints(text: str) -> tuple[Constraint, ...]:
    """解析逗号分隔的约束列表"""
    if not text.strip():
        return ()
    result: list[Constraint] = []
    for part in text.split(","):
        m = _CONSTRAINT_RE.match(part)
        if not m:
            raise ValidationError(f"无法解析版本约束 '{part.strip()}'")
        op = m.group("op") or "=="
        op = _OP_ALIASES.get(op, op)
        result.append(Constraint(op=op, version=parse_version(m.group("ver"))))
    return tuple(result)


def from_dep_string(text: str) -> Query:
    """将依赖约束字符串解析为 Query

    异常:
        ValidationError: 包名或约束不合法
    """
    if not isinstance(text, str):
        raise ValidationError(f"依赖必须是字符串: {text!r}")
    m = _DEP_RE.match(text)
    if not m:
        raise ValidationError(f"无法解析依赖 '{text}'")
    ns = m.group("ns")
    return Query(
        name=m.group("name").lower(),
        namespace=ns.lower() if ns else None,
        constraints=parse_constraints(m.group("rest")),
    )
