"""rockspec 清单结构校验

每个已知格式版本对应一张声明式字段表（Field 树），校验内容包括：
- 必填字段与字段类型
- 版本号 / 格式号的书写规则
- 按格式版本引入的字段（旧格式中使用新字段视为错误）
- 各小节 platforms 覆盖内容同样按字段表校验
- globals 中出现的未声明名字

校验失败抛出 SchemaInvalidError，message 为首条错误，details 为全部错误。
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from rockkit.core.exceptions import SchemaInvalidError, ValidationError
from rockkit.core.platforms import PLATFORMS_KEY
from rockkit.core.vers import Version, parse_version

logger = logging.getLogger(__name__)

KNOWN_FORMATS = ("1.0", "3.0", "3.1")
DEFAULT_FORMAT = "1.0"

_TYPE_NAMES = {
    "string": str,
    "boolean": bool,
    "number": (int, float),
    "mapping": dict,
    "list": list,
}


@dataclass
class Field:
    """字段声明

    kind: string / boolean / number / mapping / list / any
    fields: mapping 的已知子字段
    values: mapping 的任意键对应的值声明（如 external_dependencies）
    items: list 元素声明
    open: mapping 是否允许未声明的子字段
    platforms: 是否允许 platforms 覆盖
    since: 引入该字段的格式版本
    """

    kind: str
    required: bool = False
    pattern: str = ""
    since: str = DEFAULT_FORMAT
    fields: dict[str, Field] = field(default_factory=dict)
    values: Field | None = None
    items: Field | None = None
    open: bool = False
    platforms: bool = False


def _string(**kw: Any) -> Field:
    return Field("string", **kw)


def _strings(**kw: Any) -> Field:
    return Field("list", items=_string(), **kw)


def _dependency_list(**kw: Any) -> Field:
    return Field("list", items=_string(), platforms=True, **kw)


ROCKSPEC_SCHEMA: dict[str, Field] = {
    "rockspec_format": _string(pattern=r"^\d+\.\d+$"),
    "package": _string(required=True),
    "version": _string(required=True, pattern=r"^[\w.]+-\d+$"),
    "description": Field("mapping", fields={
        "summary": _string(),
        "detailed": _string(),
        "homepage": _string(),
        "license": _string(),
        "maintainer": _string(),
        "issues_url": _string(since="3.0"),
        "labels": _strings(since="3.0"),
    }),
    "supported_platforms": _strings(),
    "dependencies": _dependency_list(),
    "build_dependencies": _dependency_list(since="3.0"),
    "test_dependencies": _dependency_list(since="3.0"),
    "external_dependencies": Field(
        "mapping", platforms=True,
        values=Field("mapping", fields={
            "header": _string(),
            "library": _string(),
        }, open=True),
    ),
    "source": Field("mapping", required=True, platforms=True, fields={
        "url": _string(required=True),
        "md5": _string(),
        "file": _string(),
        "dir": _string(),
        "tag": _string(),
        "branch": _string(),
        "module": _string(),
        "cvs_tag": _string(),
        "cvs_module": _string(),
    }),
    "build": Field("mapping", platforms=True, open=True, fields={
        "type": _string(),
        "install": Field("mapping", fields={
            "lua": Field("mapping", open=True),
            "lib": Field("mapping", open=True),
            "conf": Field("mapping", open=True),
            "bin": Field("mapping", open=True),
        }),
        "copy_directories": _strings(),
        "patches": Field("mapping", values=_string()),
    }),
    "hooks": Field("mapping", platforms=True, fields={
        "post_install": _string(),
    }),
    "test": Field("mapping", since="3.0", platforms=True, open=True, fields={
        "type": _string(),
        "flags": Field("any"),
    }),
    "deploy": Field("mapping", since="3.0", fields={
        "wrap_bin_scripts": Field("boolean"),
    }),
}


class _Checker:
    """单次校验的上下文，收集错误与警告"""

    def __init__(self, fmt: Version, strict: bool) -> None:
        self.fmt = fmt
        self.strict = strict
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def check_fields(
        self, data: dict[str, Any], fields: dict[str, Field],
        prefix: str, *, open_: bool = False, in_override: bool = False,
    ) -> None:
        for name, decl in fields.items():
            if decl.required and not in_override and data.get(name) is None:
                self.errors.append(f"缺少必填字段 {prefix}{name}")
        for name, value in data.items():
            path = f"{prefix}{name}"
            decl = fields.get(name)
            if decl is None:
                if not open_:
                    self._unknown(path)
                continue
            self.check_value(value, decl, path, in_override=in_override)

    def check_value(self, value: Any, decl: Field, path: str, *, in_override: bool = False) -> None:
        if parse_version(decl.since) > self.fmt:
            self.errors.append(
                f"字段 {path} 在 rockspec format {self.fmt} 中不受支持 "
                f"(需要 {decl.since})"
            )
            return
        if decl.kind == "any" or value is None:
            return

        if decl.kind == "list" and decl.platforms:
            self._check_dependency_list(value, decl, path)
            return

        expected = _TYPE_NAMES[decl.kind]
        if isinstance(value, bool) and decl.kind == "number":
            expected = ()
        if not isinstance(value, expected):
            self.errors.append(
                f"字段 {path} 类型错误: 期望 {decl.kind}, 实际 {type(value).__name__}"
            )
            return

        if decl.kind == "string" and decl.pattern and not re.match(decl.pattern, value):
            self.errors.append(f"字段 {path} 格式不正确: '{value}'")
        elif decl.kind == "list" and decl.items is not None:
            for i, item in enumerate(value):
                self.check_value(item, decl.items, f"{path}[{i}]")
        elif decl.kind == "mapping":
            self._check_mapping(value, decl, path, in_override=in_override)

    def _check_mapping(self, value: dict[str, Any], decl: Field, path: str, *, in_override: bool) -> None:
        body = dict(value)
        overrides = body.pop(PLATFORMS_KEY, None) if decl.platforms else None
        if decl.values is not None:
            for key, item in body.items():
                self.check_value(item, decl.values, f"{path}.{key}")
        else:
            self.check_fields(
                body, decl.fields, f"{path}.",
                open_=decl.open, in_override=in_override,
            )
        if overrides is None:
            return
        if not isinstance(overrides, dict):
            self.errors.append(f"字段 {path}.{PLATFORMS_KEY} 类型错误: 期望 mapping")
            return
        for platform, override in overrides.items():
            self.check_value(
                override, Field("mapping", fields=decl.fields, values=decl.values, open=decl.open),
                f"{path}.{PLATFORMS_KEY}.{platform}", in_override=True,
            )

    def _check_dependency_list(self, value: Any, decl: Field, path: str) -> None:
        if not isinstance(value, list):
            self.errors.append(f"字段 {path} 类型错误: 期望 list, 实际 {type(value).__name__}")
            return
        for i, item in enumerate(value):
            if isinstance(item, dict) and set(item) == {PLATFORMS_KEY}:
                overrides = item[PLATFORMS_KEY] or {}
                if not isinstance(overrides, dict):
                    self.errors.append(f"字段 {path}[{i}].{PLATFORMS_KEY} 类型错误: 期望 mapping")
                    continue
                for platform, override in overrides.items():
                    self.check_value(
                        override, _strings(), f"{path}.{PLATFORMS_KEY}.{platform}",
                    )
            else:
                self.check_value(item, _string(), f"{path}[{i}]")

    def _unknown(self, path: str) -> None:
        message = f"未知字段 {path}"
        if self.strict:
            self.errors.append(message)
        else:
            self.warnings.append(message)


def resolve_format(document: dict[str, Any]) -> Version:
    """取文档声明的格式版本，未声明时为 1.0"""
    declared = document.get("rockspec_format")
    if declared is None:
        return parse_version(DEFAULT_FORMAT)
    try:
        return parse_version(str(declared))
    except ValidationError as e:
        raise SchemaInvalidError(f"rockspec_format 不合法: {e}") from e


def check(
    document: dict[str, Any],
    globals_: dict[str, Any] | None = None,
    *, strict: bool = False,
) -> None:
    """校验原始清单文档

    参数:
        document: 未经处理的清单文档
        globals_: 文档来源中定义的名字，未在字段表中声明的视为错误
        strict: 为 True 时未知字段视为错误，否则只记录警告

    异常:
        SchemaInvalidError: 校验失败
    """
    fmt = resolve_format(document)
    known = [parse_version(v) for v in KNOWN_FORMATS]
    if fmt not in known:
        raise SchemaInvalidError(f"未知的 rockspec format {fmt}")

    checker = _Checker(fmt, strict)

    undeclared = sorted(name for name in (globals_ or {}) if name not in ROCKSPEC_SCHEMA)
    if undeclared:
        checker.errors.append(f"未知变量: {', '.join(undeclared)}")

    checker.check_fields(document, ROCKSPEC_SCHEMA, "")

    for warning in checker.warnings:
        logger.warning("%s (rockspec format %s)", warning, fmt)

    if checker.errors:
        details = [f"{e} (rockspec format {fmt})" for e in checker.errors]
        raise SchemaInvalidError(details[0], details=details)
