"""平台覆盖合并

清单的各个小节可携带 platforms 字段，键为平台标识，值为该平台下的覆盖内容:

    build:
      type: builtin
      platforms:
        unix:
          variables: {CFLAGS: "-O2"}
        linux:
          variables: {CFLAGS: "-O3"}

按检测到的平台顺序依次深度合并，越靠后的平台（越具体）优先级越高。
合并完成后 platforms 字段被移除。

列表形式的小节（依赖列表）把 platforms 写成列表中一个只含该键的映射元素；
列表覆盖按下标合并：覆盖中第 i 项替换原第 i 项，多出的项追加在末尾。
"""

from __future__ import annotations

from typing import Any

from rockkit.core.exceptions import PlatformOverrideError

PLATFORMS_KEY = "platforms"

# 合并递归深度上限
MAX_MERGE_DEPTH = 32


def _is_composite(value: Any) -> bool:
    return isinstance(value, (dict, list))


def deep_merge(dst: Any, src: Any, *, _depth: int = 0, _seen: frozenset[int] = frozenset()) -> Any:
    """把 src 深度合并进 dst 并返回 dst

    dst/src 同为映射时按键合并，同为列表时按下标合并；
    其余情况由 src 的副本整体替换。

    异常:
        PlatformOverrideError: 嵌套超过 MAX_MERGE_DEPTH 或 src 中存在环
    """
    if _depth > MAX_MERGE_DEPTH:
        raise PlatformOverrideError(f"平台覆盖嵌套超过 {MAX_MERGE_DEPTH} 层")
    if id(src) in _seen:
        raise PlatformOverrideError("平台覆盖中存在循环引用")
    seen = _seen | {id(src)}

    if isinstance(dst, dict) and isinstance(src, dict):
        items = src.items()
    elif isinstance(dst, list) and isinstance(src, list):
        items = enumerate(src)
    else:
        return _checked_copy(src, _depth, seen)

    for key, value in items:
        if isinstance(dst, list) and key >= len(dst):
            dst.append(_checked_copy(value, _depth + 1, seen))
            continue
        current = dst[key] if isinstance(dst, list) else dst.get(key)
        if _is_composite(value) and type(current) is type(value):
            deep_merge(current, value, _depth=_depth + 1, _seen=seen)
        else:
            dst[key] = _checked_copy(value, _depth + 1, seen)
    return dst


def _checked_copy(value: Any, depth: int, seen: frozenset[int]) -> Any:
    """复制替换值，同时检查深度与环"""
    if not _is_composite(value):
        return value
    if depth > MAX_MERGE_DEPTH:
        raise PlatformOverrideError(f"平台覆盖嵌套超过 {MAX_MERGE_DEPTH} 层")
    if id(value) in seen:
        raise PlatformOverrideError("平台覆盖中存在循环引用")
    inner = seen | {id(value)}
    if isinstance(value, dict):
        return {k: _checked_copy(v, depth + 1, inner) for k, v in value.items()}
    return [_checked_copy(v, depth + 1, inner) for v in value]


def _split_list_platforms(section: list[Any]) -> tuple[list[Any], dict[str, Any]]:
    """从列表小节中取出 {platforms: ...} 元素"""
    items: list[Any] = []
    overrides: dict[str, Any] = {}
    for entry in section:
        if isinstance(entry, dict) and set(entry) == {PLATFORMS_KEY}:
            value = entry[PLATFORMS_KEY] or {}
            if not isinstance(value, dict):
                raise PlatformOverrideError(
                    f"platforms 必须是映射，实际类型: {type(value).__name__}"
                )
            overrides.update(value)
        else:
            items.append(entry)
    return items, overrides


def platform_overrides(section: Any, platforms: list[str]) -> Any:
    """对单个小节应用平台覆盖，返回合并后的小节

    section 为 None 时直接返回 None。
    """
    if section is None:
        return None

    if isinstance(section, list):
        section, overrides = _split_list_platforms(section)
    elif isinstance(section, dict):
        overrides = section.pop(PLATFORMS_KEY, None) or {}
    else:
        return section

    if not isinstance(overrides, dict):
        raise PlatformOverrideError(
            f"platforms 必须是映射，实际类型: {type(overrides).__name__}"
        )

    for platform in platforms:
        override = overrides.get(platform)
        if override is None:
            continue
        if _is_composite(override) and type(override) is type(section):
            deep_merge(section, override)
        else:
            raise PlatformOverrideError(
                f"平台 '{platform}' 的覆盖类型 ({type(override).__name__}) "
                f"与小节类型 ({type(section).__name__}) 不一致"
            )
    return section
