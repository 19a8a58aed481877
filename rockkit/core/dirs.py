"""URL 与路径字符串工具

只做字符串层面的拆分与规整，不访问文件系统。
"""

from __future__ import annotations

import re

# 可直接下载的协议（非版本控制系统）
BASIC_PROTOCOLS = frozenset(("http", "https", "ftp", "file"))

_URL_RE = re.compile(r"^([^:/]*)://(.*)$")
_MULTI_SLASH_RE = re.compile(r"/{2,}")


def normalize(name: str) -> str:
    """规整路径或 URL：合并重复斜杠、去掉 /./ 和结尾斜杠，保留协议前缀"""
    protocol, rest = "", name
    m = _URL_RE.match(name)
    if m:
        protocol, rest = m.group(1), m.group(2)

    absolute = rest.startswith("/")
    parts = [p for p in _MULTI_SLASH_RE.sub("/", rest).split("/") if p not in ("", ".")]
    path = "/".join(parts)
    if absolute:
        path = "/" + path
    if protocol:
        return f"{protocol}://{path}"
    return path


def split_url(url: str) -> tuple[str, str]:
    """拆分 URL 为 (协议, 剩余部分)，无协议时视为 file"""
    url = normalize(url)
    m = _URL_RE.match(url)
    if m:
        return m.group(1), m.group(2)
    return "file", url


def is_basic_protocol(protocol: str) -> bool:
    return protocol in BASIC_PROTOCOLS


def base_name(pathname: str) -> str:
    """取路径或 URL 的最后一段，忽略结尾斜杠"""
    return pathname.rstrip("/").rsplit("/", 1)[-1]

