"""集中配置管理

提供规范化流水线读取的全局配置：检测到的平台列表、基础构建变量、
rocks 树根目录、Lua 版本以及支持的最高 rockspec 格式版本。
支持从 YAML 文件加载 + 编程式覆盖。
"""

from __future__ import annotations

import logging
import sys
from dataclasses import asdict, dataclass, field
from typing import Any

from rockkit.core.exceptions import ConfigError
from rockkit.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

# 本工具能理解的最高 rockspec 格式版本
MAX_ROCKSPEC_FORMAT = "3.1"

# 每个操作系统族对应的平台标识，顺序从泛到具体
PLATFORM_SETS: dict[str, list[str]] = {
    "linux": ["unix", "linux"],
    "darwin": ["unix", "bsd", "macosx", "macos"],
    "freebsd": ["unix", "bsd", "freebsd"],
    "openbsd": ["unix", "bsd", "openbsd"],
    "netbsd": ["unix", "bsd", "netbsd"],
    "cygwin": ["unix", "cygwin"],
    "msys": ["unix", "cygwin", "msys"],
    "win32": ["windows", "win32"],
}


def detect_platforms(sys_platform: str = "") -> list[str]:
    """根据 sys.platform 推导平台标识列表（泛 -> 具体）"""
    plat = sys_platform or sys.platform
    for prefix, names in PLATFORM_SETS.items():
        if plat.startswith(prefix):
            return list(names)
    return ["unix"]


def default_variables(platforms: list[str]) -> dict[str, str]:
    """按平台给出基础构建变量"""
    if "windows" in platforms:
        return {
            "MAKE": "nmake",
            "CC": "cl",
            "LD": "link",
            "LIB_EXTENSION": "dll",
            "OBJ_EXTENSION": "obj",
            "LUA_BINDIR": "c:\\lua\\bin",
            "LUA_INCDIR": "c:\\lua\\include",
            "LUA_LIBDIR": "c:\\lua\\lib",
        }
    lib_flag = "-bundle -undefined dynamic_lookup -all_load" if "macosx" in platforms else "-shared"
    return {
        "MAKE": "make",
        "CC": "cc",
        "LD": "cc",
        "CFLAGS": "-O2 -fPIC",
        "LIBFLAG": lib_flag,
        "LIB_EXTENSION": "so",
        "OBJ_EXTENSION": "o",
        "LUA_BINDIR": "/usr/local/bin",
        "LUA_INCDIR": "/usr/local/include",
        "LUA_LIBDIR": "/usr/local/lib",
    }


@dataclass
class Config:
    """全局配置"""

    # rocks 树
    root_dir: str = "/usr/local"
    lua_version: str = "5.4"
    luajit_version: str = ""

    # 平台与构建变量
    platforms: list[str] = field(default_factory=detect_platforms)
    variables: dict[str, str] = field(default_factory=dict)

    # 由环境提供（无需安装）的 rocks
    rocks_provided: dict[str, str] = field(default_factory=dict)

    # 清单格式
    rockspec_format: str = MAX_ROCKSPEC_FORMAT
    strict_fields: bool = False

    # 放不到字段里的配置项
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.variables:
            self.variables = default_variables(self.platforms)

    @classmethod
    def from_file(cls, path: str) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        known = {f for f in cls.__dataclass_fields__ if f != "extra"}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        if "platforms" in matched and not isinstance(matched["platforms"], list):
            raise ConfigError(f"配置项 platforms 必须是列表: {path}")
        for key in ("variables", "rocks_provided"):
            if key in matched and not isinstance(matched[key], dict):
                raise ConfigError(f"配置项 {key} 必须是映射: {path}")
        cfg = cls(**matched)
        cfg.extra = extra
        return cfg

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI / Web 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str) -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s (平台: %s)", path, ",".join(_current.platforms))
    return _current
