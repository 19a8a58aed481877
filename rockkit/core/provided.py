"""由运行环境提供的 rocks

Lua 解释器本身以及随解释器附带的模块（bit32、utf8、LuaJIT 的 bit 库）
不需要安装，依赖解析时视为已满足。配置中的 rocks_provided 只补充缺失项。
"""

from __future__ import annotations

from rockkit.core.config import Config, get_config
from rockkit.core.vers import Version, format_is_at_least


def get_rocks_provided(
    format_version: Version | None = None, config: Config | None = None,
) -> dict[str, str]:
    """计算 rock 名 -> 版本 的映射

    参数:
        format_version: 清单格式版本；为 None 时按最新格式处理
        config: 全局配置，默认取 get_config()
    """
    cfg = config if config is not None else get_config()
    lv = cfg.lua_version
    provided: dict[str, str] = {"lua": f"{lv}-1"}

    if lv == "5.2":
        provided["bit32"] = f"{lv}-1"
    if lv in ("5.3", "5.4"):
        provided["utf8"] = f"{lv}-1"
    if lv == "5.1" and cfg.luajit_version:
        ljv = cfg.luajit_version
        provided["luabitop"] = f"{ljv}-1"
        if format_version is None or format_is_at_least(format_version, "3.0"):
            provided["luajit"] = f"{ljv}-1"

    for name, version in cfg.rocks_provided.items():
        provided.setdefault(name, str(version))
    return provided
