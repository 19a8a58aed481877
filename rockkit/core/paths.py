"""rocks 树安装路径布局

每个 rock 安装在 <tree>/lib/luarocks/rocks-<lua_version>/<name>/<version>/ 下，
其中 lua/ lib/ conf/ bin/ doc/ 分别存放对应类别的文件。
"""

from __future__ import annotations

import os

from rockkit.core.config import Config, get_config


def _cfg(config: Config | None) -> Config:
    return config if config is not None else get_config()


def rocks_dir(tree: str | None = None, config: Config | None = None) -> str:
    """rock 元数据与文件所在的根目录"""
    cfg = _cfg(config)
    root = tree or cfg.root_dir
    return os.path.join(root, "lib", "luarocks", f"rocks-{cfg.lua_version}")


def install_dir(
    name: str, version: str,
    tree: str | None = None, config: Config | None = None,
) -> str:
    """rock 的安装前缀（PREFIX）"""
    return os.path.join(rocks_dir(tree, config), name, version)


def lua_dir(name: str, version: str, tree: str | None = None, config: Config | None = None) -> str:
    return os.path.join(install_dir(name, version, tree, config), "lua")


def lib_dir(name: str, version: str, tree: str | None = None, config: Config | None = None) -> str:
    return os.path.join(install_dir(name, version, tree, config), "lib")


def conf_dir(name: str, version: str, tree: str | None = None, config: Config | None = None) -> str:
    return os.path.join(install_dir(name, version, tree, config), "conf")


def bin_dir(name: str, version: str, tree: str | None = None, config: Config | None = None) -> str:
    return os.path.join(install_dir(name, version, tree, config), "bin")


def doc_dir(name: str, version: str, tree: str | None = None, config: Config | None = None) -> str:
    return os.path.join(install_dir(name, version, tree, config), "doc")
