"""测试共享 fixture: 固定平台与 rocks 树的配置，以及示例清单"""

from __future__ import annotations

from copy import deepcopy
from typing import Any

import pytest

import rockkit.core.config as cfgmod
from rockkit.core.config import Config

_BASE_DOCUMENT: dict[str, Any] = {
    "rockspec_format": "3.0",
    "package": "LuaSocket",
    "version": "3.1.0-1",
    "source": {
        "url": "https://example.com/releases/luasocket-3.1.0.tar.gz",
        "dir": "luasocket-3.1.0",
    },
    "description": {
        "summary": "Network support for the Lua language",
        "license": "MIT",
    },
    "dependencies": ["lua >= 5.1"],
    "build": {
        "type": "builtin",
        "modules": {"socket.core": "src/luasocket.c"},
    },
}


@pytest.fixture()
def config(monkeypatch: pytest.MonkeyPatch) -> Config:
    """linux 平台、/opt/rocks 树的全局配置"""
    cfg = Config(
        root_dir="/opt/rocks",
        lua_version="5.4",
        platforms=["unix", "linux"],
        variables={"CC": "gcc", "MAKE": "make"},
    )
    monkeypatch.setattr(cfgmod, "_current", cfg)
    return cfg


@pytest.fixture()
def make_doc():
    """基于示例清单构造文档，关键字参数覆盖顶层字段（值为 None 时删除）"""

    def _make(**overrides: Any) -> dict[str, Any]:
        doc = deepcopy(_BASE_DOCUMENT)
        for key, value in overrides.items():
            if value is None:
                doc.pop(key, None)
            else:
                doc[key] = value
        return doc

    return _make
