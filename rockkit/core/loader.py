"""rockspec 文件加载

磁盘上的 rockspec 以 YAML 书写（<name>-<version>.rockspec.yml），
读取后交给 normalize() 规范化，local_abs_filename 记录文件绝对路径。
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from rockkit.core.config import Config
from rockkit.core.exceptions import ManifestLoadError
from rockkit.core.rockspec import Manifest, normalize
from rockkit.utils.yaml_io import read_yaml

logger = logging.getLogger(__name__)


def read_document(path: str | Path) -> dict[str, Any]:
    """读取原始清单文档

    异常:
        ManifestLoadError: 文件不存在、无法解析或顶层不是映射
    """
    p = Path(path)
    if not p.is_file():
        raise ManifestLoadError(f"rockspec 文件不存在: {p}")
    try:
        data = read_yaml(p)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ManifestLoadError(f"无法读取 rockspec {p}: {e}") from e
    if not isinstance(data, dict):
        raise ManifestLoadError(
            f"rockspec {p} 顶层必须是映射，实际类型: {type(data).__name__}"
        )
    return data


def load_rockspec(
    path: str | Path,
    *,
    quick: bool = False,
    globals_: dict[str, Any] | None = None,
    config: Config | None = None,
) -> Manifest:
    """从文件加载并规范化 rockspec"""
    filename = os.path.abspath(str(path))
    document = read_document(filename)
    logger.debug("已读取 rockspec: %s", filename)
    return normalize(filename, document, globals_, quick=quick, config=config)
