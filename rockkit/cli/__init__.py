"""rockkit 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

import functools
import os
from typing import Any, Callable

import click

from rockkit import __version__
from rockkit.core.exceptions import RockkitError
from rockkit.utils.logger import setup_logging


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """把 RockkitError 转换为 click 错误输出（退出码 1）"""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except RockkitError as e:
            raise click.ClickException(f"[{e.code}] {e}") from e

    return wrapper


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config", "-c", "config_path",
    default=lambda: os.getenv("ROCKKIT_CONFIG", ""),
    help="全局配置文件路径（默认读取 ROCKKIT_CONFIG）",
)
def main(config_path: str) -> None:
    """rockkit - rockspec 清单规范化工具"""
    setup_logging(
        level=os.getenv("ROCKKIT_LOG_LEVEL", "WARNING"),
        json_output=os.getenv("ROCKKIT_LOG_JSON", "") == "1",
    )
    if config_path:
        from rockkit.core.config import init_config
        init_config(config_path)


# 注册各领域子命令
from rockkit.cli.cmd_rockspec import register as _reg_rockspec  # noqa: E402
from rockkit.cli.cmd_serve import register as _reg_serve  # noqa: E402

_reg_rockspec(main)
_reg_serve(main)
