"""CLI — rockspec 查看与校验命令"""

from __future__ import annotations

import json

import click

from rockkit.cli import handle_errors
from rockkit.core.loader import load_rockspec
from rockkit.core.rockspec import DEPENDENCY_FIELDS
from rockkit.utils.yaml_io import dump_yaml, save_yaml


def register(group: click.Group) -> None:
    group.add_command(show)
    group.add_command(check)
    group.add_command(deps)
    group.add_command(show_vars)
    group.add_command(platforms)


@click.command()
@click.argument("rockspec", type=click.Path(dir_okay=False))
@click.option("--quick", is_flag=True, help="跳过结构校验与安装路径计算")
@click.option("--format", "-f", "fmt", default="yaml", type=click.Choice(["yaml", "json"]))
@click.option("--output", "-o", default=None, help="写入文件而不是输出到终端（YAML）")
@handle_errors
def show(rockspec: str, quick: bool, fmt: str, output: str | None) -> None:
    """输出规范化后的 rockspec"""
    manifest = load_rockspec(rockspec, quick=quick)
    data = manifest.to_dict()
    if output:
        save_yaml(output, data)
        click.echo(f"已写入: {output}")
    elif fmt == "json":
        click.echo(json.dumps(data, indent=2, ensure_ascii=False))
    else:
        click.echo(dump_yaml(data), nl=False)


@click.command()
@click.argument("rockspec", type=click.Path(dir_okay=False))
@handle_errors
def check(rockspec: str) -> None:
    """完整校验 rockspec（不输出内容）"""
    manifest = load_rockspec(rockspec)
    click.echo(f"OK: {manifest.name} {manifest.version} (format {manifest.format_version})")


@click.command()
@click.argument("rockspec", type=click.Path(dir_okay=False))
@handle_errors
def deps(rockspec: str) -> None:
    """列出三类依赖"""
    manifest = load_rockspec(rockspec, quick=True)
    for key in DEPENDENCY_FIELDS:
        entries = getattr(manifest, key)
        click.echo(f"{key}:")
        if not entries:
            click.echo("  (无)")
        for q in entries:
            click.echo(f"  {q}")


@click.command(name="vars")
@click.argument("rockspec", type=click.Path(dir_okay=False))
@handle_errors
def show_vars(rockspec: str) -> None:
    """输出安装路径变量"""
    manifest = load_rockspec(rockspec)
    for k, v in sorted((manifest.variables or {}).items()):
        click.echo(f"{k}={v}")


@click.command()
def platforms() -> None:
    """输出当前检测到的平台标识"""
    from rockkit.core.config import get_config
    click.echo(" ".join(get_config().platforms))
