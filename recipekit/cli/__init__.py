"""recipekit 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

from __future__ import annotations

import functools
import os
import sys
from collections.abc import Callable
from typing import Any

import click

from recipekit import __version__
from recipekit.core.config import DEFAULT_CONFIG_PATH, Config
from recipekit.core.exceptions import RecipeError
from recipekit.utils.logger import setup_logging


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """把 RecipeError 转成 "[阶段] 消息" 输出并以状态码 1 退出"""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except RecipeError as e:
            stage = e.pipeline_stage or "recipe"
            click.echo(f"[{stage}] {e}", err=True)
            output = getattr(e, "output", "")
            if output:
                click.echo(output.rstrip()[-4000:], err=True)
            sys.exit(1)

    return wrapper


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", "config_path", default=DEFAULT_CONFIG_PATH,
              help="配置文件路径")
@click.pass_context
def main(ctx: click.Context, config_path: str) -> None:
    """recipekit - 声明式配方安装器"""
    setup_logging(
        level=os.getenv("RECIPEKIT_LOG_LEVEL", "INFO"),
        json_output=os.getenv("RECIPEKIT_LOG_JSON", "") == "1",
    )
    try:
        ctx.obj = Config.from_file(config_path)
    except RecipeError as e:
        raise click.ClickException(str(e)) from e


# 注册各领域子命令
from recipekit.cli.cmd_install import register as _reg_install  # noqa: E402

_reg_install(main)
