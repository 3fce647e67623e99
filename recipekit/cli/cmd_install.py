"""CLI - 配方安装命令（install / test / relink / info）"""

from __future__ import annotations

from pathlib import Path

import click

from recipekit.cli import handle_errors
from recipekit.core.config import Config
from recipekit.core.models import Recipe
from recipekit.core.recipe import load_recipe
from recipekit.services.linker import read_links
from recipekit.services.pipeline import InstallPipeline, default_prefix, read_receipt


def register(group: click.Group) -> None:
    group.add_command(install)
    group.add_command(test)
    group.add_command(relink)
    group.add_command(info)


def _prefix(cfg: Config, recipe: Recipe, prefix: str | None, head: bool = False) -> Path:
    return Path(prefix) if prefix else default_prefix(cfg, recipe, head)


@click.command()
@click.argument("recipe_ref", metavar="RECIPE")
@click.option("--head", is_flag=True, help="安装不稳定版源码（跳过校验和）")
@click.option("--prefix", default=None, help="安装前缀（默认 <prefix_root>/<name>/<version>）")
@click.option("--no-verify", is_flag=True, help="跳过安装后的冒烟测试")
@click.option("--keep-work-dir", is_flag=True, help="保留工作目录（调试用）")
@click.pass_obj
@handle_errors
def install(
    cfg: Config, recipe_ref: str, head: bool, prefix: str | None,
    no_verify: bool, keep_work_dir: bool,
) -> None:
    """下载、构建、安装并链接配方"""
    recipe = load_recipe(recipe_ref, cfg.recipes_dir)
    if keep_work_dir:
        cfg.keep_work_dir = True
        cfg.cleanup_on_failure = False
    report = InstallPipeline(cfg).install(
        recipe, prefix=_prefix(cfg, recipe, prefix, head),
        head=head, verify=not no_verify,
    )
    for step in report.steps:
        click.echo(f"  {step['step']:8s} {step['status']:6s} {step['duration']:.1f}s")
    click.echo(f"已安装: {recipe.name} -> {report.context.prefix} ({len(report.links)} 个链接)")


@click.command()
@click.argument("recipe_ref", metavar="RECIPE")
@click.option("--prefix", default=None, help="已安装的前缀")
@click.option("--head", is_flag=True, help="使用 head 版本的默认前缀")
@click.pass_obj
@handle_errors
def test(cfg: Config, recipe_ref: str, prefix: str | None, head: bool) -> None:
    """对已安装的前缀执行冒烟测试"""
    recipe = load_recipe(recipe_ref, cfg.recipes_dir)
    report = InstallPipeline(cfg).test(recipe, prefix=_prefix(cfg, recipe, prefix, head))
    for check in report.checks:
        click.echo(f"  [OK] {check.executable:16s} {check.stage}")
    click.echo(f"冒烟测试通过: {recipe.name} ({len(report.checks)} 项)")


@click.command()
@click.argument("recipe_ref", metavar="RECIPE")
@click.option("--prefix", default=None, help="已安装的前缀")
@click.option("--head", is_flag=True, help="使用 head 版本的默认前缀")
@click.pass_obj
@handle_errors
def relink(cfg: Config, recipe_ref: str, prefix: str | None, head: bool) -> None:
    """重新生成可执行目录中的符号链接"""
    recipe = load_recipe(recipe_ref, cfg.recipes_dir)
    report = InstallPipeline(cfg).relink(recipe, prefix=_prefix(cfg, recipe, prefix, head))
    for link in report.links:
        click.echo(f"  {link.name} -> {link.target}")
    click.echo(f"已链接 {len(report.links)} 个可执行文件")


@click.command()
@click.argument("recipe_ref", metavar="RECIPE")
@click.option("--prefix", default=None, help="查看该前缀的安装状态")
@click.option("--head", is_flag=True, help="使用 head 版本的默认前缀")
@click.pass_obj
@handle_errors
def info(cfg: Config, recipe_ref: str, prefix: str | None, head: bool) -> None:
    """显示配方内容与安装状态"""
    recipe = load_recipe(recipe_ref, cfg.recipes_dir)
    click.echo(f"{recipe.name} {recipe.version}")
    if recipe.description:
        click.echo(f"  {recipe.description}")
    if recipe.homepage:
        click.echo(f"  主页:   {recipe.homepage}")
    click.echo(f"  源码:   {recipe.url}")
    if recipe.head_url:
        click.echo(f"  head:   {recipe.head_url}")
    click.echo(f"  sha256: {recipe.sha256}")
    click.echo(f"  构建:   {recipe.build_subdir}: {' && '.join(recipe.build_commands) or '-'}")
    click.echo(f"  安装:   {', '.join(recipe.artifact_dirs)}")
    click.echo(f"  链接:   {recipe.bin_dir}/* -> {recipe.support_tree}/*/*")

    where = _prefix(cfg, recipe, prefix, head)
    receipt = read_receipt(where)
    if not receipt:
        click.echo(f"  状态:   未安装 ({where})")
        return
    links = read_links(where / recipe.bin_dir)
    click.echo(
        f"  状态:   已安装 {receipt.get('version', '?')} "
        f"于 {str(receipt.get('installed_at', '?'))[:19]} ({len(links)} 个链接)"
    )
