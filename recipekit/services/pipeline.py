"""安装流水线 - 协调 5 个阶段

状态机:
    pending -> fetched -> built -> installed -> linked -> verified
    任一阶段失败 -> failed（记录失败阶段与原因，异常继续向上抛）

职责:
- 为每次运行创建独立工作目录（mkdtemp），多个配方可并行安装到不同前缀
- 按阶段记录步骤报告
- 按配置清理工作目录（成功 / 失败 / 中断）
- 安装成功后在前缀写入安装回执
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from recipekit.core.config import Config
from recipekit.core.exceptions import InstallError, RecipeError
from recipekit.core.models import BuildContext, Recipe, RunReport, RunStage
from recipekit.services.builder import Builder
from recipekit.services.fetcher import Fetcher
from recipekit.services.installer import Installer
from recipekit.services.linker import Linker
from recipekit.services.verifier import Verifier
from recipekit.utils.shell import CommandExecutor, LocalExecutor
from recipekit.utils.yaml_io import load_yaml, save_yaml

logger = logging.getLogger(__name__)

RECEIPT_NAME = ".recipekit-receipt.yml"


def read_receipt(prefix: Path) -> dict[str, Any]:
    """读取前缀中的安装回执，未安装时返回空字典"""
    path = Path(prefix) / RECEIPT_NAME
    try:
        return load_yaml(path)
    except (ValueError, yaml.YAMLError) as e:
        raise InstallError(f"安装回执无法解析: {path}") from e


def default_prefix(config: Config, recipe: Recipe, head: bool = False) -> Path:
    """默认安装前缀: <prefix_root>/<name>/<version>，head 版本为 HEAD"""
    version = "HEAD" if head else (recipe.version or "latest")
    return Path(config.prefix_root) / recipe.name / version


class InstallPipeline:
    """配方安装流水线（失败时按策略清理工作目录）"""

    def __init__(
        self, config: Config | None = None, executor: CommandExecutor | None = None,
    ) -> None:
        self.config = config or Config()
        self.executor = executor or LocalExecutor()
        self.installer = Installer()
        self.linker = Linker()
        self.verifier = Verifier(self.executor, timeout=self.config.timeout("test"))

    # ------------------------------------------------------------------
    # 完整安装
    # ------------------------------------------------------------------

    def install(
        self, recipe: Recipe, *, prefix: Path | None = None,
        head: bool = False, verify: bool = True,
    ) -> RunReport:
        """执行完整安装流程: fetch -> build -> install -> link [-> verify]"""
        ctx = BuildContext(
            work_dir=self._make_work_dir(recipe),
            prefix=Path(prefix) if prefix else default_prefix(self.config, recipe, head),
            head=head,
        )
        report = RunReport(recipe=recipe, context=ctx)
        logger.info("开始安装 %s -> %s (work=%s)", recipe.name, ctx.prefix, ctx.work_dir)

        try:
            self._step(report, "fetch", RunStage.FETCHED, self._fetch)
            self._step(report, "build", RunStage.BUILT, self._build)
            self._step(report, "install", RunStage.INSTALLED, self._install)
            self._step(report, "link", RunStage.LINKED, self._link)
            if verify:
                self._step(report, "verify", RunStage.VERIFIED, self._verify)
            self._write_receipt(report)
        except RecipeError:
            self._cleanup(ctx, failed=True)
            raise
        except KeyboardInterrupt:
            logger.warning("安装被中断: %s (%s)", recipe.name, report.failed_stage)
            self._cleanup(ctx, failed=True)
            raise

        self._cleanup(ctx, failed=False)
        logger.info("安装成功: %s %s -> %s", recipe.name, recipe.version, ctx.prefix)
        return report

    # ------------------------------------------------------------------
    # 独立阶段（作用于已安装的前缀）
    # ------------------------------------------------------------------

    def relink(self, recipe: Recipe, *, prefix: Path) -> RunReport:
        """重新执行链接阶段（如发行版自身的包管理器新增了可执行文件之后）"""
        ctx = BuildContext(work_dir=Path(prefix), prefix=Path(prefix))
        report = RunReport(recipe=recipe, context=ctx, stage=RunStage.INSTALLED)
        self._step(report, "link", RunStage.LINKED, self._link)
        return report

    def test(self, recipe: Recipe, *, prefix: Path) -> RunReport:
        """只执行冒烟测试"""
        ctx = BuildContext(work_dir=self._make_work_dir(recipe), prefix=Path(prefix))
        report = RunReport(recipe=recipe, context=ctx, stage=RunStage.LINKED)
        try:
            self._step(report, "verify", RunStage.VERIFIED, self._verify)
        finally:
            shutil.rmtree(ctx.work_dir, ignore_errors=True)
        return report

    # ------------------------------------------------------------------
    # 阶段实现
    # ------------------------------------------------------------------

    def _fetch(self, ctx: BuildContext, report: RunReport) -> dict[str, Any]:
        fetcher = Fetcher(ctx.work_dir, timeout=self.config.timeout("fetch"))
        recipe = report.recipe
        ctx.source_root = fetcher.fetch(recipe, head=ctx.head)
        return {"url": recipe.source_url(ctx.head), "verified": not ctx.head}

    def _build(self, ctx: BuildContext, report: RunReport) -> dict[str, Any]:
        assert ctx.source_root is not None
        builder = Builder(self.executor, timeout=self.config.timeout("build"))
        recipe = report.recipe
        ctx.build_root = builder.build(
            ctx.source_root, recipe.build_subdir, recipe.build_commands,
        )
        return {"build_root": str(ctx.build_root), "commands": len(recipe.build_commands)}

    def _install(self, ctx: BuildContext, report: RunReport) -> dict[str, Any]:
        assert ctx.build_root is not None
        layout = self.installer.install(
            ctx.build_root, report.recipe.artifact_dirs, ctx.prefix,
        )
        report.layout = layout
        return {"prefix": str(layout.prefix), "dirs": list(layout.directories)}

    def _link(self, ctx: BuildContext, report: RunReport) -> dict[str, Any]:
        recipe = report.recipe
        links = self.linker.relink(ctx.prefix, recipe.support_tree, recipe.bin_dir)
        report.links = links
        return {"links": len(links)}

    def _verify(self, ctx: BuildContext, report: RunReport) -> dict[str, Any]:
        recipe = report.recipe
        checks = self.verifier.verify(
            ctx.prefix / recipe.bin_dir, recipe.smoke_test, work_dir=ctx.work_dir,
        )
        report.checks = checks
        return {"checks": len(checks)}

    # ------------------------------------------------------------------
    # 内部工具
    # ------------------------------------------------------------------

    def _step(
        self, report: RunReport, name: str, reached: RunStage,
        action: Callable[[BuildContext, RunReport], dict[str, Any]],
    ) -> None:
        """执行单个阶段并记录步骤报告"""
        index = len(report.steps) + 1
        start = time.monotonic()
        try:
            detail = action(report.context, report)
        except RecipeError as e:
            e.pipeline_stage = name
            report.stage = RunStage.FAILED
            report.failed_stage = name
            report.error = e
            report.steps.append({
                "step": name, "status": "failed",
                "duration": round(time.monotonic() - start, 3), "error": str(e),
            })
            logger.error("[Step %d] %s 失败: %s", index, name, e, extra={"stage": name})
            raise
        except KeyboardInterrupt:
            report.stage = RunStage.FAILED
            report.failed_stage = name
            raise
        report.stage = reached
        report.steps.append({
            "step": name, "status": "done",
            "duration": round(time.monotonic() - start, 3), **detail,
        })
        logger.info("[Step %d] %s 完成: %s", index, name, detail, extra={"stage": name})

    def _make_work_dir(self, recipe: Recipe) -> Path:
        root = self.config.work_root or None
        if root:
            Path(root).mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix=f"recipekit-{recipe.name}-", dir=root))

    def _cleanup(self, ctx: BuildContext, *, failed: bool) -> None:
        keep = self.config.keep_work_dir if not failed else not self.config.cleanup_on_failure
        if keep:
            logger.info("保留工作目录: %s", ctx.work_dir)
            return
        shutil.rmtree(ctx.work_dir, ignore_errors=True)
        logger.debug("已清理工作目录: %s", ctx.work_dir)

    def _write_receipt(self, report: RunReport) -> None:
        recipe = report.recipe
        path = report.context.prefix / RECEIPT_NAME
        receipt = {
            "name": recipe.name,
            "version": "HEAD" if report.context.head else recipe.version,
            "source": recipe.source_url(report.context.head),
            "recipe": recipe.source_path,
            "installed_at": datetime.now(timezone.utc).isoformat(),
            "dirs": list(report.layout.directories) if report.layout else [],
            "links": {link.name: link.target for link in report.links},
            "verified": report.stage == RunStage.VERIFIED,
        }
        try:
            save_yaml(path, receipt)
        except OSError as e:
            err = InstallError(f"安装回执写入失败: {path} - {e}")
            err.pipeline_stage = "receipt"
            report.stage = RunStage.FAILED
            report.failed_stage = "receipt"
            report.error = err
            raise err from e
