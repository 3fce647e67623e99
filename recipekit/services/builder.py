"""构建执行器

在解压后源码的构建子目录中按顺序执行配方的构建命令。
输出完整保留在 BuildError.output 中；失败即终止，不重试。
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

from recipekit.core.exceptions import BuildError, CommandTimeoutError
from recipekit.utils.shell import CommandExecutor, LocalExecutor, run_logged

logger = logging.getLogger(__name__)


class Builder:
    """构建执行器"""

    def __init__(
        self, executor: CommandExecutor | None = None, timeout: float | None = None,
    ) -> None:
        self.executor = executor or LocalExecutor()
        self.timeout = timeout

    def build(
        self, source_root: Path, build_subdir: str, commands: list[str] | tuple[str, ...],
    ) -> Path:
        """执行构建命令，返回构建根目录"""
        build_root = source_root / build_subdir
        if not build_root.is_dir():
            raise BuildError(f"构建目录不存在: {build_root}", cause="missing")

        start = time.monotonic()
        for cmd in commands:
            try:
                result = run_logged(
                    self.executor, cmd, cwd=build_root,
                    timeout=self.timeout, label="build",
                )
            except CommandTimeoutError as e:
                raise BuildError(
                    f"构建超时 ({e.timeout}s): {cmd}",
                    output=e.output, cause="timeout",
                ) from e
            except OSError as e:
                raise BuildError(f"构建命令无法执行: {cmd} - {e}", cause="missing") from e
            if not result.success:
                logger.error("构建失败 (rc=%d): %s\n%s", result.returncode, cmd, result.output)
                raise BuildError(
                    f"build失败 (rc={result.returncode}): {cmd}",
                    exit_code=result.returncode, output=result.output,
                )
        logger.info("构建完成: %s (%.1fs)", build_root, time.monotonic() - start)
        return build_root
