"""安装后冒烟测试

两类检查:
1. version: 对每个可执行文件执行 `<exe> --version`，要求退出码为 0
2. compile: 在临时目录写入输入文件，执行 `<exe> <input>`，
   要求退出码为 0 且期望的输出文件存在；检查后删除输出文件
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

from recipekit.core.exceptions import CommandTimeoutError, SmokeTestError
from recipekit.core.models import SmokeCheck, SmokeTest
from recipekit.utils.shell import CommandExecutor, CommandResult, LocalExecutor, run_logged

logger = logging.getLogger(__name__)


class Verifier:
    """冒烟测试执行器"""

    def __init__(
        self, executor: CommandExecutor | None = None, timeout: float | None = None,
    ) -> None:
        self.executor = executor or LocalExecutor()
        self.timeout = timeout

    def verify(
        self, bin_path: Path, smoke_test: SmokeTest, work_dir: Path | None = None,
    ) -> list[SmokeCheck]:
        """执行全部检查，首个失败即抛 SmokeTestError"""
        checks: list[SmokeCheck] = []
        for name in smoke_test.executables:
            result = self._run(bin_path, name, [smoke_test.version_arg], "version", bin_path)
            checks.append(SmokeCheck(executable=name, stage="version", output=result.output))
            logger.info("  版本检查通过: %s", name)

        if smoke_test.scenarios:
            try:
                with tempfile.TemporaryDirectory(
                    prefix="smoke-", dir=str(work_dir) if work_dir else None,
                ) as scratch:
                    checks.extend(self._compile_all(bin_path, smoke_test, Path(scratch)))
            except OSError as e:
                raise SmokeTestError(
                    smoke_test.input_name, "compile",
                    f"编译检查目录无法准备: {e}", cause="setup",
                ) from e

        logger.info("冒烟测试通过: %d 项检查", len(checks))
        return checks

    def _compile_all(
        self, bin_path: Path, smoke_test: SmokeTest, scratch: Path,
    ) -> list[SmokeCheck]:
        source = scratch / smoke_test.input_name
        source.parent.mkdir(parents=True, exist_ok=True)
        source.write_text(smoke_test.template, encoding="utf-8")

        checks: list[SmokeCheck] = []
        for scenario in smoke_test.scenarios:
            exe = scenario.executable
            result = self._run(bin_path, exe, [smoke_test.input_name], "compile", scratch)
            if scenario.output:
                produced = scratch / scenario.output
                if not produced.exists():
                    raise SmokeTestError(
                        exe, "output",
                        f"{exe} 未生成输出文件: {scenario.output}",
                        output=result.output,
                    )
                produced.unlink()
            checks.append(SmokeCheck(executable=exe, stage="compile", output=result.output))
            logger.info("  编译检查通过: %s", exe)
        return checks

    def _run(
        self, bin_path: Path, name: str, args: list[str], stage: str, cwd: Path,
    ) -> CommandResult:
        exe = bin_path / name
        if not exe.exists():
            raise SmokeTestError(name, stage, f"可执行文件不存在: {exe}", cause="missing")
        try:
            result = run_logged(
                self.executor, [str(exe), *args], cwd=cwd,
                timeout=self.timeout, label=f"test {name}",
            )
        except CommandTimeoutError as e:
            raise SmokeTestError(
                name, stage, f"{name} 超时 ({e.timeout}s)",
                cause="timeout", output=e.output,
            ) from e
        except OSError as e:
            raise SmokeTestError(name, stage, f"{name} 无法执行: {e}", cause="missing") from e
        if not result.success:
            raise SmokeTestError(
                name, stage, f"{name} 退出码 {result.returncode}", output=result.output,
            )
        return result
