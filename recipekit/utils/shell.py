"""Shell 命令执行工具 - 统一子进程调用

通过 CommandExecutor 协议抽象子进程执行，构建与冒烟测试共用。
输出按 UTF-8 解码，非法字节替换为 U+FFFD（TeX 日志常混有 latin-1 字节）。
子进程在独立进程组中运行（make 会派生子进程），
超时或 Ctrl-C 时终止整个进程组再向上抛出，不留孤儿进程。
"""

from __future__ import annotations

import logging
import os
import shlex
import signal
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from recipekit.core.exceptions import CommandTimeoutError

logger = logging.getLogger(__name__)

# 子进程收到 SIGTERM 后的等待时间，超过则 SIGKILL
_TERMINATE_GRACE = 5

_POSIX = os.name == "posix"


# =========================================================================
# 命令执行结果
# =========================================================================

@dataclass
class CommandResult:
    """命令执行结果（stdout 与 stderr 合并，保持输出顺序）"""

    returncode: int
    output: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


# =========================================================================
# 命令执行器协议
# =========================================================================

class CommandExecutor(Protocol):
    """命令执行器协议 - 测试时可注入替身实现"""

    def execute(
        self,
        cmd: str | list[str],
        *,
        cwd: str | Path = ".",
        env: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """执行命令并返回结果，超时抛 CommandTimeoutError"""
        ...


# =========================================================================
# 默认实现: 本地子进程执行器
# =========================================================================

class LocalExecutor:
    """本地子进程执行器（默认实现）"""

    def execute(
        self,
        cmd: str | list[str],
        *,
        cwd: str | Path = ".",
        env: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        args = shlex.split(cmd) if isinstance(cmd, str) else list(cmd)
        display = cmd if isinstance(cmd, str) else shlex.join(args)
        logger.debug("执行: %s (cwd=%s)", display, cwd)
        with subprocess.Popen(
            args, cwd=str(cwd), env=env,
            encoding="utf-8", errors="replace",
            stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
            start_new_session=_POSIX,
        ) as proc:
            try:
                output, _ = proc.communicate(timeout=timeout)
            except subprocess.TimeoutExpired:
                output = _terminate(proc)
                raise CommandTimeoutError(display, timeout or 0, output=output) from None
            except KeyboardInterrupt:
                logger.warning("收到中断，终止子进程: %s", display)
                _terminate(proc)
                raise
        return CommandResult(returncode=proc.returncode, output=output or "")


def _signal(proc: subprocess.Popen[str], sig: int) -> None:
    """向子进程所在进程组发送信号"""
    try:
        if _POSIX:
            os.killpg(proc.pid, sig)
        elif proc.poll() is None:
            proc.send_signal(sig)
    except (ProcessLookupError, PermissionError):
        # 进程组已全部退出
        pass


def _terminate(proc: subprocess.Popen[str]) -> str:
    """终止子进程所在进程组并收集剩余输出"""
    _signal(proc, signal.SIGTERM)
    try:
        output, _ = proc.communicate(timeout=_TERMINATE_GRACE)
    except subprocess.TimeoutExpired:
        _signal(proc, getattr(signal, "SIGKILL", signal.SIGTERM))
        output, _ = proc.communicate()
    return output or ""


def run_logged(
    executor: CommandExecutor,
    cmd: str | list[str],
    *,
    cwd: str | Path,
    timeout: float | None = None,
    label: str = "cmd",
) -> CommandResult:
    """执行命令并把输出逐行写入 DEBUG 日志，不检查退出码"""
    logger.info("  %s: %s (cwd=%s)", label, cmd, cwd)
    result = executor.execute(cmd, cwd=cwd, timeout=timeout)
    for line in result.output.splitlines():
        logger.debug("  [%s] %s", label, line)
    return result
