"""LocalExecutor / run_logged 单元测试"""

from __future__ import annotations

import logging
import os
import subprocess
import time

import pytest

from recipekit.core.exceptions import CommandTimeoutError
from recipekit.utils.shell import CommandResult, LocalExecutor, run_logged


class TestLocalExecutor:
    def test_success(self, tmp_path) -> None:
        r = LocalExecutor().execute("echo hello", cwd=tmp_path)
        assert r.success
        assert "hello" in r.output

    def test_failure_returns_code(self, tmp_path) -> None:
        r = LocalExecutor().execute(["sh", "-c", "echo oops >&2; exit 3"], cwd=tmp_path)
        assert r.returncode == 3
        assert not r.success
        assert "oops" in r.output

    def test_stderr_merged_into_output(self, tmp_path) -> None:
        r = LocalExecutor().execute(["sh", "-c", "echo out; echo err >&2"], cwd=tmp_path)
        assert "out" in r.output
        assert "err" in r.output

    def test_cwd_respected(self, tmp_path) -> None:
        (tmp_path / "marker.txt").write_text("x")
        r = LocalExecutor().execute("ls", cwd=tmp_path)
        assert "marker.txt" in r.output

    def test_timeout_kills_process(self, tmp_path) -> None:
        start = time.monotonic()
        with pytest.raises(CommandTimeoutError) as exc:
            LocalExecutor().execute(["sleep", "30"], cwd=tmp_path, timeout=0.5)
        assert time.monotonic() - start < 10
        assert exc.value.timeout == 0.5
        assert isinstance(exc.value, TimeoutError)

    def test_missing_executable_raises_oserror(self, tmp_path) -> None:
        with pytest.raises(OSError):
            LocalExecutor().execute(["definitely-not-a-real-binary-xyz"], cwd=tmp_path)

    def test_undecodable_output_replaced(self, tmp_path) -> None:
        r = LocalExecutor().execute(
            ["sh", "-c", "printf '\\377\\376 latin1\\n'; exit 3"], cwd=tmp_path,
        )
        assert r.returncode == 3
        assert "latin1" in r.output
        assert "\ufffd" in r.output

    def test_interrupt_terminates_process_group(self, tmp_path, monkeypatch) -> None:
        original = subprocess.Popen.communicate
        started: list[int] = []

        def interrupted(proc, input=None, timeout=None):  # noqa: A002
            if not started:
                started.append(proc.pid)
                raise KeyboardInterrupt
            return original(proc, input, timeout)

        monkeypatch.setattr(subprocess.Popen, "communicate", interrupted)
        start = time.monotonic()
        with pytest.raises(KeyboardInterrupt):
            LocalExecutor().execute(["sleep", "30"], cwd=tmp_path)
        assert time.monotonic() - start < 10
        with pytest.raises(ProcessLookupError):
            os.killpg(started[0], 0)


class _FakeExecutor:
    def __init__(self) -> None:
        self.calls: list = []

    def execute(self, cmd, *, cwd=".", env=None, timeout=None) -> CommandResult:
        self.calls.append((cmd, cwd, timeout))
        return CommandResult(returncode=0, output="line1\nline2\n")


class TestRunLogged:
    def test_output_logged_at_debug(self, tmp_path, caplog) -> None:
        fake = _FakeExecutor()
        with caplog.at_level(logging.DEBUG, logger="recipekit.utils.shell"):
            r = run_logged(fake, "make", cwd=tmp_path, timeout=5, label="build")
        assert r.success
        assert fake.calls == [("make", tmp_path, 5)]
        assert "[build] line1" in caplog.text
        assert "[build] line2" in caplog.text
