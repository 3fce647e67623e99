"""统一异常体系

所有业务异常继承 RecipeError，替代散落的 ValueError / RuntimeError。
每个异常携带 code（稳定标识）和 pipeline_stage（失败阶段，由流水线填充），
CLI 层据此输出 "[stage] message" 形式的友好提示。
"""

from __future__ import annotations


class RecipeError(Exception):
    """安装器基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.pipeline_stage = ""


class ConfigError(RecipeError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(RecipeError):
    """输入数据校验失败（配方字段、URL 协议等）"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []

    def __str__(self) -> str:
        if not self.details:
            return super().__str__()
        return "\n".join([super().__str__(), *(f"  - {d}" for d in self.details)])


class FetchError(RecipeError):
    """源码包下载或解压失败"""

    code = "FETCH_ERROR"


class IntegrityError(RecipeError):
    """源码包哈希与配方声明不一致"""

    code = "INTEGRITY_ERROR"

    def __init__(self, message: str, *, expected: str, actual: str) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class BuildError(RecipeError):
    """外部构建命令失败，output 保留完整输出供诊断"""

    code = "BUILD_ERROR"

    def __init__(
        self, message: str, *,
        exit_code: int | None = None, output: str = "", cause: str = "exit",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.output = output
        self.cause = cause  # "exit" | "timeout" | "missing"


class InstallError(RecipeError):
    """产物复制到安装前缀失败"""

    code = "INSTALL_ERROR"


class MissingArtifactError(InstallError):
    """构建目录中缺少配方声明的产物目录"""

    code = "MISSING_ARTIFACT"

    def __init__(self, name: str, message: str = "") -> None:
        super().__init__(message or f"产物目录不存在: {name}")
        self.name = name


class LinkError(RecipeError):
    """可执行目录无法创建或链接无法写入"""

    code = "LINK_ERROR"


class LinkConflictError(LinkError):
    """可执行文件链接冲突（同名文件出现在多个版本子目录）"""

    code = "LINK_CONFLICT"

    def __init__(self, name: str, paths: list[str] | None = None) -> None:
        self.name = name
        self.paths = paths or []
        where = f": {', '.join(self.paths)}" if self.paths else ""
        super().__init__(f"链接冲突 '{name}'{where}")


class SmokeTestError(RecipeError):
    """冒烟测试失败"""

    code = "SMOKE_TEST_ERROR"

    def __init__(
        self, executable: str, stage: str, message: str = "", *,
        cause: str = "exit", output: str = "",
    ) -> None:
        super().__init__(message or f"冒烟测试失败: {executable} ({stage})")
        self.executable = executable
        self.stage = stage  # "version" | "compile" | "output"
        self.cause = cause  # "exit" | "timeout" | "missing" | "setup"
        self.output = output


class CommandTimeoutError(RecipeError, TimeoutError):
    """外部命令执行超时（子进程已被终止）"""

    code = "TIMEOUT"

    def __init__(self, cmd: str, timeout: float, output: str = "") -> None:
        super().__init__(f"命令超时 ({timeout}s): {cmd}")
        self.cmd = cmd
        self.timeout = timeout
        self.output = output
