"""核心数据模型

数据类:
- Recipe / SmokeTest / CompileScenario: 配方描述（加载后不可变）
- BuildContext: 单次安装运行的工作目录与前缀
- InstalledLayout / LinkEntry / SmokeCheck: 各阶段产物
- RunReport: 流水线执行报告
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class CompileScenario:
    """编译场景: 用指定可执行文件处理输入文件，检查输出文件是否生成"""

    executable: str
    output: str = ""  # 为空时只检查退出码


@dataclass(frozen=True)
class SmokeTest:
    """安装后冒烟测试描述"""

    version_arg: str = "--version"
    executables: tuple[str, ...] = ()
    input_name: str = ""
    template: str = ""
    scenarios: tuple[CompileScenario, ...] = ()


@dataclass(frozen=True)
class Recipe:
    """单个包的配方（一个配方文件对应一个实例）"""

    name: str
    url: str
    sha256: str
    version: str = ""
    description: str = ""
    homepage: str = ""
    head_url: str = ""
    build_subdir: str = "."
    build_commands: tuple[str, ...] = ()
    artifact_dirs: tuple[str, ...] = ()
    bin_dir: str = "bin"
    support_tree: str = ""   # 前缀下按版本/平台分子目录的可执行文件树，如 texlive/bin
    smoke_test: SmokeTest = field(default_factory=SmokeTest)
    source_path: str = ""    # 配方文件路径（仅用于展示）

    def source_url(self, head: bool = False) -> str:
        return self.head_url if head else self.url


@dataclass
class BuildContext:
    """单次运行的构建上下文，由流水线独占"""

    work_dir: Path
    prefix: Path
    head: bool = False
    source_root: Path | None = None
    build_root: Path | None = None


@dataclass(frozen=True)
class InstalledLayout:
    """安装结果: 前缀 + 已复制的顶层目录"""

    prefix: Path
    directories: tuple[str, ...]


@dataclass(frozen=True)
class LinkEntry:
    """可执行目录中的一条符号链接（target 为相对路径）"""

    name: str
    target: str


@dataclass(frozen=True)
class SmokeCheck:
    """单项冒烟检查记录"""

    executable: str
    stage: str  # "version" | "compile"
    output: str = ""


class RunStage(str, Enum):
    """安装运行状态机"""

    PENDING = "pending"
    FETCHED = "fetched"
    BUILT = "built"
    INSTALLED = "installed"
    LINKED = "linked"
    VERIFIED = "verified"
    FAILED = "failed"


@dataclass
class RunReport:
    """流水线执行报告"""

    recipe: Recipe
    context: BuildContext
    stage: RunStage = RunStage.PENDING
    failed_stage: str = ""
    error: Exception | None = None
    layout: InstalledLayout | None = None
    links: list[LinkEntry] = field(default_factory=list)
    checks: list[SmokeCheck] = field(default_factory=list)
    steps: list[dict[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.error is None and self.stage != RunStage.FAILED
