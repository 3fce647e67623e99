"""集中配置管理

安装器的目录、超时与清理策略集中在 Config 中。
支持从 YAML 文件加载 + 编程式覆盖；由 CLI 创建后显式传给流水线。
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields

import yaml

from recipekit.core.exceptions import ConfigError
from recipekit.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "configs/default.yml"


@dataclass
class Config:
    """安装器全局配置"""

    # 目录
    recipes_dir: str = "recipes"
    prefix_root: str = "opt"          # 默认前缀: <prefix_root>/<name>/<version>
    work_root: str = ""               # 为空时使用系统临时目录

    # 超时（秒，0 表示不限制）
    fetch_timeout: int = 300
    build_timeout: int = 7200
    test_timeout: int = 600

    # 清理策略
    keep_work_dir: bool = False       # 成功后保留工作目录（调试用）
    cleanup_on_failure: bool = True   # 失败时删除工作目录

    # 放不到字段里的配置项
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = DEFAULT_CONFIG_PATH) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        try:
            data = load_yaml(path)
        except (ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"配置文件无效: {path}: {e}") from e
        if not data:
            return cls()
        known = {f.name for f in fields(cls)} - {"extra"}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        cfg = cls(**matched)
        cfg.extra = extra
        logger.info("配置已加载: %s", path)
        return cfg

    def timeout(self, name: str) -> float | None:
        """读取超时配置，0 或负数视为不限制"""
        value = getattr(self, f"{name}_timeout")
        return float(value) if value and value > 0 else None

    def to_dict(self) -> dict:
        return asdict(self)
