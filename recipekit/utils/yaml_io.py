"""YAML 文件读写工具

配方与配置文件统一走这里: UTF-8、空值保护、大小限制、原子写入。
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# 配方文件不应超过 1MB，超出视为误传
MAX_YAML_SIZE = 1024 * 1024


def atomic_write(path: Path, content: str) -> None:
    """原子写入文件：先写同目录临时文件再 rename

    参数:
        path: 目标文件路径（父目录不存在时自动创建）
        content: 要写入的文本内容，按 UTF-8 编码

    异常:
        OSError: 临时文件写入或替换失败（临时文件已清理）

    示例:
        >>> atomic_write(Path("opt/tinytex/0.1/.recipekit-receipt.yml"), "name: tinytex\\n")
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp, str(path))
    except Exception:
        # 只捕获普通异常，不拦截 KeyboardInterrupt/SystemExit
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def load_yaml(path: str | Path) -> dict[str, Any]:
    """安全读取 YAML 文件

    参数:
        path: YAML 文件路径（配方、配置或安装回执）

    返回:
        dict: 解析后的映射。文件不存在或为空时返回空字典

    异常:
        ValueError: 文件过大（超过 MAX_YAML_SIZE），或顶层不是映射
        yaml.YAMLError: YAML 格式错误
        OSError: 读取失败

    示例:
        >>> data = load_yaml("recipes/tinytex.yml")
        >>> data.get("name")
        'tinytex'
    """
    p = Path(path)
    if not p.exists():
        return {}

    file_size = p.stat().st_size
    if file_size > MAX_YAML_SIZE:
        raise ValueError(
            f"YAML 文件过大: {p} ({file_size} 字节), 超过限制 {MAX_YAML_SIZE} 字节"
        )

    try:
        with open(p, encoding="utf-8") as f:
            result = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error("解析 YAML 文件失败: %s, 错误: %s", p, e)
        raise

    if result is None:
        return {}
    if not isinstance(result, dict):
        raise ValueError(
            f"{p} 顶层必须是映射 (实际类型: {type(result).__name__})"
        )
    return result


def save_yaml(path: str | Path, data: Any) -> None:
    """原子写入 YAML 文件

    参数:
        path: YAML 文件路径
        data: 可序列化的数据（通常是 dict）

    异常:
        OSError: 文件写入失败
        yaml.YAMLError: 数据无法序列化

    说明:
        - 保持键顺序，允许 Unicode 字符
        - 经 atomic_write 写入，中途失败不会留下半个文件

    示例:
        >>> save_yaml("configs/local.yml", {"prefix_root": "/opt/pkgs"})
    """
    content = yaml.dump(
        data, default_flow_style=False,
        allow_unicode=True, sort_keys=False,
    )
    atomic_write(Path(path), content)
