"""可执行文件链接器

把 <prefix>/<support_tree>/<平台子目录>/ 下的每个可执行文件，
以相对符号链接的形式平铺到 <prefix>/<bin_dir>/ 中。

规则:
- 只扫描 support_tree 的第一层子目录中的直接条目（文件或链接），跳过隐藏项
- 同名条目出现在多个子目录时抛 LinkConflictError，不做"后写覆盖"
- 冲突检查在修改 bin_dir 之前完成，失败时 bin_dir 保持原样
- bin_dir 中已有的文件和链接全部删除后重建，重复执行结果一致
- 文件系统错误统一转为 LinkError
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from recipekit.core.exceptions import LinkConflictError, LinkError, MissingArtifactError
from recipekit.core.models import LinkEntry

logger = logging.getLogger(__name__)


def discover_executables(support_root: Path) -> dict[str, Path]:
    """扫描支持树，返回 {文件名: 实际路径}，同名冲突抛 LinkConflictError"""
    if not support_root.is_dir():
        raise MissingArtifactError(
            str(support_root), f"支持树不存在: {support_root}",
        )
    found: dict[str, Path] = {}
    for sub in sorted(support_root.iterdir()):
        if sub.name.startswith(".") or not sub.is_dir() or sub.is_symlink():
            continue
        for entry in sorted(sub.iterdir()):
            if entry.name.startswith("."):
                continue
            if entry.is_dir() and not entry.is_symlink():
                continue
            if entry.name in found:
                raise LinkConflictError(entry.name, [str(found[entry.name]), str(entry)])
            found[entry.name] = entry
    return found


def read_links(bin_dir: Path) -> dict[str, str]:
    """读取可执行目录中的链接 {名称: 链接目标}"""
    if not bin_dir.is_dir():
        return {}
    return {
        p.name: os.readlink(p)
        for p in sorted(bin_dir.iterdir())
        if p.is_symlink()
    }


class Linker:
    """可执行文件链接器"""

    def relink(self, prefix: Path, support_tree: str, bin_dir: str) -> list[LinkEntry]:
        support_root = prefix / support_tree
        bin_path = prefix / bin_dir
        try:
            found = discover_executables(support_root)
            if bin_path.exists() and not bin_path.is_dir():
                raise LinkError(f"可执行目录不是目录: {bin_path}")

            if bin_path.is_dir():
                stale = sorted(bin_path.iterdir())
                for p in stale:
                    if p.is_dir() and not p.is_symlink():
                        raise LinkConflictError(p.name, [str(p)])
                for p in stale:
                    p.unlink()
                logger.info("  已清理 %d 个旧条目: %s", len(stale), bin_path)
            bin_path.mkdir(parents=True, exist_ok=True)

            links: list[LinkEntry] = []
            for name, target in sorted(found.items()):
                rel = os.path.relpath(target, bin_path)
                (bin_path / name).symlink_to(rel)
                links.append(LinkEntry(name=name, target=rel))
        except OSError as e:
            raise LinkError(f"链接失败: {bin_path} - {e}") from e
        logger.info("链接完成: %d 个可执行文件 -> %s", len(links), bin_path)
        return links
