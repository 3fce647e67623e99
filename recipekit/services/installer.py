"""产物安装器

把构建目录中的指定顶层目录整体复制到安装前缀。

复制为"全有或全无":
  1. 先检查所有目录都存在，缺一个即抛 MissingArtifactError，前缀不被改动
  2. 逐个复制到前缀内的暂存目录 .staging-*
  3. 全部复制成功后再依次移动到最终位置（同名旧目录被替换）
  4. 任一步失败时删除本次已暂存和已移动的目录，抛 InstallError

已被替换掉的旧目录不会恢复，调用方自行决定是否重装。
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path

from recipekit.core.exceptions import InstallError, MissingArtifactError
from recipekit.core.models import InstalledLayout

logger = logging.getLogger(__name__)


class Installer:
    """产物安装器"""

    def install(
        self, build_root: Path, directory_names: list[str] | tuple[str, ...], prefix: Path,
    ) -> InstalledLayout:
        for name in directory_names:
            if not (build_root / name).is_dir():
                raise MissingArtifactError(name, f"产物目录不存在: {build_root / name}")

        prefix.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=".staging-", dir=str(prefix)))
        moved: list[Path] = []
        try:
            for name in directory_names:
                logger.info("  复制: %s -> %s", build_root / name, prefix / name)
                shutil.copytree(build_root / name, staging / name, symlinks=True)
            for name in directory_names:
                dest = prefix / name
                if dest.is_symlink() or dest.is_file():
                    dest.unlink()
                elif dest.exists():
                    shutil.rmtree(dest)
                dest.parent.mkdir(parents=True, exist_ok=True)
                (staging / name).rename(dest)
                moved.append(dest)
        except (OSError, shutil.Error) as e:
            for dest in moved:
                shutil.rmtree(dest, ignore_errors=True)
            raise InstallError(f"安装到 {prefix} 失败: {e}") from e
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        logger.info("安装完成: %s (%s)", prefix, ", ".join(directory_names))
        return InstalledLayout(prefix=prefix, directories=tuple(directory_names))
