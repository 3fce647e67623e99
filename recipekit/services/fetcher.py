"""源码包拉取器

职责:
- HTTP(S) 下载配方源码包到工作目录
- sha256 校验（head 版本跳过）
- tar 包解压，返回源码根目录
"""

from __future__ import annotations

import hashlib
import logging
import shutil
import tarfile
import urllib.error
import urllib.request
from pathlib import Path

from recipekit.core.exceptions import FetchError, IntegrityError
from recipekit.core.models import Recipe
from recipekit.utils.net import archive_name, validate_url_scheme

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


def sha256_file(path: Path) -> str:
    sha256 = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            sha256.update(chunk)
    return sha256.hexdigest()


def verify_sha256(path: Path, expected: str) -> None:
    """校验文件哈希，不一致抛 IntegrityError"""
    actual = sha256_file(path)
    if actual != expected.lower():
        raise IntegrityError(
            f"校验和不匹配 {path.name}: 期望 {expected}, 实际 {actual}",
            expected=expected, actual=actual,
        )
    logger.info("  校验和通过: %s", path.name)


class Fetcher:
    """源码包拉取器 - 下载、校验、解压"""

    def __init__(self, work_dir: Path, timeout: float | None = None) -> None:
        self.work_dir = work_dir
        self.timeout = timeout

    def fetch(self, recipe: Recipe, *, head: bool = False) -> Path:
        """拉取配方源码，返回解压后的源码根目录"""
        url = recipe.source_url(head)
        if not url:
            raise FetchError(f"配方 '{recipe.name}' 未定义 head 源码地址")

        archive = self.download(url)
        if head:
            logger.warning("head 版本未固定内容，跳过校验和: %s", url)
        else:
            verify_sha256(archive, recipe.sha256)
        return self.extract(archive)

    def download(self, url: str) -> Path:
        """下载到 work_dir/<归档文件名>，边下载边写盘"""
        validate_url_scheme(url, context="source download")
        self.work_dir.mkdir(parents=True, exist_ok=True)
        dest = self.work_dir / archive_name(url)

        logger.info("  下载: %s", url)
        try:
            with urllib.request.urlopen(url, timeout=self.timeout) as resp:  # nosec B310
                status = getattr(resp, "status", 200)
                if not 200 <= status < 300:
                    raise FetchError(f"下载失败: {url} - HTTP {status}")
                with open(dest, "wb") as out:
                    shutil.copyfileobj(resp, out, _CHUNK_SIZE)
        except urllib.error.HTTPError as e:
            dest.unlink(missing_ok=True)
            raise FetchError(f"下载失败: {url} - HTTP {e.code}") from e
        except (urllib.error.URLError, OSError) as e:
            dest.unlink(missing_ok=True)
            raise FetchError(f"下载失败: {url} - {e}") from e
        logger.info("  已保存: %s (%d 字节)", dest, dest.stat().st_size)
        return dest

    def extract(self, archive: Path) -> Path:
        """解压到 work_dir/src；归档只有一个顶层目录时返回该目录"""
        if not hasattr(tarfile, "data_filter"):
            raise FetchError(
                "当前 Python 的 tarfile 不支持解压过滤器 (需要 3.10.12+ / 3.11.4+)"
            )
        dest = self.work_dir / "src"
        dest.mkdir(parents=True, exist_ok=True)
        try:
            with tarfile.open(archive) as tf:
                tf.extractall(path=str(dest), filter="data")  # noqa: S202
        except (OSError, tarfile.TarError) as e:
            raise FetchError(f"解压失败: {archive.name} - {e}") from e

        entries = [p for p in dest.iterdir() if not p.name.startswith(".")]
        root = entries[0] if len(entries) == 1 and entries[0].is_dir() else dest
        logger.info("  解压就绪: %s -> %s", archive.name, root)
        return root
