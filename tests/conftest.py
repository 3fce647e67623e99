"""测试共享 fixture - 本地 HTTP 服务 + 桩源码包 + 桩配方

桩源码包结构（stub-1.0.tar.gz）:

  stub-1.0/
    tools/build.sh      构建脚本，生成:
                          support/x86_64-test/foo   打印版本 / 处理输入文件
                          bin/foo                   待被 relink 替换的普通文件

foo 的行为:
  foo --version   -> 输出 "1.0"，退出码 0
  foo <file>      -> 生成 <file 去后缀>.out，退出码 0
"""

from __future__ import annotations

import functools
import hashlib
import http.server
import io
import tarfile
import threading
from pathlib import Path
from typing import Any, Callable

import pytest

from recipekit.core.models import Recipe
from recipekit.core.recipe import parse_recipe

FOO_SCRIPT = """#!/bin/sh
if [ "$1" = "--version" ]; then echo "1.0"; exit 0; fi
if [ -f "$1" ]; then echo compiled > "${1%.*}.out"; exit 0; fi
echo "no input: $1" >&2
exit 2
"""

BUILD_SCRIPT = """#!/bin/sh
set -e
mkdir -p support/x86_64-test bin
cat > support/x86_64-test/foo <<'EOS'
""" + FOO_SCRIPT + """EOS
chmod +x support/x86_64-test/foo
echo stale > bin/foo
echo "build ok"
"""


def build_tarball(dest: Path, files: dict[str, str], top: str = "stub-1.0") -> Path:
    """把 {相对路径: 内容} 打成 tar.gz"""
    with tarfile.open(dest, "w:gz") as tf:
        for rel, content in files.items():
            data = content.encode()
            info = tarfile.TarInfo(f"{top}/{rel}" if top else rel)
            info.size = len(data)
            info.mode = 0o755
            tf.addfile(info, io.BytesIO(data))
    return dest


class _QuietHandler(http.server.SimpleHTTPRequestHandler):
    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        pass


@pytest.fixture()
def http_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """启动本地 HTTP 服务，返回 (服务目录, 基础 URL)"""
    monkeypatch.setenv("no_proxy", "127.0.0.1,localhost")
    monkeypatch.setenv("NO_PROXY", "127.0.0.1,localhost")
    root = tmp_path / "www"
    root.mkdir()
    handler = functools.partial(_QuietHandler, directory=str(root))
    server = http.server.ThreadingHTTPServer(("127.0.0.1", 0), handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield root, f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture()
def stub_archive(http_root) -> tuple[str, str, Path]:
    """发布桩源码包，返回 (url, sha256, 本地路径)"""
    root, base_url = http_root
    archive = build_tarball(root / "stub-1.0.tar.gz", {"tools/build.sh": BUILD_SCRIPT})
    digest = hashlib.sha256(archive.read_bytes()).hexdigest()
    return f"{base_url}/stub-1.0.tar.gz", digest, archive


def stub_recipe_data(url: str, sha256: str) -> dict[str, Any]:
    return {
        "name": "stub",
        "description": "end-to-end stub package",
        "url": url,
        "sha256": sha256,
        "build": {"subdir": "tools", "commands": ["sh build.sh"]},
        "install": {"dirs": ["support", "bin"]},
        "link": {"bin_dir": "bin", "support_tree": "support"},
        "test": {
            "executables": ["foo"],
            "input": "test.txt",
            "template": "hello\n",
            "scenarios": [{"executable": "foo", "output": "test.out"}],
        },
    }


@pytest.fixture()
def recipe_data(stub_archive) -> dict[str, Any]:
    """桩配方的原始字典（可修改后写成 YAML）"""
    url, digest, _ = stub_archive
    return stub_recipe_data(url, digest)


@pytest.fixture()
def make_recipe(stub_archive) -> Callable[..., Recipe]:
    """构造桩配方，关键字参数覆盖顶层字段"""
    url, digest, _ = stub_archive

    def _make(**overrides: Any) -> Recipe:
        data = stub_recipe_data(url, digest)
        data.update(overrides)
        return parse_recipe(data, source_path="stub.yml")

    return _make


@pytest.fixture()
def installed_prefix(tmp_path: Path) -> Path:
    """手工构造一个已安装前缀: support/x86_64-test/foo + bin/"""
    prefix = tmp_path / "prefix"
    exe = prefix / "support" / "x86_64-test" / "foo"
    exe.parent.mkdir(parents=True)
    exe.write_text(FOO_SCRIPT)
    exe.chmod(0o755)
    (prefix / "bin").mkdir()
    return prefix
