"""配方加载

配方为单个 YAML 文件，字段见 recipes/tinytex.yml:

    name / description / homepage
    url + sha256        稳定版源码包（哈希固定）
    head                不稳定版源码包（不做哈希校验）
    build.subdir        构建子目录
    build.commands      构建命令列表（按顺序执行）
    install.dirs        需要复制到前缀的产物目录
    link.bin_dir        平铺的可执行目录
    link.support_tree   按版本/平台分子目录的可执行文件树
    test.*              冒烟测试

用法:
    recipe = load_recipe("tinytex", recipes_dir="recipes")
"""

from __future__ import annotations

import logging
import re
from pathlib import Path, PurePosixPath
from typing import Any

import yaml

from recipekit.core.exceptions import ValidationError
from recipekit.core.models import CompileScenario, Recipe, SmokeTest
from recipekit.utils.net import version_from_url
from recipekit.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

_SHA256_RE = re.compile(r"^[0-9a-f]{64}$")
_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._+-]*$")


def resolve_recipe_path(ref: str, recipes_dir: str | Path = "recipes") -> Path:
    """解析配方引用: 已存在的文件路径直接使用，否则按名称在 recipes_dir 中查找"""
    p = Path(ref)
    if p.is_file():
        return p
    for suffix in (".yml", ".yaml"):
        candidate = Path(recipes_dir) / f"{ref}{suffix}"
        if candidate.is_file():
            return candidate
    raise ValidationError(f"配方不存在: {ref} (recipes_dir={recipes_dir})")


def load_recipe(ref: str, recipes_dir: str | Path = "recipes") -> Recipe:
    """加载并校验配方文件"""
    path = resolve_recipe_path(ref, recipes_dir)
    try:
        data = load_yaml(path)
    except (ValueError, yaml.YAMLError) as e:
        raise ValidationError(f"配方文件无法解析: {path}: {e}") from e
    recipe = parse_recipe(data, source_path=str(path))
    logger.info("已加载配方: %s %s (%s)", recipe.name, recipe.version, path)
    return recipe


def parse_recipe(data: dict[str, Any], source_path: str = "") -> Recipe:
    """从字典构造 Recipe，收集全部问题后一次性抛出 ValidationError"""
    problems: list[str] = []

    name = _str(data, "name")
    url = _str(data, "url")
    sha256 = _str(data, "sha256").lower()
    if not name:
        problems.append("name 为必填")
    elif not _NAME_RE.match(name):
        problems.append(f"name 含非法字符: {name}")
    if not url:
        problems.append("url 为必填")
    if not sha256:
        problems.append("sha256 为必填")
    elif not _SHA256_RE.match(sha256):
        problems.append(f"sha256 必须是 64 位十六进制: {sha256}")

    build = _section(data, "build", problems)
    install = _section(data, "install", problems)
    link = _section(data, "link", problems)
    test = _section(data, "test", problems)

    build_subdir = str(build.get("subdir") or ".")
    commands = _str_list(build, "commands", problems, prefix="build")
    artifact_dirs = _str_list(install, "dirs", problems, prefix="install")
    if not artifact_dirs:
        problems.append("install.dirs 至少需要一个目录")
    bin_dir = str(link.get("bin_dir") or "bin")
    support_tree = str(link.get("support_tree") or "")
    if not support_tree:
        problems.append("link.support_tree 为必填")

    for label, rel in [("build.subdir", build_subdir), ("link.bin_dir", bin_dir),
                       ("link.support_tree", support_tree),
                       *(("install.dirs", d) for d in artifact_dirs)]:
        if rel and not _is_safe_relative(rel):
            problems.append(f"{label} 必须是不含 '..' 的相对路径: {rel}")

    smoke = _parse_smoke_test(test, problems)

    if problems:
        raise ValidationError(f"配方无效: {source_path or name or '<unnamed>'}", details=problems)

    version = _str(data, "version") or version_from_url(url)
    return Recipe(
        name=name,
        url=url,
        sha256=sha256,
        version=version,
        description=_str(data, "description"),
        homepage=_str(data, "homepage"),
        head_url=_str(data, "head"),
        build_subdir=build_subdir,
        build_commands=tuple(commands),
        artifact_dirs=tuple(artifact_dirs),
        bin_dir=bin_dir,
        support_tree=support_tree,
        smoke_test=smoke,
        source_path=source_path,
    )


def _parse_smoke_test(test: dict[str, Any], problems: list[str]) -> SmokeTest:
    scenarios: list[CompileScenario] = []
    raw = test.get("scenarios") or []
    if not isinstance(raw, list):
        problems.append("test.scenarios 必须是列表")
        raw = []
    for i, item in enumerate(raw):
        if isinstance(item, str):
            scenarios.append(CompileScenario(executable=item))
        elif isinstance(item, dict) and item.get("executable"):
            output = str(item.get("output") or "")
            if output and not _is_safe_relative(output):
                problems.append(f"test.scenarios[{i}].output 必须是相对文件名: {output}")
            scenarios.append(CompileScenario(
                executable=str(item["executable"]), output=output,
            ))
        else:
            problems.append(f"test.scenarios[{i}] 缺少 executable")

    input_name = str(test.get("input") or "")
    template = str(test.get("template") or "")
    if scenarios and not input_name:
        problems.append("test.input 为必填（存在编译场景时）")
    if input_name and not _is_safe_relative(input_name):
        problems.append(f"test.input 必须是相对文件名: {input_name}")

    return SmokeTest(
        version_arg=str(test.get("version_arg") or "--version"),
        executables=tuple(_str_list(test, "executables", problems, prefix="test")),
        input_name=input_name,
        template=template,
        scenarios=tuple(scenarios),
    )


def _str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return str(value).strip() if value is not None else ""


def _section(data: dict[str, Any], key: str, problems: list[str]) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        problems.append(f"{key} 必须是映射")
        return {}
    return value


def _str_list(
    data: dict[str, Any], key: str, problems: list[str], *, prefix: str,
) -> list[str]:
    value = data.get(key) or []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        problems.append(f"{prefix}.{key} 必须是字符串列表")
        return []
    return [str(v) for v in value if v is not None and str(v).strip()]


def _is_safe_relative(rel: str) -> bool:
    p = PurePosixPath(rel)
    return not p.is_absolute() and ".." not in p.parts
