"""网络工具 - URL 校验与归档文件名推导"""

from __future__ import annotations

from urllib.parse import unquote, urlparse

from recipekit.core.exceptions import ValidationError

_ALLOWED_SCHEMES = frozenset(("http", "https"))


def validate_url_scheme(url: str, *, context: str = "") -> None:
    """校验 URL 仅使用 http/https

    Raises:
        ValidationError: URL scheme 不在白名单内
    """
    parsed = urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        label = f" ({context})" if context else ""
        raise ValidationError(
            f"不允许的 URL 协议 '{parsed.scheme}'{label}，仅支持 http/https: {url}"
        )


def archive_name(url: str, default: str = "source.tar.gz") -> str:
    """从 URL 路径推导归档文件名，如 .../archive/v0.1.tar.gz -> v0.1.tar.gz"""
    path = unquote(urlparse(url).path).rstrip("/")
    name = path.rsplit("/", 1)[-1]
    return name or default


def version_from_url(url: str) -> str:
    """从归档文件名推导版本号: v0.1.tar.gz -> 0.1，master.tar.gz -> master"""
    name = archive_name(url, default="")
    for suffix in (".tar.gz", ".tgz", ".tar.bz2", ".tar.xz", ".tar", ".zip"):
        if name.endswith(suffix):
            name = name[: -len(suffix)]
            break
    if name[:1] == "v" and name[1:2].isdigit():
        name = name[1:]
    return name
