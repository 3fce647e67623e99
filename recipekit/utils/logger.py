"""recipekit 日志配置

统一配置根日志器，支持人类可读文本与结构化 JSON 两种输出。
流水线通过 extra={"stage": ...} 标注阶段，JSON 输出会带上该字段。
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone


class JSONFormatter(logging.Formatter):
    """结构化 JSON 日志格式器，便于 CI 流水线消费

    输出格式:
        {
            "timestamp": "2024-01-01T12:00:00+00:00",
            "level": "INFO",
            "logger": "recipekit.services.pipeline",
            "message": "...",
            "stage": "build",          (仅在日志带 stage 时)
            "exception": "traceback..." (仅在有异常时)
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        """格式化日志记录为 JSON 字符串

        参数:
            record: 日志记录对象，extra={"stage": ...} 会作为 stage 字段输出

        返回:
            str: 单行 JSON，非 ASCII 字符原样保留
        """
        log_entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        stage = getattr(record, "stage", None)
        if stage:
            log_entry["stage"] = stage
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """配置根日志器

    参数:
        level: 日志级别字符串（DEBUG, INFO, WARNING, ERROR, CRITICAL）
        json_output: 为 True 时使用 JSON 格式（适用于 CI）

    说明:
        - 输出到 stderr，stdout 留给命令结果
        - 重复调用时先清理已有 handlers，避免重复输出
        - 未知级别字符串按 INFO 处理

    示例:
        >>> setup_logging("DEBUG")                     # 查看构建命令的逐行输出
        >>> setup_logging("INFO", json_output=True)    # CI 环境
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        fmt = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"
        handler.setFormatter(logging.Formatter(fmt))

    root.addHandler(handler)
