"""日志配置测试"""

from __future__ import annotations

import json
import logging

from recipekit.utils.logger import JSONFormatter, setup_logging


class TestJSONFormatter:
    def _record(self, **extra) -> logging.LogRecord:
        record = logging.LogRecord(
            "recipekit.test", logging.INFO, __file__, 1, "安装 %s", ("stub",), None,
        )
        for k, v in extra.items():
            setattr(record, k, v)
        return record

    def test_basic_fields(self) -> None:
        entry = json.loads(JSONFormatter().format(self._record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "recipekit.test"
        assert entry["message"] == "安装 stub"
        assert "stage" not in entry

    def test_stage_included(self) -> None:
        entry = json.loads(JSONFormatter().format(self._record(stage="build")))
        assert entry["stage"] == "build"


class TestSetupLogging:
    def test_replaces_handlers(self) -> None:
        root = logging.getLogger()
        saved = root.handlers[:], root.level
        try:
            setup_logging("DEBUG")
            setup_logging("WARNING", json_output=True)
            assert root.level == logging.WARNING
            ours = [h for h in root.handlers if isinstance(h.formatter, JSONFormatter)]
            assert len(ours) == 1
            assert len(root.handlers) == 1
        finally:
            for h in root.handlers[:]:
                root.removeHandler(h)
            for h in saved[0]:
                root.addHandler(h)
            root.setLevel(saved[1])
