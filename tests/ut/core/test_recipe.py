"""配方加载与校验测试"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from recipekit.core.exceptions import ValidationError
from recipekit.core.recipe import load_recipe, parse_recipe, resolve_recipe_path

SHA = "1906ca8721847a73a52d9d11e9810eb2025aed150298eb595584d1aa2e320b7b"


def _minimal(**overrides) -> dict:
    data = {
        "name": "tinytex",
        "url": "https://github.com/yihui/tinytex/archive/v0.1.tar.gz",
        "sha256": SHA,
        "install": {"dirs": ["texlive", "bin"]},
        "link": {"support_tree": "texlive/bin"},
    }
    data.update(overrides)
    return data


class TestParseRecipe:
    def test_minimal_defaults(self) -> None:
        r = parse_recipe(_minimal())
        assert r.name == "tinytex"
        assert r.version == "0.1"
        assert r.bin_dir == "bin"
        assert r.build_subdir == "."
        assert r.build_commands == ()
        assert r.smoke_test.version_arg == "--version"

    def test_explicit_version_wins(self) -> None:
        assert parse_recipe(_minimal(version="2024.1")).version == "2024.1"

    def test_head_url(self) -> None:
        r = parse_recipe(_minimal(head="https://example.com/master.tar.gz"))
        assert r.source_url(head=True) == "https://example.com/master.tar.gz"
        assert r.source_url() == r.url

    def test_uppercase_sha_normalized(self) -> None:
        assert parse_recipe(_minimal(sha256=SHA.upper())).sha256 == SHA

    def test_collects_all_problems(self) -> None:
        with pytest.raises(ValidationError) as exc:
            parse_recipe({"name": "bad name!", "sha256": "xyz"})
        details = "\n".join(exc.value.details)
        assert "url" in details
        assert "sha256" in details
        assert "name" in details
        assert "install.dirs" in details
        assert "link.support_tree" in details

    @pytest.mark.parametrize("field, value", [
        ("build", {"subdir": "../escape"}),
        ("install", {"dirs": ["/abs"]}),
        ("link", {"support_tree": "a/../../b"}),
    ])
    def test_unsafe_paths_rejected(self, field: str, value: dict) -> None:
        with pytest.raises(ValidationError, match="配方无效"):
            parse_recipe(_minimal(**{field: value}))

    def test_scenario_output_must_stay_in_scratch_dir(self) -> None:
        with pytest.raises(ValidationError) as exc:
            parse_recipe(_minimal(test={
                "input": "test.tex",
                "scenarios": [{"executable": "pdflatex", "output": "../x"}],
            }))
        assert any("scenarios[0].output" in d for d in exc.value.details)

    def test_scenarios_require_input(self) -> None:
        with pytest.raises(ValidationError) as exc:
            parse_recipe(_minimal(test={"scenarios": [{"executable": "pdflatex"}]}))
        assert any("test.input" in d for d in exc.value.details)

    def test_smoke_test_parsed(self) -> None:
        r = parse_recipe(_minimal(test={
            "executables": ["pdflatex", "xelatex"],
            "input": "test.tex",
            "template": "\\documentclass{article}",
            "scenarios": [{"executable": "pdflatex", "output": "test.pdf"}, "lualatex"],
        }))
        st = r.smoke_test
        assert st.executables == ("pdflatex", "xelatex")
        assert st.scenarios[0].output == "test.pdf"
        assert st.scenarios[1].executable == "lualatex"
        assert st.scenarios[1].output == ""


class TestLoadRecipe:
    def test_load_by_name(self, tmp_path: Path) -> None:
        (tmp_path / "tinytex.yml").write_text(yaml.dump(_minimal()))
        r = load_recipe("tinytex", recipes_dir=tmp_path)
        assert r.name == "tinytex"
        assert r.source_path.endswith("tinytex.yml")

    def test_load_by_path(self, tmp_path: Path) -> None:
        path = tmp_path / "any.yaml"
        path.write_text(yaml.dump(_minimal()))
        assert load_recipe(str(path)).name == "tinytex"

    def test_missing_recipe(self, tmp_path: Path) -> None:
        with pytest.raises(ValidationError, match="配方不存在"):
            resolve_recipe_path("nope", recipes_dir=tmp_path)

    def test_non_mapping_file(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValidationError, match="无法解析"):
            load_recipe(str(path))

    def test_bundled_tinytex_recipe(self) -> None:
        root = Path(__file__).resolve().parents[3]
        r = load_recipe("tinytex", recipes_dir=root / "recipes")
        assert r.build_subdir == "tools"
        assert r.build_commands == ("make", "make bin")
        assert r.artifact_dirs == ("texlive", "bin")
        assert r.support_tree == "texlive/bin"
        assert r.head_url.endswith("master.tar.gz")
        assert [s.executable for s in r.smoke_test.scenarios] == [
            "pdflatex", "xelatex", "lualatex",
        ]
        assert "\\documentclass{article}" in r.smoke_test.template
