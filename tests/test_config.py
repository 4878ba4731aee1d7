from __future__ import annotations

import pytest

from dbdoc.core.config import expand_path, flatten, load_config
from dbdoc.core.errors import ConfigError


def test_flatten_nested_tables_and_lists():
    assert flatten(
        {
            "limit": {"include-tables": ".*BOOKS", "table-types": ["TABLE", "VIEW"]},
            "diagram": {"graph": {"rankdir": "LR"}, "no-info": True},
        }
    ) == {
        "limit.include-tables": ".*BOOKS",
        "limit.table-types": "TABLE,VIEW",
        "diagram.graph.rankdir": "LR",
        "diagram.no-info": True,
    }


def test_load_config(tmp_path):
    path = tmp_path / "dbdoc.toml"
    path.write_text(
        '[load]\ninfo-level = "maximum"\n\n[diagram]\n"graph.splines" = "ortho"\n',
        encoding="utf-8",
    )

    assert load_config(path) == {
        "load.info-level": "maximum",
        "diagram.graph.splines": "ortho",
    }


def test_load_config_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="Cannot read config file") as excinfo:
        load_config(tmp_path / "missing.toml")

    assert excinfo.value.option == "file"


def test_load_config_invalid_toml(tmp_path):
    path = tmp_path / "broken.toml"
    path.write_text("[limit\ninclude-tables = 1\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="Invalid TOML"):
        load_config(path)


def test_expand_path_uses_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("DBDOC_TEST_DIR", str(tmp_path))

    assert expand_path("$DBDOC_TEST_DIR/dbdoc.toml") == (tmp_path / "dbdoc.toml").resolve()
