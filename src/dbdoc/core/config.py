"""Config file loading.

A config file is TOML. Its nested tables are flattened into dotted keys, so

    [limit]
    include-tables = ".*BOOKS"

    [diagram]
    "graph.splines" = "ortho"

becomes `{"limit.include-tables": ".*BOOKS", "diagram.graph.splines": "ortho"}`.
The `limit`, `grep`, `load` and `filter` sections provide baseline crawl
options; `text`, `diagram`, `json` and `lint` provide formatter defaults;
`connect` and `output` provide connection and output defaults.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Mapping

from dbdoc.core.errors import ConfigError

CONFIG_FILE_ENV = "DBDOC_CONFIG_FILE"


def expand_path(path_str: str | Path) -> Path:
    """Expand user/env vars and return an absolute path."""
    return Path(os.path.expandvars(str(path_str))).expanduser().resolve()


def flatten(data: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested tables into dotted keys."""
    out: dict[str, Any] = {}
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, Mapping):
            out.update(flatten(value, prefix=f"{name}."))
        elif isinstance(value, list):
            out[name] = ",".join(str(v) for v in value)
        else:
            out[name] = value
    return out


def load_config(path: str | Path) -> dict[str, Any]:
    """
    Read a TOML config file into a flat key/value mapping.

    Raises:
        ConfigError: If the file is missing, unreadable or not valid TOML.
    """
    resolved = expand_path(path)
    try:
        text = resolved.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(
            f"Cannot read config file {resolved}: {exc}", option="file"
        ) from exc
    try:
        loaded = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Invalid TOML in config file {resolved}: {exc}", option="file"
        ) from exc
    return flatten(loaded)
