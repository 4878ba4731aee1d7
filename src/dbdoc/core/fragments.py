"""Options fragment construction.

This module translates user intent (shell command arguments, CLI options or
config file values) into OptionsFragment instances. All validation happens
here, when a fragment is built: malformed regular expressions, unknown info
levels and negative depths are rejected with OptionValidationError, so that
composing fragments later can never fail.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from dbdoc.core.errors import OptionValidationError
from dbdoc.core.options import InclusionRule, InfoLevel, OptionsFragment, Retrieval

_LIMIT_CATEGORIES = ("schemas", "tables", "routines", "columns", "synonyms", "sequences")


def _split_types(value: str | Iterable[str] | None) -> tuple[str, ...] | None:
    """Normalize a comma-separated string or iterable of type names."""
    if value is None:
        return None
    items = value.split(",") if isinstance(value, str) else list(value)
    return tuple(sorted({item.strip().upper() for item in items if item.strip()}))


def _rule_or_none(
    include: str | None, exclude: str | None, *, option: str
) -> InclusionRule | None:
    if include is None and exclude is None:
        return None
    return InclusionRule.of(include, exclude, option=option)


def limit_fragment(
    *,
    include_schemas: str | None = None,
    exclude_schemas: str | None = None,
    include_tables: str | None = None,
    exclude_tables: str | None = None,
    include_routines: str | None = None,
    exclude_routines: str | None = None,
    include_columns: str | None = None,
    exclude_columns: str | None = None,
    include_synonyms: str | None = None,
    exclude_synonyms: str | None = None,
    include_sequences: str | None = None,
    exclude_sequences: str | None = None,
    table_types: str | Iterable[str] | None = None,
    routine_types: str | Iterable[str] | None = None,
) -> OptionsFragment:
    """
    Build a limit fragment from include/exclude patterns.

    Each category's include and exclude patterns form one InclusionRule, and
    the rule replaces the previous one for that category as a whole. A
    category for which neither pattern is given is left out of the fragment.

    Raises:
        OptionValidationError: If a pattern is not a valid regular expression.
    """
    given = {
        "schemas": (include_schemas, exclude_schemas),
        "tables": (include_tables, exclude_tables),
        "routines": (include_routines, exclude_routines),
        "columns": (include_columns, exclude_columns),
        "synonyms": (include_synonyms, exclude_synonyms),
        "sequences": (include_sequences, exclude_sequences),
    }
    values: dict[str, Any] = {}
    for category in _LIMIT_CATEGORIES:
        include, exclude = given[category]
        rule = _rule_or_none(include, exclude, option=f"include-{category}")
        if rule is not None:
            values[category] = rule

    types = _split_types(table_types)
    if types is not None:
        values["table_types"] = types
    types = _split_types(routine_types)
    if types is not None:
        values["routine_types"] = types

    return OptionsFragment("limit", values)


def grep_fragment(
    *,
    grep_columns: str | None = None,
    grep_routine_parameters: str | None = None,
    grep_definitions: str | None = None,
    invert_match: bool | None = None,
    only_matching: bool | None = None,
) -> OptionsFragment:
    """
    Build a grep fragment.

    Raises:
        OptionValidationError: If a pattern is not a valid regular expression.
    """
    values: dict[str, Any] = {}
    for name, pattern in (
        ("grep_columns", grep_columns),
        ("grep_routine_parameters", grep_routine_parameters),
        ("grep_definitions", grep_definitions),
    ):
        if pattern is not None:
            values[name] = InclusionRule.of(pattern, option=name.replace("_", "-"))
    if invert_match is not None:
        values["invert_match"] = bool(invert_match)
    if only_matching is not None:
        values["only_matching"] = bool(only_matching)
    return OptionsFragment("grep", values)


def parse_info_level(value: str | InfoLevel) -> InfoLevel:
    """Return the InfoLevel named by `value` (case-insensitive)."""
    if isinstance(value, InfoLevel):
        return value
    try:
        return InfoLevel(value.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(level.value for level in InfoLevel)
        raise OptionValidationError(
            f"Unknown info level '{value}' (expected one of: {allowed})",
            option="info-level",
        ) from exc


def parse_retrievals(value: str | Iterable[str]) -> frozenset[Retrieval]:
    """Parse a comma-separated list of retrieval names."""
    items = value.split(",") if isinstance(value, str) else list(value)
    out: set[Retrieval] = set()
    for item in items:
        name = item.strip().lower().replace("_", "-")
        if not name:
            continue
        try:
            out.add(Retrieval(name))
        except ValueError as exc:
            allowed = ", ".join(r.value for r in Retrieval)
            raise OptionValidationError(
                f"Unknown retrieval '{item}' (expected any of: {allowed})",
                option="retrieve",
            ) from exc
    return frozenset(out)


def load_fragment(
    *,
    info_level: str | InfoLevel | None = None,
    retrieve: str | Iterable[str] | None = None,
    weak_associations: bool | None = None,
    load_row_counts: bool | None = None,
) -> OptionsFragment:
    """
    Build a load fragment.

    Passing `retrieve` without an info level implies the `custom` level.

    Raises:
        OptionValidationError: If the info level or a retrieval is unknown.
    """
    values: dict[str, Any] = {}
    if info_level is not None:
        values["info_level"] = parse_info_level(info_level)
    if retrieve is not None:
        values["custom_retrievals"] = parse_retrievals(retrieve)
        values.setdefault("info_level", InfoLevel.CUSTOM)
    if values.get("info_level") == InfoLevel.CUSTOM and "custom_retrievals" not in values:
        raise OptionValidationError(
            "Info level 'custom' needs a --retrieve list", option="retrieve"
        )
    if weak_associations is not None:
        values["retrieve_weak_associations"] = bool(weak_associations)
    if load_row_counts is not None:
        values["load_row_counts"] = bool(load_row_counts)
    return OptionsFragment("load", values)


def _depth(value: int | str | None, *, option: str) -> int | None:
    if value is None:
        return None
    try:
        depth = int(value)
    except (TypeError, ValueError) as exc:
        raise OptionValidationError(
            f"Expected a whole number, got '{value}'", option=option
        ) from exc
    if depth < 0:
        raise OptionValidationError("Depth must be >= 0", option=option)
    return depth


def filter_fragment(
    *,
    parents: int | str | None = None,
    children: int | str | None = None,
    no_empty_tables: bool | None = None,
) -> OptionsFragment:
    """
    Build a filter fragment.

    Raises:
        OptionValidationError: If a depth is negative or not a number.
    """
    values: dict[str, Any] = {}
    depth = _depth(parents, option="parents")
    if depth is not None:
        values["parent_table_depth"] = depth
    depth = _depth(children, option="children")
    if depth is not None:
        values["child_table_depth"] = depth
    if no_empty_tables is not None:
        values["no_empty_tables"] = bool(no_empty_tables)
    return OptionsFragment("filter", values)


def parse_bool(value: Any, *, option: str) -> bool:
    """Interpret config-style truthy/falsy values."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on", ""}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    raise OptionValidationError(f"Expected true/false, got '{value}'", option=option)


FRAGMENT_BUILDERS = {
    "limit": limit_fragment,
    "grep": grep_fragment,
    "load": load_fragment,
    "filter": filter_fragment,
}

_BOOLEAN_ARGUMENTS = {
    "invert_match",
    "only_matching",
    "weak_associations",
    "load_row_counts",
    "no_empty_tables",
}


def build_fragment(section: str, arguments: Mapping[str, Any]) -> OptionsFragment:
    """
    Build a fragment for `section` from dashed key/value arguments.

    Keys use the command-line spelling (`include-tables`, `only-matching`);
    boolean arguments accept true/false style strings.

    Raises:
        OptionValidationError: For unknown keys or invalid values.
    """
    builder = FRAGMENT_BUILDERS.get(section)
    if builder is None:
        raise OptionValidationError(f"Unknown options section '{section}'")

    kwargs: dict[str, Any] = {}
    accepted = builder.__kwdefaults__ or {}
    for key, value in arguments.items():
        name = key.strip().lstrip("-").replace("-", "_")
        if name not in accepted:
            raise OptionValidationError(
                f"Unknown {section} argument '--{key.lstrip('-')}'", option=key
            )
        if name in _BOOLEAN_ARGUMENTS:
            value = parse_bool(value, option=key)
        elif value is True:
            raise OptionValidationError(f"--{key.lstrip('-')} requires a value", option=key)
        kwargs[name] = value
    return builder(**kwargs)


def fragments_from_config(config: Mapping[str, Any]) -> list[OptionsFragment]:
    """
    Build baseline fragments from flattened config keys.

    Keys look like `limit.include-tables` or `load.info-level`. Sections
    without keys produce no fragment.
    """
    out: list[OptionsFragment] = []
    for section in FRAGMENT_BUILDERS:
        prefix = f"{section}."
        arguments = {
            key[len(prefix):]: value
            for key, value in config.items()
            if key.startswith(prefix)
        }
        if arguments:
            out.append(build_fragment(section, arguments))
    return out
