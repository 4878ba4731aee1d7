"""Immutable crawl options and their composition.

Crawl configuration is split into four sections (limit, grep, load and
filter), each a frozen dataclass. The sections are bundled into a single
SchemaCrawlerOptions value. Options are never changed in place: a command
contributes an OptionsFragment holding only the fields it set explicitly,
and `compose` derives a new options value in which those fields replace the
old ones wholesale.

Composition is a left fold, so composing fragment A and then fragment B is
the same as composing the single fragment `A.overlay(B)`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from dbdoc.core.errors import OptionValidationError


def compile_pattern(pattern: str, *, option: str | None = None) -> re.Pattern:
    """Compile a regular expression, converting syntax errors to option errors."""
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise OptionValidationError(
            f"Invalid regex '{pattern}': {exc}", option=option
        ) from exc


@dataclass(frozen=True)
class InclusionRule:
    """
    Regular-expression rule deciding whether a named object is included.

    A full name is included when it fully matches `include` and does not
    fully match `exclude`. An empty exclude pattern excludes nothing.

    Attributes:
        include: Pattern a full name must match.
        exclude: Pattern that removes otherwise included names.
    """

    include: str = ".*"
    exclude: str = ""
    _include_rx: re.Pattern = field(init=False, repr=False, compare=False)
    _exclude_rx: re.Pattern | None = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_include_rx", compile_pattern(self.include))
        object.__setattr__(
            self,
            "_exclude_rx",
            compile_pattern(self.exclude) if self.exclude else None,
        )

    @classmethod
    def of(
        cls,
        include: str | None = None,
        exclude: str | None = None,
        *,
        option: str | None = None,
    ) -> InclusionRule:
        """Build a rule from optional patterns, tagging errors with the option name."""
        try:
            return cls(include=include or ".*", exclude=exclude or "")
        except OptionValidationError as exc:
            exc.option = exc.option or option
            raise

    @property
    def includes_all(self) -> bool:
        return self.include == ".*" and not self.exclude

    def matches(self, full_name: str) -> bool:
        """Return True if the full name is included by this rule."""
        if not self._include_rx.fullmatch(full_name):
            return False
        if self._exclude_rx is not None and self._exclude_rx.fullmatch(full_name):
            return False
        return True


INCLUDE_ALL = InclusionRule()


class InfoLevel(str, Enum):
    """
    Named depth policies for a crawl.

    Values:
        MINIMUM: Object names and types only.
        STANDARD: Columns, keys, indexes, routines and remarks.
        MAXIMUM: Everything the crawler can retrieve.
        CUSTOM: Exactly the retrievals listed in LoadOptions.custom_retrievals.
    """

    MINIMUM = "minimum"
    STANDARD = "standard"
    MAXIMUM = "maximum"
    CUSTOM = "custom"


class Retrieval(str, Enum):
    """Metadata categories a crawl can retrieve beyond object names."""

    COLUMNS = "columns"
    PRIMARY_KEYS = "primary-keys"
    FOREIGN_KEYS = "foreign-keys"
    INDEXES = "indexes"
    ROUTINES = "routines"
    SYNONYMS = "synonyms"
    SEQUENCES = "sequences"
    COLUMN_DATA_TYPES = "column-data-types"
    REMARKS = "remarks"
    DEFINITIONS = "definitions"


_STANDARD_RETRIEVALS = frozenset(
    {
        Retrieval.COLUMNS,
        Retrieval.PRIMARY_KEYS,
        Retrieval.FOREIGN_KEYS,
        Retrieval.INDEXES,
        Retrieval.ROUTINES,
        Retrieval.REMARKS,
    }
)

INFO_LEVEL_RETRIEVALS: Mapping[InfoLevel, frozenset[Retrieval]] = MappingProxyType(
    {
        InfoLevel.MINIMUM: frozenset(),
        InfoLevel.STANDARD: _STANDARD_RETRIEVALS,
        InfoLevel.MAXIMUM: frozenset(Retrieval),
    }
)


@dataclass(frozen=True)
class LimitOptions:
    """Inclusion rules per object category, applied to full names."""

    schemas: InclusionRule = INCLUDE_ALL
    tables: InclusionRule = INCLUDE_ALL
    routines: InclusionRule = INCLUDE_ALL
    columns: InclusionRule = INCLUDE_ALL
    synonyms: InclusionRule = INCLUDE_ALL
    sequences: InclusionRule = INCLUDE_ALL
    table_types: tuple[str, ...] = ()
    routine_types: tuple[str, ...] = ()


@dataclass(frozen=True)
class GrepOptions:
    """
    Rules matched against the contents of retrieved objects.

    Attributes:
        grep_columns: Rule on full column names (schema.table.column).
        grep_routine_parameters: Rule on full routine parameter names.
        grep_definitions: Rule searched in remarks and definitions.
        invert_match: Keep the objects that do NOT match.
        only_matching: Drop related tables pulled in by filter depth and
            foreign keys that point at tables outside the result.
    """

    grep_columns: InclusionRule | None = None
    grep_routine_parameters: InclusionRule | None = None
    grep_definitions: InclusionRule | None = None
    invert_match: bool = False
    only_matching: bool = False

    @property
    def is_active(self) -> bool:
        return any(
            rule is not None
            for rule in (
                self.grep_columns,
                self.grep_routine_parameters,
                self.grep_definitions,
            )
        )


@dataclass(frozen=True)
class LoadOptions:
    """Crawl depth policy and extra load toggles."""

    info_level: InfoLevel = InfoLevel.STANDARD
    custom_retrievals: frozenset[Retrieval] = frozenset()
    retrieve_weak_associations: bool = False
    load_row_counts: bool = False

    def retrievals(self) -> frozenset[Retrieval]:
        """Return the effective set of retrieved metadata categories."""
        if self.info_level == InfoLevel.CUSTOM:
            return self.custom_retrievals
        return INFO_LEVEL_RETRIEVALS[self.info_level]

    def retrieves(self, retrieval: Retrieval) -> bool:
        return retrieval in self.retrievals()


@dataclass(frozen=True)
class FilterOptions:
    """Post-crawl table filtering through foreign key relationships."""

    parent_table_depth: int = 0
    child_table_depth: int = 0
    no_empty_tables: bool = False


SECTIONS: Mapping[str, type] = MappingProxyType(
    {
        "limit": LimitOptions,
        "grep": GrepOptions,
        "load": LoadOptions,
        "filter": FilterOptions,
    }
)


@dataclass(frozen=True)
class SchemaCrawlerOptions:
    """All crawl options, one immutable value per section."""

    limit: LimitOptions = LimitOptions()
    grep: GrepOptions = GrepOptions()
    load: LoadOptions = LoadOptions()
    filter: FilterOptions = FilterOptions()


DEFAULT_OPTIONS = SchemaCrawlerOptions()


@dataclass(frozen=True)
class OptionsFragment:
    """
    Partial options for one section, holding only explicitly set fields.

    Attributes:
        section: One of `limit`, `grep`, `load` or `filter`.
        values: Field name to value; fields not present are left untouched
                when the fragment is composed.
    """

    section: str
    values: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        options_type = SECTIONS.get(self.section)
        if options_type is None:
            raise OptionValidationError(f"Unknown options section '{self.section}'")
        known = {f.name for f in fields(options_type)}
        unknown = sorted(set(self.values) - known)
        if unknown:
            raise OptionValidationError(
                f"Unknown {self.section} option(s): {', '.join(unknown)}",
                option=unknown[0],
            )
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def __hash__(self) -> int:
        return hash((self.section, tuple(sorted(self.values.items(), key=repr))))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OptionsFragment):
            return NotImplemented
        return self.section == other.section and dict(self.values) == dict(
            other.values
        )

    def __bool__(self) -> bool:
        return bool(self.values)

    def overlay(self, other: OptionsFragment) -> OptionsFragment:
        """Return one fragment with `other`'s explicit fields laid over this one."""
        if other.section != self.section:
            raise OptionValidationError(
                f"Cannot overlay a {other.section} fragment on a {self.section} fragment"
            )
        return OptionsFragment(self.section, {**self.values, **other.values})

    def apply_to(self, section_options: Any) -> Any:
        """Derive a new section value with this fragment's fields replaced."""
        if not self.values:
            return section_options
        return replace(section_options, **self.values)


def compose(
    base: SchemaCrawlerOptions, *fragments: OptionsFragment
) -> SchemaCrawlerOptions:
    """
    Compose fragments into options, left to right.

    `base` is never modified. For each fragment the matching section is
    copied and every explicit field of the fragment replaces the section's
    value wholesale; fields the fragment does not carry keep their value.

    Args:
        base: Options to start from.
        fragments: Fragments applied in order; later fragments win.

    Returns:
        A new SchemaCrawlerOptions value.
    """
    options = base
    for fragment in fragments:
        section_options = getattr(options, fragment.section)
        options = replace(
            options, **{fragment.section: fragment.apply_to(section_options)}
        )
    return options
