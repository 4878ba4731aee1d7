"""Catalog object model.

These models represent crawled database metadata in a simple, immutable
form. They are free of driver and SDK types as well as UI/CLI concerns, so
crawlers can build them and formatters can render them without knowing
about each other.
"""

from __future__ import annotations

from dataclasses import dataclass, field


def qualify(schema: str | None, name: str) -> str:
    """Return `schema.name`, or just `name` when there is no schema."""
    return f"{schema}.{name}" if schema else name


@dataclass(frozen=True)
class CrawlInfo:
    """Information about the crawl itself and the crawled server."""

    generator_version: str
    crawl_timestamp: str
    server: str = ""
    database_product: str = ""
    database_version: str = ""
    driver_version: str = ""
    title: str = ""


@dataclass(frozen=True)
class ColumnDataType:
    """A data type known to the database."""

    name: str
    schema: str | None = None
    user_defined: bool = False
    base_type: str | None = None

    @property
    def full_name(self) -> str:
        return qualify(self.schema, self.name)


@dataclass(frozen=True)
class Column:
    """A table column."""

    name: str
    data_type: str
    ordinal: int
    nullable: bool = True
    default: str | None = None
    remarks: str | None = None
    part_of_primary_key: bool = False


@dataclass(frozen=True)
class PrimaryKey:
    """Primary key constraint of a table."""

    name: str
    columns: tuple[str, ...]


@dataclass(frozen=True)
class ForeignKey:
    """
    Foreign key from a child table to a referenced (parent) table.

    Attributes:
        name: Constraint name.
        columns: Child column names, in key order.
        referenced_table: Full name of the parent table.
        referenced_columns: Parent column names, matching `columns`.
    """

    name: str
    columns: tuple[str, ...]
    referenced_table: str
    referenced_columns: tuple[str, ...]


@dataclass(frozen=True)
class WeakAssociation:
    """Inferred relationship that is not declared as a foreign key."""

    column: str
    referenced_table: str
    referenced_column: str


@dataclass(frozen=True)
class Index:
    """Table index."""

    name: str
    columns: tuple[str, ...]
    unique: bool = False


@dataclass(frozen=True)
class Table:
    """A table or view with its crawled details."""

    schema: str | None
    name: str
    table_type: str = "TABLE"
    columns: tuple[Column, ...] = ()
    primary_key: PrimaryKey | None = None
    foreign_keys: tuple[ForeignKey, ...] = ()
    indexes: tuple[Index, ...] = ()
    weak_associations: tuple[WeakAssociation, ...] = ()
    remarks: str | None = None
    definition: str | None = None
    row_count: int | None = None

    @property
    def full_name(self) -> str:
        return qualify(self.schema, self.name)

    def column(self, name: str) -> Column | None:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def column_full_name(self, column: Column | str) -> str:
        name = column if isinstance(column, str) else column.name
        return f"{self.full_name}.{name}"


@dataclass(frozen=True)
class RoutineParameter:
    """Routine parameter."""

    name: str
    data_type: str
    mode: str = "IN"


@dataclass(frozen=True)
class Routine:
    """A stored procedure or function."""

    schema: str | None
    name: str
    routine_type: str = "FUNCTION"
    return_type: str = ""
    parameters: tuple[RoutineParameter, ...] = ()
    remarks: str | None = None
    definition: str | None = None

    @property
    def full_name(self) -> str:
        return qualify(self.schema, self.name)


@dataclass(frozen=True)
class Sequence:
    """A sequence generator."""

    schema: str | None
    name: str
    increment: int = 1
    minimum_value: int | None = None
    maximum_value: int | None = None
    cycle: bool = False
    remarks: str | None = None

    @property
    def full_name(self) -> str:
        return qualify(self.schema, self.name)


@dataclass(frozen=True)
class Synonym:
    """An alias for another database object."""

    schema: str | None
    name: str
    referenced_object: str
    remarks: str | None = None

    @property
    def full_name(self) -> str:
        return qualify(self.schema, self.name)


@dataclass(frozen=True)
class Catalog:
    """The crawled model of a database, handed to formatters as-is."""

    crawl_info: CrawlInfo
    schemas: tuple[str, ...] = ()
    column_data_types: tuple[ColumnDataType, ...] = ()
    tables: tuple[Table, ...] = ()
    routines: tuple[Routine, ...] = ()
    synonyms: tuple[Synonym, ...] = ()
    sequences: tuple[Sequence, ...] = ()
    _tables_by_name: dict[str, Table] = field(
        init=False, repr=False, compare=False, hash=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "_tables_by_name", {t.full_name: t for t in self.tables}
        )

    def lookup_table(self, full_name: str) -> Table | None:
        return self._tables_by_name.get(full_name)
