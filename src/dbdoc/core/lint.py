"""Schema lint rules.

Each linter inspects one table at a time and yields Lint findings. Linters
are pure and side-effect-free; the lint report formatter runs them during
traversal and serializes the findings.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator

from dbdoc.core.errors import OptionValidationError
from dbdoc.core.schema import Table


class Severity(str, Enum):
    """How serious a lint finding is."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Lint:
    """
    A single lint finding.

    Attributes:
        object_name: Full name of the linted object.
        linter_id: Id of the rule that produced the finding.
        severity: Severity of the rule.
        message: Human-readable description.
        value: Optional detail, such as the offending column or index.
    """

    object_name: str
    linter_id: str
    severity: Severity
    message: str
    value: str | None = None


class Linter(ABC):
    """Base class for table lint rules."""

    linter_id: str = ""
    severity: Severity = Severity.MEDIUM
    description: str = ""

    def lint(self, table: Table) -> Iterator[Lint]:
        for message, value in self.check(table):
            yield Lint(
                object_name=table.full_name,
                linter_id=self.linter_id,
                severity=self.severity,
                message=message,
                value=value,
            )

    @abstractmethod
    def check(self, table: Table) -> Iterable[tuple[str, str | None]]:
        """Yield (message, value) pairs for each problem found."""
        ...


def _is_view(table: Table) -> bool:
    return "VIEW" in table.table_type.upper()


class TableWithNoPrimaryKey(Linter):
    linter_id = "no-primary-key"
    severity = Severity.HIGH
    description = "Tables should have a primary key."

    def check(self, table):
        if not _is_view(table) and table.primary_key is None:
            yield "no primary key", None


class TableWithNoIndexes(Linter):
    linter_id = "no-indexes"
    severity = Severity.MEDIUM
    description = "Tables should have at least one index."

    def check(self, table):
        if not _is_view(table) and not table.indexes and table.primary_key is None:
            yield "no indexes", None


class ForeignKeyWithNoIndex(Linter):
    linter_id = "foreign-key-with-no-index"
    severity = Severity.MEDIUM
    description = "Foreign key columns should be covered by an index."

    def check(self, table):
        covered = [index.columns for index in table.indexes]
        if table.primary_key:
            covered.append(table.primary_key.columns)
        for fk in table.foreign_keys:
            width = len(fk.columns)
            if not any(tuple(cols[:width]) == tuple(fk.columns) for cols in covered):
                yield "foreign key with no index", fk.name


class NullableColumnInUniqueIndex(Linter):
    linter_id = "nullable-column-in-unique-index"
    severity = Severity.LOW
    description = "Columns of unique indexes should not be nullable."

    def check(self, table):
        for index in table.indexes:
            if not index.unique:
                continue
            for name in index.columns:
                column = table.column(name)
                if column is not None and column.nullable:
                    yield "unique index with nullable column", f"{index.name}.{name}"


class TableWithSingleColumn(Linter):
    linter_id = "single-column"
    severity = Severity.LOW
    description = "Tables with a single column are often a design smell."

    def check(self, table):
        if not _is_view(table) and len(table.columns) == 1:
            yield "single column", table.columns[0].name


class RedundantIndexes(Linter):
    linter_id = "redundant-index"
    severity = Severity.MEDIUM
    description = "Indexes whose columns prefix another index are redundant."

    def check(self, table):
        indexes = sorted(table.indexes, key=lambda i: i.name)
        for index in indexes:
            for other in indexes:
                if other is index or len(other.columns) <= len(index.columns):
                    continue
                if other.columns[: len(index.columns)] == index.columns:
                    yield "redundant index", index.name
                    break


class EmptyTable(Linter):
    linter_id = "empty-table"
    severity = Severity.LOW
    description = "Tables that hold no rows (only reported when row counts are loaded)."

    def check(self, table):
        if not _is_view(table) and table.row_count == 0:
            yield "empty table", None


class TableWithNoRemarks(Linter):
    linter_id = "no-remarks"
    severity = Severity.LOW
    description = "Tables should be documented with remarks."

    def check(self, table):
        if not (table.remarks or "").strip():
            yield "no remarks", None


ALL_LINTERS: tuple[type[Linter], ...] = (
    TableWithNoPrimaryKey,
    TableWithNoIndexes,
    ForeignKeyWithNoIndex,
    NullableColumnInUniqueIndex,
    TableWithSingleColumn,
    RedundantIndexes,
    EmptyTable,
    TableWithNoRemarks,
)


def build_linters(disabled: Iterable[str] = ()) -> list[Linter]:
    """
    Instantiate every linter except the disabled ones.

    Raises:
        OptionValidationError: If a disabled id does not name a linter.
    """
    known = {cls.linter_id for cls in ALL_LINTERS}
    disabled = {d.strip() for d in disabled if d.strip()}
    unknown = sorted(disabled - known)
    if unknown:
        raise OptionValidationError(
            f"Unknown linter id(s): {', '.join(unknown)}", option="disabled-linters"
        )
    return [cls() for cls in ALL_LINTERS if cls.linter_id not in disabled]
