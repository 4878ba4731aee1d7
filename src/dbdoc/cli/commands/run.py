"""One-shot report command: connect, apply options, execute, exit."""

from __future__ import annotations

from pathlib import Path

import typer

from dbdoc.cli.common.command_builder import parse_settings
from dbdoc.cli.common.context import AppContext, build_store
from dbdoc.cli.common.exits import exit_from_exc
from dbdoc.cli.common.options import (
    CatalogOpt,
    ChildrenOpt,
    DatabaseOpt,
    ExcludeColumnsOpt,
    ExcludeRoutinesOpt,
    ExcludeSchemasOpt,
    ExcludeTablesOpt,
    FormatOpt,
    GrepColumnsOpt,
    GrepDefinitionsOpt,
    GrepRoutineParametersOpt,
    IncludeColumnsOpt,
    IncludeRoutinesOpt,
    IncludeSchemasOpt,
    IncludeTablesOpt,
    InfoLevelOpt,
    InvertMatchOpt,
    LoadRowCountsOpt,
    NoEmptyTablesOpt,
    OnlyMatchingOpt,
    OutputFileOpt,
    ParentsOpt,
    ProfileOpt,
    RetrieveOpt,
    ServerOpt,
    SettingOpt,
    TableTypesOpt,
    TitleOpt,
    WeakAssociationsOpt,
)
from dbdoc.cli.common.output import out
from dbdoc.core.commands import Command, Connect, Execute, Exit, Filter, Grep, Limit, Load
from dbdoc.core.errors import DbdocError
from dbdoc.core.fragments import (
    filter_fragment,
    grep_fragment,
    limit_fragment,
    load_fragment,
)


def run(
    ctx: typer.Context,
    server: str | None = ServerOpt,
    database: str | None = DatabaseOpt,
    catalog: str | None = CatalogOpt,
    profile: str | None = ProfileOpt,
    output_format: str | None = FormatOpt,
    output_file: Path | None = OutputFileOpt,
    title: str | None = TitleOpt,
    setting: list[str] = SettingOpt,
    include_schemas: str | None = IncludeSchemasOpt,
    exclude_schemas: str | None = ExcludeSchemasOpt,
    include_tables: str | None = IncludeTablesOpt,
    exclude_tables: str | None = ExcludeTablesOpt,
    include_columns: str | None = IncludeColumnsOpt,
    exclude_columns: str | None = ExcludeColumnsOpt,
    include_routines: str | None = IncludeRoutinesOpt,
    exclude_routines: str | None = ExcludeRoutinesOpt,
    table_types: str | None = TableTypesOpt,
    grep_columns: str | None = GrepColumnsOpt,
    grep_routine_parameters: str | None = GrepRoutineParametersOpt,
    grep_definitions: str | None = GrepDefinitionsOpt,
    invert_match: bool = InvertMatchOpt,
    only_matching: bool = OnlyMatchingOpt,
    info_level: str | None = InfoLevelOpt,
    retrieve: str | None = RetrieveOpt,
    weak_associations: bool = WeakAssociationsOpt,
    load_row_counts: bool = LoadRowCountsOpt,
    parents: int | None = ParentsOpt,
    children: int | None = ChildrenOpt,
    no_empty_tables: bool = NoEmptyTablesOpt,
):
    """Connect, crawl and write one report."""
    appctx: AppContext = ctx.obj
    store = build_store(appctx.config_file)

    try:
        commands: list[Command] = []
        for cls, fragment in (
            (
                Limit,
                limit_fragment(
                    include_schemas=include_schemas,
                    exclude_schemas=exclude_schemas,
                    include_tables=include_tables,
                    exclude_tables=exclude_tables,
                    include_columns=include_columns,
                    exclude_columns=exclude_columns,
                    include_routines=include_routines,
                    exclude_routines=exclude_routines,
                    table_types=table_types,
                ),
            ),
            (
                Grep,
                grep_fragment(
                    grep_columns=grep_columns,
                    grep_routine_parameters=grep_routine_parameters,
                    grep_definitions=grep_definitions,
                    invert_match=invert_match or None,
                    only_matching=only_matching or None,
                ),
            ),
            (
                Load,
                load_fragment(
                    info_level=info_level,
                    retrieve=retrieve,
                    weak_associations=weak_associations or None,
                    load_row_counts=load_row_counts or None,
                ),
            ),
            (
                Filter,
                filter_fragment(
                    parents=parents,
                    children=children,
                    no_empty_tables=no_empty_tables or None,
                ),
            ),
        ):
            if fragment:
                commands.append(cls(fragment=fragment))

        connect_args = {
            key: value
            for key, value in (
                ("database", database),
                ("catalog", catalog),
                ("profile", profile),
            )
            if value
        }
        commands.append(Connect(server=server, arguments=connect_args))
        commands.append(
            Execute(
                output_format=output_format,
                output_file=output_file,
                title=title,
                settings=parse_settings(setting),
            )
        )

        for command in commands:
            if isinstance(command, Execute) and command.output_file is not None:
                with out.status("Crawling catalog..."):
                    result = store.apply_command(command)
                out.success(result.message)
            else:
                store.apply_command(command)
        store.apply_command(Exit())
    except DbdocError as exc:
        store.close()
        exit_from_exc(exc)
