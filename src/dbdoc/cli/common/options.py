"""Common CLI options for the CLI."""

import typer

from dbdoc.core.config import CONFIG_FILE_ENV

LogLevelOpt = typer.Option(
    "WARNING",
    "--log-level",
    "-l",
    help="Log level for dbdoc messages (DEBUG, INFO, WARNING, ERROR)",
    envvar="DBDOC_LOG_LEVEL",
)

ConfigFileOpt = typer.Option(
    None,
    "--config",
    "-c",
    help="TOML config file with option defaults",
    envvar=CONFIG_FILE_ENV,
)

ServerOpt = typer.Option(
    None,
    "--server",
    "-s",
    help="Server to connect to (see available-servers)",
)

DatabaseOpt = typer.Option(
    None,
    "--database",
    help="SQLite database file (server sqlite)",
)

CatalogOpt = typer.Option(
    None,
    "--catalog",
    help="Unity Catalog catalog name (server databricks)",
)

ProfileOpt = typer.Option(
    None,
    "--profile",
    "-p",
    help="Databricks CLI profile (from ~/.databrickscfg)",
)

FormatOpt = typer.Option(
    None,
    "--format",
    "-f",
    help="Output format: text, list, json, diagram or lint",
)

OutputFileOpt = typer.Option(
    None,
    "--output-file",
    "-o",
    help="Write the report to this file instead of stdout",
)

TitleOpt = typer.Option(
    None,
    "--title",
    help="Report title",
)

SettingOpt = typer.Option(
    [],
    "--setting",
    help="Formatter setting (key=value), e.g. no-info=true. This is reusable.",
    show_default=False,
)

IncludeSchemasOpt = typer.Option(None, "--include-schemas", help="Regex of schemas to include")
ExcludeSchemasOpt = typer.Option(None, "--exclude-schemas", help="Regex of schemas to exclude")
IncludeTablesOpt = typer.Option(None, "--include-tables", help="Regex of table full names to include")
ExcludeTablesOpt = typer.Option(None, "--exclude-tables", help="Regex of table full names to exclude")
IncludeColumnsOpt = typer.Option(None, "--include-columns", help="Regex of column full names to include")
ExcludeColumnsOpt = typer.Option(None, "--exclude-columns", help="Regex of column full names to exclude")
IncludeRoutinesOpt = typer.Option(None, "--include-routines", help="Regex of routine full names to include")
ExcludeRoutinesOpt = typer.Option(None, "--exclude-routines", help="Regex of routine full names to exclude")
TableTypesOpt = typer.Option(None, "--table-types", help="Comma-separated table types, e.g. TABLE,VIEW")

GrepColumnsOpt = typer.Option(None, "--grep-columns", help="Keep tables with a column matching this regex")
GrepRoutineParametersOpt = typer.Option(
    None, "--grep-routine-parameters", help="Keep routines with a parameter matching this regex"
)
GrepDefinitionsOpt = typer.Option(
    None, "--grep-definitions", help="Keep objects whose remarks or definition match this regex"
)
InvertMatchOpt = typer.Option(False, "--invert-match", help="Keep objects that do not match")
OnlyMatchingOpt = typer.Option(
    False, "--only-matching", help="Drop related tables and keys that do not match"
)

InfoLevelOpt = typer.Option(
    None, "--info-level", help="minimum, standard, maximum or custom"
)
RetrieveOpt = typer.Option(
    None, "--retrieve", help="Comma-separated retrievals for --info-level=custom"
)
WeakAssociationsOpt = typer.Option(
    False, "--weak-associations", help="Infer <table>_id style relationships"
)
LoadRowCountsOpt = typer.Option(False, "--load-row-counts", help="Count rows of each table")

ParentsOpt = typer.Option(None, "--parents", help="Include parent tables up to this depth")
ChildrenOpt = typer.Option(None, "--children", help="Include child tables up to this depth")
NoEmptyTablesOpt = typer.Option(False, "--no-empty-tables", help="Drop tables without rows")

ScriptOpt = typer.Option(
    None,
    "--script",
    help="Run shell commands from this file and exit",
)
