from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from dbdoc.cli.cli import app
from dbdoc.cli.commands.shell import completion_words, run_script
from dbdoc.core.commands import SessionState

runner = CliRunner()


@pytest.fixture(autouse=True)
def _no_config_env(monkeypatch):
    monkeypatch.delenv("DBDOC_CONFIG_FILE", raising=False)
    monkeypatch.delenv("DBDOC_LOG_LEVEL", raising=False)


def test_run_writes_json_report(sqlite_db, tmp_path):
    target = tmp_path / "report.json"
    result = runner.invoke(
        app,
        [
            "run",
            "--server", "sqlite",
            "--database", str(sqlite_db),
            "--format", "json",
            "--output-file", str(target),
            "--include-tables", "main\\.b.*",
            "--table-types", "TABLE",
        ],
    )

    assert result.exit_code == 0, result.output
    document = json.loads(target.read_text(encoding="utf-8"))
    assert [t["full_name"] for t in document["tables"]] == ["main.books"]


def test_run_prints_list_report_to_stdout(sqlite_db):
    result = runner.invoke(
        app, ["run", "-s", "sqlite", "--database", str(sqlite_db), "-f", "list"]
    )

    assert result.exit_code == 0, result.output
    assert "main.authors" in result.stdout
    assert "[view]" in result.stdout


def test_run_with_unknown_format_is_a_usage_error(sqlite_db):
    result = runner.invoke(
        app, ["run", "--server", "sqlite", "--database", str(sqlite_db), "--format", "pdf"]
    )

    assert result.exit_code == 2


def test_run_with_missing_database_fails(tmp_path):
    result = runner.invoke(
        app, ["run", "--server", "sqlite", "--database", str(tmp_path / "none.db")]
    )

    assert result.exit_code == 1


def test_run_with_invalid_log_level_is_a_usage_error(sqlite_db):
    result = runner.invoke(app, ["--log-level", "loud", "run", "--server", "sqlite"])

    assert result.exit_code == 2


def test_run_takes_defaults_from_config_file(sqlite_db, tmp_path):
    target = tmp_path / "lint.json"
    config = tmp_path / "dbdoc.toml"
    config.write_text(
        "[connect]\n"
        'server = "sqlite"\n'
        f"database = {json.dumps(str(sqlite_db))}\n\n"
        "[output]\n"
        'format = "lint"\n\n'
        "[lint]\n"
        'disabled-linters = "no-remarks"\n',
        encoding="utf-8",
    )

    result = runner.invoke(app, ["--config", str(config), "run", "-o", str(target)])

    assert result.exit_code == 0, result.output
    report = json.loads(target.read_text(encoding="utf-8"))
    assert "no-remarks" not in report["linters"]
    assert all(lint["linter_id"] != "no-remarks" for lint in report["lints"])


def test_shell_script_runs_to_completion(sqlite_db, tmp_path):
    target = tmp_path / "diagram.dot"
    script = tmp_path / "session.dbdoc"
    script.write_text(
        "# document the library tables\n"
        f"connect sqlite --database {json.dumps(str(sqlite_db))}\n"
        "limit --include-tables=main\\.(authors|books)\n"
        f"execute --format=diagram --output-file={json.dumps(str(target))}\n",
        encoding="utf-8",
    )

    result = runner.invoke(app, ["shell", "--script", str(script)])

    assert result.exit_code == 0, result.output
    dot = target.read_text(encoding="utf-8")
    assert '"main.books":"c3.start" -> "main.authors":"c1.end"' in dot


def test_shell_script_stops_at_first_failure(sqlite_db, tmp_path):
    target = tmp_path / "never.txt"
    script = tmp_path / "session.dbdoc"
    script.write_text(
        f"connect sqlite --database {json.dumps(str(sqlite_db))}\n"
        "shutdown\n"
        f"execute --output-file={json.dumps(str(target))}\n",
        encoding="utf-8",
    )

    result = runner.invoke(app, ["shell", "--script", str(script)])

    assert result.exit_code == 1
    assert not target.exists()


def test_run_script_with_stub_server(store, connections, tmp_path):
    target = tmp_path / "out.txt"
    script = tmp_path / "session.dbdoc"
    script.write_text(
        f"connect stub\nexecute --format=list --output-file={target}\n",
        encoding="utf-8",
    )

    assert run_script(store, script) == 0
    assert store.state is SessionState.ENDED
    assert connections[0].closed
    assert "LIBRARY.BOOKS" in target.read_text(encoding="utf-8")


def test_run_script_failure_releases_connection(store, connections, tmp_path):
    script = tmp_path / "session.dbdoc"
    script.write_text("connect stub\nexecute --format=pdf\n", encoding="utf-8")

    assert run_script(store, script) == 1
    assert connections[0].closed
    assert store.state is SessionState.DISCONNECTED


def test_completion_words_cover_commands_and_arguments():
    words = completion_words()

    assert "available-servers" in words
    assert "--include-tables" in words
    assert "--only-matching" in words
    assert "--output-file" in words
