"""Integration tests for CLI commands."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.output import DummyOutput

from flf_cli import __version__, cli
from flf_cli.cli import app
from flf_cli.models import EditorTarget, IndexMode
from flf_cli.terminal import TerminalSession
from flf_cli.vector_store import LANCE_AVAILABLE

runner = CliRunner()

needs_lance = pytest.mark.skipif(not LANCE_AVAILABLE, reason="lancedb not installed")


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"flf v{__version__}" in result.stdout


class TestInteractiveCommands:
    """``dir`` / ``buf`` hand off to the console; the console itself is stubbed."""

    @pytest.fixture
    def captured(self, monkeypatch):
        calls = []

        def fake_run_interactive(source, mode, editor, limit, model_key=None):
            calls.append((source, mode, editor, limit, model_key))

        monkeypatch.setattr(cli, "run_interactive", fake_run_interactive)
        return calls

    def test_dir_options(self, sample_project_path: Path, captured):
        result = runner.invoke(
            app, ["dir", "-p", str(sample_project_path), "-e", "nvim", "-k", "7", "-m", "hash"],
        )
        assert result.exit_code == 0
        assert captured == [(sample_project_path, IndexMode.DIR, EditorTarget.NVIM, 7, "hash")]

    def test_buf_requires_file(self, captured):
        result = runner.invoke(app, ["buf"])
        assert result.exit_code != 0
        assert captured == []

    def test_buf_options(self, buffer_export: Path, captured):
        result = runner.invoke(app, ["buf", "--file", str(buffer_export), "--editor", "emacs"])
        assert result.exit_code == 0
        source, mode, editor, _, _ = captured[0]
        assert (source, mode, editor) == (buffer_export, IndexMode.BUF, EditorTarget.EMACS)

    def test_no_command_searches_current_directory(self, captured):
        result = runner.invoke(app, [])
        assert result.exit_code == 0
        assert captured[0][0] == Path(".")
        assert captured[0][1] is IndexMode.DIR

    def test_unknown_editor_rejected(self, captured):
        result = runner.invoke(app, ["dir", "-e", "notepad"])
        assert result.exit_code != 0
        assert captured == []


def test_buf_malformed_export_fails_before_console(temp_dir: Path, monkeypatch):
    bad = temp_dir / "buffers.json"
    bad.write_text("{ not json")

    def no_terminal(*args, **kwargs):
        raise AssertionError("terminal must not be acquired")

    monkeypatch.setattr(cli.TerminalSession, "acquire", no_terminal)
    result = runner.invoke(app, ["buf", "-f", str(bad)])

    assert result.exit_code == 1
    assert "Invalid buffer export" in result.output
    assert bad.name in result.output


def test_escape_in_console_exits_cleanly(sample_project_path: Path, monkeypatch):
    with create_pipe_input() as pipe:
        sessions = []

        def pipe_session():
            session = TerminalSession(pipe, DummyOutput())
            sessions.append(session)
            return session

        monkeypatch.setattr(cli.TerminalSession, "acquire", pipe_session)
        pipe.send_text("\x1b")
        result = runner.invoke(app, ["dir", "-p", str(sample_project_path), "-e", "nvim"])

    assert result.exit_code == 0
    assert result.stdout == ""
    assert sessions and sessions[0].released


def test_unknown_model_fails(sample_project_path: Path):
    result = runner.invoke(app, ["dir", "-p", str(sample_project_path), "-m", "no-such-model"])
    assert result.exit_code == 1
    assert "Unknown embedding model" in result.output


class TestQueryCommand:

    def test_missing_index_json(self, temp_dir: Path):
        result = runner.invoke(app, ["query", "anything", "--db", str(temp_dir / "nope"), "--json"])
        assert result.exit_code == 1
        payload = json.loads(result.output.strip().splitlines()[-1])
        assert payload["status"] == "error"
        assert payload["query"] == "anything"

    def test_missing_index_text(self, temp_dir: Path):
        result = runner.invoke(app, ["query", "anything", "--db", str(temp_dir / "nope")])
        assert result.exit_code == 1
        assert "flf index" in result.output


@needs_lance
class TestIndexAndQuery:
    """Round trip through a LanceDB index on disk."""

    def test_index_then_query_json(self, sample_project_path: Path, temp_dir: Path):
        db = temp_dir / "db"
        result = runner.invoke(app, ["index", str(sample_project_path), "--db", str(db), "--json"])
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["status"] == "success"
        assert payload["message"].startswith("Indexed ")
        assert payload["directory"] == str(sample_project_path.resolve())

        result = runner.invoke(
            app, ["query", "validate email", "--db", str(db), "-k", "3", "--json"],
        )
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["k"] == 3
        assert len(payload["results"]) == 3
        top = payload["results"][0]
        assert top["rank"] == 1
        assert top["entity"] == "validate_email"
        assert top["filePath"].endswith("utils.py")
        assert set(top["cursorInfo"]) == {"start", "end"}

    def test_reindex_replaces_previous_contents(self, sample_project_path: Path, temp_dir: Path):
        db = temp_dir / "db"
        first = runner.invoke(app, ["index", str(sample_project_path), "--db", str(db)])
        second = runner.invoke(app, ["index", str(sample_project_path), "--db", str(db)])
        assert first.exit_code == second.exit_code == 0
        assert first.stdout == second.stdout

    def test_query_text_output(self, sample_project_path: Path, temp_dir: Path):
        db = temp_dir / "db"
        runner.invoke(app, ["index", str(sample_project_path), "--db", str(db)])

        result = runner.invoke(app, ["query", "validate email", "--db", str(db), "-k", "2"])

        assert result.exit_code == 0
        assert 'Top 2 results for query "validate email":' in result.stdout
        utils_path = str((sample_project_path / "utils.py").resolve())
        assert f"- File: {utils_path}\n" in result.stdout
        assert "Entity: validate_email" in result.stdout

    def test_index_empty_directory(self, temp_dir: Path):
        project = temp_dir / "empty"
        project.mkdir()
        result = runner.invoke(app, ["index", str(project), "--db", str(temp_dir / "db")])
        assert result.exit_code == 0
        assert "No code chunks found to index." in result.stdout
