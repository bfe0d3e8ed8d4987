"""Tests for the snapshot-restore CLI."""

import argparse
import inspect
import json
from unittest.mock import MagicMock, patch

import pytest
from conftest import FakeDatabase, FakeSnapshotStore, live_data, make_snapshot

from snapshot_restore.cli import (
    _async_logs,
    _async_preview,
    _async_restore,
    build_parser,
    cmd_logs,
    cmd_order,
    cmd_preview,
    cmd_profiles,
    cmd_restore,
    main,
)
from snapshot_restore.restore.lock import InProcessRestoreLock
from snapshot_restore.restore.orchestrator import RestoreOrchestrator


def _args(**overrides) -> argparse.Namespace:
    defaults = {
        "env_prefix": "",
        "profile": None,
        "config": None,
        "verbose": False,
        "file": "backup_week_1.json",
        "yes": True,
        "resume": False,
        "json": False,
        "limit": 50,
    }
    return argparse.Namespace(**{**defaults, **overrides})


@pytest.fixture
def wired():
    """Patch build_orchestrator to return an orchestrator over in-memory doubles."""
    db = FakeDatabase(live_data())
    store = FakeSnapshotStore({"backup_week_1.json": make_snapshot({"branches": 2, "rooms": 5})})
    orchestrator = RestoreOrchestrator(db, store, lock=InProcessRestoreLock(object()))
    with patch("snapshot_restore.cli.build_orchestrator", return_value=(orchestrator, db)):
        yield db, store


# ------------------------------------------------------------------
# Parser
# ------------------------------------------------------------------


class TestParser:
    def test_prog_name(self):
        assert build_parser().prog == "snapshot-restore"

    def test_restore_flags(self):
        args = build_parser().parse_args(["--profile", "local", "restore", "backup_week_2.json", "--yes", "--resume", "--json"])
        assert args.profile == "local"
        assert args.file == "backup_week_2.json"
        assert args.yes and args.resume and args.json
        assert args.func is cmd_restore

    def test_restore_requires_file(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["restore"])

    def test_logs_limit(self):
        args = build_parser().parse_args(["logs", "-n", "10"])
        assert args.limit == 10
        assert args.func is cmd_logs

    def test_env_prefix_global_option(self):
        args = build_parser().parse_args(["--env-prefix", "SCHOOL_", "order"])
        assert args.env_prefix == "SCHOOL_"

    def test_main_dispatches(self):
        handler = MagicMock(return_value=0)
        with patch("snapshot_restore.cli.build_parser") as mock_parser:
            mock_parser.return_value.parse_args.return_value = _args(func=handler)
            assert main() == 0
        handler.assert_called_once()


class TestAsyncWrappers:
    @pytest.mark.parametrize("fn", [_async_restore, _async_preview, _async_logs])
    def test_async_implementations(self, fn):
        assert inspect.iscoroutinefunction(fn)

    @pytest.mark.parametrize("fn", [cmd_restore, cmd_preview, cmd_logs, cmd_order, cmd_profiles])
    def test_commands_are_sync(self, fn):
        assert not inspect.iscoroutinefunction(fn)


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------


class TestRestoreCommand:
    def test_json_output(self, wired, capsys):
        db, _ = wired

        assert cmd_restore(_args(json=True)) == 0

        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines() if line]
        assert lines[0]["phase"] == "download"
        assert lines[-1]["phase"] == "complete"
        assert db.row_count("rooms") == 5
        assert db.closed

    def test_rich_output(self, wired, capsys):
        assert cmd_restore(_args()) == 0
        out = capsys.readouterr().out
        assert "Restore complete" in out
        assert "rooms" in out

    def test_partial_exit_code(self, wired):
        db, _ = wired
        db.failures[("upsert", "rooms")] = RuntimeError("denied")
        assert cmd_restore(_args()) == 1

    def test_invalid_name(self, wired):
        db, _ = wired
        assert cmd_restore(_args(file="week1.json")) == 1
        assert db.calls == []
        assert db.closed

    def test_confirmation_declined(self, wired):
        db, _ = wired
        with patch("snapshot_restore.cli.Confirm.ask", return_value=False):
            assert cmd_restore(_args(yes=False)) == 1
        assert db.calls == []


class TestOtherCommands:
    def test_preview(self, wired, capsys):
        assert cmd_preview(_args()) == 0
        out = capsys.readouterr().out
        assert "branches" in out

    def test_preview_missing(self, wired):
        assert cmd_preview(_args(file="backup_week_3.json")) == 1

    def test_logs_empty(self, wired, capsys):
        assert cmd_logs(_args()) == 0
        assert "No audit records" in capsys.readouterr().out

    def test_order(self, capsys):
        assert cmd_order(_args()) == 0
        out = capsys.readouterr().out
        assert "branches" in out
        assert "student_feedback" in out

    def test_profiles(self, tmp_path, capsys):
        config = tmp_path / "restore.toml"
        config.write_text('[profiles.local]\nurl = "postgresql://h/db"\ndescription = "Dev"\n')
        assert cmd_profiles(_args(config=str(config))) == 0
        assert "local" in capsys.readouterr().out

    def test_missing_config(self, tmp_path):
        assert cmd_logs(_args(config=str(tmp_path / "missing.toml"))) == 1
