import logging

import pytest

import execution
from execution import Settings


def _describe(calls):
    def describe():
        calls.append(True)
        return "doing something"
    return describe


def test_announce_is_lazy_when_silent(caplog):
    calls = []
    with caplog.at_level(logging.INFO, logger="streamwatch"):
        Settings().announce(_describe(calls))

    assert calls == []
    assert caplog.records == []


def test_announce_prefixes_dry_run(caplog):
    calls = []
    with caplog.at_level(logging.INFO, logger="streamwatch"):
        Settings(verbose=True, dry_run=True).announce(_describe(calls))

    assert calls == [True]
    assert [r.getMessage() for r in caplog.records] == ["[DRY] doing something"]


def test_announce_verbose_logs_plain(caplog):
    with caplog.at_level(logging.INFO, logger="streamwatch"):
        Settings(verbose=True).announce(lambda: "doing something")

    assert [r.getMessage() for r in caplog.records] == ["doing something"]


def test_dry_run_never_touches_filesystem_or_processes(tmp_path, monkeypatch):
    def forbidden(*_args, **_kwargs):
        raise AssertionError("subprocess.run must not be called during a dry run")

    monkeypatch.setattr(execution.subprocess, "run", forbidden)
    src = tmp_path / "a.mkv"
    src.write_bytes(b"data")
    settings = Settings(dry_run=True)

    assert settings.run(["ffmpeg", "-i", str(src)]) == 0
    settings.rename(src, tmp_path / "b.mkv")
    settings.remove_file(src)

    assert src.read_bytes() == b"data"
    assert not (tmp_path / "b.mkv").exists()
    tracker = execution.get_operation_tracker()
    assert tracker.renamed == [] and tracker.removed == []


def test_rename_and_remove_are_tracked(tmp_path):
    src = tmp_path / "a.yaml"
    dest = tmp_path / "b.yaml"
    src.write_text("x")
    settings = Settings()

    settings.rename(src, dest)
    settings.remove_file(dest)

    assert not src.exists() and not dest.exists()
    tracker = execution.get_operation_tracker()
    assert tracker.renamed == [(src, dest)]
    assert tracker.removed == [dest]


def test_rename_errors_propagate(tmp_path):
    with pytest.raises(FileNotFoundError):
        Settings().rename(tmp_path / "missing", tmp_path / "other")


def test_run_returns_exit_status(monkeypatch):
    seen = {}

    def fake_run(cmd, check=False):
        seen["cmd"] = cmd
        seen["check"] = check
        return type("Proc", (), {"returncode": 3})()

    monkeypatch.setattr(execution.subprocess, "run", fake_run)

    assert Settings().run(["ffmpeg", "-version"]) == 3
    assert seen == {"cmd": ["ffmpeg", "-version"], "check": False}


def test_log_summary_reports_each_kind(caplog, tmp_path):
    tracker = execution.OperationTracker()
    tracker.record_trimmed(tmp_path / "a.mkv", tmp_path / "b.mkv")
    tracker.record_removed(tmp_path / "a.mkv")

    with caplog.at_level(logging.INFO, logger="streamwatch"):
        tracker.log_summary()

    messages = [r.getMessage() for r in caplog.records]
    assert messages[0].startswith("Trimmed streams (1): ")
    assert messages[1] == "Renamed files: none"
    assert messages[2].startswith("Removed files (1): ")
