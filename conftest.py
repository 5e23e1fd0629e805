import sqlite3
from pathlib import Path
from types import SimpleNamespace

import pytest

import execution

SCHEMA = """
CREATE TABLE streams (
    id INTEGER PRIMARY KEY,
    filename TEXT NOT NULL,
    ts INTEGER,
    duration REAL NOT NULL
);
CREATE TABLE game_features (
    stream_id INTEGER NOT NULL REFERENCES streams(id),
    game_id INTEGER NOT NULL,
    start_time REAL NOT NULL
);
CREATE TABLE stream_progress (
    stream_id INTEGER NOT NULL REFERENCES streams(id),
    time REAL NOT NULL
);
"""


@pytest.fixture(autouse=True)
def reset_operation_tracker():
    execution.get_operation_tracker().reset()
    yield
    execution.get_operation_tracker().reset()


@pytest.fixture
def catalog_path(tmp_path):
    path = tmp_path / "streams.db"
    conn = sqlite3.connect(path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def catalog(catalog_path):
    conn = sqlite3.connect(catalog_path)
    yield conn
    conn.close()


@pytest.fixture
def streams_dir(tmp_path):
    path = tmp_path / "streams"
    path.mkdir()
    return path


@pytest.fixture
def fake_ffmpeg(monkeypatch):
    """Replace the ffmpeg process with a copy that prefixes ``trimmed:``."""

    calls: list[list[str]] = []
    state = SimpleNamespace(calls=calls, returncode=0)

    def fake_run(cmd, check=False):
        calls.append(list(cmd))
        if state.returncode == 0:
            src = Path(cmd[cmd.index('-i') + 1])
            Path(cmd[-1]).write_bytes(b"trimmed:" + src.read_bytes())
        return SimpleNamespace(returncode=state.returncode)

    monkeypatch.setattr(execution.subprocess, "run", fake_run)
    return state


def add_stream(conn, stream_id, filename, *, ts=0, duration=100.0):
    conn.execute(
        "INSERT INTO streams (id, filename, ts, duration) VALUES (?, ?, ?, ?)",
        (stream_id, filename, ts, duration),
    )
    conn.commit()


def add_feature(conn, stream_id, game_id, start_time):
    conn.execute(
        "INSERT INTO game_features (stream_id, game_id, start_time) VALUES (?, ?, ?)",
        (stream_id, game_id, start_time),
    )
    conn.commit()


def add_progress(conn, stream_id, time):
    conn.execute(
        "INSERT INTO stream_progress (stream_id, time) VALUES (?, ?)",
        (stream_id, time),
    )
    conn.commit()
