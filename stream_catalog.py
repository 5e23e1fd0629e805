#!/usr/bin/env python3
"""SQLite catalog access for stream trimming.

Only three tables are touched: ``streams``, ``game_features`` (markers
detected inside a stream) and ``stream_progress`` (viewer positions).
Every mutation is committed on its own.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Union

logger = logging.getLogger('streamwatch')

# game_features.game_id of the "lekker wachten" marker that ends the
# pre-stream waiting segment.
TRIM_MARKER_GAME_ID = 7

_CANDIDATES_SQL = (
    "SELECT id, filename, game_features.start_time, "
    "count(*) OVER (PARTITION BY id) AS count "
    "FROM streams JOIN game_features ON game_features.stream_id = streams.id "
    "WHERE game_features.game_id = ?"
)


class CatalogError(RuntimeError):
    """Raised when reading or updating the catalog fails."""


@dataclass(frozen=True)
class TrimCandidate:
    stream_id: int
    filename: str
    start_time: float
    marker_count: int


def connect(path: Union[Path, str]) -> sqlite3.Connection:
    """Open an existing catalog read-write; never creates a new database."""

    uri = f"{Path(path).resolve().as_uri()}?mode=rw"
    try:
        return sqlite3.connect(uri, uri=True)
    except sqlite3.Error as exc:
        raise CatalogError(f"Failed to open database {path}: {exc}") from exc


def fetch_trim_candidates(conn: sqlite3.Connection) -> list[TrimCandidate]:
    try:
        rows = conn.execute(_CANDIDATES_SQL, (TRIM_MARKER_GAME_ID,)).fetchall()
    except sqlite3.Error as exc:
        raise CatalogError(
            f"Failed to retrieve information from database: {exc}"
        ) from exc
    candidates = [
        TrimCandidate(
            stream_id=int(row[0]),
            filename=str(row[1]),
            start_time=float(row[2]),
            marker_count=int(row[3]),
        )
        for row in rows
    ]
    logger.debug("Fetched %d trim marker row(s) from catalog", len(candidates))
    return candidates


def _execute(conn: sqlite3.Connection, context: str, sql: str, params: tuple) -> None:
    try:
        conn.execute(sql, params)
        conn.commit()
    except sqlite3.Error as exc:
        conn.rollback()
        raise CatalogError(f"{context}: {exc}") from exc


def delete_trim_marker(conn: sqlite3.Connection, stream_id: int) -> None:
    _execute(
        conn,
        "Failed to remove LW game features from database",
        "DELETE FROM game_features WHERE stream_id = ? AND game_id = ?",
        (stream_id, TRIM_MARKER_GAME_ID),
    )


def shift_game_features(conn: sqlite3.Connection, stream_id: int, seconds: float) -> None:
    _execute(
        conn,
        "Failed to update game features in database",
        "UPDATE game_features SET start_time = max(start_time - ?, 0) WHERE stream_id = ?",
        (seconds, stream_id),
    )


def shift_stream_progress(conn: sqlite3.Connection, stream_id: int, seconds: float) -> None:
    _execute(
        conn,
        "Failed to update stream progress in database",
        "UPDATE stream_progress SET time = max(time - ?, 0) WHERE stream_id = ?",
        (seconds, stream_id),
    )


def update_stream_file(
    conn: sqlite3.Connection, stream_id: int, filename: str, ts: int, seconds: float
) -> None:
    _execute(
        conn,
        "Failed to update database to use new stream file",
        "UPDATE streams SET filename = ?, ts = ?, duration = duration - ? WHERE id = ?",
        (filename, ts, seconds, stream_id),
    )
