#!/usr/bin/env python3
"""Trim the "lekker wachten" lead-in off recorded streams.

For every stream with exactly one LW marker in the catalog the media file
is cut losslessly one second before the marker, sibling chat/metadata
files follow the new name, and all stored offsets for the stream are
shifted so they still point at the same moments.

Side effects for a single stream are not transactional: if a step after
the ffmpeg trim fails, the filesystem is ahead of the catalog and has to
be reconciled by hand.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

from tqdm import tqdm

import stream_catalog
from execution import OperationError, Settings
from ffmpeg_trim import DEFAULT_FFMPEG, ffmpeg_trim
from stream_catalog import TrimCandidate
from stream_names import (
    DataIntegrityError,
    DateType,
    chat_path,
    format_base_name,
    map_path,
    metadata_path,
    parse_filename,
)

logger = logging.getLogger('streamwatch')

# Cut this many seconds before the detected marker.
SAFETY_MARGIN = 1.0


@dataclass(frozen=True)
class TrimPlan:
    stream_id: int
    trim_offset: float
    date_type: DateType
    old_time: datetime
    new_time: datetime
    new_base: str
    old_stream_path: Path
    new_stream_path: Path
    old_chat_path: Path
    new_chat_path: Path
    old_metadata_path: Path
    new_metadata_path: Path

    @property
    def rename_siblings(self) -> bool:
        return self.date_type is DateType.FULL


@dataclass
class TrimSummary:
    trimmed: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)


def shifted_time(old_time: datetime, seconds: float) -> datetime:
    """Add ``seconds`` (truncated to milliseconds) and renormalise to local time."""

    return (old_time + timedelta(milliseconds=int(seconds * 1000))).astimezone()


def plan_trim(candidate: TrimCandidate, streams_folder: Path) -> Optional[TrimPlan]:
    """Compute every path and timestamp for ``candidate`` without side effects.

    Returns ``None`` when the file name carries no usable date.
    """

    trim_offset = candidate.start_time - SAFETY_MARGIN
    if trim_offset < 0:
        raise DataIntegrityError(
            f"Stream {candidate.stream_id}: LW marker at {candidate.start_time}s "
            f"leaves a negative trim offset ({trim_offset}s)"
        )

    old_stream_path = Path(streams_folder) / candidate.filename
    if not old_stream_path.exists():
        raise DataIntegrityError(
            f"Stream {candidate.stream_id}: file not found: {old_stream_path}"
        )

    parsed = parse_filename(old_stream_path)
    if parsed is None:
        return None
    old_time, date_type = parsed

    new_time = shifted_time(old_time, trim_offset)
    new_base = format_base_name(new_time, date_type)

    old_chat_path = chat_path(old_stream_path)
    old_metadata_path = metadata_path(old_stream_path)

    return TrimPlan(
        stream_id=candidate.stream_id,
        trim_offset=trim_offset,
        date_type=date_type,
        old_time=old_time,
        new_time=new_time,
        new_base=new_base,
        old_stream_path=old_stream_path,
        new_stream_path=map_path(old_stream_path, new_base),
        old_chat_path=old_chat_path,
        new_chat_path=map_path(old_chat_path, new_base),
        old_metadata_path=old_metadata_path,
        new_metadata_path=map_path(old_metadata_path, new_base),
    )


def _catalog_step(settings: Settings, describe: Callable[[], str], step, *args) -> None:
    settings.announce(describe)
    if settings.dry_run:
        return
    step(*args)


def _rename(settings: Settings, old: Path, new: Path, context: str) -> None:
    try:
        settings.rename(old, new)
    except OSError as exc:
        raise OperationError(f"{context}: {exc}") from exc


def _remove(settings: Settings, path: Path, context: str) -> None:
    try:
        settings.remove_file(path)
    except OSError as exc:
        raise OperationError(f"{context}: {exc}") from exc


def apply_trim(
    conn: sqlite3.Connection,
    settings: Settings,
    plan: TrimPlan,
    *,
    ffmpeg_bin: str = DEFAULT_FFMPEG,
) -> None:
    """Trim the stream, move its siblings and rewrite the catalog."""

    ffmpeg_trim(
        settings,
        plan.old_stream_path,
        plan.new_stream_path,
        plan.trim_offset,
        ffmpeg_bin=ffmpeg_bin,
    )

    if plan.rename_siblings:
        if plan.old_chat_path.exists():
            _rename(settings, plan.old_chat_path, plan.new_chat_path,
                    "Failed to rename chat file")
        if plan.old_metadata_path.exists():
            _rename(settings, plan.old_metadata_path, plan.new_metadata_path,
                    "Failed to rename yaml file")

    stream_id = plan.stream_id
    seconds = plan.trim_offset
    _catalog_step(
        settings,
        lambda: f"deleting LW marker of stream {stream_id}",
        stream_catalog.delete_trim_marker, conn, stream_id,
    )
    _catalog_step(
        settings,
        lambda: f"shifting game features of stream {stream_id} by -{seconds}s",
        stream_catalog.shift_game_features, conn, stream_id, seconds,
    )
    _catalog_step(
        settings,
        lambda: f"shifting watch progress of stream {stream_id} by -{seconds}s",
        stream_catalog.shift_stream_progress, conn, stream_id, seconds,
    )

    if plan.date_type is DateType.FULL:
        new_filename = plan.new_stream_path.name
        timestamp = int(plan.new_time.timestamp())
        _catalog_step(
            settings,
            lambda: f"pointing stream {stream_id} at {new_filename!r} (ts={timestamp})",
            stream_catalog.update_stream_file,
            conn, stream_id, new_filename, timestamp, seconds,
        )
        _remove(settings, plan.old_stream_path, "Failed to remove old stream file")
    else:
        _rename(settings, plan.new_stream_path, plan.old_stream_path,
                "Failed to rename new stream file back to old name")


def trim_lw(
    conn: sqlite3.Connection,
    settings: Settings,
    streams_folder: Path,
    *,
    ffmpeg_bin: str = DEFAULT_FFMPEG,
    show_progress: bool = False,
) -> TrimSummary:
    """Trim every stream that has exactly one LW marker.

    Candidates are processed strictly in catalog order. Any fatal error
    propagates immediately and leaves later candidates untouched.
    """

    candidates = stream_catalog.fetch_trim_candidates(conn)
    total = len(candidates)
    summary = TrimSummary()
    logger.debug("Found %d LW marker(s) in %s", total, streams_folder)

    iterator = tqdm(candidates, total=total, unit='stream', disable=not show_progress)
    for i, candidate in enumerate(iterator, start=1):
        if candidate.marker_count > 1:
            settings.announce(
                lambda: f"[{i}/{total}] skipping {candidate.stream_id} because we "
                        f"have more than 1 Einde LW in the stream"
            )
            summary.skipped.append(candidate.stream_id)
            continue

        plan = plan_trim(candidate, streams_folder)
        if plan is None:
            settings.announce(
                lambda: f"[{i}/{total}] couldn't get date for "
                        f"{Path(streams_folder) / candidate.filename}. Skipping."
            )
            summary.skipped.append(candidate.stream_id)
            continue

        settings.announce(
            lambda: f"[{i}/{total}] {plan.old_stream_path} -> {plan.new_stream_path}"
        )
        apply_trim(conn, settings, plan, ffmpeg_bin=ffmpeg_bin)
        summary.trimmed.append(candidate.stream_id)

    logger.info(
        "%sLW trim finished: %d trimmed, %d skipped",
        "[DRY] " if settings.dry_run else "",
        len(summary.trimmed),
        len(summary.skipped),
    )
    return summary
