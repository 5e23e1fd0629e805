#!/usr/bin/env python3
"""Lossless leading-segment trim of a stream file via ffmpeg."""

from __future__ import annotations

import logging
from pathlib import Path

from execution import Settings, get_operation_tracker

logger = logging.getLogger('streamwatch')

DEFAULT_FFMPEG = 'ffmpeg'


class TrimError(RuntimeError):
    """Raised when ffmpeg cannot be started or exits unsuccessfully."""


def format_seconds(seconds: float) -> str:
    """Fixed-point seconds at microsecond precision; ffmpeg rejects ``5e-05``."""

    return f"{seconds:.6f}".rstrip('0').rstrip('.')


def build_trim_command(
    old_path: Path, new_path: Path, seconds: float, ffmpeg_bin: str = DEFAULT_FFMPEG
) -> list[str]:
    """Return the ffmpeg argv that copies ``old_path`` from ``seconds`` on.

    ffmpeg stays quiet apart from its ``-stats`` progress line and copies
    all streams without re-encoding.
    """

    return [
        ffmpeg_bin,
        '-v', 'quiet',
        '-stats',
        '-i', str(old_path),
        '-ss', format_seconds(seconds),
        '-c', 'copy',
        str(new_path),
    ]


def ffmpeg_trim(
    settings: Settings,
    old_path: Path,
    new_path: Path,
    seconds: float,
    *,
    ffmpeg_bin: str = DEFAULT_FFMPEG,
) -> None:
    if seconds < 0:
        raise ValueError(f"Trim offset must not be negative: {seconds}")

    cmd = build_trim_command(old_path, new_path, seconds, ffmpeg_bin)
    try:
        returncode = settings.run(cmd)
    except FileNotFoundError as exc:
        raise TrimError(f"ffmpeg not found: {ffmpeg_bin}") from exc
    except OSError as exc:
        raise TrimError(f"ffmpeg exec error: {exc}") from exc

    if returncode != 0:
        raise TrimError(f"ffmpeg exited {returncode} while trimming {old_path}")

    if not settings.dry_run:
        logger.debug("Trimmed %.3fs from %s into %s", seconds, old_path, new_path)
        get_operation_tracker().record_trimmed(old_path, new_path)
