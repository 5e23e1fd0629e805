#!/usr/bin/env python3
"""Stream file naming helpers: timestamp prefixes and sibling paths.

Stream recordings are named after the moment they started, either with a
full ``YYYY-MM-DD HH:MM:SS`` prefix or with only the ``YYYY-MM-DD`` date.
Chat logs and metadata sit next to the stream under the same stem.
"""

from __future__ import annotations

import enum
import re
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

CHAT_EXTENSION = '.txt.zst'
METADATA_EXTENSION = '.yaml'
DATE_ONLY_SUFFIX = '_NEW'

FULL_FORMAT = '%Y-%m-%d %H:%M:%S'
DATE_FORMAT = '%Y-%m-%d'

FILE_STEM_REGEX_DATETIME = re.compile(r'^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}')
FILE_STEM_REGEX_DATE = re.compile(r'^\d{4}-\d{2}-\d{2}')


class DateType(enum.Enum):
    FULL = 'full'
    DATE_ONLY = 'date_only'


class DataIntegrityError(RuntimeError):
    """Raised when catalog or filesystem state contradicts itself."""


class PathCollisionError(DataIntegrityError):
    """Raised when a rename or trim destination already exists."""


def _parse_prefix(stem: str) -> Optional[Tuple[datetime, DateType]]:
    match = FILE_STEM_REGEX_DATETIME.match(stem)
    if match:
        try:
            return datetime.strptime(match.group(0), FULL_FORMAT), DateType.FULL
        except ValueError:
            pass
    match = FILE_STEM_REGEX_DATE.match(stem)
    if match:
        try:
            return datetime.strptime(match.group(0), DATE_FORMAT), DateType.DATE_ONLY
        except ValueError:
            pass
    return None


def parse_filename(path: Path) -> Optional[Tuple[datetime, DateType]]:
    """Return the local start time encoded in ``path`` and its precision.

    Only the stem is considered, so ``2024-01-01 10:00:00.mkv`` parses as
    a full timestamp and ``2024-01-01 stream.mkv`` as a date at midnight.
    Returns ``None`` when neither prefix is present.
    """

    parsed = _parse_prefix(Path(path).stem)
    if parsed is None:
        return None
    naive, date_type = parsed
    # astimezone() treats naive values as local time and resolves folds
    # to the earlier offset.
    return naive.astimezone(), date_type


def format_base_name(when: datetime, date_type: DateType) -> str:
    if date_type is DateType.FULL:
        return when.strftime(FULL_FORMAT)
    return when.strftime(DATE_FORMAT) + DATE_ONLY_SUFFIX


def chat_path(stream_path: Path) -> Path:
    return Path(stream_path).with_suffix(CHAT_EXTENSION)


def metadata_path(stream_path: Path) -> Path:
    return Path(stream_path).with_suffix(METADATA_EXTENSION)


def full_extension(path: Path) -> str:
    """Everything after the first dot of the file name (``txt.zst``)."""

    name = Path(path).name
    if '.' not in name:
        raise DataIntegrityError(f"File name has no extension: {path}")
    return name.split('.', 1)[1]


def map_path(old: Path, new_base: str) -> Path:
    """Return ``old`` renamed to ``new_base`` with its extension kept.

    Raises :class:`PathCollisionError` if the destination already exists.
    """

    old = Path(old)
    new = old.with_name(f"{new_base}.{full_extension(old)}")
    if new.exists():
        raise PathCollisionError(f"Destination already exists: {new}")
    return new
