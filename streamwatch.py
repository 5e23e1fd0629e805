#!/usr/bin/env python3
"""streamwatch: tools for working with recorded streams.

Usage:
    streamwatch [options] trimlw DATABASE STREAMS

Options:
    -v, --verbose        Print every action as it is performed.
    -n, --dry-run        Describe filesystem and catalog changes without making them.
        --debug          Enable debug logging.
    -p, --no-progress    Disable the progress bar.
        --ffmpeg BIN     ffmpeg executable to use (default: ffmpeg).

Environment:
    VERBOSE, DRY_RUN, DEBUG, NO_PROGRESS   boolean equivalents of the flags above
    STREAMWATCH_FFMPEG                     ffmpeg executable
    STREAMWATCH_LOGFILE                    also log to this file
"""

from __future__ import annotations

import argparse
import logging
import os
import shutil
import sys
from pathlib import Path
from typing import Iterable, Optional

from execution import OperationError, Settings, get_operation_tracker
from ffmpeg_trim import DEFAULT_FFMPEG, TrimError
from stream_catalog import CatalogError, connect
from stream_names import DataIntegrityError
from trimlw import trim_lw

logger = logging.getLogger('streamwatch')

LOG_FORMAT = '%(asctime)s %(levelname)-8s %(message)s'

TRUE_VALUES = {'1', 'true', 'yes', 'on'}
FALSE_VALUES = {'0', 'false', 'no', 'off'}

ENV_BOOL_FLAGS: dict[str, str] = {
    'VERBOSE': '--verbose',
    'DRY_RUN': '--dry-run',
    'DEBUG': '--debug',
    'NO_PROGRESS': '--no-progress',
}

ENV_VALUE_FLAGS: dict[str, str] = {
    'STREAMWATCH_FFMPEG': '--ffmpeg',
}


def _expand_path(path: str) -> str:
    """Return a normalized absolute path with user expansion."""

    return os.path.abspath(os.path.expanduser(path))


def _resolve_logfile(environ: Optional[dict[str, str]] = None) -> Optional[str]:
    env = os.environ if environ is None else environ
    candidate = (env.get('STREAMWATCH_LOGFILE') or '').strip()
    if not candidate:
        return None
    return _expand_path(candidate)


def setup_logging(enable_debug: bool, logfile: Optional[str] = None) -> None:
    level = logging.DEBUG if enable_debug else logging.INFO
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    fmt = logging.Formatter(LOG_FORMAT)
    sh = logging.StreamHandler(sys.stdout)
    sh.setLevel(level)
    sh.setFormatter(fmt)
    logger.addHandler(sh)

    if logfile:
        logdir = os.path.dirname(logfile)
        try:
            if logdir:
                os.makedirs(logdir, exist_ok=True)
            fh = logging.FileHandler(logfile)
        except OSError as e:
            logger.error(f"Could not open log file {logfile}: {e}")
        else:
            fh.setLevel(level)
            fh.setFormatter(fmt)
            logger.addHandler(fh)


def _parse_env_bool(value: str) -> Optional[bool]:
    stripped = value.strip()
    hash_index = stripped.find('#')
    if hash_index != -1:
        stripped = stripped[:hash_index].rstrip()
    if stripped == '':
        return None
    lowered = stripped.lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    return None


def _collect_cli_args_from_env(environ: Optional[dict[str, str]] = None) -> list[str]:
    env = os.environ if environ is None else environ
    cli_args: list[str] = []

    for var, flag in ENV_BOOL_FLAGS.items():
        raw = env.get(var)
        if raw is None:
            continue
        result = _parse_env_bool(raw)
        if result is None:
            logger.warning(
                "Ignoring %s=%s (expected one of %s or %s)",
                var,
                raw,
                '/'.join(sorted(TRUE_VALUES)),
                '/'.join(sorted(FALSE_VALUES)),
            )
            continue
        if result:
            cli_args.append(flag)

    for var, flag in ENV_VALUE_FLAGS.items():
        value = (env.get(var) or '').strip()
        if value:
            cli_args.extend([flag, value])

    return cli_args


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog='streamwatch', description="Tools for working with streams")
    p.add_argument('-v', '--verbose', action='store_true', help="Print more")
    p.add_argument('-n', '--dry-run', action='store_true',
                   help="Don't actually execute filesystem or database operations")
    p.add_argument('--debug', action='store_true', help="Enable debug logging")
    p.add_argument('-p', '--no-progress', action='store_true',
                   help="Disable the progress bar")
    p.add_argument('--ffmpeg', default=DEFAULT_FFMPEG,
                   help="ffmpeg executable (default: ffmpeg)")

    sub = p.add_subparsers(dest='command', required=True)
    trim = sub.add_parser('trimlw', help="Trim lekker wachten")
    trim.add_argument('database', help="Set the database file")
    trim.add_argument('streams', help="Set the streams dir")
    return p


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    raw = list(sys.argv[1:] if argv is None else argv)
    # Environment flags go first so explicit arguments still win for --ffmpeg.
    return build_arg_parser().parse_args([*_collect_cli_args_from_env(), *raw])


def _run_trimlw(args: argparse.Namespace, settings: Settings) -> int:
    database = Path(_expand_path(args.database))
    streams = Path(_expand_path(args.streams))
    if not database.is_file():
        logger.error(f"Database file not found: {database}")
        return 2
    if not streams.is_dir():
        logger.error(f"Streams folder is not a directory: {streams}")
        return 2
    if not settings.dry_run and not shutil.which(args.ffmpeg):
        logger.error(f"Required program '{args.ffmpeg}' not found in PATH.")
        return 2

    tracker = get_operation_tracker()
    tracker.reset()
    try:
        conn = connect(database)
    except CatalogError as exc:
        logger.error(str(exc))
        return 2

    try:
        trim_lw(
            conn,
            settings,
            streams,
            ffmpeg_bin=args.ffmpeg,
            show_progress=not args.no_progress,
        )
    except (DataIntegrityError, TrimError, CatalogError, OperationError) as exc:
        logger.error("LW trim aborted: %s", exc)
        return 1
    finally:
        conn.close()
        tracker.log_summary()
    return 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.debug or args.verbose, _resolve_logfile())
    settings = Settings(verbose=args.verbose, dry_run=args.dry_run)

    if args.command == 'trimlw':
        return _run_trimlw(args, settings)
    return 2


if __name__ == '__main__':
    raise SystemExit(main())
