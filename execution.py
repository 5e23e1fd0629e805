#!/usr/bin/env python3
"""Verbose/dry-run gating for every side effect streamwatch performs."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence, Tuple, Union

logger = logging.getLogger('streamwatch')

PathLike = Union[Path, str]


class OperationError(RuntimeError):
    """Raised when a filesystem step of a reconciliation fails."""


@dataclass(frozen=True)
class Settings:
    verbose: bool = False
    dry_run: bool = False

    def announce(self, describe: Callable[[], object]) -> None:
        """Log ``describe()`` when dry-running or verbose.

        ``describe`` is only called when the message is actually emitted.
        """

        if self.dry_run:
            logger.info("[DRY] %s", describe())
        elif self.verbose:
            logger.info("%s", describe())

    def run(self, cmd: Sequence[str]) -> int:
        self.announce(lambda: shlex.join(str(part) for part in cmd))
        if self.dry_run:
            return 0
        return subprocess.run([str(part) for part in cmd], check=False).returncode

    def rename(self, old: PathLike, new: PathLike) -> None:
        self.announce(lambda: f"renaming {old} -> {new}")
        if self.dry_run:
            return
        os.rename(old, new)
        get_operation_tracker().record_renamed(old, new)

    def remove_file(self, path: PathLike) -> None:
        self.announce(lambda: f"removing {path}")
        if self.dry_run:
            return
        os.remove(path)
        get_operation_tracker().record_removed(path)


@dataclass
class OperationTracker:
    trimmed: list[Tuple[Path, Path]] = field(default_factory=list)
    renamed: list[Tuple[Path, Path]] = field(default_factory=list)
    removed: list[Path] = field(default_factory=list)

    def reset(self) -> None:
        self.trimmed.clear()
        self.renamed.clear()
        self.removed.clear()

    def record_trimmed(self, src: PathLike, dest: PathLike) -> None:
        self.trimmed.append((Path(src), Path(dest)))

    def record_renamed(self, src: PathLike, dest: PathLike) -> None:
        self.renamed.append((Path(src), Path(dest)))

    def record_removed(self, path: PathLike) -> None:
        self.removed.append(Path(path))

    def log_summary(self) -> None:
        if self.trimmed:
            logger.info(
                "Trimmed streams (%d): %s",
                len(self.trimmed),
                ", ".join(f"{src} → {dest}" for src, dest in self.trimmed),
            )
        else:
            logger.info("Trimmed streams: none")

        if self.renamed:
            logger.info(
                "Renamed files (%d): %s",
                len(self.renamed),
                ", ".join(f"{src} → {dest}" for src, dest in self.renamed),
            )
        else:
            logger.info("Renamed files: none")

        if self.removed:
            logger.info(
                "Removed files (%d): %s",
                len(self.removed),
                ", ".join(str(p) for p in self.removed),
            )
        else:
            logger.info("Removed files: none")


_operation_tracker = OperationTracker()


def get_operation_tracker() -> OperationTracker:
    return _operation_tracker
